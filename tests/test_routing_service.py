"""
Tests for Routing Service

Google Maps client behaviour over a mocked transport, and the route cache
decorator.
"""

import json

import httpx
import polyline
import pytest
from unittest.mock import AsyncMock, MagicMock

from ridematch.exceptions import GeocodeFailed, RoutingUnavailable
from ridematch.models.location import LocationPoint, RouteGeometry
from ridematch.services.route_cache import RouteCache
from ridematch.services.routing_service import CachedRoutingService, GoogleMapsRoutingService


ORIGIN = LocationPoint(lat=40.7128, lng=-74.0060)
DESTINATION = LocationPoint(lat=40.7589, lng=-73.9851)


def google_client(handler) -> GoogleMapsRoutingService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleMapsRoutingService(api_key="test-key", client=client)


class TestGoogleMapsRoutingService:
    """Tests for GoogleMapsRoutingService."""

    @pytest.mark.asyncio
    async def test_route_decodes_overview_polyline(self):
        coords = [(40.7128, -74.006), (40.73, -73.995), (40.7589, -73.9851)]
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.url.params["key"]
            return httpx.Response(200, json={
                "status": "OK",
                "routes": [{
                    "overview_polyline": {"points": polyline.encode(coords)},
                    "legs": [{"distance": {"value": 5400}, "duration": {"value": 900}}],
                }],
            })

        route = await google_client(handler).route(ORIGIN, DESTINATION)

        assert seen["path"].endswith("/directions/json")
        assert seen["key"] == "test-key"
        assert route.distance_m == 5400
        assert route.duration_s == 900
        assert [(p.lat, p.lng) for p in route.points] == [
            pytest.approx(c, abs=1e-5) for c in coords
        ]

    @pytest.mark.asyncio
    async def test_quota_exhaustion_is_unavailable(self):
        def handler(request):
            return httpx.Response(200, json={"status": "OVER_QUERY_LIMIT", "routes": []})

        with pytest.raises(RoutingUnavailable):
            await google_client(handler).route(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RoutingUnavailable):
            await google_client(handler).distance(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_http_error_status_is_unavailable(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(RoutingUnavailable):
            await google_client(handler).distance(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_missing_api_key_is_unavailable(self):
        service = GoogleMapsRoutingService(api_key=None)

        with pytest.raises(RoutingUnavailable):
            await service.route(ORIGIN, DESTINATION)
        await service.aclose()

    @pytest.mark.asyncio
    async def test_distance_matrix(self):
        def handler(request):
            assert request.url.params["mode"] == "walking"
            return httpx.Response(200, json={
                "status": "OK",
                "rows": [{"elements": [{
                    "status": "OK",
                    "distance": {"value": 800},
                    "duration": {"value": 600},
                }]}],
            })

        result = await google_client(handler).distance(ORIGIN, DESTINATION, mode="walking")

        assert result.distance_m == 800
        assert result.duration_s == 600

    @pytest.mark.asyncio
    async def test_geocode_zero_results_is_geocode_failure(self):
        def handler(request):
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

        with pytest.raises(GeocodeFailed):
            await google_client(handler).reverse_geocode(ORIGIN)

    @pytest.mark.asyncio
    async def test_reverse_geocode(self):
        def handler(request):
            return httpx.Response(200, json={
                "status": "OK",
                "results": [{
                    "formatted_address": "1 Main St, New York",
                    "address_components": [
                        {"long_name": "Main Street", "short_name": "Main St", "types": ["route"]}
                    ],
                }],
            })

        result = await google_client(handler).reverse_geocode(ORIGIN)

        assert result.formatted_address == "1 Main St, New York"
        assert result.address_components[0].types == ["route"]

    @pytest.mark.asyncio
    async def test_nearby_search(self):
        def handler(request):
            assert request.url.params["radius"] == "500"
            return httpx.Response(200, json={
                "status": "OK",
                "results": [{
                    "name": "Station",
                    "place_id": "p1",
                    "geometry": {"location": {"lat": 40.71, "lng": -74.0}},
                    "types": ["transit_station"],
                    "rating": 4.2,
                }],
            })

        places = await google_client(handler).nearby_search(ORIGIN, 500)

        assert len(places) == 1
        assert places[0].types == ["transit_station"]
        assert places[0].rating == 4.2

    @pytest.mark.asyncio
    async def test_nearby_zero_results_is_empty(self):
        def handler(request):
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

        assert await google_client(handler).nearby_search(ORIGIN, 500) == []


class TestCachedRoutingService:
    """Tests for CachedRoutingService and RouteCache."""

    @pytest.fixture
    def redis_client(self):
        store = {}
        client = MagicMock()
        client.get = AsyncMock(side_effect=lambda key: store.get(key))

        async def set_value(key, value, ex=None):
            store[key] = value

        client.set = AsyncMock(side_effect=set_value)
        client.store = store
        return client

    @pytest.fixture
    def inner(self):
        service = MagicMock()
        service.route = AsyncMock(return_value=RouteGeometry(
            points=[ORIGIN, DESTINATION], distance_m=5400, duration_s=900
        ))
        return service

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, redis_client, inner):
        cached = CachedRoutingService(inner, RouteCache(redis_client, ttl_seconds=60))

        first = await cached.route(ORIGIN, DESTINATION)
        second = await cached.route(ORIGIN, DESTINATION)

        assert inner.route.await_count == 1
        assert second == first
        key = next(iter(redis_client.store))
        assert key.startswith("ridematch:route:route:")
        assert json.loads(redis_client.store[key])["distance_m"] == 5400

    @pytest.mark.asyncio
    async def test_ttl_passed_to_redis(self, redis_client, inner):
        cached = CachedRoutingService(inner, RouteCache(redis_client, ttl_seconds=60))

        await cached.route(ORIGIN, DESTINATION)

        assert redis_client.set.await_args.kwargs["ex"] == 60

    @pytest.mark.asyncio
    async def test_cache_outage_does_not_fail_routing(self, inner):
        broken = MagicMock()
        broken.get = AsyncMock(side_effect=ConnectionError("redis down"))
        broken.set = AsyncMock(side_effect=ConnectionError("redis down"))
        cached = CachedRoutingService(inner, RouteCache(broken))

        route = await cached.route(ORIGIN, DESTINATION)

        assert route.distance_m == 5400

    @pytest.mark.asyncio
    async def test_routing_errors_pass_through(self, redis_client):
        inner = MagicMock()
        inner.route = AsyncMock(side_effect=RoutingUnavailable("down"))
        cached = CachedRoutingService(inner, RouteCache(redis_client))

        with pytest.raises(RoutingUnavailable):
            await cached.route(ORIGIN, DESTINATION)
        assert redis_client.store == {}

    def test_keys_are_deterministic(self, redis_client):
        cache = RouteCache(redis_client)

        assert cache.make_key("route", "a", "b") == cache.make_key("route", "a", "b")
        assert cache.make_key("route", "a", "b") != cache.make_key("route", "b", "a")
