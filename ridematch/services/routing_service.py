"""
Routing Service

Routing/geocoding collaborator used by the matching core.

RoutingService is the contract; GoogleMapsRoutingService talks to the Google
Maps web services over httpx, and CachedRoutingService layers an explicit
RouteCache over any implementation. Every failure surfaces as
RoutingUnavailable or GeocodeFailed so callers can degrade.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import polyline

from ridematch.exceptions import GeocodeFailed, RoutingUnavailable
from ridematch.models.location import (
    DistanceResult,
    GeocodeResult,
    LocationPoint,
    PlaceResult,
    RouteGeometry,
)
from ridematch.services.route_cache import RouteCache


logger = logging.getLogger(__name__)


class RoutingService(ABC):
    """Contract for the routing/geocoding collaborator."""

    @abstractmethod
    async def route(
        self, origin: LocationPoint, destination: LocationPoint, mode: str = "driving"
    ) -> RouteGeometry:
        """Route between two points with its overview polyline."""

    @abstractmethod
    async def distance(
        self, origin: LocationPoint, destination: LocationPoint, mode: str = "driving"
    ) -> DistanceResult:
        """Point-to-point travel distance and duration."""

    @abstractmethod
    async def reverse_geocode(self, point: LocationPoint) -> GeocodeResult:
        """Address for a coordinate."""

    @abstractmethod
    async def nearby_search(
        self, point: LocationPoint, radius_m: float, category: str = "establishment"
    ) -> List[PlaceResult]:
        """Points of interest around a coordinate."""

    async def aclose(self) -> None:
        """Release held resources."""


# Statuses that mean the service itself is unusable right now
_UNAVAILABLE_STATUSES = {
    "OVER_QUERY_LIMIT",
    "OVER_DAILY_LIMIT",
    "REQUEST_DENIED",
    "UNKNOWN_ERROR",
    "INVALID_REQUEST",
}


def _latlng(point: LocationPoint) -> str:
    return f"{point.lat},{point.lng}"


class GoogleMapsRoutingService(RoutingService):
    """
    Google Maps web services client.

    Concurrent requests are gated by a semaphore so batch scoring stays
    under the provider's rate limit.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://maps.googleapis.com/maps/api",
        timeout: float = 10.0,
        max_in_flight: int = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._gate = asyncio.Semaphore(max_in_flight)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise RoutingUnavailable("Google Maps API key is not configured")

        url = f"{self.base_url}/{endpoint}/json"
        async with self._gate:
            try:
                response = await self._client.get(url, params={**params, "key": self.api_key})
                response.raise_for_status()
                payload = response.json()
            except httpx.TimeoutException as e:
                raise RoutingUnavailable(f"{endpoint} request timed out") from e
            except httpx.HTTPError as e:
                raise RoutingUnavailable(f"{endpoint} request failed: {e}") from e
            except ValueError as e:
                raise RoutingUnavailable(f"{endpoint} returned invalid JSON") from e

        status = payload.get("status", "UNKNOWN_ERROR")
        if status in _UNAVAILABLE_STATUSES:
            message = payload.get("error_message", "")
            raise RoutingUnavailable(f"{endpoint} status {status} {message}".strip())
        return payload

    async def route(
        self, origin: LocationPoint, destination: LocationPoint, mode: str = "driving"
    ) -> RouteGeometry:
        payload = await self._get("directions", {
            "origin": _latlng(origin),
            "destination": _latlng(destination),
            "mode": mode,
            "alternatives": "false",
        })

        routes = payload.get("routes") or []
        if payload.get("status") != "OK" or not routes:
            raise RoutingUnavailable(f"No route found ({payload.get('status')})")

        route = routes[0]
        total_distance = 0
        total_duration = 0
        for leg in route.get("legs", []):
            total_distance += leg.get("distance", {}).get("value", 0)
            total_duration += leg.get("duration", {}).get("value", 0)

        encoded = route.get("overview_polyline", {}).get("points")
        points = [
            LocationPoint(lat=lat, lng=lng)
            for lat, lng in (polyline.decode(encoded) if encoded else [])
        ]

        return RouteGeometry(
            points=points,
            distance_m=total_distance,
            duration_s=total_duration,
        )

    async def distance(
        self, origin: LocationPoint, destination: LocationPoint, mode: str = "driving"
    ) -> DistanceResult:
        payload = await self._get("distancematrix", {
            "origins": _latlng(origin),
            "destinations": _latlng(destination),
            "mode": mode,
            "units": "metric",
        })

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError) as e:
            raise RoutingUnavailable("Distance matrix returned no elements") from e

        if element.get("status") != "OK":
            raise RoutingUnavailable(f"Distance matrix element status {element.get('status')}")

        return DistanceResult(
            distance_m=element.get("distance", {}).get("value", 0),
            duration_s=element.get("duration", {}).get("value", 0),
        )

    async def reverse_geocode(self, point: LocationPoint) -> GeocodeResult:
        payload = await self._get("geocode", {"latlng": _latlng(point)})

        results = payload.get("results") or []
        if payload.get("status") != "OK" or not results:
            raise GeocodeFailed(f"No address for {_latlng(point)} ({payload.get('status')})")

        return GeocodeResult.model_validate({
            "formatted_address": results[0].get("formatted_address", ""),
            "address_components": results[0].get("address_components", []),
        })

    async def nearby_search(
        self, point: LocationPoint, radius_m: float, category: str = "establishment"
    ) -> List[PlaceResult]:
        payload = await self._get("place/nearbysearch", {
            "location": _latlng(point),
            "radius": int(radius_m),
            "type": category,
        })

        places = []
        for place in payload.get("results", []):
            location = place.get("geometry", {}).get("location", {})
            places.append(PlaceResult(
                name=place.get("name", ""),
                place_id=place.get("place_id"),
                lat=location.get("lat"),
                lng=location.get("lng"),
                types=place.get("types", []),
                rating=place.get("rating"),
            ))
        return places


class CachedRoutingService(RoutingService):
    """Routing service decorator that consults an explicit RouteCache first."""

    def __init__(self, inner: RoutingService, cache: RouteCache):
        self.inner = inner
        self.cache = cache

    async def aclose(self) -> None:
        await self.inner.aclose()

    async def route(
        self, origin: LocationPoint, destination: LocationPoint, mode: str = "driving"
    ) -> RouteGeometry:
        key = self.cache.make_key("route", _latlng(origin), _latlng(destination), mode)
        cached = await self.cache.get(key)
        if cached is not None:
            return RouteGeometry.model_validate(cached)

        result = await self.inner.route(origin, destination, mode)
        await self.cache.set(key, result.model_dump(mode="json"))
        return result

    async def distance(
        self, origin: LocationPoint, destination: LocationPoint, mode: str = "driving"
    ) -> DistanceResult:
        key = self.cache.make_key("distance", _latlng(origin), _latlng(destination), mode)
        cached = await self.cache.get(key)
        if cached is not None:
            return DistanceResult.model_validate(cached)

        result = await self.inner.distance(origin, destination, mode)
        await self.cache.set(key, result.model_dump(mode="json"))
        return result

    async def reverse_geocode(self, point: LocationPoint) -> GeocodeResult:
        key = self.cache.make_key("geocode", _latlng(point))
        cached = await self.cache.get(key)
        if cached is not None:
            return GeocodeResult.model_validate(cached)

        result = await self.inner.reverse_geocode(point)
        await self.cache.set(key, result.model_dump(mode="json"))
        return result

    async def nearby_search(
        self, point: LocationPoint, radius_m: float, category: str = "establishment"
    ) -> List[PlaceResult]:
        key = self.cache.make_key("nearby", _latlng(point), int(radius_m), category)
        cached = await self.cache.get(key)
        if cached is not None:
            return [PlaceResult.model_validate(p) for p in cached]

        result = await self.inner.nearby_search(point, radius_m, category)
        await self.cache.set(key, [p.model_dump(mode="json") for p in result])
        return result
