"""Match Classifier - Labels a pairing from its overlap numbers."""

from ridematch.models.match import MatchType


EXACT_ROUTE_THRESHOLD = 0.95
PARTIAL_OVERLAP_THRESHOLD = 0.3
PICKUP_DEVIATION_RATIO = 0.3


def classify_match(
    overlap_percentage: float,
    deviation_distance_km: float,
    total_distance_km: float,
    exact_route_threshold: float = EXACT_ROUTE_THRESHOLD,
    partial_overlap_threshold: float = PARTIAL_OVERLAP_THRESHOLD,
) -> MatchType:
    """
    Determine match type.

    Low-overlap pairings are split by how much of the source route the
    deviation covers: a small deviation means the detour is at pickup.
    """
    if overlap_percentage >= exact_route_threshold:
        return MatchType.EXACT_ROUTE

    if overlap_percentage >= partial_overlap_threshold:
        return MatchType.PARTIAL_OVERLAP

    # Zero-length source route: treat the whole thing as deviation
    if total_distance_km <= 0:
        return MatchType.DETOUR_DROPOFF

    deviation_ratio = deviation_distance_km / total_distance_km
    if deviation_ratio < PICKUP_DEVIATION_RATIO:
        return MatchType.DETOUR_PICKUP
    return MatchType.DETOUR_DROPOFF
