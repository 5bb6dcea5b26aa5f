"""
Geo Utilities

Geodesic distance helpers and a grid-bucket spatial index for polyline
segment lookups.
"""

import math
from collections import defaultdict
from typing import Dict, Iterator, List, Sequence, Tuple

from geopy.distance import geodesic


LatLng = Tuple[float, float]

METERS_PER_DEGREE_EQUATOR = 111_320.0  # Longitude degree at the equator
# Shortest geodesic meridian degree (WGS-84, at the equator)
MIN_METERS_PER_DEGREE_LAT = 110_574.0
GRID_CELL_PADDING = 1.01


def distance_m(a: LatLng, b: LatLng) -> float:
    """Geodesic distance between two (lat, lng) tuples in meters."""
    return geodesic(a, b).meters


def distance_km(a: LatLng, b: LatLng) -> float:
    """Geodesic distance between two (lat, lng) tuples in kilometers."""
    return geodesic(a, b).kilometers


def polyline_length_km(points: Sequence[LatLng]) -> float:
    """Sum of geodesic segment lengths along a polyline."""
    return sum(distance_km(points[i], points[i + 1]) for i in range(len(points) - 1))


def midpoint(a: LatLng, b: LatLng) -> LatLng:
    """Arithmetic midpoint. Good enough for the short spans we deal with."""
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def sample_indices(length: int, target_samples: int = 20) -> List[int]:
    """Indices of roughly target_samples evenly spaced points."""
    if length <= 0:
        return []
    step = max(1, length // target_samples)
    return list(range(0, length, step))


class SegmentGridIndex:
    """
    Grid-bucket index over polyline segments keyed by their start point.

    Cells are at least `cell_size_m` wide in both directions, so any segment
    whose start lies within `cell_size_m` of a query point is found in the
    3x3 neighbourhood of the query cell.
    """

    def __init__(self, points: Sequence[LatLng], cell_size_m: float):
        self.points = list(points)
        padded_m = cell_size_m * GRID_CELL_PADDING
        self.lat_step = padded_m / MIN_METERS_PER_DEGREE_LAT

        # Narrowest longitude degree along the path keeps cells wide enough
        max_abs_lat = max((abs(p[0]) for p in self.points), default=0.0)
        cos_lat = max(math.cos(math.radians(max_abs_lat)), 0.01)
        self.lng_step = padded_m / (METERS_PER_DEGREE_EQUATOR * cos_lat)

        self._cells: Dict[Tuple[int, int], List[int]] = defaultdict(list)
        for i in range(len(self.points) - 1):
            self._cells[self._cell(self.points[i])].append(i)

    def _cell(self, point: LatLng) -> Tuple[int, int]:
        return (
            math.floor(point[0] / self.lat_step),
            math.floor(point[1] / self.lng_step),
        )

    def segments_near(self, point: LatLng) -> Iterator[int]:
        """Yield indices of segments whose start cell neighbours `point`."""
        row, col = self._cell(point)
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                yield from self._cells.get((row + dr, col + dc), ())

    def segment(self, index: int) -> Tuple[LatLng, LatLng]:
        return self.points[index], self.points[index + 1]
