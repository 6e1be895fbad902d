"""Chunked nearest-neighbour route sequencing.

The routing service bounds how many locations one distance-matrix request
may carry, so stops are sequenced chunk by chunk: each chunk starts at the
current position, is walked greedily, and the last stop reached becomes the
start of the next chunk. The resulting tour is only locally optimal within
each chunk.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Mapping, Optional, Sequence

from ...errors import InvalidInputError, UpstreamUnavailableError, WasteRouteError
from ...models.domain import Coordinate
from ...persistence.base import DistanceMatrixProvider
from .models import ChunkTour, SequenceResult

logger = logging.getLogger(__name__)

LocationLookup = Callable[[str], Coordinate]


def _edge(matrix: Sequence[Sequence[Optional[float]]], i: int, j: int) -> float:
    try:
        value = matrix[i][j]
    except (IndexError, TypeError):
        return math.inf
    if value is None:
        return math.inf
    value = float(value)
    if math.isnan(value) or value < 0:
        return math.inf
    return value


def nearest_neighbor_tour(matrix: Sequence[Sequence[Optional[float]]], size: int) -> ChunkTour:
    """Greedy tour from index 0 over ``size`` locations.

    Unreachable edges are never taken. When every remaining candidate is
    unreachable the walk stops and ``stalled`` is set.
    """
    unvisited = set(range(1, size))
    current = 0
    visited: list[int] = []
    distance = 0.0

    while unvisited:
        next_index = -1
        min_distance = math.inf
        for index in sorted(unvisited):
            candidate = _edge(matrix, current, index)
            if candidate < min_distance:
                min_distance = candidate
                next_index = index
        if next_index == -1:
            return ChunkTour(visited=visited, distance=distance, stalled=True)
        visited.append(next_index)
        distance += min_distance
        unvisited.discard(next_index)
        current = next_index

    return ChunkTour(visited=visited, distance=distance, stalled=False)


class RouteSequencer:
    def __init__(self, provider: DistanceMatrixProvider) -> None:
        if provider.max_locations < 2:
            raise ValueError("Routing provider must accept at least two locations per request.")
        self.provider = provider

    @property
    def chunk_limit(self) -> int:
        return self.provider.max_locations

    def sequence(
        self,
        start: Coordinate,
        stop_ids: Sequence[str],
        location_of: LocationLookup | Mapping[str, Coordinate],
    ) -> SequenceResult:
        """Order ``stop_ids`` into a visiting sequence starting at ``start``.

        Raises UpstreamUnavailableError when the routing service fails.
        """
        if len(set(stop_ids)) != len(stop_ids):
            raise InvalidInputError("Stop ids must be unique.")
        lookup = location_of.__getitem__ if isinstance(location_of, Mapping) else location_of
        # Resolve every stop once so the whole tour uses one snapshot of locations
        locations = {stop_id: Coordinate(*lookup(stop_id)) for stop_id in stop_ids}

        result = SequenceResult()
        remaining = list(stop_ids)
        current = Coordinate(*start)

        while remaining:
            chunk_ids = remaining[: self.chunk_limit - 1]
            points = [current, *(locations[stop_id] for stop_id in chunk_ids)]
            matrix = self._request_matrix(points)
            result.requests += 1

            tour = nearest_neighbor_tour(matrix, len(points))
            consumed = [chunk_ids[index - 1] for index in tour.visited]
            result.order.extend(consumed)
            result.total_distance += tour.distance

            if tour.stalled:
                logger.warning(
                    f"No reachable next stop from {current} ({len(chunk_ids) - len(consumed)} stops unreachable in chunk)"
                )
            if not consumed:
                result.complete = False
                break

            consumed_set = set(consumed)
            remaining = [stop_id for stop_id in remaining if stop_id not in consumed_set]
            current = locations[consumed[-1]]

        return result

    def _request_matrix(self, points: list[Coordinate]) -> Sequence[Sequence[Optional[float]]]:
        try:
            return self.provider.distance_matrix(points)
        except WasteRouteError:
            raise
        except Exception as exc:
            raise UpstreamUnavailableError(f"Routing service call failed: {exc}") from exc
