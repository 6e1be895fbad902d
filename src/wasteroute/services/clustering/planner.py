"""Search over the number of trucks for the best capacity-aware partition."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from ...config import settings
from ...errors import InvalidInputError, NoCapacityError, WasteRouteError
from ...models.domain import Bin, ClusterPlan, PlannedGroup, Truck
from ..routing.sequencer import RouteSequencer
from .base import GeometricGrouping
from .capacity import pack_by_capacity, truck_capacity_in_bin_units
from .kmeans import KMeansGrouping

logger = logging.getLogger(__name__)


class CapacityPlanner:
    """Partition bins into truck-sized groups.

    For k = 1, 2, ... the bins are grouped geometrically, packed onto the k
    largest trucks and scored. The search keeps the best partition and stops
    at the first k that does not improve the score.

    Scoring combines group-size balance, route length (via the sequencer,
    starting from each truck's current location) and how close each truck's
    load is to its capacity. Lower is better.
    """

    def __init__(
        self,
        sequencer: RouteSequencer,
        *,
        grouping: GeometricGrouping | None = None,
        unit_factor: int | None = None,
        failure_penalty: float | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.sequencer = sequencer
        self.grouping = grouping or KMeansGrouping()
        self.unit_factor = unit_factor if unit_factor is not None else settings.capacity_unit_factor
        self.failure_penalty = failure_penalty if failure_penalty is not None else settings.scoring_failure_penalty
        self.max_workers = max_workers if max_workers is not None else settings.scoring_max_workers

    def plan(self, bins: Sequence[Bin], trucks: Sequence[Truck]) -> ClusterPlan:
        """Plan clusters for ``trucks`` sorted by capacity, largest first."""
        if not trucks:
            raise NoCapacityError("No trucks available for clustering.", bins=len(bins))

        truck_by_id = {truck.truck_id: truck for truck in trucks}
        best_groups: list[PlannedGroup] = []
        best_score = float("inf")
        evaluated = 0

        for k in range(1, len(trucks) + 1):
            selected = trucks[:k]
            geometric_groups = self.grouping.split(bins, k)
            groups = pack_by_capacity(geometric_groups, selected, unit_factor=self.unit_factor)
            score = self.score_partition(groups, truck_by_id)
            evaluated = k
            logger.debug(f"Clustering with k={k} scored {score:.3f}")

            if score < best_score:
                best_score = score
                best_groups = groups
            else:
                break

        logger.info(
            f"Planned {len(best_groups)} clusters for {len(bins)} bins "
            f"(score {best_score:.3f}, evaluated k up to {evaluated})"
        )
        return ClusterPlan(
            groups=best_groups,
            used_truck_count=len(best_groups),
            score=best_score,
            evaluated_k=evaluated,
        )

    def score_partition(self, groups: Sequence[PlannedGroup], truck_by_id: dict[str, Truck]) -> float:
        if not groups:
            return float("inf")
        mean_size = sum(len(group.bins) for group in groups) / len(groups)

        workers = min(self.max_workers, len(groups))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                costs = list(
                    executor.map(lambda group: self._group_cost(group, truck_by_id[group.truck_id], mean_size), groups)
                )
        else:
            costs = [self._group_cost(group, truck_by_id[group.truck_id], mean_size) for group in groups]

        return sum(costs) / len(groups)

    def _group_cost(self, group: PlannedGroup, truck: Truck, mean_size: float) -> float:
        size_variance = (len(group.bins) - mean_size) ** 2
        if not group.bins:
            return size_variance

        capacity = truck_capacity_in_bin_units(truck, self.unit_factor)
        if capacity <= 0:
            logger.error(f"Truck {truck.truck_id} has no usable capacity")
            return size_variance + self.failure_penalty

        try:
            if truck.current_location is None:
                raise InvalidInputError(f"Truck {truck.truck_id} has no current location.")
            locations = {item.bin_id: item.location for item in group.bins}
            sequence = self.sequencer.sequence(
                truck.current_location,
                [item.bin_id for item in group.bins],
                locations,
            )
        except WasteRouteError as exc:
            logger.error(f"Route sequencing failed for truck {truck.truck_id}: {exc}")
            return size_variance + self.failure_penalty

        if not sequence.complete:
            logger.warning(f"Truck {truck.truck_id} cannot reach every bin in its group")
            return size_variance + self.failure_penalty

        utilisation = group.load / capacity
        return size_variance + sequence.total_distance / 1000 + abs(1 - utilisation) * 1000
