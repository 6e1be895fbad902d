"""Capacity-bounded packing of geometric groups onto trucks."""

from __future__ import annotations

from typing import Sequence

from ...config import settings
from ...models.domain import Bin, PlannedGroup, Truck


def truck_capacity_in_bin_units(truck: Truck, unit_factor: int | None = None) -> float:
    factor = unit_factor if unit_factor is not None else settings.capacity_unit_factor
    return truck.capacity * factor


def pack_by_capacity(
    geometric_groups: Sequence[Sequence[Bin]],
    trucks: Sequence[Truck],
    *,
    unit_factor: int | None = None,
) -> list[PlannedGroup]:
    """Distribute bins of each geometric group over one group per truck.

    Bins are taken largest first and go to the first truck group with room
    left. A bin that fits nowhere is added to the least-filled group, so the
    result may overflow a truck but never drops a bin.
    """
    if not trucks:
        raise ValueError("At least one truck is required for capacity packing.")

    packed = [PlannedGroup(truck_id=truck.truck_id) for truck in trucks]
    limits = [truck_capacity_in_bin_units(truck, unit_factor) for truck in trucks]
    loads = [0.0 for _ in trucks]

    for geometric_group in geometric_groups:
        for item in sorted(geometric_group, key=lambda b: b.capacity, reverse=True):
            target = next(
                (index for index, load in enumerate(loads) if load + item.capacity <= limits[index]),
                None,
            )
            if target is None:
                target = min(range(len(loads)), key=loads.__getitem__)
            packed[target].bins.append(item)
            loads[target] += item.capacity

    return packed
