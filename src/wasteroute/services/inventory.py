"""Bin and truck mutations that feed the clustering lifecycle."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..errors import InvalidInputError, NoCapacityError, invalid_input_from_validation
from ..models.domain import Bin, Coordinate, Truck
from ..persistence.base import BinStore, TruckStore
from ..schemas.updates import BinFieldsUpdate, BinStatusUpdate, TruckStatusUpdate
from .geospatial import geofence_problems
from .lifecycle.service import ClusterLifecycleService

logger = logging.getLogger(__name__)


def _validate_bin_fields(fields: dict[str, Any]) -> dict[str, Any]:
    try:
        update = BinFieldsUpdate(**fields)
    except ValidationError as exc:
        raise invalid_input_from_validation(exc) from exc
    if update.geofence is not None:
        problems = geofence_problems(update.geofence)
        if problems:
            raise InvalidInputError("; ".join(problems), bin_field="geofence")
    validated = update.model_dump(exclude_unset=True)
    if "location" in validated:
        validated["location"] = Coordinate(*validated["location"])
    if "geofence" in validated:
        validated["geofence"] = [Coordinate(*vertex) for vertex in validated["geofence"]]
    return validated


class InventoryService:
    def __init__(self, bins: BinStore, trucks: TruckStore, lifecycle: ClusterLifecycleService) -> None:
        self.bins = bins
        self.trucks = trucks
        self.lifecycle = lifecycle

    def register_bin(self, item: Bin) -> Bin:
        _validate_bin_fields(
            {
                "capacity": item.capacity,
                "current_fill_level": item.current_fill_level,
                "status": item.status,
                "location": tuple(item.location),
                "geofence": [tuple(vertex) for vertex in item.geofence],
            }
        )
        created = self.bins.create(item)
        self._recluster()
        return created

    def update_bin(self, bin_id: str, /, **fields: Any) -> Bin:
        unknown = set(fields) - set(BinFieldsUpdate.model_fields)
        if unknown:
            raise InvalidInputError(f"Unknown bin fields: {', '.join(sorted(unknown))}")
        self.bins.get_by_id(bin_id)
        updated = self.bins.update_fields(bin_id, **_validate_bin_fields(fields))
        self._recluster()
        return updated

    def update_bin_status(self, bin_id: str, status: Any, current_fill_level: float) -> Bin:
        try:
            update = BinStatusUpdate(status=status, current_fill_level=current_fill_level)
        except ValidationError as exc:
            raise invalid_input_from_validation(exc) from exc
        self.bins.get_by_id(bin_id)
        return self.bins.update_fields(
            bin_id, status=update.status, current_fill_level=update.current_fill_level
        )

    def register_truck(self, truck: Truck) -> Truck:
        if truck.capacity <= 0:
            raise InvalidInputError("Truck capacity must be positive")
        created = self.trucks.create(truck)
        self._recluster()
        return created

    def update_truck_status(self, truck_id: str, status: Any) -> Truck:
        try:
            update = TruckStatusUpdate(status=status)
        except ValidationError as exc:
            raise invalid_input_from_validation(exc) from exc
        self.trucks.get_by_id(truck_id)
        return self.trucks.update_fields(truck_id, status=update.status)

    def update_truck_location(self, truck_id: str, location: Coordinate) -> Truck:
        latitude, longitude = location
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise InvalidInputError(f"Invalid position ({latitude}, {longitude})")
        self.trucks.get_by_id(truck_id)
        return self.trucks.update_fields(truck_id, current_location=Coordinate(latitude, longitude))

    def _recluster(self) -> None:
        try:
            self.lifecycle.recluster_all()
        except NoCapacityError as exc:
            logger.warning(f"Inventory changed but no clusters could be planned: {exc}")
