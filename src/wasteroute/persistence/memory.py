"""Thread-safe in-memory implementations of the collaborator stores."""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import ValidationError

from ..config import settings
from ..errors import InvalidInputError, NotFoundError, invalid_input_from_validation
from ..models.domain import Bin, Cluster, ClusterStatus, Incident, Route, Truck, TruckStatus
from ..schemas.updates import ResetTimeUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _new_id() -> str:
    return uuid.uuid4().hex


class _RecordTable(Generic[T]):
    """Dictionary of dataclass records keyed by id, guarded by a lock."""

    def __init__(self, entity: str, id_field: str) -> None:
        self.entity = entity
        self.id_field = id_field
        self._records: dict[str, T] = {}
        self._lock = threading.RLock()

    def insert(self, record: T) -> T:
        with self._lock:
            self._records[getattr(record, self.id_field)] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def get(self, record_id: str) -> T:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(self.entity, record_id)
            return copy.deepcopy(record)

    def values(self) -> list[T]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def update(self, record_id: str, fields: dict[str, Any]) -> T:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(self.entity, record_id)
            if self.id_field in fields and fields[self.id_field] != record_id:
                raise InvalidInputError(f"{self.entity} id cannot be changed")
            try:
                updated = dataclasses.replace(record, **fields)
            except TypeError as exc:
                raise InvalidInputError(f"Unknown {self.entity} field: {exc}") from exc
            self._records[record_id] = copy.deepcopy(updated)
            return copy.deepcopy(updated)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class InMemoryBinStore:
    def __init__(self, bins: list[Bin] | None = None) -> None:
        self._table: _RecordTable[Bin] = _RecordTable("Bin", "bin_id")
        for item in bins or []:
            self.create(item)

    def create(self, item: Bin) -> Bin:
        return self._table.insert(item)

    def list_all(self) -> list[Bin]:
        return self._table.values()

    def get_by_id(self, bin_id: str) -> Bin:
        return self._table.get(bin_id)

    def update_fields(self, bin_id: str, /, **fields: Any) -> Bin:
        return self._table.update(bin_id, fields)


class InMemoryTruckStore:
    def __init__(self, trucks: list[Truck] | None = None) -> None:
        self._table: _RecordTable[Truck] = _RecordTable("Truck", "truck_id")
        for item in trucks or []:
            self.create(item)

    def create(self, item: Truck) -> Truck:
        return self._table.insert(item)

    def list_all(self) -> list[Truck]:
        return self._table.values()

    def list_available(self) -> list[Truck]:
        return [truck for truck in self._table.values() if truck.status == TruckStatus.AVAILABLE]

    def get_by_id(self, truck_id: str) -> Truck:
        return self._table.get(truck_id)

    def get_by_driver_id(self, driver_id: str) -> Optional[Truck]:
        for truck in self._table.values():
            if truck.assigned_driver_id == driver_id:
                return truck
        return None

    def update_fields(self, truck_id: str, /, **fields: Any) -> Truck:
        return self._table.update(truck_id, fields)


class InMemoryClusterStore:
    def __init__(self) -> None:
        self._table: _RecordTable[Cluster] = _RecordTable("Cluster", "cluster_id")

    def create(self, **fields: Any) -> Cluster:
        fields.setdefault("cluster_id", _new_id())
        fields.setdefault("assigned_truck_id", None)
        fields.setdefault("bins", [])
        return self._table.insert(Cluster(**fields))

    def list_all(self) -> list[Cluster]:
        return self._table.values()

    def get_by_id(self, cluster_id: str) -> Cluster:
        return self._table.get(cluster_id)

    def update_fields(self, cluster_id: str, /, **fields: Any) -> Cluster:
        return self._table.update(cluster_id, fields)

    def delete_all(self) -> None:
        self._table.clear()

    def list_by_status(self, status: ClusterStatus) -> list[Cluster]:
        return [cluster for cluster in self._table.values() if cluster.status == status]


class InMemoryRouteStore:
    def __init__(self) -> None:
        self._table: _RecordTable[Route] = _RecordTable("Route", "route_id")

    def create(self, **fields: Any) -> Route:
        fields.setdefault("route_id", _new_id())
        return self._table.insert(Route(**fields))

    def get_by_id(self, route_id: str) -> Route:
        return self._table.get(route_id)

    def update_fields(self, route_id: str, /, **fields: Any) -> Route:
        return self._table.update(route_id, fields)

    def list_all(self) -> list[Route]:
        return self._table.values()

    def list_by_driver_id(self, driver_id: str) -> list[Route]:
        return [route for route in self._table.values() if route.driver_id == driver_id]


class InMemoryIncidentSink:
    """Collects incidents raised by the geofence monitor."""

    def __init__(self) -> None:
        self.incidents: list[Incident] = []
        self._lock = threading.Lock()

    def raise_incident(self, description: str, bin_id: str) -> Incident:
        incident = Incident(
            incident_id=_new_id(),
            bin_id=bin_id,
            description=description,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self.incidents.append(incident)
        logger.info(f"Incident {incident.incident_id} raised for bin {bin_id}")
        return incident


class InMemorySettingsStore:
    """Keeps the daily reset time, falling back to the configured default."""

    def __init__(self, reset_time: str | None = None) -> None:
        self._reset_time = reset_time

    def get_reset_time(self) -> str:
        if self._reset_time is None:
            return settings.default_reset_time
        try:
            return ResetTimeUpdate(reset_time=self._reset_time).reset_time
        except ValidationError:
            logger.warning(
                f"Stored reset time '{self._reset_time}' is invalid, using default {settings.default_reset_time}"
            )
            self._reset_time = settings.default_reset_time
            return self._reset_time

    def set_reset_time(self, value: str) -> None:
        try:
            self._reset_time = ResetTimeUpdate(reset_time=value).reset_time
        except ValidationError as exc:
            raise invalid_input_from_validation(exc) from exc
