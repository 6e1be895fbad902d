"""Collaborator contracts consumed by the core services.

Each service depends only on the narrow protocol it needs, never on a
concrete sibling service.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from ..models.domain import Bin, Cluster, ClusterStatus, Coordinate, Incident, Route, Truck


class BinStore(Protocol):
    def list_all(self) -> list[Bin]: ...

    def get_by_id(self, bin_id: str) -> Bin: ...

    def update_fields(self, bin_id: str, /, **fields: Any) -> Bin: ...

    def create(self, item: Bin) -> Bin: ...


class TruckStore(Protocol):
    def list_available(self) -> list[Truck]: ...

    def list_all(self) -> list[Truck]: ...

    def get_by_id(self, truck_id: str) -> Truck: ...

    def get_by_driver_id(self, driver_id: str) -> Optional[Truck]: ...

    def update_fields(self, truck_id: str, /, **fields: Any) -> Truck: ...

    def create(self, item: Truck) -> Truck: ...


class ClusterStore(Protocol):
    def create(self, **fields: Any) -> Cluster: ...

    def list_all(self) -> list[Cluster]: ...

    def get_by_id(self, cluster_id: str) -> Cluster: ...

    def update_fields(self, cluster_id: str, /, **fields: Any) -> Cluster: ...

    def delete_all(self) -> None: ...

    def list_by_status(self, status: ClusterStatus) -> list[Cluster]: ...


class RouteStore(Protocol):
    def create(self, **fields: Any) -> Route: ...

    def get_by_id(self, route_id: str) -> Route: ...

    def update_fields(self, route_id: str, /, **fields: Any) -> Route: ...

    def list_by_driver_id(self, driver_id: str) -> list[Route]: ...


class DistanceMatrixProvider(Protocol):
    """External routing service returning pairwise distances in metres.

    Missing entries (``None``) mean the pair is unreachable. Implementations
    reject requests with more than ``max_locations`` points.
    """

    max_locations: int

    def distance_matrix(self, points: Sequence[Coordinate]) -> list[list[Optional[float]]]: ...


class IncidentSink(Protocol):
    def raise_incident(self, description: str, bin_id: str) -> Incident: ...


class SettingsStore(Protocol):
    def get_reset_time(self) -> str: ...

    def set_reset_time(self, value: str) -> None: ...
