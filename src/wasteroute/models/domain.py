"""Domain models for bins, trucks, clusters and routes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional


class Coordinate(NamedTuple):
    latitude: float
    longitude: float


class BinStatus(str, Enum):
    EMPTY = "Empty"
    PARTIALLY_FULL = "Partially Full"
    FULL = "Full"
    OVERFLOW = "Overflow"
    DAMAGED = "Damaged"
    OUT_OF_PLACE = "Out of Place"
    COLLECTED = "Collected"


class TruckStatus(str, Enum):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    UNDER_MAINTENANCE = "Under Maintenance"


class ClusterStatus(str, Enum):
    NOT_COLLECTED = "Not Collected"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    MISSED = "Missed"
    CLOSED = "Closed"


class RouteStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


@dataclass(slots=True)
class Bin:
    """A monitored waste container with its expected geofence."""

    bin_id: str
    location: Coordinate
    geofence: list[Coordinate]
    capacity: float
    current_fill_level: float = 0.0
    status: BinStatus = BinStatus.EMPTY
    last_collected_at: Optional[datetime] = None


@dataclass(slots=True)
class Truck:
    """A collection vehicle. Capacity is expressed in truck units."""

    truck_id: str
    capacity: float
    status: TruckStatus = TruckStatus.AVAILABLE
    current_location: Optional[Coordinate] = None
    assigned_driver_id: Optional[str] = None


@dataclass(slots=True)
class Cluster:
    cluster_id: str
    assigned_truck_id: Optional[str]
    bins: list[str]
    status: ClusterStatus = ClusterStatus.NOT_COLLECTED
    assigned_driver_id: Optional[str] = None
    collection_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None


@dataclass(slots=True)
class Route:
    route_id: str
    truck_id: str
    driver_id: Optional[str]
    cluster_id: str
    stops: list[str]
    total_distance: float
    status: RouteStatus = RouteStatus.PENDING
    route_start_time: Optional[datetime] = None
    route_end_time: Optional[datetime] = None


@dataclass(slots=True)
class Incident:
    incident_id: str
    bin_id: str
    description: str
    reported_by: str = "system"
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class PlannedGroup:
    """Bins packed for a single truck by the capacity planner."""

    truck_id: str
    bins: list[Bin] = field(default_factory=list)

    @property
    def load(self) -> float:
        return sum(item.capacity for item in self.bins)


@dataclass(slots=True)
class ClusterPlan:
    groups: list[PlannedGroup]
    used_truck_count: int
    score: float
    evaluated_k: int
