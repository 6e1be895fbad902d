"""Domain models."""

from .domain import (
    Bin,
    BinStatus,
    Cluster,
    ClusterPlan,
    ClusterStatus,
    Coordinate,
    Incident,
    PlannedGroup,
    Route,
    RouteStatus,
    Truck,
    TruckStatus,
)

__all__ = [
    "Bin",
    "BinStatus",
    "Cluster",
    "ClusterPlan",
    "ClusterStatus",
    "Coordinate",
    "Incident",
    "PlannedGroup",
    "Route",
    "RouteStatus",
    "Truck",
    "TruckStatus",
]
