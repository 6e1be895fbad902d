"""Capacity-constrained clustering of bins onto trucks."""

from .capacity import pack_by_capacity
from .kmeans import KMeansGrouping
from .planner import CapacityPlanner

__all__ = ["CapacityPlanner", "KMeansGrouping", "pack_by_capacity"]
