"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(slots=True)
class ChunkTour:
    """Nearest-neighbour walk over one distance-matrix chunk.

    ``visited`` holds matrix indices (never 0, the chunk's start position).
    """

    visited: List[int]
    distance: float
    stalled: bool


@dataclass(slots=True)
class SequenceResult:
    order: List[str] = field(default_factory=list)
    total_distance: float = 0.0
    complete: bool = True
    requests: int = 0
