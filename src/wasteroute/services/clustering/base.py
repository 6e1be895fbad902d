"""Base classes for geometric grouping implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ...models.domain import Bin


class GeometricGrouping(ABC):
    """Contract for splitting bins into ``k`` spatial groups."""

    @abstractmethod
    def split(self, bins: Sequence[Bin], k: int) -> list[list[Bin]]:
        """Return exactly ``k`` groups (some possibly empty) covering every bin once."""
        raise NotImplementedError
