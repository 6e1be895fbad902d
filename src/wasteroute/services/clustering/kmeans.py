"""K-Means geometric grouping of bins."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from sklearn.cluster import KMeans

from ...config import settings
from ...models.domain import Bin
from ..geospatial import project_to_plane
from .base import GeometricGrouping


class KMeansGrouping(GeometricGrouping):
    """Lloyd's k-means over bin coordinates projected to a local plane (km)."""

    def __init__(
        self,
        *,
        max_iter: int | None = None,
        tolerance: float | None = None,
        random_state: int | None = None,
    ) -> None:
        self.max_iter = max_iter if max_iter is not None else settings.kmeans_max_iterations
        self.tolerance = tolerance if tolerance is not None else settings.kmeans_tolerance
        self.random_state = random_state if random_state is not None else settings.kmeans_random_state

    def split(self, bins: Sequence[Bin], k: int) -> list[list[Bin]]:
        if k < 1:
            raise ValueError("k must be >= 1")

        groups: list[list[Bin]] = [[] for _ in range(k)]
        if not bins:
            return groups
        if len(bins) <= k:
            # Not enough points for k centroids: one bin per group
            for index, item in enumerate(bins):
                groups[index].append(item)
            return groups

        coordinates = np.array(project_to_plane([(b.location[0], b.location[1]) for b in bins]))
        kmeans = KMeans(
            n_clusters=k,
            max_iter=self.max_iter,
            tol=self.tolerance,
            random_state=self.random_state,
            n_init="auto",
        )
        labels = kmeans.fit_predict(coordinates)

        for item, label in zip(bins, labels):
            groups[int(label)].append(item)
        return groups
