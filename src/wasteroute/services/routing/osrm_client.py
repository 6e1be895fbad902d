"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import math
import time
from typing import Optional, Sequence

import httpx

from ...config import settings
from ...errors import InvalidInputError, UpstreamUnavailableError
from ...models.domain import Coordinate
from ..geospatial import haversine_km

logger = logging.getLogger(__name__)


class OSRMClient:
    """Distance-matrix provider backed by the OSRM ``table`` endpoint.

    A single request never carries more than ``max_locations`` coordinates;
    callers that need more must split their work (see ``RouteSequencer``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_locations: int | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_locations = max_locations if max_locations is not None else settings.routing_max_locations

    def _get_client(self) -> httpx.Client:
        # One client per call keeps the instance safe to share between scoring threads
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=0),
        )

    def distance_matrix(self, points: Sequence[Coordinate]) -> list[list[Optional[float]]]:
        """Return the pairwise driving distance matrix (metres) for ``points``."""
        if len(points) < 1:
            raise InvalidInputError("At least one coordinate is required for a distance matrix.")
        if len(points) > self.max_locations:
            raise InvalidInputError(
                f"Distance matrix request has {len(points)} locations; the limit is {self.max_locations}."
            )
        if len(points) == 1:
            return [[0.0]]

        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in points)
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"
        data = self._get_with_retries(url, params={"annotations": "distance"})

        distances = data.get("distances")
        if not isinstance(distances, list) or len(distances) != len(points):
            raise UpstreamUnavailableError("OSRM response missing a distance matrix of the expected size.")
        return [[_as_distance(value) for value in row] for row in distances]

    def _get_with_retries(self, url: str, params: dict) -> dict:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if data.get("code", "Ok") != "Ok":
                        raise ValueError(f"OSRM returned code {data.get('code')}: {data.get('message', '')}")
                    return data
                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 414:
                        raise UpstreamUnavailableError(
                            f"OSRM request URL too large. Try reducing routing_max_locations (current: {self.max_locations})"
                        ) from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamUnavailableError(
                            f"OSRM request failed with status {e.response.status_code}", url=self.base_url
                        ) from e
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM request timed out after {self.max_retries} retries: {e}")
                        raise UpstreamUnavailableError(
                            f"OSRM request timed out after {self.timeout:.1f}s", url=self.base_url
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM request timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.TransportError, OSError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamUnavailableError(
                            f"Failed to connect to OSRM service at {self.base_url}: {e}", url=self.base_url
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except ValueError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamUnavailableError(f"Invalid OSRM response: {e}", url=self.base_url) from e
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()


class HaversineMatrixProvider:
    """Great-circle distance matrix used when no routing service is configured."""

    def __init__(self, max_locations: int | None = None) -> None:
        self.max_locations = max_locations if max_locations is not None else settings.routing_max_locations

    def distance_matrix(self, points: Sequence[Coordinate]) -> list[list[Optional[float]]]:
        if len(points) > self.max_locations:
            raise InvalidInputError(
                f"Distance matrix request has {len(points)} locations; the limit is {self.max_locations}."
            )
        return [
            [haversine_km(a[0], a[1], b[0], b[1]) * 1000.0 for b in points]
            for a in points
        ]


def _as_distance(value: object) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number < 0:
        return None
    return number

