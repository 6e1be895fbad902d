"""Composition root wiring the core services together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .config import Settings, settings as default_settings
from .persistence.base import (
    BinStore,
    ClusterStore,
    DistanceMatrixProvider,
    IncidentSink,
    RouteStore,
    SettingsStore,
    TruckStore,
)
from .persistence.memory import (
    InMemoryBinStore,
    InMemoryClusterStore,
    InMemoryIncidentSink,
    InMemoryRouteStore,
    InMemorySettingsStore,
    InMemoryTruckStore,
)
from .services.clustering.kmeans import KMeansGrouping
from .services.clustering.planner import CapacityPlanner
from .services.geofence.monitor import GeofenceMonitor
from .services.inventory import InventoryService
from .services.lifecycle.jobs import JobRegistry
from .services.lifecycle.service import ClusterLifecycleService
from .services.routing.osrm_client import HaversineMatrixProvider, OSRMClient
from .services.routing.sequencer import RouteSequencer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CoreServices:
    lifecycle: ClusterLifecycleService
    geofence: GeofenceMonitor
    inventory: InventoryService
    planner: CapacityPlanner
    sequencer: RouteSequencer
    jobs: JobRegistry


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or default_settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_distance_provider(config: Settings) -> DistanceMatrixProvider:
    if config.osrm_base_url:
        return OSRMClient(
            base_url=config.osrm_base_url,
            profile=config.osrm_profile,
            timeout=config.osrm_timeout_seconds,
            max_retries=config.osrm_max_retries,
            backoff_seconds=config.osrm_backoff_seconds,
            max_locations=config.routing_max_locations,
        )
    logger.warning("OSRM base URL not configured; using great-circle distances for routing")
    return HaversineMatrixProvider(max_locations=config.routing_max_locations)


def build_core(
    config: Settings | None = None,
    *,
    bins: Optional[BinStore] = None,
    trucks: Optional[TruckStore] = None,
    clusters: Optional[ClusterStore] = None,
    routes: Optional[RouteStore] = None,
    incidents: Optional[IncidentSink] = None,
    settings_store: Optional[SettingsStore] = None,
    provider: Optional[DistanceMatrixProvider] = None,
    jobs: Optional[JobRegistry] = None,
) -> CoreServices:
    """Build the service graph; any collaborator left out gets an in-memory default."""
    config = config or default_settings
    configure_logging(config.log_level)
    bins = bins or InMemoryBinStore()
    trucks = trucks or InMemoryTruckStore()
    clusters = clusters or InMemoryClusterStore()
    routes = routes or InMemoryRouteStore()
    incidents = incidents or InMemoryIncidentSink()
    settings_store = settings_store or InMemorySettingsStore()
    jobs = jobs or JobRegistry()

    sequencer = RouteSequencer(provider or build_distance_provider(config))
    planner = CapacityPlanner(
        sequencer,
        grouping=KMeansGrouping(
            max_iter=config.kmeans_max_iterations,
            tolerance=config.kmeans_tolerance,
            random_state=config.kmeans_random_state,
        ),
        unit_factor=config.capacity_unit_factor,
        failure_penalty=config.scoring_failure_penalty,
        max_workers=config.scoring_max_workers,
    )
    lifecycle = ClusterLifecycleService(
        bins=bins,
        trucks=trucks,
        clusters=clusters,
        routes=routes,
        planner=planner,
        sequencer=sequencer,
        settings_store=settings_store,
        jobs=jobs,
        collection_window=timedelta(minutes=config.collection_window_minutes),
        sweep_interval=timedelta(minutes=config.sweep_interval_minutes),
    )
    return CoreServices(
        lifecycle=lifecycle,
        geofence=GeofenceMonitor(bins, incidents),
        inventory=InventoryService(bins, trucks, lifecycle),
        planner=planner,
        sequencer=sequencer,
        jobs=jobs,
    )
