"""Cluster lifecycle orchestration.

Reclustering replaces every cluster; in-flight state such as an In Progress
cluster is lost. Drivers claim open clusters one at a time, and a periodic
sweep closes clusters whose bins have all been collected. A daily job puts
every cluster back to Not Collected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ...config import settings
from ...errors import (
    InternalError,
    InvalidInputError,
    NoCapacityError,
    NotFoundError,
    WasteRouteError,
    invalid_input_from_validation,
)
from ...models.domain import (
    BinStatus,
    Cluster,
    ClusterStatus,
    Route,
    RouteStatus,
    TruckStatus,
)
from ...persistence.base import BinStore, ClusterStore, RouteStore, SettingsStore, TruckStore
from ...schemas.updates import ClusterStatusUpdate, ResetTimeUpdate, RouteStatusUpdate
from ..clustering.planner import CapacityPlanner
from ..routing.sequencer import RouteSequencer
from .jobs import JobRegistry

logger = logging.getLogger(__name__)

RESET_JOB_NAME = "reset-clusters"
SWEEP_JOB_NAME = "cluster-status-sweep"


@dataclass(slots=True)
class Assignment:
    cluster: Cluster
    route: Route


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _open_cluster_priority(cluster: Cluster) -> tuple:
    # Earliest collection time first; clusters without one go last
    collection_time = cluster.collection_time
    return (collection_time is None, collection_time or datetime.max.replace(tzinfo=timezone.utc), cluster.cluster_id)


class ClusterLifecycleService:
    def __init__(
        self,
        *,
        bins: BinStore,
        trucks: TruckStore,
        clusters: ClusterStore,
        routes: RouteStore,
        planner: CapacityPlanner,
        sequencer: RouteSequencer,
        settings_store: SettingsStore,
        jobs: JobRegistry,
        clock: Callable[[], datetime] | None = None,
        collection_window: timedelta | None = None,
        sweep_interval: timedelta | None = None,
    ) -> None:
        self.bins = bins
        self.trucks = trucks
        self.clusters = clusters
        self.routes = routes
        self.planner = planner
        self.sequencer = sequencer
        self.settings_store = settings_store
        self.jobs = jobs
        self._clock = clock or _utc_now
        self.collection_window = collection_window or timedelta(minutes=settings.collection_window_minutes)
        self.sweep_interval = sweep_interval or timedelta(minutes=settings.sweep_interval_minutes)

    # Reclustering

    def recluster_all(self) -> list[Cluster]:
        """Replace every cluster with a fresh plan over routable bins and available trucks."""
        bins = [item for item in self.bins.list_all() if item.status != BinStatus.OUT_OF_PLACE]
        available = sorted(self.trucks.list_available(), key=lambda truck: truck.capacity, reverse=True)

        try:
            plan = self.planner.plan(bins, available)
        except NoCapacityError:
            logger.warning("No available trucks; clearing all clusters")
            self.clusters.delete_all()
            raise

        self.clusters.delete_all()

        now = self._clock()
        created: list[Cluster] = []
        failures: list[str] = []
        for group in plan.groups[: plan.used_truck_count]:
            try:
                cluster = self.clusters.create(
                    assigned_truck_id=group.truck_id,
                    bins=[item.bin_id for item in group.bins],
                    status=ClusterStatus.NOT_COLLECTED,
                    collection_time=now,
                )
            except Exception as exc:
                logger.error(f"Failed to create cluster for truck {group.truck_id}: {exc}")
                failures.append(group.truck_id)
                continue
            created.append(cluster)

        used_truck_ids = {group.truck_id for group in plan.groups[: plan.used_truck_count]}
        for truck in self.trucks.list_all():
            if truck.truck_id in used_truck_ids or truck.status == TruckStatus.UNDER_MAINTENANCE:
                continue
            if truck.status != TruckStatus.AVAILABLE:
                try:
                    self.trucks.update_fields(truck.truck_id, status=TruckStatus.AVAILABLE)
                except Exception as exc:
                    logger.error(f"Failed to release truck {truck.truck_id}: {exc}")
                    failures.append(truck.truck_id)

        logger.info(f"Reclustered {len(bins)} bins into {len(created)} clusters")
        if failures:
            raise InternalError(
                f"Recluster completed with {len(failures)} persistence failures",
                failed=failures,
                created=[cluster.cluster_id for cluster in created],
            )
        return created

    # Driver assignment

    def assign_cluster_to_driver(self, driver_id: str) -> Assignment:
        truck = self.trucks.get_by_driver_id(driver_id)
        if truck is None:
            raise NoCapacityError(f"No truck assigned to driver {driver_id}", driver_id=driver_id)

        open_clusters = self.clusters.list_by_status(ClusterStatus.NOT_COLLECTED)
        if not open_clusters:
            raise NotFoundError("Cluster", message="No open clusters available")
        cluster = min(open_clusters, key=_open_cluster_priority)

        if truck.current_location is None:
            raise InvalidInputError(f"Truck {truck.truck_id} has no reported location")

        # One snapshot of the member bins for the whole sequencing run
        member_bins = [self.bins.get_by_id(bin_id) for bin_id in cluster.bins]
        locations = {item.bin_id: item.location for item in member_bins}
        sequence = self.sequencer.sequence(truck.current_location, [item.bin_id for item in member_bins], locations)
        if not sequence.complete:
            logger.warning(
                f"Route for cluster {cluster.cluster_id} skips {len(member_bins) - len(sequence.order)} unreachable bins"
            )

        updated = self.clusters.update_fields(
            cluster.cluster_id,
            status=ClusterStatus.IN_PROGRESS,
            assigned_driver_id=driver_id,
        )
        route = self.routes.create(
            truck_id=truck.truck_id,
            driver_id=driver_id,
            cluster_id=cluster.cluster_id,
            stops=sequence.order,
            total_distance=sequence.total_distance,
            status=RouteStatus.IN_PROGRESS,
            route_start_time=self._clock(),
        )
        logger.info(f"Cluster {cluster.cluster_id} assigned to driver {driver_id} with route {route.route_id}")
        return Assignment(cluster=updated, route=route)

    # Status tracking

    def list_clusters(self) -> list[Cluster]:
        return self.clusters.list_all()

    def get_cluster(self, cluster_id: str) -> Cluster:
        return self.clusters.get_by_id(cluster_id)

    def update_cluster_status(self, cluster_id: str, status: Any) -> Cluster:
        try:
            update = ClusterStatusUpdate(status=status)
        except ValidationError as exc:
            raise invalid_input_from_validation(exc) from exc
        self.clusters.get_by_id(cluster_id)
        fields: dict[str, Any] = {"status": update.status}
        if update.status == ClusterStatus.COMPLETED:
            fields["completion_time"] = self._clock()
        return self.clusters.update_fields(cluster_id, **fields)

    def update_route_status(self, route_id: str, status: Any) -> Route:
        try:
            update = RouteStatusUpdate(status=status)
        except ValidationError as exc:
            raise invalid_input_from_validation(exc) from exc
        self.routes.get_by_id(route_id)
        fields: dict[str, Any] = {"status": update.status}
        if update.status == RouteStatus.COMPLETED:
            fields["route_end_time"] = self._clock()
        return self.routes.update_fields(route_id, **fields)

    def check_and_update_cluster_status(self, cluster_id: str) -> Cluster:
        cluster = self.clusters.get_by_id(cluster_id)
        member_bins = [self.bins.get_by_id(bin_id) for bin_id in cluster.bins]
        all_collected = all(item.status == BinStatus.COLLECTED for item in member_bins)

        if all_collected and cluster.status != ClusterStatus.CLOSED:
            logger.info(f"All bins collected; closing cluster {cluster_id}")
            return self.clusters.update_fields(cluster_id, status=ClusterStatus.CLOSED)
        return cluster

    def mark_missed_collections(self, now: Optional[datetime] = None) -> list[Cluster]:
        now = now or self._clock()
        missed: list[Cluster] = []
        for cluster in self.clusters.list_by_status(ClusterStatus.NOT_COLLECTED):
            if cluster.collection_time is None:
                continue
            if cluster.collection_time + self.collection_window <= now:
                missed.append(self.clusters.update_fields(cluster.cluster_id, status=ClusterStatus.MISSED))
                logger.warning(f"Cluster {cluster.cluster_id} missed its collection window")
        return missed

    # Scheduled jobs

    def sweep_clusters(self) -> None:
        """Hourly job: close fully collected clusters and flag missed ones."""
        logger.info("Running cluster status sweep")
        try:
            clusters = self.clusters.list_all()
        except Exception:
            logger.exception("Cluster sweep could not list clusters")
            return

        for cluster in clusters:
            try:
                self.check_and_update_cluster_status(cluster.cluster_id)
            except WasteRouteError as exc:
                logger.warning(f"Skipping cluster {cluster.cluster_id} in sweep: {exc}")
            except Exception:
                logger.exception(f"Unexpected error checking cluster {cluster.cluster_id}")

        try:
            self.mark_missed_collections()
        except Exception:
            logger.exception("Missed-collection check failed")

    def reset_all_clusters(self) -> None:
        """Daily job: start a new collection cycle for every cluster."""
        logger.info("Resetting all clusters to Not Collected")
        try:
            clusters = self.clusters.list_all()
        except Exception:
            logger.exception("Cluster reset could not list clusters")
            return

        now = self._clock()
        for cluster in clusters:
            try:
                self.clusters.update_fields(
                    cluster.cluster_id,
                    status=ClusterStatus.NOT_COLLECTED,
                    assigned_driver_id=None,
                    collection_time=now,
                    completion_time=None,
                )
            except Exception:
                logger.exception(f"Failed to reset cluster {cluster.cluster_id}")

    def schedule_jobs(self) -> None:
        self.jobs.schedule_interval(SWEEP_JOB_NAME, self.sweep_interval.total_seconds(), self.sweep_clusters)
        self.reschedule_reset()

    def reschedule_reset(self) -> datetime:
        raw = self.settings_store.get_reset_time()
        try:
            reset_time = ResetTimeUpdate(reset_time=raw)
        except ValidationError as exc:
            logger.error(f"Invalid reset time format: {raw}")
            raise invalid_input_from_validation(exc) from exc
        next_run = self.jobs.schedule_daily(RESET_JOB_NAME, reset_time.hour, reset_time.minute, self.reset_all_clusters)
        logger.info(f"Daily cluster reset scheduled for {reset_time.reset_time}")
        return next_run

    def update_reset_time(self, value: str) -> datetime:
        self.settings_store.set_reset_time(value)
        return self.reschedule_reset()

    def stop_jobs(self) -> None:
        self.jobs.shutdown()
