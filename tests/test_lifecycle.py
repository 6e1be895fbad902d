from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_bin, make_truck
from wasteroute.errors import (
    InvalidInputError,
    NoCapacityError,
    NotFoundError,
    UpstreamUnavailableError,
)
from wasteroute.models.domain import BinStatus, ClusterStatus, RouteStatus, TruckStatus
from wasteroute.services.lifecycle.service import RESET_JOB_NAME, SWEEP_JOB_NAME


def _seed(core, bins=4, trucks=2):
    lifecycle = core.lifecycle
    for i in range(bins):
        lifecycle.bins.create(make_bin(f"B{i}", 24.70 + i * 0.002, 46.70 + i * 0.002))
    for i in range(trucks):
        lifecycle.trucks.create(make_truck(f"T{i}", location=(24.69, 46.69), driver_id=f"D{i}"))
    return lifecycle


def test_recluster_covers_every_bin_once(core):
    lifecycle = _seed(core, bins=6)

    clusters = lifecycle.recluster_all()

    member_ids = [bin_id for cluster in clusters for bin_id in cluster.bins]
    assert sorted(member_ids) == [f"B{i}" for i in range(6)]
    assert len({cluster.assigned_truck_id for cluster in clusters}) == len(clusters)
    assert all(cluster.status == ClusterStatus.NOT_COLLECTED for cluster in clusters)
    assert len(lifecycle.list_clusters()) == len(clusters)


def test_recluster_replaces_previous_clusters(core):
    lifecycle = _seed(core)
    first = lifecycle.recluster_all()
    second = lifecycle.recluster_all()

    stored_ids = {cluster.cluster_id for cluster in lifecycle.list_clusters()}
    assert stored_ids == {cluster.cluster_id for cluster in second}
    assert stored_ids.isdisjoint(cluster.cluster_id for cluster in first)


def test_recluster_skips_out_of_place_bins(core):
    lifecycle = _seed(core)
    lifecycle.bins.update_fields("B1", status=BinStatus.OUT_OF_PLACE)

    clusters = lifecycle.recluster_all()

    member_ids = {bin_id for cluster in clusters for bin_id in cluster.bins}
    assert "B1" not in member_ids
    assert member_ids == {"B0", "B2", "B3"}


def test_recluster_without_available_trucks_clears_clusters(core):
    lifecycle = _seed(core)
    lifecycle.recluster_all()
    for truck in lifecycle.trucks.list_all():
        lifecycle.trucks.update_fields(truck.truck_id, status=TruckStatus.UNDER_MAINTENANCE)

    with pytest.raises(NoCapacityError):
        lifecycle.recluster_all()
    assert lifecycle.list_clusters() == []


def test_recluster_releases_unplanned_trucks(core):
    lifecycle = _seed(core, bins=1, trucks=1)
    lifecycle.trucks.create(make_truck("BUSY", status=TruckStatus.IN_USE))
    lifecycle.trucks.create(make_truck("SHOP", status=TruckStatus.UNDER_MAINTENANCE))

    lifecycle.recluster_all()

    assert lifecycle.trucks.get_by_id("BUSY").status == TruckStatus.AVAILABLE
    assert lifecycle.trucks.get_by_id("SHOP").status == TruckStatus.UNDER_MAINTENANCE


def test_assign_cluster_builds_route_for_driver(core):
    lifecycle = _seed(core)
    lifecycle.recluster_all()

    assignment = lifecycle.assign_cluster_to_driver("D1")

    assert assignment.cluster.status == ClusterStatus.IN_PROGRESS
    assert assignment.cluster.assigned_driver_id == "D1"
    assert sorted(assignment.route.stops) == sorted(assignment.cluster.bins)
    assert assignment.route.truck_id == "T1"
    assert assignment.route.status == RouteStatus.IN_PROGRESS
    assert assignment.route.route_start_time is not None
    assert assignment.route.total_distance > 0
    assert lifecycle.routes.list_by_driver_id("D1") == [assignment.route]


def test_assign_picks_earliest_collection_time(core):
    lifecycle = _seed(core)
    base = datetime(2026, 3, 1, 6, 0, tzinfo=timezone.utc)
    lifecycle.clusters.create(cluster_id="late", assigned_truck_id="T0", bins=["B0"], collection_time=base + timedelta(hours=2))
    lifecycle.clusters.create(cluster_id="early", assigned_truck_id="T1", bins=["B1"], collection_time=base)

    assignment = lifecycle.assign_cluster_to_driver("D0")

    assert assignment.cluster.cluster_id == "early"
    assert lifecycle.get_cluster("late").status == ClusterStatus.NOT_COLLECTED


def test_assign_without_truck_signals_no_capacity(core):
    lifecycle = _seed(core)
    lifecycle.recluster_all()

    with pytest.raises(NoCapacityError):
        lifecycle.assign_cluster_to_driver("nobody")


def test_assign_without_open_cluster_is_not_found(core):
    lifecycle = _seed(core)

    with pytest.raises(NotFoundError):
        lifecycle.assign_cluster_to_driver("D0")


def test_assign_leaves_cluster_open_when_routing_fails(core, provider):
    lifecycle = _seed(core)
    lifecycle.recluster_all()
    provider.fail = True

    with pytest.raises(UpstreamUnavailableError):
        lifecycle.assign_cluster_to_driver("D0")

    assert all(cluster.status == ClusterStatus.NOT_COLLECTED for cluster in lifecycle.list_clusters())
    assert lifecycle.routes.list_all() == []


def test_check_closes_cluster_once_all_bins_collected(core):
    lifecycle = _seed(core)
    cluster = lifecycle.clusters.create(assigned_truck_id="T0", bins=["B0", "B1"])

    lifecycle.bins.update_fields("B0", status=BinStatus.COLLECTED)
    assert lifecycle.check_and_update_cluster_status(cluster.cluster_id).status == ClusterStatus.NOT_COLLECTED

    lifecycle.bins.update_fields("B1", status=BinStatus.COLLECTED)
    assert lifecycle.check_and_update_cluster_status(cluster.cluster_id).status == ClusterStatus.CLOSED


def test_sweep_survives_broken_clusters(core, caplog):
    lifecycle = _seed(core)
    broken = lifecycle.clusters.create(assigned_truck_id="T0", bins=["missing-bin"])
    done = lifecycle.clusters.create(assigned_truck_id="T1", bins=["B2"])
    lifecycle.bins.update_fields("B2", status=BinStatus.COLLECTED)

    lifecycle.sweep_clusters()

    assert lifecycle.get_cluster(done.cluster_id).status == ClusterStatus.CLOSED
    assert lifecycle.get_cluster(broken.cluster_id).status == ClusterStatus.NOT_COLLECTED
    assert f"Skipping cluster {broken.cluster_id}" in caplog.text


def test_missed_collections_are_flagged_after_window(core):
    lifecycle = _seed(core)
    start = datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)
    stale = lifecycle.clusters.create(assigned_truck_id="T0", bins=["B0"], collection_time=start)
    fresh = lifecycle.clusters.create(
        assigned_truck_id="T1", bins=["B1"], collection_time=start + timedelta(hours=20)
    )

    missed = lifecycle.mark_missed_collections(now=start + timedelta(hours=25))

    assert [cluster.cluster_id for cluster in missed] == [stale.cluster_id]
    assert lifecycle.get_cluster(stale.cluster_id).status == ClusterStatus.MISSED
    assert lifecycle.get_cluster(fresh.cluster_id).status == ClusterStatus.NOT_COLLECTED


def test_reset_reopens_every_cluster(core):
    lifecycle = _seed(core)
    closed = lifecycle.clusters.create(assigned_truck_id="T0", bins=["B0"], status=ClusterStatus.CLOSED)
    working = lifecycle.clusters.create(
        assigned_truck_id="T1", bins=["B1"], status=ClusterStatus.IN_PROGRESS, assigned_driver_id="D1"
    )

    lifecycle.reset_all_clusters()

    for cluster_id in (closed.cluster_id, working.cluster_id):
        cluster = lifecycle.get_cluster(cluster_id)
        assert cluster.status == ClusterStatus.NOT_COLLECTED
        assert cluster.assigned_driver_id is None
        assert cluster.collection_time is not None


def test_update_cluster_status(core):
    lifecycle = _seed(core)
    cluster = lifecycle.clusters.create(assigned_truck_id="T0", bins=["B0"])

    updated = lifecycle.update_cluster_status(cluster.cluster_id, "Completed")

    assert updated.status == ClusterStatus.COMPLETED
    assert updated.completion_time is not None
    with pytest.raises(InvalidInputError):
        lifecycle.update_cluster_status(cluster.cluster_id, "Emptied")
    with pytest.raises(NotFoundError):
        lifecycle.update_cluster_status("unknown", "Closed")


def test_update_route_status_stamps_end_time(core):
    lifecycle = _seed(core)
    lifecycle.recluster_all()
    route = lifecycle.assign_cluster_to_driver("D0").route

    updated = lifecycle.update_route_status(route.route_id, RouteStatus.COMPLETED)

    assert updated.status == RouteStatus.COMPLETED
    assert updated.route_end_time is not None


def test_schedule_jobs_registers_sweep_and_reset(core, timer_factory):
    lifecycle = core.lifecycle

    lifecycle.schedule_jobs()

    assert core.jobs.job_names() == sorted([RESET_JOB_NAME, SWEEP_JOB_NAME])
    assert len(timer_factory.active) == 2
    lifecycle.stop_jobs()
    assert timer_factory.active == []


def test_update_reset_time_reschedules_single_job(core, timer_factory):
    lifecycle = core.lifecycle
    lifecycle.schedule_jobs()

    next_run = lifecycle.update_reset_time("02:30")
    lifecycle.update_reset_time("03:45")

    assert (next_run.hour, next_run.minute) == (2, 30)
    assert core.jobs.next_run(RESET_JOB_NAME).hour == 3
    assert len(timer_factory.active) == 2


def test_update_reset_time_rejects_bad_format(core):
    lifecycle = core.lifecycle
    lifecycle.schedule_jobs()
    before = core.jobs.next_run(RESET_JOB_NAME)

    with pytest.raises(InvalidInputError):
        lifecycle.update_reset_time("25:61")
    assert core.jobs.next_run(RESET_JOB_NAME) == before
