import pytest

from conftest import make_bin
from wasteroute.errors import InvalidInputError, NotFoundError
from wasteroute.models.domain import BinStatus
from wasteroute.persistence.memory import InMemoryBinStore, InMemoryIncidentSink
from wasteroute.services.geofence import GeofenceMonitor


def _monitor(incidents=None, status=BinStatus.FULL):
    bins = InMemoryBinStore([make_bin("B1", 24.70, 46.70, status=status)])
    return GeofenceMonitor(bins, incidents or InMemoryIncidentSink()), bins


def test_position_inside_fence_keeps_status():
    monitor, _ = _monitor()

    check = monitor.check_fence("B1", 24.70, 46.70)

    assert check.within_fence is True
    assert check.bin.status == BinStatus.FULL


def test_leaving_fence_marks_bin_and_raises_single_incident():
    sink = InMemoryIncidentSink()
    monitor, bins = _monitor(sink)

    first = monitor.check_fence("B1", 24.80, 46.80)
    second = monitor.check_fence("B1", 24.81, 46.81)

    assert first.within_fence is False
    assert second.within_fence is False
    assert bins.get_by_id("B1").status == BinStatus.OUT_OF_PLACE
    assert len(sink.incidents) == 1
    assert sink.incidents[0].bin_id == "B1"
    assert "Lat 24.8, Lon 46.8" in sink.incidents[0].description


def test_returning_to_fence_resets_to_empty():
    monitor, bins = _monitor()
    monitor.check_fence("B1", 24.80, 46.80)

    check = monitor.check_fence("B1", 24.70, 46.70)

    assert check.within_fence is True
    assert bins.get_by_id("B1").status == BinStatus.EMPTY


def test_incident_failure_does_not_block_status_change(caplog):
    class BrokenSink:
        def raise_incident(self, description, bin_id):
            raise RuntimeError("incident service offline")

    monitor, bins = _monitor(BrokenSink())

    check = monitor.check_fence("B1", 24.80, 46.80)

    assert check.within_fence is False
    assert bins.get_by_id("B1").status == BinStatus.OUT_OF_PLACE
    assert "Failed to raise incident for bin B1" in caplog.text


def test_invalid_coordinates_are_rejected():
    monitor, _ = _monitor()

    with pytest.raises(InvalidInputError):
        monitor.check_fence("B1", 91.0, 46.70)


def test_unknown_bin_is_not_found():
    monitor, _ = _monitor()

    with pytest.raises(NotFoundError):
        monitor.check_fence("B404", 24.70, 46.70)
