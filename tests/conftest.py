import math
from datetime import datetime, timezone

import pytest

from wasteroute.bootstrap import build_core
from wasteroute.models.domain import Bin, Coordinate, Truck
from wasteroute.services.lifecycle.jobs import JobRegistry

FIXED_NOW = datetime(2026, 3, 2, 1, 0, tzinfo=timezone.utc)


class EuclideanProvider:
    """Distance matrix over raw degrees (x1000) that records every request."""

    def __init__(self, max_locations=10, unreachable=()):
        self.max_locations = max_locations
        self.unreachable = {tuple(point) for point in unreachable}
        self.calls = []
        self.fail = False

    def distance_matrix(self, points):
        self.calls.append(list(points))
        if self.fail:
            raise RuntimeError("routing backend down")
        assert len(points) <= self.max_locations
        matrix = []
        for a in points:
            row = []
            for b in points:
                if a != b and (tuple(a) in self.unreachable or tuple(b) in self.unreachable):
                    row.append(None)
                else:
                    row.append(math.dist(a, b) * 1000)
            matrix.append(row)
        return matrix


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fn()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [timer for timer in self.timers if timer.started and not timer.cancelled]


def square_fence(lat, lon, half=0.01):
    return [
        Coordinate(lat - half, lon - half),
        Coordinate(lat - half, lon + half),
        Coordinate(lat + half, lon + half),
        Coordinate(lat + half, lon - half),
        Coordinate(lat - half, lon - half),
    ]


def make_bin(bin_id, lat, lon, capacity=100.0, **kwargs):
    return Bin(
        bin_id=bin_id,
        location=Coordinate(lat, lon),
        geofence=square_fence(lat, lon),
        capacity=capacity,
        **kwargs,
    )


def make_truck(truck_id, capacity=1.0, location=(0.0, 0.0), driver_id=None, **kwargs):
    return Truck(
        truck_id=truck_id,
        capacity=capacity,
        current_location=Coordinate(*location) if location is not None else None,
        assigned_driver_id=driver_id,
        **kwargs,
    )


@pytest.fixture
def provider():
    return EuclideanProvider()


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def jobs(timer_factory):
    return JobRegistry(clock=lambda: FIXED_NOW, timer_factory=timer_factory)


@pytest.fixture
def core(provider, jobs):
    return build_core(provider=provider, jobs=jobs)
