import math
from datetime import datetime, timezone

import pytest

from presence_ai.exceptions import CampusConfigError
from presence_ai.geofence_module import CampusConfig, GeofenceMonitor, haversine_meters
from presence_ai.utils.types import PositionFix

CAMPUS = CampusConfig(latitude=12.9716, longitude=77.5946, radius_m=200.0)
INSIDE = PositionFix(12.9716, 77.5946)
NEAR_INSIDE = PositionFix(12.9720, 77.5946)
OUTSIDE = PositionFix(12.9816, 77.5946)


class RecordingWriter:
    def __init__(self, failures=0):
        self.failures = failures
        self.events = []

    def __call__(self, event):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("database offline")
        self.events.append(event)


class ManualExecutor:
    def __init__(self):
        self.pending = []

    def submit(self, fn, *args):
        self.pending.append((fn, args))

    def run_next(self):
        fn, args = self.pending.pop(0)
        fn(*args)


def test_haversine_known_distance():
    # One degree of latitude is ~111.2 km on a 6371 km sphere.
    assert haversine_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)
    assert haversine_meters(10.0, 20.0, 10.0, 20.0) == 0.0


def test_fix_at_center_is_inside():
    monitor = GeofenceMonitor("s1", CAMPUS, RecordingWriter())
    state = monitor.handle_fix(INSIDE)
    assert state.inside is True
    assert state.last_distance_m == pytest.approx(0.0, abs=1e-6)


def test_fix_beyond_radius_is_outside():
    monitor = GeofenceMonitor("s1", CAMPUS, RecordingWriter())
    state = monitor.handle_fix(OUTSIDE)
    assert state.last_distance_m > CAMPUS.radius_m
    assert state.inside is False


def test_only_transitions_are_written():
    writer = RecordingWriter()
    monitor = GeofenceMonitor("s1", CAMPUS, writer, last_written=True)
    for fix in (INSIDE, OUTSIDE, NEAR_INSIDE, INSIDE):
        monitor.handle_fix(fix)
    assert [event.inside for event in writer.events] == [False, True]


def test_unseeded_monitor_writes_the_initial_state():
    writer = RecordingWriter()
    monitor = GeofenceMonitor("s1", CAMPUS, writer)
    for fix in (INSIDE, OUTSIDE, INSIDE, INSIDE):
        monitor.handle_fix(fix)
    assert [event.inside for event in writer.events] == [True, False, True]


def test_entered_at_only_on_transition_into_campus():
    now = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    writer = RecordingWriter()
    monitor = GeofenceMonitor("s1", CAMPUS, writer, last_written=False, clock=lambda: now)
    monitor.handle_fix(INSIDE)
    monitor.handle_fix(OUTSIDE)
    entering, leaving = writer.events
    assert entering.entered_at == now and entering.at == now
    assert leaving.entered_at is None


def test_failed_write_is_retried_on_next_fix():
    writer = RecordingWriter(failures=1)
    monitor = GeofenceMonitor("s1", CAMPUS, writer, last_written=True)

    monitor.handle_fix(OUTSIDE)
    assert writer.events == []
    assert monitor.state.last_written is True
    assert not monitor.write_in_flight

    monitor.handle_fix(OUTSIDE)
    assert [event.inside for event in writer.events] == [False]
    assert monitor.state.last_written is False


def test_at_most_one_write_in_flight_and_follow_up_is_coalesced():
    writer = RecordingWriter()
    executor = ManualExecutor()
    monitor = GeofenceMonitor("s1", CAMPUS, writer, last_written=True, executor=executor)

    monitor.handle_fix(OUTSIDE)
    state = monitor.handle_fix(INSIDE)
    monitor.handle_fix(OUTSIDE)
    monitor.handle_fix(INSIDE)

    assert state.inside is True
    assert monitor.write_in_flight
    assert len(executor.pending) == 1

    executor.run_next()
    assert monitor.state.last_written is False
    assert len(executor.pending) == 1

    executor.run_next()
    assert executor.pending == []
    assert [event.inside for event in writer.events] == [False, True]
    assert monitor.state.last_written is True


def test_no_follow_up_when_state_returns_to_written_value():
    writer = RecordingWriter()
    executor = ManualExecutor()
    monitor = GeofenceMonitor("s1", CAMPUS, writer, last_written=True, executor=executor)

    monitor.handle_fix(OUTSIDE)
    monitor.handle_fix(INSIDE)
    monitor.handle_fix(OUTSIDE)
    executor.run_next()

    assert executor.pending == []
    assert [event.inside for event in writer.events] == [False]


def test_stopped_monitor_ignores_fixes_and_discards_late_writes():
    writer = RecordingWriter()
    executor = ManualExecutor()
    monitor = GeofenceMonitor("s1", CAMPUS, writer, last_written=True, executor=executor)
    monitor.handle_fix(OUTSIDE)
    monitor.stop()
    executor.run_next()

    assert monitor.state.last_written is True
    assert monitor.handle_fix(INSIDE).last_position == OUTSIDE


def test_replacing_config_applies_to_next_fix():
    monitor = GeofenceMonitor("s1", CAMPUS, RecordingWriter())
    assert monitor.handle_fix(OUTSIDE).inside is False
    monitor.replace_config(CampusConfig(CAMPUS.latitude, CAMPUS.longitude, 5_000.0))
    assert monitor.handle_fix(OUTSIDE).inside is True


def test_campus_config_from_mapping():
    config = CampusConfig.from_mapping({"lat": "12.5", "lng": 77, "radius": 150})
    assert config == CampusConfig(12.5, 77.0, 150.0)
    assert config.to_mapping() == {"lat": 12.5, "lng": 77.0, "radius": 150.0}


@pytest.mark.parametrize(
    "data",
    [
        None,
        {},
        {"lat": 12.5, "lng": 77.0},
        {"lat": "north", "lng": 77.0, "radius": 100},
        {"lat": 12.5, "lng": 77.0, "radius": 0},
        {"lat": 95.0, "lng": 77.0, "radius": 100},
    ],
)
def test_missing_or_partial_campus_config_is_fatal(data):
    with pytest.raises(CampusConfigError):
        CampusConfig.from_mapping(data)


def test_distance_to_matches_haversine():
    expected = haversine_meters(OUTSIDE.latitude, OUTSIDE.longitude, CAMPUS.latitude, CAMPUS.longitude)
    assert math.isclose(CAMPUS.distance_to(OUTSIDE), expected)
