"""Debounced inside/outside tracking against a circular campus boundary.

A write is issued only when the computed ``inside`` differs from the value
most recently persisted, and at most one write is in flight per monitor.
Fixes that arrive during a write update memory immediately; once the write
settles the monitor re-checks and issues one follow-up write if the state has
moved on. A failed write leaves ``last_written`` untouched, so the next fix
retries it.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from presence_ai.exceptions import CampusConfigError
from presence_ai.geofence_module.distance import haversine_meters
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import PositionFix


@dataclass(frozen=True)
class CampusConfig:
    latitude: float
    longitude: float
    radius_m: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CampusConfig":
        if not data:
            raise CampusConfigError("Campus configuration is missing.")

        missing = [key for key in ("lat", "lng", "radius") if data.get(key) is None]
        if missing:
            raise CampusConfigError(f"Campus configuration is incomplete: missing {', '.join(missing)}")

        try:
            config = cls(
                latitude=float(data["lat"]),
                longitude=float(data["lng"]),
                radius_m=float(data["radius"]),
            )
        except (TypeError, ValueError) as exc:
            raise CampusConfigError(f"Campus configuration is malformed: {exc}") from exc

        if not -90.0 <= config.latitude <= 90.0 or not -180.0 <= config.longitude <= 180.0:
            raise CampusConfigError("Campus center is out of range.")
        if config.radius_m <= 0:
            raise CampusConfigError("Campus radius must be positive.")
        return config

    def to_mapping(self) -> dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude, "radius": self.radius_m}

    def distance_to(self, fix: PositionFix) -> float:
        return haversine_meters(fix.latitude, fix.longitude, self.latitude, self.longitude)


@dataclass
class GeofenceState:
    last_position: PositionFix | None = None
    last_distance_m: float | None = None
    inside: bool | None = None
    last_written: bool | None = None


@dataclass(frozen=True)
class GeofenceEvent:
    subject_id: str
    inside: bool
    at: datetime
    distance_m: float
    entered_at: datetime | None = None


GeofenceWriter = Callable[[GeofenceEvent], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeofenceMonitor:
    def __init__(
        self,
        subject_id: str,
        config: CampusConfig,
        writer: GeofenceWriter,
        *,
        last_written: bool | None = None,
        executor: Executor | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.subject_id = subject_id
        self._config = config
        self._writer = writer
        self._executor = executor
        self._clock = clock
        self._lock = threading.Lock()
        self._state = GeofenceState(last_written=last_written)
        self._write_in_flight = False
        self._stopped = False
        self.logger = setup_logger(self.__class__.__name__)

    @property
    def config(self) -> CampusConfig:
        with self._lock:
            return self._config

    @property
    def state(self) -> GeofenceState:
        with self._lock:
            return replace(self._state)

    @property
    def write_in_flight(self) -> bool:
        with self._lock:
            return self._write_in_flight

    def replace_config(self, config: CampusConfig) -> None:
        with self._lock:
            self._config = config

    def stop(self) -> None:
        with self._lock:
            self._stopped = True

    def handle_fix(self, fix: PositionFix) -> GeofenceState:
        with self._lock:
            if self._stopped:
                return replace(self._state)
            distance = self._config.distance_to(fix)
            self._state.last_position = fix
            self._state.last_distance_m = distance
            self._state.inside = distance <= self._config.radius_m
            event = self._next_write_locked()
            snapshot = replace(self._state)

        if event is not None:
            self._dispatch(event)
        return snapshot

    def _next_write_locked(self) -> GeofenceEvent | None:
        state = self._state
        if self._stopped or self._write_in_flight or state.inside is None:
            return None
        if state.inside == state.last_written:
            return None

        self._write_in_flight = True
        now = self._clock()
        return GeofenceEvent(
            subject_id=self.subject_id,
            inside=state.inside,
            at=now,
            distance_m=state.last_distance_m if state.last_distance_m is not None else 0.0,
            entered_at=now if state.inside else None,
        )

    def _dispatch(self, event: GeofenceEvent) -> None:
        if self._executor is None:
            self._write(event)
        else:
            self._executor.submit(self._write, event)

    def _write(self, event: GeofenceEvent) -> None:
        try:
            self._writer(event)
        except Exception:
            self.logger.exception(
                "Geofence write failed for %s (inside=%s); retrying on next fix",
                self.subject_id,
                event.inside,
            )
            with self._lock:
                self._write_in_flight = False
            return

        with self._lock:
            self._write_in_flight = False
            if self._stopped:
                return
            self._state.last_written = event.inside
            follow_up = self._next_write_locked()

        self.logger.info("Geofence state persisted for %s: inside=%s", self.subject_id, event.inside)
        if follow_up is not None:
            self._dispatch(follow_up)
