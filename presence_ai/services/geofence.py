from __future__ import annotations

import threading
from concurrent.futures import Executor
from typing import Any, Mapping

from presence_ai.database import PresenceRepository
from presence_ai.geofence_module import CampusConfig, GeofenceMonitor, GeofenceState
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import PositionFix


class GeofenceService:
    """One monitor per subject, seeded from the persisted geofence record."""

    def __init__(
        self,
        repository: PresenceRepository,
        campus_seed: Mapping[str, Any] | None = None,
        executor: Executor | None = None,
    ):
        self.repository = repository
        self.campus_seed = campus_seed
        self.executor = executor
        self._lock = threading.Lock()
        self._monitors: dict[str, GeofenceMonitor] = {}
        self._config: CampusConfig | None = None
        self.logger = setup_logger(self.__class__.__name__)

    def campus_config(self) -> CampusConfig:
        with self._lock:
            if self._config is None:
                self._config = self.repository.load_campus_config(self.campus_seed)
            return self._config

    def update_campus(self, config: CampusConfig) -> None:
        self.repository.save_campus_config(config)
        with self._lock:
            self._config = config
            monitors = list(self._monitors.values())
        for monitor in monitors:
            monitor.replace_config(config)
        self.logger.info("Campus configuration updated: %s", config.to_mapping())

    def monitor_for(self, subject_id: str) -> GeofenceMonitor:
        config = self.campus_config()
        with self._lock:
            monitor = self._monitors.get(subject_id)
            if monitor is not None:
                return monitor

        persisted = self.repository.load_geofence(subject_id)
        monitor = GeofenceMonitor(
            subject_id,
            config,
            self.repository.write_geofence_event,
            last_written=persisted.inside_campus if persisted is not None else None,
            executor=self.executor,
        )
        with self._lock:
            return self._monitors.setdefault(subject_id, monitor)

    def handle_fix(self, subject_id: str, fix: PositionFix) -> GeofenceState:
        return self.monitor_for(subject_id).handle_fix(fix)

    def is_inside(self, subject_id: str) -> bool | None:
        """Live monitor state if one exists, else the persisted record."""
        with self._lock:
            monitor = self._monitors.get(subject_id)
        if monitor is not None and monitor.state.inside is not None:
            return monitor.state.inside
        persisted = self.repository.load_geofence(subject_id)
        return persisted.inside_campus if persisted is not None else None

    def stop(self, subject_id: str | None = None) -> None:
        with self._lock:
            if subject_id is None:
                monitors = list(self._monitors.values())
                self._monitors.clear()
            else:
                monitor = self._monitors.pop(subject_id, None)
                monitors = [monitor] if monitor is not None else []
        for monitor in monitors:
            monitor.stop()
