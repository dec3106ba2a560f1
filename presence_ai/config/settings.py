from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class PresenceSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PRESENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Campus Presence Service"
    api_prefix: str = "/api/v1"

    data_dir: Path = PROJECT_ROOT / "data"
    log_dir: Path = PROJECT_ROOT / "logs"
    log_level: str = "INFO"
    log_json: bool = False

    database_url: str = ""
    embedding_cipher_key: str = "change-me-embedding-key"

    # Embedding model
    embedding_model_path: Path | None = None
    embedding_device: str = "auto"
    embedding_channels_last: bool = True
    embedding_dim: int = Field(default=192, gt=0)
    input_size: int = Field(default=112, gt=0)

    # Face capture
    face_padding_ratio: float = Field(default=0.20, ge=0.0)
    min_face_size: int = Field(default=60, gt=0)
    max_frame_pixels: int = Field(default=16_777_216, gt=0)
    # Calibrated against the deployed MobileFaceNet export; one value for enroll and verify.
    match_threshold: float = Field(default=0.75, gt=0.0)

    # Camera
    camera_index: int = 0
    frame_width: int = 1280
    frame_height: int = 720
    frame_fps: int = 30
    camera_rotation: int = 0
    camera_front_facing: bool = True
    camera_backend_order: str = ""

    # Geofence / attendance
    timezone: str = "UTC"
    campus_lat: float | None = None
    campus_lng: float | None = None
    campus_radius_m: float | None = None

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'presence.db'}"

    @property
    def campus_seed(self) -> dict[str, float] | None:
        values = {"lat": self.campus_lat, "lng": self.campus_lng, "radius": self.campus_radius_m}
        if all(value is None for value in values.values()):
            return None
        return {key: value for key, value in values.items() if value is not None}

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> PresenceSettings:
    return PresenceSettings()
