from __future__ import annotations

import os
import tempfile
from pathlib import Path

_SCRATCH = Path(tempfile.mkdtemp(prefix="presence-tests-"))
os.environ.setdefault("PRESENCE_LOG_DIR", str(_SCRATCH / "logs"))
os.environ.setdefault("PRESENCE_DATA_DIR", str(_SCRATCH / "data"))

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from presence_ai.config import PresenceSettings, get_settings  # noqa: E402
from presence_ai.database import EmbeddingCrypto, PresenceRepository, create_db_engine, create_session_factory  # noqa: E402
from presence_ai.face_module import EmbeddingAdapter, FacePipeline, TemplateMatcher  # noqa: E402
from presence_ai.utils.types import FaceRegion, RawFrame  # noqa: E402

get_settings.cache_clear()

EMBEDDING_DIM = 192


class FakeEmbeddingModel:
    """Embeds a face by its mean color, so equal colors match and different colors do not."""

    is_loaded = True

    def __init__(self) -> None:
        self.calls = 0

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        self.calls += 1
        raw = np.zeros(EMBEDDING_DIM, dtype=np.float32)
        raw[0] = 1.0
        raw[1:4] = tensor.mean(axis=(0, 1)) * 10.0
        return raw


class ZeroEmbeddingModel:
    is_loaded = True

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        return np.zeros(EMBEDDING_DIM, dtype=np.float32)


class FakeDetector:
    def __init__(self, faces: list[FaceRegion] | None = None):
        self.faces = list(faces) if faces is not None else [FaceRegion(16, 16, 32, 32)]

    def detect(self, raster: np.ndarray) -> list[FaceRegion]:
        return list(self.faces)


def solid_frame(bgr: tuple[int, int, int] = (128, 128, 128), width: int = 64, height: int = 64) -> RawFrame:
    return RawFrame.from_bgr(np.full((height, width, 3), bgr, dtype=np.uint8))


@pytest.fixture
def settings(tmp_path) -> PresenceSettings:
    return PresenceSettings(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        database_url=f"sqlite:///{tmp_path / 'presence.db'}",
        embedding_cipher_key="test-key",
    )


@pytest.fixture
def repository(settings) -> PresenceRepository:
    engine = create_db_engine(settings.resolved_database_url)
    return PresenceRepository(create_session_factory(engine), EmbeddingCrypto(settings.embedding_cipher_key))


@pytest.fixture
def detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def pipeline(detector) -> FacePipeline:
    return FacePipeline(detector, EmbeddingAdapter(FakeEmbeddingModel()), TemplateMatcher(0.75))
