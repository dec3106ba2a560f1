from __future__ import annotations

from presence_ai.config import PresenceSettings
from presence_ai.database import EmbeddingCrypto, PresenceRepository, create_db_engine, create_session_factory
from presence_ai.exceptions import InferenceNotReadyError
from presence_ai.face_module import (
    EmbeddingAdapter,
    FaceDetector,
    FacePipeline,
    FacePreprocessor,
    HaarFaceDetector,
    TemplateMatcher,
    TorchScriptEmbeddingModel,
)
from presence_ai.face_module.embedding import EmbeddingModel
from presence_ai.utils.logger import setup_logger


def build_repository(settings: PresenceSettings) -> PresenceRepository:
    engine = create_db_engine(settings.resolved_database_url)
    return PresenceRepository(create_session_factory(engine), EmbeddingCrypto(settings.embedding_cipher_key))


def load_embedding_model(settings: PresenceSettings) -> TorchScriptEmbeddingModel:
    """Load the configured model; a missing model leaves it unloaded so captures report not-ready."""
    logger = setup_logger("bootstrap")
    model = TorchScriptEmbeddingModel(
        settings.embedding_model_path,
        device=settings.embedding_device,
        channels_last=settings.embedding_channels_last,
    )
    try:
        model.load()
    except InferenceNotReadyError as exc:
        logger.warning("Embedding model unavailable: %s", exc)
    else:
        logger.info("Embedding model loaded from %s on %s", settings.embedding_model_path, model.device)
    return model


def build_pipeline(
    settings: PresenceSettings,
    model: EmbeddingModel | None = None,
    detector: FaceDetector | None = None,
) -> FacePipeline:
    if model is None:
        model = load_embedding_model(settings)
    if detector is None:
        detector = HaarFaceDetector(min_face_size=settings.min_face_size)
    return FacePipeline(
        detector=detector,
        adapter=EmbeddingAdapter(model, input_size=settings.input_size, embedding_dim=settings.embedding_dim),
        matcher=TemplateMatcher(settings.match_threshold),
        preprocessor=FacePreprocessor(settings.input_size, settings.face_padding_ratio),
        max_frame_pixels=settings.max_frame_pixels,
    )
