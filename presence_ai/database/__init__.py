from .base import Base
from .encryption import EmbeddingCrypto
from .repository import GeofenceView, PresenceRepository, RequestView
from .session import create_db_engine, create_session_factory

__all__ = [
    "Base",
    "EmbeddingCrypto",
    "GeofenceView",
    "PresenceRepository",
    "RequestView",
    "create_db_engine",
    "create_session_factory",
]
