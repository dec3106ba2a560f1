from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from presence_ai.database import PresenceRepository
from presence_ai.face_module import FacePipeline
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import CaptureCandidate


@dataclass(frozen=True)
class EnrollmentResult:
    subject_id: str
    embedding_dim: int
    enrolled_at: datetime


class EnrollmentService:
    def __init__(self, pipeline: FacePipeline, repository: PresenceRepository):
        self.pipeline = pipeline
        self.repository = repository
        self.logger = setup_logger(self.__class__.__name__)

    def enroll(self, subject_id: str, candidate: CaptureCandidate) -> EnrollmentResult:
        subject_id = subject_id.strip()
        if not subject_id:
            raise ValueError("subject_id is required.")

        embedding = self.pipeline.enroll(candidate)
        enrolled_at = datetime.now(timezone.utc)
        self.repository.save_template(subject_id, embedding, at=enrolled_at)
        self.logger.info("Enrolled face template for %s", subject_id, extra={"event": "enroll", "subject_id": subject_id})
        return EnrollmentResult(subject_id=subject_id, embedding_dim=int(embedding.size), enrolled_at=enrolled_at)
