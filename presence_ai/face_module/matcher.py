from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from presence_ai.face_module.embedding import is_degenerate

MISMATCH_DISTANCE = 100.0


@dataclass(frozen=True)
class MatchResult:
    distance: float
    matched: bool
    invalid_capture: bool = False
    reason: str | None = None


def euclidean_distance(first: np.ndarray, second: np.ndarray) -> float:
    a = np.asarray(first, dtype=np.float32).reshape(-1)
    b = np.asarray(second, dtype=np.float32).reshape(-1)
    if a.size != b.size:
        return MISMATCH_DISTANCE
    return float(np.linalg.norm(a - b))


class TemplateMatcher:
    def __init__(self, threshold: float):
        if threshold <= 0:
            raise ValueError("Match threshold must be positive.")
        self.threshold = threshold

    def match(self, candidate: np.ndarray, enrolled: np.ndarray) -> MatchResult:
        candidate = np.asarray(candidate, dtype=np.float32).reshape(-1)
        enrolled = np.asarray(enrolled, dtype=np.float32).reshape(-1)

        if candidate.size != enrolled.size:
            # Stale template from an older model export.
            return MatchResult(MISMATCH_DISTANCE, False, invalid_capture=True, reason="length_mismatch")
        if is_degenerate(candidate):
            return MatchResult(MISMATCH_DISTANCE, False, invalid_capture=True, reason="zero_candidate")
        if is_degenerate(enrolled):
            return MatchResult(MISMATCH_DISTANCE, False, invalid_capture=True, reason="degenerate_template")

        distance = euclidean_distance(candidate, enrolled)
        return MatchResult(distance=distance, matched=bool(distance < self.threshold))


def match(candidate: np.ndarray, enrolled: np.ndarray, threshold: float) -> MatchResult:
    return TemplateMatcher(threshold).match(candidate, enrolled)
