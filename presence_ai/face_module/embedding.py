from __future__ import annotations

from pathlib import Path
from typing import Protocol

import numpy as np
import torch

from presence_ai.exceptions import InferenceError, InferenceNotReadyError
from presence_ai.face_module.preprocess import INPUT_SIZE


class EmbeddingModel(Protocol):
    @property
    def is_loaded(self) -> bool: ...

    def infer(self, tensor: np.ndarray) -> np.ndarray: ...


def resolve_device(preference: str = "auto") -> str:
    if preference == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return preference


class TorchScriptEmbeddingModel:
    """MobileFaceNet-style TorchScript export taking one 112x112x3 face."""

    def __init__(
        self,
        model_path: Path | str | None = None,
        device: str = "auto",
        channels_last: bool = True,
    ) -> None:
        self.model_path = Path(model_path) if model_path else None
        self.device = torch.device(resolve_device(device))
        self.channels_last = channels_last
        self._module: torch.jit.ScriptModule | None = None

    @property
    def is_loaded(self) -> bool:
        return self._module is not None

    def load(self) -> None:
        if self.model_path is None:
            raise InferenceNotReadyError("No embedding model path configured.")
        if not self.model_path.exists():
            raise InferenceNotReadyError(f"Embedding model not found: {self.model_path}")
        try:
            module = torch.jit.load(str(self.model_path), map_location=self.device)
        except (RuntimeError, ValueError) as exc:
            raise InferenceNotReadyError(f"Failed to load embedding model: {exc}") from exc
        self._module = module.eval()

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        if self._module is None:
            raise InferenceNotReadyError("Embedding model is not loaded.")

        batch = torch.from_numpy(np.ascontiguousarray(tensor, dtype=np.float32)).unsqueeze(0)
        if not self.channels_last:
            batch = batch.permute(0, 3, 1, 2).contiguous()
        with torch.inference_mode():
            raw = self._module(batch.to(self.device))
        return raw.detach().float().cpu().numpy().reshape(-1)


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """Scale to unit length; an all-zero vector is returned unchanged."""
    values = np.asarray(vector, dtype=np.float32).reshape(-1)
    norm = float(np.linalg.norm(values))
    if norm == 0.0:
        return values.copy()
    return values / norm


def is_degenerate(embedding: np.ndarray) -> bool:
    return not np.any(np.asarray(embedding))


class EmbeddingAdapter:
    def __init__(self, model: EmbeddingModel | None, input_size: int = INPUT_SIZE, embedding_dim: int = 192):
        self.model = model
        self.input_size = input_size
        self.embedding_dim = embedding_dim

    @property
    def ready(self) -> bool:
        return self.model is not None and self.model.is_loaded

    def embed(self, tensor: np.ndarray) -> np.ndarray:
        if not self.ready:
            raise InferenceNotReadyError("Embedding model is not loaded.")

        expected = (self.input_size, self.input_size, 3)
        if tensor.shape != expected:
            raise ValueError(f"Expected input tensor {expected}, got {tensor.shape}")

        try:
            raw = self.model.infer(tensor.astype(np.float32, copy=False))
        except InferenceError:
            raise
        except Exception as exc:
            raise InferenceError(f"Embedding generation failed: {exc}") from exc

        raw = np.asarray(raw).reshape(-1)
        if raw.size != self.embedding_dim:
            raise InferenceError(f"Model returned {raw.size} values, expected {self.embedding_dim}.")
        return l2_normalize(raw)
