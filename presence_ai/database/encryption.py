from __future__ import annotations

import base64
import hashlib

import numpy as np
from cryptography.fernet import Fernet, InvalidToken

from presence_ai.exceptions import PersistenceError


class EmbeddingCrypto:
    def __init__(self, key_material: str):
        digest = hashlib.sha256(key_material.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, vector: np.ndarray) -> bytes:
        payload = np.asarray(vector, dtype=np.float32).tobytes()
        return self._fernet.encrypt(payload)

    def decrypt(self, ciphertext: bytes, dim: int) -> np.ndarray:
        try:
            payload = self._fernet.decrypt(ciphertext)
        except InvalidToken as exc:
            raise PersistenceError("Stored face template cannot be decrypted with the configured key.") from exc
        return np.frombuffer(payload, dtype=np.float32, count=dim).copy()
