"""Fernet wrapper for OAuth tokens at rest.

One key via APP_ENCRYPTION_KEY. Without it an ephemeral key is generated, which
makes stored credentials unreadable after a restart (development only).
"""
from __future__ import annotations
import logging
import os
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken
from functools import lru_cache

logger = logging.getLogger(__name__)


class TokenDecryptError(ValueError):
    pass


class EncryptionService:
    ENV_KEY = "APP_ENCRYPTION_KEY"

    def __init__(self, key: bytes | str | None = None):
        key_b64 = key or os.getenv(self.ENV_KEY)
        if not key_b64:
            logger.warning("%s not set; using an ephemeral key", self.ENV_KEY)
            key_b64 = Fernet.generate_key()
            os.environ[self.ENV_KEY] = key_b64.decode()
        if isinstance(key_b64, str):
            key_b64 = key_b64.encode()
        self._fernet = Fernet(key_b64)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            raise TokenDecryptError("INVALID_ENCRYPTED_VALUE")

    def encrypt_optional(self, plaintext: Optional[str]) -> Optional[str]:
        return self.encrypt(plaintext) if plaintext else None

    def decrypt_optional(self, token: Optional[str]) -> Optional[str]:
        return self.decrypt(token) if token else None

@lru_cache(maxsize=1)
def get_encryption_service() -> EncryptionService:
    return EncryptionService()
