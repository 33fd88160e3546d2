"""
Sealing of secret notification settings (the SMTP password).

A sealed value is stored as ``enc:<fernet token>``. The Fernet key is derived from
FIELD_ENCRYPTION_KEY, or from SECRET_KEY when no dedicated key is configured.
"""
import base64
import hashlib
import logging
import os
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from needflow.core import config

logger = logging.getLogger(__name__)

SEALED_PREFIX = "enc:"
_DEFAULT_SECRET_KEY = "CHANGE_THIS_TO_A_SECURE_SECRET_KEY_IN_PRODUCTION"


@lru_cache(maxsize=1)
def settings_cipher() -> Fernet:
    material = (os.getenv("FIELD_ENCRYPTION_KEY") or "").strip()
    if not material:
        material = os.getenv("SECRET_KEY") or config.SECRET_KEY
        if material == _DEFAULT_SECRET_KEY:
            raise RuntimeError("SECRET_KEY or FIELD_ENCRYPTION_KEY must be set to store SMTP credentials")
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(material.encode("utf-8")).digest()))


def is_sealed(stored: Optional[str]) -> bool:
    return bool(stored) and stored.startswith(SEALED_PREFIX)


def seal_secret(plain: str) -> str:
    if not plain or is_sealed(plain):
        return plain
    return SEALED_PREFIX + settings_cipher().encrypt(plain.encode("utf-8")).decode("ascii")


def open_secret(stored: Optional[str], key: str = "") -> Optional[str]:
    """Plaintext of a stored secret; rows written before sealing are returned as-is."""
    if not is_sealed(stored):
        return stored
    try:
        return settings_cipher().decrypt(stored[len(SEALED_PREFIX):].encode("ascii")).decode("utf-8")
    except InvalidToken:
        # key rotated or value tampered with
        logger.warning("Stored secret %s cannot be decrypted with the current key", key or "setting")
        return None
