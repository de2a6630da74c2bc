"""At-rest encryption for sensitive payroll columns.

Payroll money fields are stored as Fernet tokens in text columns. The Fernet
key is derived from ``APP_KEY`` so every process sharing the same secret can
read the same rows.
"""

from __future__ import annotations

import base64
import hashlib
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from hr_payroll.config import get_settings

CENT = Decimal("0.01")


class DecryptionError(Exception):
    """Raised when a stored value cannot be decrypted with the current key."""


def derive_key(secret: str) -> bytes:
    """Derive a urlsafe 32-byte Fernet key from an arbitrary secret."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


@lru_cache(maxsize=4)
def _cipher_for(secret: str) -> Fernet:
    return Fernet(derive_key(secret))


def get_cipher() -> Fernet:
    """Get the Fernet instance for the configured application key."""
    return _cipher_for(get_settings().app_key)


def encrypt_value(value: str) -> str:
    return get_cipher().encrypt(value.encode("utf-8")).decode("ascii")


def decrypt_value(token: str) -> str:
    try:
        return get_cipher().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        raise DecryptionError("Stored value could not be decrypted") from exc


class EncryptedDecimal(TypeDecorator):
    """Decimal stored as an encrypted string, rounded to cents on write."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
        return encrypt_value(str(amount))

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return Decimal(decrypt_value(value))
