# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Key Manager - Key-encryption key and per-file session keys.

Every volume is encrypted with its own random session key. The session
key is wrapped (RFC 3394 AES key wrap) with a key-encryption key (KEK)
derived from the configured passphrase, and the wrapped key is stored
in the volume header. The KEK itself is never stored.
"""

import base64
import os
import threading

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.keywrap import (
    InvalidUnwrap,
    aes_key_unwrap,
    aes_key_wrap,
)
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from bareos_s3.errors import explain_key_unwrap_failed
from bareos_s3.exceptions import ConfigurationError, KeyUnwrapError

logger = structlog.get_logger()

AES_KEY_SIZE_BYTES = 128 // 8

# AES key wrap output = wrapped key + 64 bits of integrity check value
WRAPPED_KEY_SIZE_BYTES = AES_KEY_SIZE_BYTES + 64 // 8

# Recommended AES-GCM nonce size (NIST SP 800-38D, 5.2.1.1)
NONCE_SIZE_BYTES = 96 // 8

PBKDF2_ITERATIONS = 50_000

# Fixed so the same passphrase always derives the same KEK across runs
SALT = base64.b64decode("6YEuJ+6T8Wzc3PV6uqRTHu9AM8m9cWDFXF7dQk2QwLo=")


def _pkcs5_password_bytes(passphrase: str) -> bytes:
    # PKCS#5 v2 password encoding: one byte per character, low 8 bits
    return bytes(ord(char) & 0xFF for char in passphrase)


class KeyManager:
    """
    Derive the KEK once and wrap/unwrap session keys with it.

    A single instance is shared by all volume workers of a job. The KEK
    is computed at most once, under a lock, and is read-only afterwards.
    Call prime() before fanning out to pay the derivation cost up front.
    """

    def __init__(
        self,
        passphrase: str,
        *,
        salt: bytes = SALT,
        iterations: int = PBKDF2_ITERATIONS,
    ):
        if not passphrase:
            raise ConfigurationError("encryption.key must not be empty")
        self._passphrase = passphrase
        self._salt = salt
        self._iterations = iterations
        self._kek: bytes | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"KeyManager(iterations={self._iterations}, derived={self._kek is not None})"

    def kek(self) -> bytes:
        """Return the key-encryption key, deriving it on first use."""
        if self._kek is None:
            with self._lock:
                if self._kek is None:
                    self._kek = self._derive()
        return self._kek

    def prime(self) -> None:
        """Derive the KEK now rather than inside the first worker."""
        self.kek()

    def _derive(self) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA1(),
            length=AES_KEY_SIZE_BYTES,
            salt=self._salt,
            iterations=self._iterations,
        )
        kek = kdf.derive(_pkcs5_password_bytes(self._passphrase))
        logger.debug("kek_derived", iterations=self._iterations)
        return kek

    def new_session_key(self) -> bytes:
        """A fresh random AES-128 key for encrypting one file."""
        return os.urandom(AES_KEY_SIZE_BYTES)

    def new_nonce(self) -> bytes:
        """A fresh random 96-bit nonce. Never reuse one with the same session key."""
        return os.urandom(NONCE_SIZE_BYTES)

    def wrap(self, session_key: bytes) -> bytes:
        """Wrap a session key with the KEK."""
        if len(session_key) != AES_KEY_SIZE_BYTES:
            raise ValueError(
                f"Session key must be {AES_KEY_SIZE_BYTES} bytes, got {len(session_key)}"
            )
        wrapped = aes_key_wrap(self.kek(), session_key)
        if len(wrapped) != WRAPPED_KEY_SIZE_BYTES:
            raise RuntimeError(
                f"Wrapped session key length was {len(wrapped)}; "
                f"expected {WRAPPED_KEY_SIZE_BYTES}"
            )
        return wrapped

    def unwrap(self, wrapped: bytes, name: str = "session key") -> bytes:
        """
        Unwrap a session key with the KEK.

        Raises:
            KeyUnwrapError: If the integrity check fails, which almost
                always means the passphrase differs from the one the
                file was encrypted with.
        """
        try:
            return aes_key_unwrap(self.kek(), wrapped)
        except (InvalidUnwrap, ValueError) as e:
            raise KeyUnwrapError(explain_key_unwrap_failed(name)) from e
