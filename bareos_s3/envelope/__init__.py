# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Envelope encryption - Key management and the encrypted volume format.
"""

from bareos_s3.envelope.codec import (
    FORMAT_VERSION,
    HEADER_SIZE,
    MAGIC,
    MAX_PLAINTEXT_SIZE,
    TAG_SIZE_BYTES,
    FileHeader,
    WrappedKeyMaterial,
    decrypt_file,
    decrypt_stream,
    decrypt_volume,
    encrypt_file,
    encrypt_stream,
    encrypt_volume,
    read_header,
)

from bareos_s3.envelope.keys import (
    AES_KEY_SIZE_BYTES,
    NONCE_SIZE_BYTES,
    WRAPPED_KEY_SIZE_BYTES,
    KeyManager,
)

__all__ = [
    # Codec
    "FORMAT_VERSION",
    "HEADER_SIZE",
    "MAGIC",
    "MAX_PLAINTEXT_SIZE",
    "TAG_SIZE_BYTES",
    "FileHeader",
    "WrappedKeyMaterial",
    "decrypt_file",
    "decrypt_stream",
    "decrypt_volume",
    "encrypt_file",
    "encrypt_stream",
    "encrypt_volume",
    "read_header",
    # Keys
    "AES_KEY_SIZE_BYTES",
    "NONCE_SIZE_BYTES",
    "WRAPPED_KEY_SIZE_BYTES",
    "KeyManager",
]
