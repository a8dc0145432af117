# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Envelope Codec - Encrypted volume file format.

File format (version 1):

    +-------------------------------------------------------------+
    | 512-byte header                                             |
    |   magic "BAREOS-S3-ENC"        13 bytes                     |
    |   format version (uint16 BE)    2 bytes  (= 1)              |
    |   wrapped session key          24 bytes  (AES key wrap)     |
    |   nonce                        12 bytes                     |
    |   zero padding                                              |
    +-------------------------------------------------------------+
    | AES-128-GCM ciphertext of the volume                        |
    +-------------------------------------------------------------+
    | 16-byte GCM authentication tag                              |
    +-------------------------------------------------------------+

Data is streamed through the cipher in fixed-size chunks, so memory use
does not depend on the volume size. The blocking transforms run in a
thread pool when called through encrypt_volume()/decrypt_volume().
"""

import asyncio
import os
import struct
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Dict

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from ulid import ULID

from bareos_s3.envelope.keys import (
    NONCE_SIZE_BYTES,
    WRAPPED_KEY_SIZE_BYTES,
    KeyManager,
)
from bareos_s3.errors import (
    explain_integrity_check_failed,
    explain_local_io_failed,
    explain_volume_too_large,
)
from bareos_s3.exceptions import (
    IntegrityCheckError,
    TransferError,
    UnrecognizedFormatError,
    UnsupportedVersionError,
    VolumeTooLargeError,
)
from bareos_s3.progress import ProgressReporter, crypto_reporter

logger = structlog.get_logger()

# Thread pool for CPU-bound cipher work
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="bareos-s3-crypto")

HEADER_SIZE = 512
MAGIC = b"BAREOS-S3-ENC"
FORMAT_VERSION = 1
TAG_SIZE_BYTES = 16
CHUNK_SIZE = 64 * 1024

GIB = 1024 ** 3

# Stay well below the 2^39 - 256 bit single-invocation limit of AES-GCM
MAX_PLAINTEXT_SIZE = 64 * GIB

_PREAMBLE = struct.Struct(">13sH")
_HEADER_V1 = struct.Struct(f">13sH{WRAPPED_KEY_SIZE_BYTES}s{NONCE_SIZE_BYTES}s")


@dataclass(frozen=True)
class WrappedKeyMaterial:
    """Key material written to a volume header."""

    wrapped_key: bytes
    nonce: bytes


@dataclass(frozen=True)
class FileHeader:
    """Parsed fixed-size header of an encrypted volume."""

    version: int
    wrapped_key: bytes
    nonce: bytes

    def pack(self) -> bytes:
        """Serialize to exactly HEADER_SIZE bytes."""
        body = _HEADER_V1.pack(MAGIC, self.version, self.wrapped_key, self.nonce)
        return body.ljust(HEADER_SIZE, b"\0")

    @classmethod
    def unpack(cls, data: bytes, name: str = "volume") -> "FileHeader":
        """
        Parse and validate a header block.

        Raises:
            UnrecognizedFormatError: Short block or wrong magic
            UnsupportedVersionError: Unknown format version
        """
        if len(data) < HEADER_SIZE:
            raise UnrecognizedFormatError(
                f"{name} is too short to be an encrypted backup file"
            )

        magic, version = _PREAMBLE.unpack_from(data)
        if magic != MAGIC:
            raise UnrecognizedFormatError(
                f"{name} is not a recognized encrypted volume (wrong magic at file start)"
            )
        if version not in _DECRYPTORS:
            raise UnsupportedVersionError(
                f"{name} uses unsupported file format version {version}",
                details={"version": version},
            )

        _, _, wrapped_key, nonce = _HEADER_V1.unpack_from(data)
        return cls(version=version, wrapped_key=wrapped_key, nonce=nonce)


def _gcm_cipher(session_key: bytes, nonce: bytes) -> Cipher:
    return Cipher(algorithms.AES(session_key), modes.GCM(nonce))


def encrypt_stream(
    keys: KeyManager,
    source: BinaryIO,
    sink: BinaryIO,
    *,
    reporter: ProgressReporter | None = None,
) -> WrappedKeyMaterial:
    """
    Encrypt source into sink in the current file format.

    A fresh session key and nonce are generated for this one stream.

    Returns:
        The wrapped session key and nonce written to the header
    """
    session_key = keys.new_session_key()
    nonce = keys.new_nonce()
    wrapped_key = keys.wrap(session_key)

    header = FileHeader(version=FORMAT_VERSION, wrapped_key=wrapped_key, nonce=nonce)
    sink.write(header.pack())

    encryptor = _gcm_cipher(session_key, nonce).encryptor()
    processed = 0
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        processed += len(chunk)
        if processed > MAX_PLAINTEXT_SIZE:
            raise VolumeTooLargeError(explain_volume_too_large("stream", MAX_PLAINTEXT_SIZE))
        sink.write(encryptor.update(chunk))
        if reporter:
            reporter.add(len(chunk))

    sink.write(encryptor.finalize())
    sink.write(encryptor.tag)
    if reporter:
        reporter.done()

    return WrappedKeyMaterial(wrapped_key=wrapped_key, nonce=nonce)


def read_header(source: BinaryIO, name: str = "volume") -> FileHeader:
    """Read and validate the header at the start of source."""
    return FileHeader.unpack(source.read(HEADER_SIZE), name)


def _decrypt_v1(
    keys: KeyManager,
    header: FileHeader,
    source: BinaryIO,
    sink: BinaryIO,
    name: str,
    reporter: ProgressReporter | None,
) -> int:
    session_key = keys.unwrap(header.wrapped_key, name)
    decryptor = _gcm_cipher(session_key, header.nonce).decryptor()

    # The final TAG_SIZE_BYTES of the stream are the tag, so always hold them back
    pending = b""
    written = 0
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk
        if len(pending) > TAG_SIZE_BYTES:
            body, pending = pending[:-TAG_SIZE_BYTES], pending[-TAG_SIZE_BYTES:]
            sink.write(decryptor.update(body))
            written += len(body)
            if reporter:
                reporter.add(len(body))

    if len(pending) < TAG_SIZE_BYTES:
        raise UnrecognizedFormatError(f"{name} is truncated (missing authentication tag)")

    try:
        sink.write(decryptor.finalize_with_tag(pending))
    except InvalidTag as e:
        raise IntegrityCheckError(explain_integrity_check_failed(name)) from e

    if reporter:
        reporter.done()
    return written


_DECRYPTORS: Dict[int, Callable[..., int]] = {
    1: _decrypt_v1,
}


def decrypt_stream(
    keys: KeyManager,
    source: BinaryIO,
    sink: BinaryIO,
    *,
    name: str = "volume",
    reporter: ProgressReporter | None = None,
) -> int:
    """
    Decrypt an encrypted volume from source into sink.

    The sink receives plaintext before the tag is verified; callers
    writing to disk must discard the output on failure (decrypt_file
    does this).

    Returns:
        Number of plaintext bytes written

    Raises:
        UnrecognizedFormatError: Not an encrypted volume, or truncated
        UnsupportedVersionError: Unknown format version
        KeyUnwrapError: Session key cannot be unwrapped (wrong passphrase)
        IntegrityCheckError: Authentication tag mismatch
    """
    header = read_header(source, name)
    return _DECRYPTORS[header.version](keys, header, source, sink, name, reporter)


def encrypt_file(
    keys: KeyManager,
    src: Path,
    dst: Path,
    *,
    show_bar: bool = True,
) -> WrappedKeyMaterial:
    """
    Encrypt the file at src into a new file at dst.

    Raises:
        VolumeTooLargeError: If src is larger than MAX_PLAINTEXT_SIZE
        TransferError: If reading src or writing dst fails
    """
    try:
        size = src.stat().st_size
    except OSError as e:
        raise TransferError(
            explain_local_io_failed("read", src.name, src, e),
            details={"path": str(src)},
        ) from e
    if size > MAX_PLAINTEXT_SIZE:
        raise VolumeTooLargeError(
            explain_volume_too_large(src.name, MAX_PLAINTEXT_SIZE),
            details={"path": str(src), "size": size},
        )

    reporter = crypto_reporter(src.name, "Encrypt", size, show_bar=show_bar)
    try:
        with open(src, "rb") as fin, open(dst, "wb") as fout:
            material = encrypt_stream(keys, fin, fout, reporter=reporter)
    except OSError as e:
        dst.unlink(missing_ok=True)
        raise TransferError(
            explain_local_io_failed("encrypt", src.name, dst, e),
            details={"path": str(dst)},
        ) from e
    except BaseException:
        dst.unlink(missing_ok=True)
        raise

    logger.debug("volume_encrypted", src=str(src), dst=str(dst), size=size)
    return material


def decrypt_file(
    keys: KeyManager,
    src: Path,
    dst: Path,
    *,
    name: str | None = None,
    show_bar: bool = True,
) -> int:
    """
    Decrypt the encrypted volume at src into dst.

    Plaintext is written to a temporary sibling of dst and renamed onto
    dst only after the authentication tag verified, so dst never holds
    unauthenticated or partial data, even if the process is killed.

    Returns:
        Number of plaintext bytes written

    Raises:
        TransferError: If reading src or writing the plaintext fails
    """
    name = name or src.name
    tmp_path = dst.with_name(f"{dst.name}.{ULID()}.dec.tmp")

    try:
        size = src.stat().st_size
        if size < HEADER_SIZE + TAG_SIZE_BYTES:
            raise UnrecognizedFormatError(f"{name} is too short to be an encrypted backup file")

        reporter = crypto_reporter(
            name, "Decrypt", size - HEADER_SIZE - TAG_SIZE_BYTES, show_bar=show_bar
        )
        with open(src, "rb") as fin:
            header = read_header(fin, name)
            with open(tmp_path, "wb") as fout:
                written = _DECRYPTORS[header.version](keys, header, fin, fout, name, reporter)
                fout.flush()
                os.fsync(fout.fileno())
        os.replace(tmp_path, dst)
    except OSError as e:
        raise TransferError(
            explain_local_io_failed("decrypt", name, dst, e),
            details={"path": str(dst)},
        ) from e
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.debug("volume_decrypted", src=str(src), dst=str(dst), size=written)
    return written


async def encrypt_volume(
    keys: KeyManager,
    src: Path,
    dst: Path,
    *,
    show_bar: bool = True,
) -> WrappedKeyMaterial:
    """
    Encrypt a volume file without blocking the event loop.

    This runs in a thread pool because the cipher work is CPU-bound.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        _executor,
        lambda: encrypt_file(keys, src, dst, show_bar=show_bar),
    )


async def decrypt_volume(
    keys: KeyManager,
    src: Path,
    dst: Path,
    *,
    name: str | None = None,
    show_bar: bool = True,
) -> int:
    """Decrypt a volume file without blocking the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        _executor,
        lambda: decrypt_file(keys, src, dst, name=name, show_bar=show_bar),
    )
