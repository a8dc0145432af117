# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for bareos_s3 tests.

Provides an in-memory object store, test configuration and job state.
"""

import io
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Dict, Generator, List, Optional, Set, Tuple

import pytest
import pytest_asyncio
import structlog

from bareos_s3.config import RestoreTier, StorageConfig
from bareos_s3.envelope import KeyManager, encrypt_stream
from bareos_s3.exceptions import ObjectNotFoundError, TransferError
from bareos_s3.store.base import ObjectListing, ObjectMetadata, ProgressCallback

TEST_PASSPHRASE = "correct horse battery staple"


class FakeObjectStore:
    """In-memory ObjectStore recording every call the jobs make."""

    def __init__(self, page_size: int = 1000):
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, ObjectMetadata] = {}
        self.page_size = page_size

        self.uploads: List[Tuple[str, str]] = []
        self.restore_requests: List[Tuple[str, RestoreTier, int]] = []
        self.list_tokens: List[Optional[str]] = []
        self.downloads: List[str] = []
        self.fail_uploads: Set[str] = set()
        self.download_errors: Dict[str, BaseException] = {}

    def add_object(
        self,
        key: str,
        data: bytes,
        storage_class: str = "STANDARD",
        ongoing_restore: bool = False,
    ) -> None:
        self.objects[key] = data
        self.metadata[key] = ObjectMetadata(
            storage_class=storage_class,
            ongoing_restore=ongoing_restore,
            size=len(data),
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        path: Path,
        storage_class: str,
        progress: ProgressCallback | None = None,
    ) -> str:
        if key in self.fail_uploads:
            raise TransferError(f"Failed to upload {key}: simulated outage")
        data = path.read_bytes()
        self.add_object(key, data, storage_class=storage_class)
        self.uploads.append((key, storage_class))
        if progress:
            progress(len(data))
        return f'"etag-{len(self.uploads)}"'

    async def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        if key not in self.metadata:
            raise ObjectNotFoundError(f"Object {key} not found")
        return self.metadata[key]

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        self.list_tokens.append(continuation_token)
        keys = sorted(k for k in self.metadata if k.startswith(prefix))
        start = int(continuation_token) if continuation_token else 0
        page = keys[start:start + self.page_size]
        end = start + len(page)
        truncated = end < len(keys)
        return ObjectListing(
            keys=page,
            truncated=truncated,
            continuation_token=str(end) if truncated else None,
        )

    async def restore_object(
        self,
        bucket: str,
        key: str,
        tier: RestoreTier,
        retention_days: int,
    ) -> None:
        self.restore_requests.append((key, tier, retention_days))
        self.metadata[key] = replace(self.metadata[key], ongoing_restore=True)

    async def download(
        self,
        bucket: str,
        key: str,
        path: Path,
        progress: ProgressCallback | None = None,
    ) -> None:
        if key in self.download_errors:
            raise self.download_errors[key]
        if key not in self.objects:
            raise ObjectNotFoundError(f"Object {key} not found")
        self.downloads.append(key)
        path.write_bytes(self.objects[key])
        if progress:
            progress(len(self.objects[key]))


def encrypt_bytes(keys: KeyManager, data: bytes) -> bytes:
    """Encrypt data into the volume file format."""
    sink = io.BytesIO()
    encrypt_stream(keys, io.BytesIO(data), sink)
    return sink.getvalue()


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo any structlog configuration a launcher test installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def key_manager() -> KeyManager:
    """Key manager for the test passphrase."""
    return KeyManager(TEST_PASSPHRASE)


@pytest.fixture
def fake_store() -> FakeObjectStore:
    """Create an empty in-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def test_config(temp_dir: Path) -> StorageConfig:
    """Create a test configuration."""
    scratch_dir = temp_dir / "scratch"
    scratch_dir.mkdir()
    return StorageConfig(
        bucket="test-bucket",
        encryption_key=TEST_PASSPHRASE,
        scratch_dir=scratch_dir,
        region="us-east-1",
        show_progress_bar=False,
    )


@pytest_asyncio.fixture
async def job_state(test_config: StorageConfig, fake_store: FakeObjectStore):
    """Create initialized job state backed by the in-memory store."""
    from bareos_s3.core import initialize_job_state, shutdown_job_state

    state = await initialize_job_state(test_config, store=fake_store)
    yield state
    await shutdown_job_state(state)
