# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object store interface consumed by the backup and restore jobs.

The jobs never talk to S3 directly; they go through an ObjectStore so
that multipart and retry mechanics stay inside the store and tests can
substitute an in-memory implementation.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Protocol, runtime_checkable

from bareos_s3.config import ARCHIVAL_STORAGE_CLASSES, RestoreTier

# Receives the number of bytes transferred since the previous call
ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class ObjectMetadata:
    """Subset of object metadata the restore planner needs."""

    storage_class: str = "STANDARD"
    ongoing_restore: bool = False
    size: int = 0

    @property
    def is_archived(self) -> bool:
        """True if the object must be thawed before it can be read."""
        return self.storage_class in ARCHIVAL_STORAGE_CLASSES


@dataclass(frozen=True)
class ObjectListing:
    """One page of a prefix listing."""

    keys: List[str] = field(default_factory=list)
    truncated: bool = False
    continuation_token: Optional[str] = None


@runtime_checkable
class ObjectStore(Protocol):
    """Asynchronous object store operations."""

    async def put_object(
        self,
        bucket: str,
        key: str,
        path: Path,
        storage_class: str,
        progress: ProgressCallback | None = None,
    ) -> str:
        """Upload the file at path; returns the ETag once the store confirmed it."""
        ...

    async def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        """Fetch metadata; raises ObjectNotFoundError if the key does not exist."""
        ...

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """List one page of keys under prefix."""
        ...

    async def restore_object(
        self,
        bucket: str,
        key: str,
        tier: RestoreTier,
        retention_days: int,
    ) -> None:
        """Request a thaw from archival storage without waiting for it."""
        ...

    async def download(
        self,
        bucket: str,
        key: str,
        path: Path,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Stream an object to the file at path."""
        ...
