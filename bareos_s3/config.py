# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so that the
concurrent volume workers of a job all see the same settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import FrozenSet, List
import re

MIB = 1024 * 1024

# S3 rejects multipart parts smaller than this (except the last one)
MIN_MULTIPART_CHUNK_SIZE = 5 * MIB

# Storage classes whose objects must be thawed before they can be read
ARCHIVAL_STORAGE_CLASSES: FrozenSet[str] = frozenset({"GLACIER", "DEEP_ARCHIVE"})

UPLOAD_STORAGE_CLASSES: FrozenSet[str] = frozenset(
    {
        "STANDARD",
        "STANDARD_IA",
        "ONEZONE_IA",
        "INTELLIGENT_TIERING",
        "GLACIER_IR",
        "GLACIER",
        "DEEP_ARCHIVE",
    }
)


class RestoreTier(str, Enum):
    """Archival retrieval tier, trading cost for thaw latency."""

    EXPEDITED = "Expedited"
    STANDARD = "Standard"
    BULK = "Bulk"

    @property
    def eta(self) -> str:
        """Human-readable expected wait for a thaw at this tier."""
        if self is RestoreTier.EXPEDITED:
            return "1-5 minutes"
        if self is RestoreTier.BULK:
            return "5-12 hours"
        return "3-5 hours"

    @classmethod
    def parse(cls, value: str) -> "RestoreTier":
        """Parse a tier name case-insensitively."""
        for tier in cls:
            if tier.value.lower() == value.strip().lower():
                return tier
        raise ValueError(value)


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    # Must be lowercase letters, numbers, hyphens, or periods
    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    # No consecutive periods
    if ".." in bucket:
        return False

    # Not IP address format
    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


@dataclass(frozen=True)
class StorageConfig:
    """
    Immutable configuration for moving volumes to and from S3.

    Secrets (the encryption passphrase and AWS credentials) are excluded
    from repr so they never end up in logs or tracebacks.
    """

    # Required: S3 bucket holding the encrypted volumes
    bucket: str

    # Required: passphrase the key-encryption key is derived from
    encryption_key: str = field(repr=False)

    # Directory volumes are read from / restored to (temp files live here too)
    scratch_dir: Path = field(default_factory=lambda: Path("."))

    # AWS region (default: us-east-1)
    region: str = "us-east-1"

    # Static credentials; None falls back to the botocore credential chain
    access_key_id: str | None = field(default=None, repr=False)
    secret_access_key: str | None = field(default=None, repr=False)

    # Custom endpoint for S3-compatible stores
    endpoint_url: str | None = None

    # Storage class for uploaded volumes
    upload_storage_class: str = "ONEZONE_IA"

    # Archival retrieval tier used for thaw requests
    restore_tier: RestoreTier = RestoreTier.STANDARD

    # Days a thawed copy stays readable
    restore_retention_days: int = 3

    # Maximum volumes processed concurrently
    max_concurrent_ops: int = 4

    # Uploads larger than this use multipart
    multipart_threshold: int = 64 * MIB

    # Part size for multipart uploads and download reads
    multipart_chunk_size: int = 64 * MIB

    # Render progress bars (disable when output is not a console)
    show_progress_bar: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_bucket_name(self.bucket):
            errors.append(f"Invalid bucket name: {self.bucket}")

        if not self.encryption_key:
            errors.append("encryption_key must not be empty")

        if not self.region:
            errors.append("region must not be empty")

        if self.upload_storage_class not in UPLOAD_STORAGE_CLASSES:
            errors.append(f"Unknown upload storage class: {self.upload_storage_class}")

        if not isinstance(self.restore_tier, RestoreTier):
            errors.append(f"Invalid restore_tier: {self.restore_tier!r}")

        if self.restore_retention_days < 1:
            errors.append(
                f"restore_retention_days must be >= 1, got {self.restore_retention_days}"
            )

        if self.max_concurrent_ops < 1:
            errors.append(f"max_concurrent_ops must be >= 1, got {self.max_concurrent_ops}")

        if self.multipart_chunk_size < MIN_MULTIPART_CHUNK_SIZE:
            errors.append(
                f"multipart_chunk_size must be >= {MIN_MULTIPART_CHUNK_SIZE}, "
                f"got {self.multipart_chunk_size}"
            )

        if bool(self.access_key_id) != bool(self.secret_access_key):
            errors.append("access_key_id and secret_access_key must be set together")

        if errors:
            from bareos_s3.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "StorageConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import replace

        return replace(self, **kwargs)
