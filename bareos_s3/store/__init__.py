# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object store - Interface and the S3 implementation.
"""

from bareos_s3.store.base import (
    ObjectListing,
    ObjectMetadata,
    ObjectStore,
    ProgressCallback,
)
from bareos_s3.store.s3 import S3ObjectStore, open_s3_store

__all__ = [
    "ObjectListing",
    "ObjectMetadata",
    "ObjectStore",
    "ProgressCallback",
    "S3ObjectStore",
    "open_s3_store",
]
