# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Storage - Encrypted Bareos volume storage on Amazon S3.

Volumes are encrypted locally (AES-128-GCM with a per-file session key
wrapped by a passphrase-derived key), uploaded under
bb-<jobId>-<volume>.enc, and restored on demand, including objects that
first have to be thawed from archival storage. Package name: bareos_s3.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from bareos_s3.builder import create_config

# Core functions
from bareos_s3.core import (
    BackupRequest,
    RestoreJobsRequest,
    RestoreVolumesRequest,
    initialize_job_state,
    run_job,
    shutdown_job_state,
)

# Properties-file / environment configuration
from bareos_s3.env import create_config_from_settings

__all__ = [
    # Version
    "__version__",
    # Configuration creation (primary user-facing APIs)
    "create_config",
    "create_config_from_settings",
    # Job requests
    "BackupRequest",
    "RestoreJobsRequest",
    "RestoreVolumesRequest",
    # Core orchestration functions
    "initialize_job_state",
    "run_job",
    "shutdown_job_state",
]
