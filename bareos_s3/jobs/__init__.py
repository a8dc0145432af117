# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup and restore jobs.
"""

from bareos_s3.jobs.backup import backup_volume, run_backup
from bareos_s3.jobs.restore import (
    RestoreCandidate,
    RestorePlan,
    RestoreState,
    classify_candidate,
    fetch_metadata,
    list_job_objects,
    resolve_restore_plan,
    restore_jobs,
    restore_objects,
    restore_volumes,
)

__all__ = [
    "backup_volume",
    "run_backup",
    "RestoreCandidate",
    "RestorePlan",
    "RestoreState",
    "classify_candidate",
    "fetch_metadata",
    "list_job_objects",
    "resolve_restore_plan",
    "restore_jobs",
    "restore_objects",
    "restore_volumes",
]
