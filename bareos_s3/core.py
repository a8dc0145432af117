# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Core - Job state and dispatch.

A process runs exactly one job: a backup, a restore of explicit
job/volume pairs, or a restore of whole jobs. The job request is a
small tagged dataclass; run_job() dispatches it to the matching
orchestrator with an explicit (config, state) pair.
"""

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence, TypedDict, Union

import structlog

from bareos_s3.config import StorageConfig
from bareos_s3.envelope.keys import KeyManager
from bareos_s3.exceptions import BadArgsError
from bareos_s3.naming import (
    parse_job_volume_pair,
    parse_volume_names,
    to_object_key,
    validate_job_id,
)

logger = structlog.get_logger()


@dataclass
class BackupResult:
    """Result of a backup job."""

    run_id: str  # ULID
    job_id: str
    uploaded: Dict[str, str]  # volume name -> ETag
    duration_seconds: float


@dataclass
class RestoreResult:
    """Result of a restore job."""

    run_id: str  # ULID
    restored: List[Path] = field(default_factory=list)
    already_local: List[Path] = field(default_factory=list)
    duration_seconds: float = 0.0


JobResult = Union[BackupResult, RestoreResult]


class JobState(TypedDict):
    """Runtime state shared by the volume workers of one job."""

    run_id: str
    started_at: datetime
    store: Any  # ObjectStore
    key_manager: KeyManager
    exit_stack: AsyncExitStack


class JobAction(str, Enum):
    """Actions understood by the launcher."""

    BACKUP = "backup"
    RESTORE_VOLUMES = "restore-volumes"
    RESTORE_JOBS = "restore-jobs"


@dataclass(frozen=True)
class BackupRequest:
    job_id: str
    volumes: List[str]


@dataclass(frozen=True)
class RestoreVolumesRequest:
    pairs: List[str]


@dataclass(frozen=True)
class RestoreJobsRequest:
    job_ids: List[str]


JobRequest = Union[BackupRequest, RestoreVolumesRequest, RestoreJobsRequest]


def parse_job_request(action: str, args: Sequence[str]) -> JobRequest:
    """
    Build a job request from an action name and its positional arguments.

    Job ids, volume names and jobId-VOLNAME pairs are validated here, so
    bad arguments are reported before any S3 client is opened.

    Example:
        parse_job_request("backup", ["123", "Full-0001|Full-0002"])
        parse_job_request("restore-volumes", ["234-VOL1"])
        parse_job_request("restore-jobs", ["123", "124"])
    """
    try:
        job_action = JobAction(action)
    except ValueError as e:
        raise BadArgsError(f"Unknown action: {action}") from e

    args = list(args)
    if job_action is JobAction.BACKUP:
        if not args:
            raise BadArgsError("backup requires a job id")
        job_id, volumes = args[0], args[1:]
        names = parse_volume_names(volumes)
        if not names:
            raise BadArgsError(f"No volumes given for job {validate_job_id(job_id)}")
        for name in names:
            to_object_key(job_id, name)
        return BackupRequest(job_id=job_id, volumes=volumes)

    if not args:
        raise BadArgsError(f"{job_action.value} requires at least one argument")
    if job_action is JobAction.RESTORE_VOLUMES:
        for pair in args:
            parse_job_volume_pair(pair)
        return RestoreVolumesRequest(pairs=args)
    for job_id in args:
        validate_job_id(job_id)
    return RestoreJobsRequest(job_ids=args)


async def initialize_job_state(config: StorageConfig, store: Any = None) -> JobState:
    """
    Initialize runtime state for one job.

    Opens the S3 client unless a store is supplied (tests pass an
    in-memory one) and creates the key manager.

    Args:
        config: Storage configuration
        store: Optional ObjectStore to use instead of S3

    Returns:
        Initialized JobState dictionary
    """
    from ulid import ULID

    from bareos_s3.store import open_s3_store

    config.scratch_dir.mkdir(parents=True, exist_ok=True)

    exit_stack = AsyncExitStack()
    if store is None:
        store = await exit_stack.enter_async_context(open_s3_store(config))

    return JobState(
        run_id=str(ULID()),
        started_at=datetime.now(UTC),
        store=store,
        key_manager=KeyManager(config.encryption_key),
        exit_stack=exit_stack,
    )


async def run_job(config: StorageConfig, state: JobState, request: JobRequest) -> JobResult:
    """
    Run one job request.

    Args:
        config: Storage configuration
        state: Runtime state from initialize_job_state()
        request: The job to run

    Returns:
        BackupResult or RestoreResult
    """
    from bareos_s3.jobs import restore_jobs, restore_volumes, run_backup

    logger.info(
        "job_started",
        run_id=state["run_id"],
        request=type(request).__name__,
        bucket=config.bucket,
    )

    try:
        if isinstance(request, BackupRequest):
            result: JobResult = await run_backup(config, state, request.job_id, request.volumes)
        elif isinstance(request, RestoreVolumesRequest):
            result = await restore_volumes(config, state, request.pairs)
        elif isinstance(request, RestoreJobsRequest):
            result = await restore_jobs(config, state, request.job_ids)
        else:
            raise BadArgsError(f"Unsupported job request: {request!r}")
    except Exception as e:
        logger.error("job_failed", run_id=state["run_id"], error=str(e))
        raise

    logger.info(
        "job_completed",
        run_id=state["run_id"],
        duration=result.duration_seconds,
        elapsed=(datetime.now(UTC) - state["started_at"]).total_seconds(),
    )
    return result


async def shutdown_job_state(state: JobState) -> None:
    """Close the S3 client and anything else opened for the job."""
    await state["exit_stack"].aclose()
