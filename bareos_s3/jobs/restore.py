# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Restore - Bring encrypted volumes back to local disk.

Each requested object is resolved into one of these states:

    RESOLVED        metadata fetched, not yet classified
    LOCAL_ALREADY   plaintext already in the scratch directory; skipped
    NEEDS_THAW      archived and not being thawed; a thaw is requested
    THAW_PENDING    archived and a thaw is running (this run or an earlier one)
    READY_TO_FETCH  readable now; downloaded and decrypted

If anything is still being thawed, the whole restore fails with one
error listing every such object, and nothing is downloaded: a partial
set of volumes is of no use to the Bareos restore job waiting on it.
The operator re-runs the restore once the thaw is done.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Tuple

import structlog
from ulid import ULID

from bareos_s3.config import StorageConfig
from bareos_s3.core import JobState, RestoreResult
from bareos_s3.envelope import decrypt_volume
from bareos_s3.errors import (
    explain_archival_restore_in_progress,
    explain_destination_conflict,
    explain_job_not_found,
    explain_objects_not_found,
)
from bareos_s3.exceptions import (
    ArchivalRestoreInProgressError,
    DestinationConflictError,
    JobNotFoundError,
    ObjectNotFoundError,
    ObjectsNotFoundError,
)
from bareos_s3.jobs.fanout import raise_for_failures, run_bounded
from bareos_s3.naming import (
    VolumeKey,
    job_prefix,
    parse_job_volume_pair,
    parse_object_key,
    validate_job_id,
)
from bareos_s3.progress import transfer_reporter
from bareos_s3.store.base import ObjectMetadata

logger = structlog.get_logger()


class RestoreState(str, Enum):
    """Resolution state of one requested object."""

    RESOLVED = "resolved"
    LOCAL_ALREADY = "local_already"
    NEEDS_THAW = "needs_thaw"
    THAW_PENDING = "thaw_pending"
    READY_TO_FETCH = "ready_to_fetch"


@dataclass
class RestoreCandidate:
    """One object to restore and where its plaintext goes."""

    key: str
    volume: VolumeKey
    metadata: ObjectMetadata
    destination: Path
    state: RestoreState = RestoreState.RESOLVED

    def __str__(self) -> str:
        return str(self.volume)


def build_candidate(config: StorageConfig, key: str, metadata: ObjectMetadata) -> RestoreCandidate:
    """Create a candidate, deriving the destination from the object key."""
    volume = parse_object_key(key)
    return RestoreCandidate(
        key=key,
        volume=volume,
        metadata=metadata,
        destination=config.scratch_dir / volume.volume_name,
    )


def classify_candidate(candidate: RestoreCandidate) -> RestoreState:
    """Decide what to do with a resolved candidate."""
    if candidate.destination.exists():
        return RestoreState.LOCAL_ALREADY
    if candidate.metadata.is_archived:
        if candidate.metadata.ongoing_restore:
            return RestoreState.THAW_PENDING
        return RestoreState.NEEDS_THAW
    return RestoreState.READY_TO_FETCH


@dataclass
class RestorePlan:
    """Classified candidates, in request order."""

    candidates: List[RestoreCandidate] = field(default_factory=list)

    def in_state(self, state: RestoreState) -> List[RestoreCandidate]:
        return [c for c in self.candidates if c.state is state]

    @property
    def local_already(self) -> List[RestoreCandidate]:
        return self.in_state(RestoreState.LOCAL_ALREADY)

    @property
    def needs_thaw(self) -> List[RestoreCandidate]:
        return self.in_state(RestoreState.NEEDS_THAW)

    @property
    def thaw_pending(self) -> List[RestoreCandidate]:
        return self.in_state(RestoreState.THAW_PENDING)

    @property
    def ready_to_fetch(self) -> List[RestoreCandidate]:
        return self.in_state(RestoreState.READY_TO_FETCH)


def resolve_restore_plan(
    config: StorageConfig,
    objects: Mapping[str, ObjectMetadata],
) -> RestorePlan:
    """
    Classify every requested object.

    Raises:
        ObjectKeyError: If any key is not a bb-<jobId>-<volume>.enc key
        DestinationConflictError: If two keys map to the same local file,
            e.g. a recycled volume label restored for two jobs
    """
    plan = RestorePlan()
    by_destination: Dict[Path, List[str]] = {}
    for key, metadata in objects.items():
        candidate = build_candidate(config, key, metadata)
        by_destination.setdefault(candidate.destination, []).append(key)
        plan.candidates.append(candidate)

    conflicts = {dest: keys for dest, keys in by_destination.items() if len(keys) > 1}
    if conflicts:
        conflicting_keys = [key for keys in conflicts.values() for key in keys]
        raise DestinationConflictError(
            explain_destination_conflict(conflicts),
            conflicting_keys,
            details={"destinations": [str(dest) for dest in conflicts]},
        )

    for candidate in plan.candidates:
        candidate.state = classify_candidate(candidate)
    return plan


async def _request_thaws(config: StorageConfig, state: JobState, plan: RestorePlan) -> None:
    for candidate in plan.needs_thaw:
        await state["store"].restore_object(
            config.bucket,
            candidate.key,
            config.restore_tier,
            config.restore_retention_days,
        )
        candidate.state = RestoreState.THAW_PENDING
        logger.info(
            "thaw_requested",
            key=candidate.key,
            tier=config.restore_tier.value,
            eta=config.restore_tier.eta,
            retention_days=config.restore_retention_days,
        )


async def fetch_volume(config: StorageConfig, state: JobState, candidate: RestoreCandidate) -> Path:
    """
    Download and decrypt one volume into the scratch directory.

    Returns:
        Path of the restored plaintext volume
    """
    volume_name = candidate.volume.volume_name
    tmp_path = config.scratch_dir / f"{volume_name}.{ULID()}.enc.tmp"

    logger.debug("volume_fetch_started", key=candidate.key, tmp_path=str(tmp_path))
    try:
        reporter = transfer_reporter(
            volume_name,
            "Download",
            candidate.metadata.size,
            show_bar=config.show_progress_bar,
        )
        await state["store"].download(
            config.bucket,
            candidate.key,
            tmp_path,
            progress=reporter.add,
        )
        reporter.done()

        await decrypt_volume(
            state["key_manager"],
            tmp_path,
            candidate.destination,
            name=candidate.key,
            show_bar=config.show_progress_bar,
        )
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.info("volume_restored", job_id=candidate.volume.job_id, volume=volume_name)
    return candidate.destination


async def restore_objects(
    config: StorageConfig,
    state: JobState,
    objects: Mapping[str, ObjectMetadata],
) -> RestoreResult:
    """
    Restore a set of objects whose metadata is known.

    Args:
        config: Storage configuration
        state: Runtime state
        objects: Object key -> metadata, in request order

    Returns:
        RestoreResult with restored and already-local paths

    Raises:
        DestinationConflictError: If two objects would restore to one file
        ArchivalRestoreInProgressError: If any object is still being thawed
        JobFailedError: If any download or decrypt failed
    """
    start_time = datetime.now(UTC)
    plan = resolve_restore_plan(config, objects)

    for candidate in plan.local_already:
        logger.info(
            "volume_already_local",
            key=candidate.key,
            path=str(candidate.destination),
        )
    for candidate in plan.thaw_pending:
        logger.info("thaw_already_in_progress", key=candidate.key)

    await _request_thaws(config, state, plan)

    pending = plan.thaw_pending
    if pending:
        pending_keys = [c.key for c in pending]
        raise ArchivalRestoreInProgressError(
            explain_archival_restore_in_progress(
                pending_keys,
                config.restore_tier.eta,
                config.restore_retention_days,
            ),
            pending_keys,
            details={"tier": config.restore_tier.value},
        )

    ready = plan.ready_to_fetch
    logger.info("restore_started", run_id=state["run_id"], objects=len(ready))
    if ready:
        state["key_manager"].prime()

    async def worker(candidate: RestoreCandidate) -> Path:
        return await fetch_volume(config, state, candidate)

    restored, failures = await run_bounded(
        ready,
        worker,
        config.max_concurrent_ops,
        label=lambda c: c.key,
    )

    for key, error in failures.items():
        logger.error("volume_restore_failed", key=key, error=str(error))
    raise_for_failures("the restore", failures)

    duration = (datetime.now(UTC) - start_time).total_seconds()
    return RestoreResult(
        run_id=state["run_id"],
        restored=[restored[c.key] for c in ready],
        already_local=[c.destination for c in plan.local_already],
        duration_seconds=duration,
    )


async def fetch_metadata(
    config: StorageConfig,
    state: JobState,
    keys: Iterable[str],
) -> Tuple[Dict[str, ObjectMetadata], List[str]]:
    """
    Fetch metadata for all keys in parallel.

    Returns:
        Tuple of (metadata by key in input order, keys that do not exist)
    """
    keys = list(dict.fromkeys(keys))

    async def worker(key: str) -> ObjectMetadata:
        return await state["store"].head_object(config.bucket, key)

    found, failures = await run_bounded(keys, worker, config.max_concurrent_ops)

    missing = [k for k in keys if isinstance(failures.get(k), ObjectNotFoundError)]
    other_failures = {k: e for k, e in failures.items() if k not in missing}
    raise_for_failures("the metadata lookup", other_failures)

    return {k: found[k] for k in keys if k in found}, missing


async def restore_volumes(
    config: StorageConfig,
    state: JobState,
    pairs: Iterable[str],
) -> RestoreResult:
    """
    Restore explicit volumes given as "<jobId>-<volumeName>" pairs.

    Raises:
        BadArgsError: If a pair is malformed
        ObjectsNotFoundError: Listing every key that does not exist,
            before anything is downloaded
    """
    volume_keys = [parse_job_volume_pair(pair) for pair in pairs]
    keys = [volume.object_key for volume in volume_keys]

    objects, missing = await fetch_metadata(config, state, keys)
    if missing:
        raise ObjectsNotFoundError(explain_objects_not_found(missing), missing)

    return await restore_objects(config, state, objects)


async def list_job_objects(config: StorageConfig, state: JobState, job_id: str) -> List[str]:
    """List every object key of a job, following truncated listings."""
    prefix = job_prefix(job_id)
    keys: List[str] = []
    continuation_token = None

    while True:
        listing = await state["store"].list_objects(config.bucket, prefix, continuation_token)
        keys.extend(listing.keys)
        if not listing.truncated:
            break
        continuation_token = listing.continuation_token

    logger.debug("job_objects_listed", job_id=job_id, count=len(keys))
    return keys


async def restore_jobs(
    config: StorageConfig,
    state: JobState,
    job_ids: Iterable[str],
) -> RestoreResult:
    """
    Restore every volume of the given jobs.

    Raises:
        BadArgsError: If a job id is not numeric
        JobNotFoundError: If a job has no objects
    """
    job_ids = [validate_job_id(job_id) for job_id in job_ids]

    keys: List[str] = []
    for job_id in dict.fromkeys(job_ids):
        job_keys = await list_job_objects(config, state, job_id)
        if not job_keys:
            raise JobNotFoundError(explain_job_not_found(job_id), details={"job_id": job_id})
        keys.extend(job_keys)

    objects, missing = await fetch_metadata(config, state, keys)
    if missing:
        # Deleted between the listing and the metadata lookup
        raise ObjectsNotFoundError(explain_objects_not_found(missing), missing)

    return await restore_objects(config, state, objects)
