# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Backup - Encrypt, upload, then delete local volumes.

For each volume of a job:
1. Check that the volume exists in the scratch directory
2. Encrypt it to a temporary sibling file
3. Upload the encrypted file under bb-<jobId>-<volume>.enc
4. Delete the local volume, only once the upload was confirmed

The temporary encrypted file is removed on every exit path.
"""

from datetime import datetime, UTC
from typing import Iterable, Optional

import structlog
from ulid import ULID

from bareos_s3.config import StorageConfig
from bareos_s3.core import BackupResult, JobState
from bareos_s3.envelope import encrypt_volume
from bareos_s3.errors import explain_local_io_failed, explain_volume_missing
from bareos_s3.exceptions import BadArgsError, TransferError, VolumeMissingError
from bareos_s3.jobs.fanout import raise_for_failures, run_bounded
from bareos_s3.naming import parse_volume_names, to_object_key, validate_job_id
from bareos_s3.progress import transfer_reporter

logger = structlog.get_logger()


async def backup_volume(
    config: StorageConfig,
    state: JobState,
    job_id: str,
    volume_name: str,
) -> str:
    """
    Back up one volume.

    Returns:
        ETag of the uploaded object

    Raises:
        VolumeMissingError: If the volume is not in the scratch directory
    """
    source = config.scratch_dir / volume_name
    key = to_object_key(job_id, volume_name)

    if not source.is_file():
        raise VolumeMissingError(
            explain_volume_missing(job_id, volume_name, source),
            details={"path": str(source)},
        )

    tmp_path = config.scratch_dir / f"{key}.{ULID()}.tmp"
    try:
        await encrypt_volume(
            state["key_manager"],
            source,
            tmp_path,
            show_bar=config.show_progress_bar,
        )

        try:
            encrypted_size = tmp_path.stat().st_size
        except OSError as e:
            raise TransferError(
                explain_local_io_failed("read", key, tmp_path, e),
                details={"path": str(tmp_path)},
            ) from e

        reporter = transfer_reporter(
            key,
            "Upload",
            encrypted_size,
            show_bar=config.show_progress_bar,
        )
        etag = await state["store"].put_object(
            config.bucket,
            key,
            tmp_path,
            config.upload_storage_class,
            progress=reporter.add,
        )
        reporter.done()

        # The store confirmed the upload; the local copy is no longer needed
        try:
            source.unlink()
        except OSError as e:
            raise TransferError(
                explain_local_io_failed("delete the uploaded volume", volume_name, source, e),
                details={"path": str(source), "key": key},
            ) from e

        logger.info(
            "volume_uploaded",
            job_id=job_id,
            volume=volume_name,
            key=key,
            storage_class=config.upload_storage_class,
        )
        return etag
    finally:
        tmp_path.unlink(missing_ok=True)


async def run_backup(
    config: StorageConfig,
    state: JobState,
    job_id: str,
    volume_names: Iterable[Optional[str]],
) -> BackupResult:
    """
    Back up all volumes of a job in parallel.

    Args:
        config: Storage configuration
        state: Runtime state
        job_id: Numeric Bareos job id
        volume_names: Volume arguments; "a|b" entries expand to several volumes

    Returns:
        BackupResult with the uploaded volumes

    Raises:
        BadArgsError: Malformed job id, or no volumes given
        JobFailedError: If any volume failed (after all were attempted)
    """
    validate_job_id(job_id)
    # Ordered set: a repeated name would race against its own upload
    volumes = list(dict.fromkeys(parse_volume_names(volume_names)))
    if not volumes:
        raise BadArgsError(f"No volumes given for job {job_id}")

    # Reject bad names before touching anything
    for volume in volumes:
        to_object_key(job_id, volume)

    start_time = datetime.now(UTC)
    state["key_manager"].prime()

    logger.info("backup_started", run_id=state["run_id"], job_id=job_id, volumes=len(volumes))

    async def worker(volume: str) -> str:
        return await backup_volume(config, state, job_id, volume)

    uploaded, failures = await run_bounded(volumes, worker, config.max_concurrent_ops)

    for volume, error in failures.items():
        logger.error("volume_backup_failed", job_id=job_id, volume=volume, error=str(error))
    raise_for_failures(f"job {job_id}", failures)

    duration = (datetime.now(UTC) - start_time).total_seconds()
    logger.info("backup_completed", run_id=state["run_id"], job_id=job_id, duration=duration)

    return BackupResult(
        run_id=state["run_id"],
        job_id=job_id,
        uploaded=uploaded,
        duration_seconds=duration,
    )
