# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 object store on aiobotocore.

Large volumes are uploaded with multipart uploads (aborted if anything
fails part way) and downloads are streamed to disk, so a volume is never
held in memory in full.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

import aiofiles
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from bareos_s3.config import RestoreTier, StorageConfig
from bareos_s3.exceptions import ObjectNotFoundError, TransferError
from bareos_s3.store.base import ObjectListing, ObjectMetadata, ProgressCallback

logger = structlog.get_logger()

DOWNLOAD_CHUNK_SIZE = 1024 * 1024

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

_TRANSFER_ERRORS = (ClientError, BotoCoreError, OSError)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _is_ongoing_restore(restore_header: str | None) -> bool:
    # e.g. 'ongoing-request="true"' or 'ongoing-request="false", expiry-date="..."'
    return bool(restore_header) and 'ongoing-request="true"' in restore_header


class S3ObjectStore:
    """ObjectStore backed by an open aiobotocore S3 client."""

    def __init__(self, client: Any, config: StorageConfig):
        self._client = client
        self._config = config

    async def put_object(
        self,
        bucket: str,
        key: str,
        path: Path,
        storage_class: str,
        progress: ProgressCallback | None = None,
    ) -> str:
        """
        Upload a file, using multipart above the configured threshold.

        Returns:
            ETag of the stored object

        Raises:
            TransferError: If the upload failed
        """
        try:
            size = path.stat().st_size
            if size <= self._config.multipart_threshold:
                async with aiofiles.open(path, "rb") as f:
                    body = await f.read()
                response = await self._client.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=body,
                    StorageClass=storage_class,
                )
                if progress:
                    progress(size)
                etag = response["ETag"]
            else:
                etag = await self._multipart_upload(bucket, key, path, storage_class, progress)
        except _TRANSFER_ERRORS as e:
            raise TransferError(
                f"Failed to upload {key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e

        logger.debug("object_uploaded", bucket=bucket, key=key, size=size, etag=etag)
        return etag

    async def _multipart_upload(
        self,
        bucket: str,
        key: str,
        path: Path,
        storage_class: str,
        progress: ProgressCallback | None,
    ) -> str:
        created = await self._client.create_multipart_upload(
            Bucket=bucket,
            Key=key,
            StorageClass=storage_class,
        )
        upload_id = created["UploadId"]
        parts: List[Dict[str, Any]] = []

        try:
            async with aiofiles.open(path, "rb") as f:
                part_number = 1
                while True:
                    chunk = await f.read(self._config.multipart_chunk_size)
                    if not chunk:
                        break
                    response = await self._client.upload_part(
                        Bucket=bucket,
                        Key=key,
                        PartNumber=part_number,
                        UploadId=upload_id,
                        Body=chunk,
                    )
                    parts.append({"ETag": response["ETag"], "PartNumber": part_number})
                    if progress:
                        progress(len(chunk))
                    part_number += 1

            completed = await self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except BaseException:
            await self._abort_multipart_upload(bucket, key, upload_id)
            raise

        return completed["ETag"]

    async def _abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        try:
            await self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
            )
        except _TRANSFER_ERRORS as e:
            # The original failure is the one worth reporting
            logger.warning(
                "multipart_abort_failed",
                bucket=bucket,
                key=key,
                upload_id=upload_id,
                error=str(e),
            )

    async def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        """
        Fetch the metadata the restore planner needs.

        Raises:
            ObjectNotFoundError: If the key does not exist
            TransferError: On any other failure
        """
        try:
            response = await self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    f"Object {key} not found",
                    details={"bucket": bucket, "key": key},
                ) from e
            raise TransferError(
                f"Failed to read metadata of {key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e
        except BotoCoreError as e:
            raise TransferError(
                f"Failed to read metadata of {key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e

        # S3 leaves StorageClass out for STANDARD objects
        return ObjectMetadata(
            storage_class=response.get("StorageClass") or "STANDARD",
            ongoing_restore=_is_ongoing_restore(response.get("Restore")),
            size=response.get("ContentLength", 0),
        )

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """List one page of keys under prefix."""
        params: Dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = await self._client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            raise TransferError(
                f"Failed to list objects under {prefix}: {e}",
                details={"bucket": bucket, "prefix": prefix},
            ) from e

        return ObjectListing(
            keys=[obj["Key"] for obj in response.get("Contents", [])],
            truncated=bool(response.get("IsTruncated", False)),
            continuation_token=response.get("NextContinuationToken"),
        )

    async def restore_object(
        self,
        bucket: str,
        key: str,
        tier: RestoreTier,
        retention_days: int,
    ) -> None:
        """Request a thaw of an archived object."""
        try:
            await self._client.restore_object(
                Bucket=bucket,
                Key=key,
                RestoreRequest={
                    "Days": retention_days,
                    "GlacierJobParameters": {"Tier": tier.value},
                },
            )
        except ClientError as e:
            # Another run already asked for this object; nothing more to do
            if _error_code(e) == "RestoreAlreadyInProgress":
                logger.info("restore_already_in_progress", bucket=bucket, key=key)
                return
            raise TransferError(
                f"Failed to request restore of {key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e
        except BotoCoreError as e:
            raise TransferError(
                f"Failed to request restore of {key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e

    async def download(
        self,
        bucket: str,
        key: str,
        path: Path,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Stream an object to disk; a partial file is removed on failure."""
        try:
            response = await self._client.get_object(Bucket=bucket, Key=key)
            async with response["Body"] as stream, aiofiles.open(path, "wb") as f:
                while True:
                    chunk = await stream.read(DOWNLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    await f.write(chunk)
                    if progress:
                        progress(len(chunk))
        except _TRANSFER_ERRORS as e:
            path.unlink(missing_ok=True)
            raise TransferError(
                f"Failed to download {key}: {e}",
                details={"bucket": bucket, "key": key},
            ) from e
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        logger.debug("object_downloaded", bucket=bucket, key=key, path=str(path))


@asynccontextmanager
async def open_s3_store(config: StorageConfig) -> AsyncIterator[S3ObjectStore]:
    """
    Open an S3 client for the lifetime of one job.

    Static credentials are used when configured; otherwise botocore's
    default credential chain applies.
    """
    from aiobotocore.session import get_session

    session = get_session()
    client_kwargs: Dict[str, Any] = {"region_name": config.region}
    if config.access_key_id and config.secret_access_key:
        client_kwargs["aws_access_key_id"] = config.access_key_id
        client_kwargs["aws_secret_access_key"] = config.secret_access_key
    if config.endpoint_url:
        client_kwargs["endpoint_url"] = config.endpoint_url

    async with session.create_client("s3", **client_kwargs) as client:
        logger.debug("s3_client_opened", region=config.region, endpoint=config.endpoint_url)
        yield S3ObjectStore(client, config)
