# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Exceptions - Custom exceptions for the bareos_s3 package.

The launcher maps the three top-level families to exit codes:
BadArgsError -> 1, ConfigurationError -> 2, JobFailedError -> 66.
"""


class BareosS3Error(Exception):
    """Base exception for all bareos_s3 errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class BadArgsError(BareosS3Error):
    """Raised when command-line arguments are malformed."""

    pass


class ConfigurationError(BareosS3Error):
    """Raised when configuration is missing or invalid."""

    pass


class VolumeTooLargeError(ConfigurationError):
    """Raised when a volume exceeds the single-invocation AES-GCM limit."""

    pass


class JobFailedError(BareosS3Error):
    """Raised when a backup or restore job cannot complete."""

    pass


class ResourceMissingError(JobFailedError):
    """Raised when a local volume or remote object is absent."""

    pass


class VolumeMissingError(ResourceMissingError):
    """Raised when a local volume file does not exist at backup time."""

    pass


class ObjectsNotFoundError(ResourceMissingError):
    """Raised when requested remote objects do not exist."""

    def __init__(self, message: str, keys: list[str], details: dict | None = None):
        self.keys = list(keys)
        super().__init__(message, details)


class JobNotFoundError(ResourceMissingError):
    """Raised when no remote objects exist for a job id."""

    pass


class ArchivalRestoreInProgressError(JobFailedError):
    """Raised when volumes are still being thawed from archival storage."""

    def __init__(self, message: str, keys: list[str], details: dict | None = None):
        self.keys = list(keys)
        super().__init__(message, details)


class IntegrityCheckError(JobFailedError):
    """Raised when authenticated decryption fails."""

    pass


class KeyUnwrapError(IntegrityCheckError):
    """Raised when a session key cannot be unwrapped (usually a wrong passphrase)."""

    pass


class UnrecognizedFormatError(JobFailedError):
    """Raised when a file is not an encrypted volume."""

    pass


class UnsupportedVersionError(JobFailedError):
    """Raised when an encrypted volume uses an unknown format version."""

    pass


class ObjectKeyError(JobFailedError):
    """Raised when an object key does not follow the bb-<job>-<volume>.enc pattern."""

    pass


class TransferError(JobFailedError):
    """Raised when the object store or local filesystem fails a transfer."""

    pass


class ObjectNotFoundError(TransferError):
    """Raised by object stores when a key does not exist."""

    pass


class VolumesFailedError(JobFailedError):
    """Raised when more than one volume of a job failed."""

    def __init__(
        self,
        message: str,
        failures: dict[str, BaseException],
        details: dict | None = None,
    ):
        self.failures = dict(failures)
        super().__init__(message, details)


class DestinationConflictError(JobFailedError):
    """Raised when several objects of a restore share one local destination."""

    def __init__(self, message: str, keys: list[str], details: dict | None = None):
        self.keys = list(keys)
        super().__init__(message, details)
