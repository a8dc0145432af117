# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Bareos S3 storage.

These helpers centralize wording for configuration and job errors so
that every module presents consistent, actionable messages naming the
offending job, volume or object.
"""

from pathlib import Path
from typing import Iterable, Mapping


def explain_missing_setting(prop: str, env_var: str, config_file: Path) -> str:
    """
    Explain that a required setting has no value.
    """

    return (
        f"A value is required for the setting {prop}. "
        f"Add it to {config_file}, set the {env_var} environment variable, "
        f"or pass it on the command line (e.g. -D {prop}=\"value\")."
    )


def explain_invalid_restore_tier(value: str | None) -> str:
    """
    Explain that the archival restore tier is invalid.
    """

    return (
        f"Invalid aws.glacier.restoreTier value: {value!r}. "
        "Expected one of: 'Expedited', 'Standard', or 'Bulk'."
    )


def explain_invalid_integer(prop: str, value: str | None) -> str:
    """
    Explain that a numeric setting could not be parsed.
    """

    return f"Invalid {prop} value: {value!r}. It must be a positive integer."


def explain_malformed_define(value: str) -> str:
    """
    Explain that a -D override is not of the form key=value.
    """

    return f"Malformed setting override {value!r}; expected key=value."


def explain_volume_too_large(volume: str, limit: int) -> str:
    """
    Explain that a volume is too large for a single AES-GCM invocation.
    """

    return (
        f"Volume {volume} is larger than {limit // (1024 ** 3)} GiB, which the "
        "AES-GCM file format cannot encrypt safely. "
        "Consider setting a maximum volume size on your file device in Bareos."
    )


def explain_volume_missing(job_id: str, volume: str, path: Path) -> str:
    """
    Explain that a local volume for a backup job does not exist.
    """

    return f"Could not find volume {volume} of job {job_id} at {path}"


def explain_objects_not_found(keys: Iterable[str]) -> str:
    """
    Explain that requested S3 objects could not be found.
    """

    listing = "\n".join(f"  {key}" for key in keys)
    return (
        "Your restore operation could not be completed because the following "
        "S3 objects could not be found:\n"
        f"{listing}\n\n"
        "Check for typos in the jobId-VOLNAME pairs listed above.\n"
        "Also check the bucket's retention policy to make sure the objects "
        "weren't expired early. In that case the data is already gone."
    )


def explain_job_not_found(job_id: str) -> str:
    """
    Explain that a job has no uploaded volumes.
    """

    return f"Could not find any volumes for job {job_id}"


def explain_archival_restore_in_progress(
    keys: Iterable[str],
    eta: str,
    retention_days: int,
) -> str:
    """
    Explain that some volumes are being thawed from archival storage.
    """

    listing = "\n".join(f"  {key}" for key in keys)
    return (
        "Your restore job cannot be completed right now because some of the "
        "requested volumes were migrated to archival storage.\n"
        "Archival retrievals were started (or are already running) for:\n"
        f"{listing}\n\n"
        f"Please re-run the restore after {eta} "
        f"(but don't wait more than {retention_days} days!)"
    )


def explain_key_unwrap_failed(name: str) -> str:
    """
    Explain that the session key of a volume could not be unwrapped.
    """

    return (
        f"Failed to unwrap the session key of {name}. "
        "Check that your encryption.key setting matches the one this file "
        "was encrypted with."
    )


def explain_integrity_check_failed(name: str) -> str:
    """
    Explain that decrypted content failed authentication.
    """

    return f"{name} failed integrity check! The decrypted output was discarded."


def explain_volumes_failed(job: str, failures: Mapping[str, BaseException]) -> str:
    """
    Explain that several volumes of one job failed.
    """

    lines = "\n".join(
        f"  {volume}: {error or type(error).__name__}"
        for volume, error in failures.items()
    )
    return f"{len(failures)} volumes of {job} failed:\n{lines}"


def explain_destination_conflict(conflicts: Mapping[Path, Iterable[str]]) -> str:
    """
    Explain that several objects would be restored to the same local file.
    """

    lines = []
    for destination, keys in conflicts.items():
        lines.append(f"  {destination}: {', '.join(keys)}")
    listing = "\n".join(lines)
    return (
        "Your restore operation could not be completed because several of "
        "the requested objects hold a volume of the same name:\n"
        f"{listing}\n\n"
        "Restore these jobs one at a time, moving each restored volume out "
        "of the way before restoring the next."
    )


def explain_local_io_failed(operation: str, name: str, path: Path, error: OSError) -> str:
    """
    Explain that a local file operation on a volume failed.
    """

    reason = error.strerror or str(error) or type(error).__name__
    return f"Could not {operation} {name} at {path}: {reason}"
