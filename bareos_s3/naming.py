# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Volume naming - mapping between Bareos volumes and S3 object keys.

Every uploaded volume is stored as ``bb-<jobId>-<volumeName>.enc``.
The job id and volume name are recovered by matching that pattern; a
key that does not match is never guessed at.
"""

import re
from typing import Iterable, List, NamedTuple, Optional

from bareos_s3.exceptions import BadArgsError, ObjectKeyError

KEY_PREFIX = "bb-"
KEY_SUFFIX = ".enc"

KEY_PATTERN = re.compile(r"bb-([0-9]+)-(.+)\.enc")
JOB_ID_PATTERN = re.compile(r"[0-9]+")

# Separator of the "vol1|vol2" shorthand Bareos passes for multi-volume jobs
_VOLUME_SEPARATOR = re.compile(r" *\| *")


class VolumeKey(NamedTuple):
    """Job id and volume name encoded in one object key."""

    job_id: str
    volume_name: str

    @property
    def object_key(self) -> str:
        return to_object_key(self.job_id, self.volume_name)

    def __str__(self) -> str:
        return f"job {self.job_id}, volume {self.volume_name}"


def _is_plain_filename(volume_name: str) -> bool:
    # Volume names become paths inside the scratch directory
    return (
        bool(volume_name.strip())
        and "/" not in volume_name
        and "\\" not in volume_name
        and volume_name not in (".", "..")
    )


def validate_job_id(job_id: str) -> str:
    """Return job_id if it is numeric, else raise BadArgsError."""
    if job_id is None or not JOB_ID_PATTERN.fullmatch(job_id):
        raise BadArgsError(f"Job ID must be numeric; was {job_id}")
    return job_id


def job_prefix(job_id: str) -> str:
    """Key prefix shared by all volumes of a job."""
    return f"{KEY_PREFIX}{validate_job_id(job_id)}-"


def to_object_key(job_id: str, volume_name: str) -> str:
    """Format the object key for one volume of one job."""
    validate_job_id(job_id)
    if not volume_name or not _is_plain_filename(volume_name):
        raise BadArgsError(f"Invalid volume name for job {job_id}: {volume_name!r}")
    return f"{KEY_PREFIX}{job_id}-{volume_name}{KEY_SUFFIX}"


def parse_object_key(key: str) -> VolumeKey:
    """
    Recover the job id and volume name from an object key.

    Raises:
        ObjectKeyError: If the key does not match bb-<jobId>-<volume>.enc
    """
    match = KEY_PATTERN.fullmatch(key or "")
    if not match or not _is_plain_filename(match.group(2)):
        raise ObjectKeyError(
            f"Object {key} does not match the pattern bb-jobId-VOLUMENAME.enc",
            details={"key": key},
        )
    return VolumeKey(match.group(1), match.group(2))


def parse_job_volume_pair(pair: str) -> VolumeKey:
    """
    Parse a ``<jobId>-<volumeName>`` restore argument.

    Example:
        parse_job_volume_pair("234-Full-0001") -> VolumeKey("234", "Full-0001")
    """
    job_id, sep, volume_name = (pair or "").partition("-")
    if not sep or not JOB_ID_PATTERN.fullmatch(job_id) or not _is_plain_filename(volume_name):
        raise BadArgsError(f"Malformed jobId-VOLNAME pair: {pair}")
    return VolumeKey(job_id, volume_name)


def parse_volume_names(args: Iterable[Optional[str]]) -> List[str]:
    """
    Expand volume arguments into a flat list of names.

    Entries may hold several names separated by ``|``; blank entries
    and surrounding whitespace are dropped.

    Example:
        parse_volume_names(["a", "b |c", "d|", "", " "]) -> ["a", "b", "c", "d"]
    """
    names: List[str] = []
    for arg in args:
        if arg is None:
            continue
        for part in _VOLUME_SEPARATOR.split(arg):
            part = part.strip()
            if part:
                names.append(part)
    return names
