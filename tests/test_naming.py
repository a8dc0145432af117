# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for volume naming: object keys, job ids and volume arguments.
"""

import pytest

from bareos_s3.exceptions import BadArgsError, JobFailedError, ObjectKeyError
from bareos_s3.naming import (
    VolumeKey,
    job_prefix,
    parse_job_volume_pair,
    parse_object_key,
    parse_volume_names,
    to_object_key,
    validate_job_id,
)


@pytest.mark.parametrize(
    "job_id,volume_name",
    [
        ("1", "Full-0001"),
        ("234", "VOL1"),
        ("99999", "Incremental-0042"),
        ("7", "vol.with.dots"),
        ("12", "name-with-123-dashes"),
    ],
)
def test_object_key_round_trip(job_id: str, volume_name: str):
    key = to_object_key(job_id, volume_name)

    assert key == f"bb-{job_id}-{volume_name}.enc"
    assert parse_object_key(key) == VolumeKey(job_id, volume_name)


@pytest.mark.parametrize(
    "key",
    [
        "bb-abc-VOL1.enc",
        "bb-1-VOL1",
        "bb--VOL1.enc",
        "xx-1-VOL1.enc",
        "bb-1-.enc",
        "bb-1-VOL1.enc.tmp",
        "bb-1-../etc/passwd.enc",
        "",
    ],
)
def test_non_matching_key_is_refused(key: str):
    with pytest.raises(ObjectKeyError) as exc_info:
        parse_object_key(key)

    assert isinstance(exc_info.value, JobFailedError)


@pytest.mark.parametrize("job_id", ["", "12a", "-1", "1 2"])
def test_non_numeric_job_id_is_bad_args(job_id: str):
    with pytest.raises(BadArgsError):
        validate_job_id(job_id)


@pytest.mark.parametrize("volume_name", ["", " ", "a/b", "..", "a\\b"])
def test_invalid_volume_name_is_bad_args(volume_name: str):
    with pytest.raises(BadArgsError):
        to_object_key("1", volume_name)


def test_job_prefix():
    assert job_prefix("123") == "bb-123-"


def test_volume_key_str_names_job_and_volume():
    assert str(VolumeKey("123", "Full-0001")) == "job 123, volume Full-0001"


def test_parse_volume_names_expands_pipes_and_drops_blanks():
    assert parse_volume_names(["a", "b |c", "d|", "", " "]) == ["a", "b", "c", "d"]


def test_parse_volume_names_keeps_order_and_skips_none():
    assert parse_volume_names([None, "z", "y | x"]) == ["z", "y", "x"]


def test_parse_job_volume_pair():
    assert parse_job_volume_pair("234-VOL1") == VolumeKey("234", "VOL1")
    assert parse_job_volume_pair("5-Full-0001") == VolumeKey("5", "Full-0001")
    assert parse_job_volume_pair("234-VOL1").object_key == "bb-234-VOL1.enc"


@pytest.mark.parametrize("pair", ["VOL1", "abc-VOL1", "234-", "-VOL1", ""])
def test_malformed_pair_is_bad_args(pair: str):
    with pytest.raises(BadArgsError):
        parse_job_volume_pair(pair)
