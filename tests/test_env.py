# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for properties-file / environment configuration.
"""

from pathlib import Path

import pytest

from bareos_s3.config import RestoreTier
from bareos_s3.env import (
    create_config_from_settings,
    parse_overrides,
    parse_properties,
    resolve_settings,
)
from bareos_s3.exceptions import ConfigurationError

PROPERTIES = """\
# Bareos S3 storage
aws.region=eu-west-1
aws.bucket = file-bucket
encryption.key: file passphrase
! legacy comment
aws.glacier.restoreTier=Bulk
"""


@pytest.fixture
def properties_file(temp_dir: Path) -> Path:
    path = temp_dir / "s3-storage.properties"
    path.write_text(PROPERTIES)
    return path


def test_parse_properties_separators_and_comments():
    props = parse_properties(PROPERTIES)

    assert props == {
        "aws.region": "eu-west-1",
        "aws.bucket": "file-bucket",
        "encryption.key": "file passphrase",
        "aws.glacier.restoreTier": "Bulk",
    }


def test_properties_file_only(properties_file: Path):
    settings = resolve_settings(properties_file, environ={})

    assert settings["aws.bucket"] == "file-bucket"
    assert settings["encryption.key"] == "file passphrase"


def test_environment_overrides_file(properties_file: Path):
    settings = resolve_settings(
        properties_file,
        environ={"BAREOS_S3_BUCKET": "env-bucket", "AWS_REGION": "  "},
    )

    assert settings["aws.bucket"] == "env-bucket"
    # Blank values count as unset
    assert settings["aws.region"] == "eu-west-1"


def test_defines_override_environment_and_file(properties_file: Path):
    settings = resolve_settings(
        properties_file,
        overrides={"aws.bucket": "cli-bucket"},
        environ={"BAREOS_S3_BUCKET": "env-bucket"},
    )

    assert settings["aws.bucket"] == "cli-bucket"


def test_missing_required_setting(temp_dir: Path):
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_settings(temp_dir / "absent.properties", environ={"AWS_REGION": "us-east-1"})

    assert exc_info.value.details["missing"] == ["aws.bucket", "encryption.key"]
    assert "aws.bucket" in exc_info.value.message


def test_parse_overrides():
    assert parse_overrides(["aws.bucket=b", "encryption.key=a=b"]) == {
        "aws.bucket": "b",
        "encryption.key": "a=b",
    }


@pytest.mark.parametrize("define", ["no-equals", "=value"])
def test_malformed_override(define: str):
    with pytest.raises(ConfigurationError):
        parse_overrides([define])


def test_create_config_from_settings(properties_file: Path, temp_dir: Path):
    config = create_config_from_settings(
        temp_dir,
        config_file=properties_file,
        overrides={"aws.glacier.restoreRetentionDays": "5", "job.maxConcurrency": "2"},
        environ={},
        show_progress_bar=False,
    )

    assert config.bucket == "file-bucket"
    assert config.region == "eu-west-1"
    assert config.scratch_dir == temp_dir
    assert config.restore_tier is RestoreTier.BULK
    assert config.restore_retention_days == 5
    assert config.max_concurrent_ops == 2
    assert config.show_progress_bar is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"aws.glacier.restoreTier": "Instant"},
        {"aws.glacier.restoreRetentionDays": "three"},
        {"aws.glacier.restoreRetentionDays": "0"},
        {"job.maxConcurrency": "-2"},
    ],
)
def test_invalid_values_are_configuration_errors(properties_file: Path, temp_dir: Path, overrides):
    with pytest.raises(ConfigurationError):
        create_config_from_settings(
            temp_dir,
            config_file=properties_file,
            overrides=overrides,
            environ={},
        )
