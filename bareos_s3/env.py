# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Properties-file and environment configuration for Bareos S3 storage.

Settings are resolved from three layers, highest precedence first:

1. Explicit overrides (``-D key=value`` on the command line)
2. Environment variables
3. The properties file (default: /etc/bareos/s3-storage.properties)

The resolved settings are passed through create_config(), so the usual
StorageConfig validation applies.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping

import structlog

from bareos_s3.builder import create_config
from bareos_s3.config import RestoreTier, StorageConfig
from bareos_s3.errors import (
    explain_invalid_integer,
    explain_invalid_restore_tier,
    explain_malformed_define,
    explain_missing_setting,
)
from bareos_s3.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = Path("/etc/bareos/s3-storage.properties")


@dataclass(frozen=True)
class Setting:
    """One configuration property and its environment variable."""

    prop: str
    env_var: str
    required: bool = False


SETTINGS = (
    Setting("aws.region", "AWS_REGION", required=True),
    Setting("aws.bucket", "BAREOS_S3_BUCKET", required=True),
    Setting("encryption.key", "BAREOS_S3_ENCRYPTION_KEY", required=True),
    Setting("aws.accessKeyId", "AWS_ACCESS_KEY_ID"),
    Setting("aws.secretKeyId", "AWS_SECRET_ACCESS_KEY"),
    Setting("aws.endpointUrl", "BAREOS_S3_ENDPOINT_URL"),
    Setting("aws.storageClass", "BAREOS_S3_STORAGE_CLASS"),
    Setting("aws.glacier.restoreTier", "BAREOS_S3_RESTORE_TIER"),
    Setting("aws.glacier.restoreRetentionDays", "BAREOS_S3_RESTORE_RETENTION_DAYS"),
    Setting("job.maxConcurrency", "BAREOS_S3_MAX_CONCURRENCY"),
)


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse Java-style properties text.

    Supports ``key=value``, ``key: value`` and ``key value`` lines;
    lines starting with ``#`` or ``!`` are comments.
    """
    props: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue

        # The first '=', ':' or whitespace separates key from value
        split_at = len(line)
        for i, char in enumerate(line):
            if char in "=:" or char.isspace():
                split_at = i
                break

        key = line[:split_at]
        rest = line[split_at:].lstrip()
        if rest[:1] in ("=", ":"):
            rest = rest[1:].lstrip()
        props[key] = rest
    return props


def read_properties_file(path: Path) -> Dict[str, str]:
    """Read a properties file; a missing file yields no settings."""
    if not path.exists():
        logger.warning("config_file_not_found", path=str(path))
        return {}
    return parse_properties(path.read_text(encoding="utf-8"))


def parse_overrides(defines: Iterable[str]) -> Dict[str, str]:
    """Parse ``key=value`` overrides given on the command line."""
    overrides: Dict[str, str] = {}
    for define in defines:
        key, sep, value = define.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(explain_malformed_define(define))
        overrides[key.strip()] = value
    return overrides


def resolve_settings(
    config_file: Path = DEFAULT_CONFIG_FILE,
    overrides: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """
    Merge the properties file, environment and overrides.

    Blank values are treated as unset at every layer.

    Returns:
        Dict keyed by property name (e.g. "aws.bucket")
    """
    environ = os.environ if environ is None else environ
    overrides = overrides or {}
    file_props = read_properties_file(config_file)

    resolved: Dict[str, str] = {}
    for setting in SETTINGS:
        for layer in (overrides.get(setting.prop), environ.get(setting.env_var), file_props.get(setting.prop)):
            if layer is not None and layer.strip():
                resolved[setting.prop] = layer.strip()
                break

    missing = [s for s in SETTINGS if s.required and s.prop not in resolved]
    if missing:
        raise ConfigurationError(
            explain_missing_setting(missing[0].prop, missing[0].env_var, config_file),
            details={"missing": [s.prop for s in missing]},
        )

    return resolved


def _parse_positive_int(prop: str, value: str | None) -> int | None:
    if value is None:
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_integer(prop, value)) from exc
    if parsed < 1:
        raise ConfigurationError(explain_invalid_integer(prop, value))
    return parsed


def _parse_restore_tier(value: str | None) -> RestoreTier:
    if not value:
        return RestoreTier.STANDARD
    try:
        return RestoreTier.parse(value)
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_restore_tier(value)) from exc


def create_config_from_settings(
    scratch_dir: Path,
    *,
    config_file: Path = DEFAULT_CONFIG_FILE,
    overrides: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
    show_progress_bar: bool = True,
) -> StorageConfig:
    """
    Create a StorageConfig from the layered settings sources.

    Required settings:
        - aws.region / AWS_REGION
        - aws.bucket / BAREOS_S3_BUCKET
        - encryption.key / BAREOS_S3_ENCRYPTION_KEY

    Optional settings:
        - aws.accessKeyId, aws.secretKeyId: static credentials
        - aws.endpointUrl: S3-compatible endpoint
        - aws.storageClass: upload storage class (default: ONEZONE_IA)
        - aws.glacier.restoreTier: Expedited | Standard | Bulk (default: Standard)
        - aws.glacier.restoreRetentionDays: positive integer (default: 3)
        - job.maxConcurrency: positive integer (default: 4)
    """
    settings = resolve_settings(config_file, overrides, environ)

    return create_config(
        bucket=settings["aws.bucket"],
        encryption_key=settings["encryption.key"],
        scratch_dir=scratch_dir,
        region=settings["aws.region"],
        access_key_id=settings.get("aws.accessKeyId"),
        secret_access_key=settings.get("aws.secretKeyId"),
        endpoint_url=settings.get("aws.endpointUrl"),
        storage_class=settings.get("aws.storageClass"),
        restore_tier=_parse_restore_tier(settings.get("aws.glacier.restoreTier")),
        restore_retention_days=_parse_positive_int(
            "aws.glacier.restoreRetentionDays",
            settings.get("aws.glacier.restoreRetentionDays"),
        ),
        max_concurrent_ops=_parse_positive_int(
            "job.maxConcurrency", settings.get("job.maxConcurrency")
        ),
        show_progress_bar=show_progress_bar,
    )
