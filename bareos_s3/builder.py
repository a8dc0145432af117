# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Builder - Functional builder pattern for configuration.

This module provides pure functions for building StorageConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict

from bareos_s3.config import RestoreTier, StorageConfig, MIB


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "bucket": "",
        "encryption_key": "",
        "scratch_dir": Path("."),
        "region": "us-east-1",
        "access_key_id": None,
        "secret_access_key": None,
        "endpoint_url": None,
        "upload_storage_class": "ONEZONE_IA",
        "restore_tier": RestoreTier.STANDARD,
        "restore_retention_days": 3,
        "max_concurrent_ops": 4,
        "multipart_threshold": 64 * MIB,
        "multipart_chunk_size": 64 * MIB,
        "show_progress_bar": True,
    }


def with_bucket(config: ConfigDict, bucket_name: str) -> ConfigDict:
    """
    Set the S3 bucket name.

    Args:
        config: Current configuration dictionary
        bucket_name: Name of the bucket holding encrypted volumes

    Returns:
        New configuration dictionary with bucket set
    """
    return {**config, "bucket": bucket_name}


def with_region(config: ConfigDict, region: str) -> ConfigDict:
    """
    Set the AWS region.

    Args:
        config: Current configuration dictionary
        region: AWS region (e.g., 'us-east-1', 'eu-west-1')

    Returns:
        New configuration dictionary with region set
    """
    return {**config, "region": region}


def with_passphrase(config: ConfigDict, passphrase: str) -> ConfigDict:
    """Set the passphrase the key-encryption key is derived from."""
    return {**config, "encryption_key": passphrase}


def with_scratch_dir(config: ConfigDict, scratch_dir: Path | str) -> ConfigDict:
    """Set the directory volumes are read from and restored to."""
    path = Path(scratch_dir) if isinstance(scratch_dir, str) else scratch_dir
    return {**config, "scratch_dir": path}


def with_credentials(
    config: ConfigDict,
    access_key_id: str | None,
    secret_access_key: str | None,
) -> ConfigDict:
    """
    Set static AWS credentials.

    Leave both as None to use the default botocore credential chain
    (environment, shared config, instance profile).
    """
    return {
        **config,
        "access_key_id": access_key_id,
        "secret_access_key": secret_access_key,
    }


def with_endpoint(config: ConfigDict, endpoint_url: str | None) -> ConfigDict:
    """Point the client at an S3-compatible endpoint."""
    return {**config, "endpoint_url": endpoint_url}


def upload_as(config: ConfigDict, storage_class: str) -> ConfigDict:
    """Set the storage class uploaded volumes are written with."""
    return {**config, "upload_storage_class": storage_class.upper()}


def thaw_with(
    config: ConfigDict,
    tier: RestoreTier | str,
    retention_days: int | None = None,
) -> ConfigDict:
    """
    Configure archival thaw requests.

    Args:
        config: Current configuration dictionary
        tier: Retrieval tier ('Expedited', 'Standard' or 'Bulk')
        retention_days: Days a thawed copy stays readable

    Returns:
        New configuration dictionary with thaw settings
    """
    if isinstance(tier, str):
        tier = RestoreTier.parse(tier)
    updated = {**config, "restore_tier": tier}
    if retention_days is not None:
        if retention_days < 1:
            raise ValueError(f"retention days must be >= 1, got {retention_days}")
        updated["restore_retention_days"] = retention_days
    return updated


def with_max_concurrent_ops(config: ConfigDict, max_ops: int) -> ConfigDict:
    """
    Set maximum concurrent volume operations.

    Args:
        config: Current configuration dictionary
        max_ops: Maximum number of volumes encrypted/transferred at once

    Returns:
        New configuration dictionary with concurrency limit set
    """
    if max_ops < 1:
        raise ValueError(f"max_ops must be >= 1, got {max_ops}")
    return {**config, "max_concurrent_ops": max_ops}


def without_progress_bar(config: ConfigDict) -> ConfigDict:
    """Print plain percentages instead of bars (for nohup/cron output)."""
    return {**config, "show_progress_bar": False}


def build_config(config_dict: ConfigDict) -> StorageConfig:
    """
    Build the final immutable StorageConfig from a config dictionary.

    Args:
        config_dict: Configuration dictionary

    Returns:
        Validated, immutable StorageConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    return StorageConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    Example:
        configure = pipe(
            lambda c: with_bucket(c, "bareos-volumes"),
            lambda c: with_passphrase(c, "secret"),
        )
        config_dict = configure(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def create_config(
    bucket: str,
    encryption_key: str,
    *,
    scratch_dir: str | Path | None = None,
    region: str = "us-east-1",
    access_key_id: str | None = None,
    secret_access_key: str | None = None,
    endpoint_url: str | None = None,
    storage_class: str | None = None,
    restore_tier: str | RestoreTier = RestoreTier.STANDARD,
    restore_retention_days: int | None = None,
    max_concurrent_ops: int | None = None,
    **kwargs: Any,
) -> StorageConfig:
    """
    Create a StorageConfig from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        bucket: S3 bucket name (required)
        encryption_key: Passphrase protecting the volumes (required)
        scratch_dir: Bareos storage-daemon volume directory
        region: AWS region (default: "us-east-1")
        access_key_id: Static access key (optional)
        secret_access_key: Static secret key (optional)
        endpoint_url: S3-compatible endpoint (optional)
        storage_class: Storage class for uploads (default: "ONEZONE_IA")
        restore_tier: Archival retrieval tier (default: "Standard")
        restore_retention_days: Days thawed copies stay readable (default: 3)
        max_concurrent_ops: Volumes processed at once (default: 4)
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable StorageConfig instance

    Example:
        config = create_config(
            bucket="bareos-volumes",
            encryption_key="correct horse battery staple",
            scratch_dir="/var/lib/bareos/storage",
            restore_tier="Bulk",
        )
    """
    config_dict = create_empty_config()
    config_dict = with_bucket(config_dict, bucket)
    config_dict = with_passphrase(config_dict, encryption_key)

    if scratch_dir:
        config_dict = with_scratch_dir(config_dict, scratch_dir)

    if region:
        config_dict = with_region(config_dict, region)

    if access_key_id or secret_access_key:
        config_dict = with_credentials(config_dict, access_key_id, secret_access_key)

    if endpoint_url:
        config_dict = with_endpoint(config_dict, endpoint_url)

    if storage_class:
        config_dict = upload_as(config_dict, storage_class)

    config_dict = thaw_with(config_dict, restore_tier, restore_retention_days)

    if max_concurrent_ops is not None:
        config_dict = with_max_concurrent_ops(config_dict, max_concurrent_ops)

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
