# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for the bareos-s3 launcher and its exit codes.
"""

import errno
from pathlib import Path

import pytest

from bareos_s3 import cli, core
from bareos_s3.env import SETTINGS
from bareos_s3.envelope import codec

from conftest import FakeObjectStore


@pytest.fixture
def config_file(temp_dir: Path, monkeypatch) -> Path:
    """A properties file with all required settings and a clean environment."""
    for setting in SETTINGS:
        monkeypatch.delenv(setting.env_var, raising=False)
    monkeypatch.delenv("BAREOS_S3_CONFIG", raising=False)

    path = temp_dir / "s3-storage.properties"
    path.write_text(
        "aws.region=us-east-1\n"
        "aws.bucket=test-bucket\n"
        "encryption.key=cli passphrase\n"
    )
    return path


@pytest.fixture
def scratch_dir(temp_dir: Path) -> Path:
    path = temp_dir / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def cli_store(monkeypatch) -> FakeObjectStore:
    """Route the launcher's jobs to an in-memory store."""
    store = FakeObjectStore()

    async def initialize_with_fake_store(config, store_override=None):
        return await core.initialize_job_state(config, store=store)

    monkeypatch.setattr(cli, "initialize_job_state", initialize_with_fake_store)
    return store


def test_backup_success(config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, capsys):
    (scratch_dir / "Full-0001").write_bytes(b"volume" * 100)

    code = cli.run(["--config", str(config_file), "backup", str(scratch_dir), "12", "Full-0001"])

    assert code == cli.EXIT_OK
    assert "bb-12-Full-0001.enc" in cli_store.objects
    assert "Backup of job 12 completed successfully" in capsys.readouterr().out


def test_restore_success(config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, capsys):
    (scratch_dir / "VOL1").write_bytes(b"volume" * 100)
    assert cli.run(["--config", str(config_file), "backup", str(scratch_dir), "3", "VOL1"]) == 0

    code = cli.run(["--config", str(config_file), "restore-volumes", str(scratch_dir), "3-VOL1"])

    assert code == cli.EXIT_OK
    assert (scratch_dir / "VOL1").read_bytes() == b"volume" * 100
    assert "restored to local disk" in capsys.readouterr().out


def test_unknown_command_is_usage_error(config_file: Path):
    assert cli.run(["--config", str(config_file), "frobnicate"]) == cli.EXIT_USAGE


def test_missing_arguments_is_usage_error(config_file: Path, scratch_dir: Path):
    assert cli.run(["--config", str(config_file), "restore-jobs", str(scratch_dir)]) == cli.EXIT_USAGE


def test_bad_job_id_is_usage_error(
    config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, capsys
):
    code = cli.run(["--config", str(config_file), "backup", str(scratch_dir), "abc", "vol"])

    assert code == cli.EXIT_USAGE
    assert "Job ID must be numeric" in capsys.readouterr().err


def test_missing_setting_is_configuration_error(temp_dir: Path, scratch_dir: Path, monkeypatch, capsys):
    for setting in SETTINGS:
        monkeypatch.delenv(setting.env_var, raising=False)
    empty = temp_dir / "empty.properties"
    empty.write_text("aws.region=us-east-1\n")

    code = cli.run(["--config", str(empty), "restore-jobs", str(scratch_dir), "1"])

    assert code == cli.EXIT_CONFIG
    assert "aws.bucket" in capsys.readouterr().err


def test_define_fills_missing_setting(
    temp_dir: Path, scratch_dir: Path, cli_store: FakeObjectStore, monkeypatch
):
    for setting in SETTINGS:
        monkeypatch.delenv(setting.env_var, raising=False)
    partial = temp_dir / "partial.properties"
    partial.write_text("aws.region=us-east-1\naws.bucket=test-bucket\n")
    (scratch_dir / "V").write_bytes(b"v")

    code = cli.run([
        "--config", str(partial),
        "-D", "encryption.key=from the command line",
        "backup", str(scratch_dir), "1", "V",
    ])

    assert code == cli.EXIT_OK


def test_job_failure_exit_code(config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, capsys):
    code = cli.run(["--config", str(config_file), "restore-volumes", str(scratch_dir), "234-VOL1"])

    assert code == cli.EXIT_JOB_FAILED
    err = capsys.readouterr().err
    assert "bb-234-VOL1.enc" in err
    assert "Traceback" not in err


def test_verbose_job_failure_prints_traceback(
    config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, capsys
):
    code = cli.run([
        "--config", str(config_file), "-v",
        "restore-volumes", str(scratch_dir), "234-VOL1",
    ])

    assert code == cli.EXIT_JOB_FAILED
    assert "Traceback" in capsys.readouterr().err


def test_disk_full_is_job_failure(
    config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, monkeypatch, capsys
):
    (scratch_dir / "Full-0001").write_bytes(b"volume" * 100)

    def disk_full(*args, **kwargs):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(codec, "encrypt_stream", disk_full)

    code = cli.run(["--config", str(config_file), "backup", str(scratch_dir), "123", "Full-0001"])

    assert code == cli.EXIT_JOB_FAILED
    err = capsys.readouterr().err
    assert "No space left on device" in err
    assert "Traceback" not in err
    assert (scratch_dir / "Full-0001").exists()


@pytest.mark.parametrize(
    "command",
    [
        ["backup", "abc", "Full-0001"],
        ["backup", "12"],
        ["restore-volumes", "VOL1"],
        ["restore-jobs", "1", "two"],
    ],
)
def test_bad_arguments_never_open_the_store(
    config_file: Path, scratch_dir: Path, monkeypatch, command
):
    opened = []

    async def record_initialize(config, store=None):
        opened.append(config)
        raise AssertionError("job state must not be initialized")

    monkeypatch.setattr(cli, "initialize_job_state", record_initialize)

    code = cli.run(["--config", str(config_file), command[0], str(scratch_dir), *command[1:]])

    assert code == cli.EXIT_USAGE
    assert opened == []


def test_unexpected_error_exit_code(
    config_file: Path, scratch_dir: Path, cli_store: FakeObjectStore, monkeypatch, capsys
):
    async def explode(config, state, request):
        raise RuntimeError("boom")

    monkeypatch.setattr(cli, "run_job", explode)

    code = cli.run(["--config", str(config_file), "restore-jobs", str(scratch_dir), "1"])

    assert code == cli.EXIT_UNEXPECTED
    err = capsys.readouterr().err
    assert "boom" in err
    assert "Traceback" in err


def test_version(capsys):
    assert cli.run(["--version"]) == cli.EXIT_OK
    assert "bareos-s3" in capsys.readouterr().out


def test_parse_job_request_variants():
    assert core.parse_job_request("backup", ["1", "a|b"]) == core.BackupRequest("1", ["a|b"])
    assert core.parse_job_request("restore-volumes", ["1-a"]) == core.RestoreVolumesRequest(["1-a"])
    assert core.parse_job_request("restore-jobs", ["1", "2"]) == core.RestoreJobsRequest(["1", "2"])


@pytest.mark.parametrize(
    "action,args",
    [
        ("backup", []),
        ("backup", ["1"]),
        ("backup", ["1", " | "]),
        ("backup", ["x1", "vol"]),
        ("backup", ["1", "../etc"]),
        ("restore-volumes", ["VOL1"]),
        ("restore-jobs", []),
        ("restore-jobs", ["1", "x"]),
        ("purge", ["1"]),
    ],
)
def test_parse_job_request_rejects_bad_input(action, args):
    from bareos_s3.exceptions import BadArgsError

    with pytest.raises(BadArgsError):
        core.parse_job_request(action, args)
