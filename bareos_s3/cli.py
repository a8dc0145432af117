# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
bareos-s3 command-line launcher.

Commands:
  backup           - Encrypt and upload the volumes of a job
  restore-volumes  - Restore explicit <jobId>-<volume> pairs
  restore-jobs     - Restore every volume of one or more jobs

Exit codes:
  0   success
  1   usage or argument error
  2   missing or invalid configuration
  66  job failure
  99  unexpected error
"""

import asyncio
import sys
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import click

from bareos_s3 import __version__
from bareos_s3.config import StorageConfig
from bareos_s3.core import (
    BackupResult,
    JobAction,
    JobRequest,
    JobResult,
    RestoreResult,
    initialize_job_state,
    parse_job_request,
    run_job,
    shutdown_job_state,
)
from bareos_s3.env import DEFAULT_CONFIG_FILE, create_config_from_settings, parse_overrides
from bareos_s3.exceptions import BadArgsError, ConfigurationError, JobFailedError
from bareos_s3.logs import configure_logging

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_CONFIG = 2
EXIT_JOB_FAILED = 66
EXIT_UNEXPECTED = 99


@dataclass
class LauncherOptions:
    """Global options shared by all commands."""

    config_file: Path = DEFAULT_CONFIG_FILE
    defines: List[str] = field(default_factory=list)
    verbose: bool = False
    show_progress_bar: bool = True


def _report_failure(error: Exception, verbose: bool) -> None:
    click.echo(f"Error: {getattr(error, 'message', error)}", err=True)

    details = getattr(error, "details", None) or {}
    for line in details.get("errors", []):
        click.echo(f"  - {line}", err=True)

    if verbose:
        click.echo(
            "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            err=True,
        )


async def _run_request(config: StorageConfig, request: JobRequest) -> JobResult:
    state = await initialize_job_state(config)
    try:
        return await run_job(config, state, request)
    finally:
        await shutdown_job_state(state)


def _print_summary(result: JobResult) -> None:
    if isinstance(result, BackupResult):
        click.echo(f"Backup of job {result.job_id} completed successfully!")
        for volume in result.uploaded:
            click.echo(f"  [OK] {volume}")
        return

    if isinstance(result, RestoreResult):
        click.echo("Restore operation has completed successfully!")
        if result.already_local:
            click.echo("\nThe following volumes were found on local disk:")
            for path in result.already_local:
                click.echo(f"  {path}")
        if result.restored:
            click.echo("\nThe following volumes were restored to local disk:")
            for path in result.restored:
                click.echo(f"  {path}")
        click.echo("\nYou can now start your restore job in the Bareos console!")


def _execute(opts: LauncherOptions, scratch_dir: Path, action: JobAction, args: Sequence[str]) -> int:
    """Load configuration, run one job and map its outcome to an exit code."""
    try:
        request = parse_job_request(action.value, args)
        config = create_config_from_settings(
            scratch_dir,
            config_file=opts.config_file,
            overrides=parse_overrides(opts.defines),
            show_progress_bar=opts.show_progress_bar,
        )
        result = asyncio.run(_run_request(config, request))
    except BadArgsError as e:
        _report_failure(e, opts.verbose)
        click.echo(click.get_current_context().get_usage(), err=True)
        return EXIT_USAGE
    except ConfigurationError as e:
        _report_failure(e, opts.verbose)
        return EXIT_CONFIG
    except JobFailedError as e:
        _report_failure(e, opts.verbose)
        return EXIT_JOB_FAILED
    except Exception as e:
        # Uncategorized failures always get a traceback
        _report_failure(e, verbose=True)
        return EXIT_UNEXPECTED

    _print_summary(result)
    return EXIT_OK


@click.group()
@click.version_option(version=__version__, prog_name="bareos-s3")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    envvar="BAREOS_S3_CONFIG",
    show_default=True,
    help="Properties file with the storage settings.",
)
@click.option(
    "-D",
    "defines",
    multiple=True,
    metavar="KEY=VALUE",
    help="Override a setting, e.g. -D aws.glacier.restoreTier=Bulk.",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and tracebacks.")
@click.option(
    "--no-progress-bar",
    is_flag=True,
    help="Report progress as plain percentages (for nohup or log capture).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Path,
    defines: Sequence[str],
    verbose: bool,
    no_progress_bar: bool,
) -> None:
    """Encrypted Bareos volume storage on Amazon S3."""
    configure_logging(verbose)
    ctx.obj = LauncherOptions(
        config_file=config_file,
        defines=list(defines),
        verbose=verbose,
        show_progress_bar=not no_progress_bar,
    )


_scratch_dir_argument = click.argument(
    "scratch_dir",
    type=click.Path(file_okay=False, path_type=Path),
)


@cli.command()
@_scratch_dir_argument
@click.argument("job_id")
@click.argument("volumes", nargs=-1)
@click.pass_obj
def backup(opts: LauncherOptions, scratch_dir: Path, job_id: str, volumes: Sequence[str]) -> int:
    """Encrypt and upload VOLUMES of JOB_ID, then delete them locally.

    A volume argument may name several volumes separated by "|".
    """
    return _execute(opts, scratch_dir, JobAction.BACKUP, [job_id, *volumes])


@cli.command("restore-volumes")
@_scratch_dir_argument
@click.argument("pairs", nargs=-1, required=True, metavar="JOBID-VOLUME...")
@click.pass_obj
def restore_volumes(opts: LauncherOptions, scratch_dir: Path, pairs: Sequence[str]) -> int:
    """Restore the given volumes into SCRATCH_DIR."""
    return _execute(opts, scratch_dir, JobAction.RESTORE_VOLUMES, pairs)


@cli.command("restore-jobs")
@_scratch_dir_argument
@click.argument("job_ids", nargs=-1, required=True)
@click.pass_obj
def restore_jobs(opts: LauncherOptions, scratch_dir: Path, job_ids: Sequence[str]) -> int:
    """Restore every volume of JOB_IDS into SCRATCH_DIR."""
    return _execute(opts, scratch_dir, JobAction.RESTORE_JOBS, job_ids)


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the launcher and return its exit code."""
    try:
        rv = cli.main(
            args=list(argv) if argv is not None else None,
            prog_name="bareos-s3",
            standalone_mode=False,
        )
    except click.ClickException as e:
        e.show()
        return EXIT_USAGE
    except click.Abort:
        click.echo("Aborted!", err=True)
        return EXIT_USAGE
    return rv if isinstance(rv, int) else EXIT_OK


def main() -> None:
    """Console script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
