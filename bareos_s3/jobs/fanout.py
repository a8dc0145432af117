# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bounded parallel processing of the volumes of one job.

Every volume is attempted even when others fail; failures are collected
and reported together once all attempts have finished.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Sequence, Tuple, TypeVar

from bareos_s3.errors import explain_volumes_failed
from bareos_s3.exceptions import JobFailedError, VolumesFailedError

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
    label: Callable[[T], str] = str,
) -> Tuple[Dict[str, R], Dict[str, BaseException]]:
    """
    Run worker over items with at most limit in flight.

    Returns:
        Tuple of (results, failures), both keyed by label(item)
    """
    semaphore = asyncio.Semaphore(limit)

    async def bounded(item: T) -> R:
        async with semaphore:
            return await worker(item)

    outcomes = await asyncio.gather(*(bounded(item) for item in items), return_exceptions=True)

    results: Dict[str, R] = {}
    failures: Dict[str, BaseException] = {}
    for item, outcome in zip(items, outcomes):
        name = label(item)
        if isinstance(outcome, asyncio.CancelledError):
            failures[name] = JobFailedError(f"{name} was interrupted")
        elif isinstance(outcome, BaseException):
            failures[name] = outcome
        else:
            results[name] = outcome
    return results, failures


def raise_for_failures(job: str, failures: Dict[str, BaseException]) -> None:
    """
    Raise if any volume failed.

    A single failure is re-raised as is so its type (integrity, missing
    volume, ...) reaches the caller; several become VolumesFailedError.
    """
    if not failures:
        return
    if len(failures) == 1:
        raise next(iter(failures.values()))
    raise VolumesFailedError(explain_volumes_failed(job, failures), failures)
