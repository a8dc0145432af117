# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for bounded per-volume fan-out and failure aggregation.
"""

import asyncio

import pytest

from bareos_s3.exceptions import (
    JobFailedError,
    TransferError,
    VolumeMissingError,
    VolumesFailedError,
)
from bareos_s3.jobs.fanout import raise_for_failures, run_bounded


@pytest.mark.asyncio
async def test_results_and_failures_are_keyed_by_label():
    async def worker(volume: str) -> str:
        if volume == "bad":
            raise TransferError("upload failed")
        return volume.upper()

    results, failures = await run_bounded(["a", "bad", "b"], worker, limit=2)

    assert results == {"a": "A", "b": "B"}
    assert list(failures) == ["bad"]
    assert isinstance(failures["bad"], TransferError)


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_limit():
    in_flight = 0
    peak = 0

    async def worker(item: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return item

    results, failures = await run_bounded(list(range(10)), worker, limit=3)

    assert len(results) == 10
    assert failures == {}
    assert peak == 3


@pytest.mark.asyncio
async def test_interrupted_worker_becomes_job_failure():
    finished = []

    async def worker(volume: str) -> str:
        if volume == "Full-0002":
            raise asyncio.CancelledError()
        await asyncio.sleep(0)
        finished.append(volume)
        return volume

    results, failures = await run_bounded(["Full-0001", "Full-0002", "Full-0003"], worker, limit=3)

    assert sorted(finished) == ["Full-0001", "Full-0003"]
    assert set(results) == {"Full-0001", "Full-0003"}
    error = failures["Full-0002"]
    assert isinstance(error, JobFailedError)
    assert "Full-0002 was interrupted" in str(error)


def test_no_failures_does_not_raise():
    raise_for_failures("job 1", {})


def test_single_failure_keeps_its_type():
    missing = VolumeMissingError("Could not find volume V")

    with pytest.raises(VolumeMissingError) as exc_info:
        raise_for_failures("job 1", {"V": missing})

    assert exc_info.value is missing


def test_several_failures_are_aggregated():
    failures = {
        "V1": TransferError("upload failed"),
        "V2": VolumeMissingError("Could not find volume V2"),
    }

    with pytest.raises(VolumesFailedError) as exc_info:
        raise_for_failures("job 1", failures)

    assert exc_info.value.failures == failures
    assert "2 volumes of job 1 failed" in str(exc_info.value)
