# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bareos S3 Progress - Rate-limited textual progress for long transfers.

Volumes are often tens of gigabytes, so progress is reported only every
few hundred megabytes rather than per chunk. A line looks like:

    [bb-123-Full-0001.enc] Upload  42% [=========                ]
"""

from typing import Callable

MIB = 1024 * 1024

# Interval between upload/download reports
TRANSFER_REPORT_INTERVAL = 200 * MIB

# Interval between encrypt/decrypt reports
CRYPTO_REPORT_INTERVAL = 512 * MIB

LINE_WIDTH = 79

Emitter = Callable[[str], None]


def _print_line(line: str) -> None:
    print(line, flush=True)


class ProgressReporter:
    """
    Emit a progress line whenever another report_interval bytes are done.

    The reporter is fed cumulative totals (report) or deltas (add), so
    it can sit behind both crypto loops and object-store callbacks.
    """

    def __init__(
        self,
        caption: str,
        action: str,
        total_bytes: int,
        report_interval: int,
        *,
        show_bar: bool = True,
        emit: Emitter | None = None,
    ):
        self.caption = caption
        self.action = action
        # Avoid division by zero for empty volumes
        self.total_bytes = max(1, total_bytes)
        self.report_interval = report_interval
        self.show_bar = show_bar
        self.emit = emit or _print_line

        self.processed = 0
        self._next_report = report_interval
        self._reported_anything = False
        self._hit_100 = False

    def add(self, byte_count: int) -> None:
        """Record byte_count more bytes processed."""
        self.report(self.processed + byte_count)

    def report(self, total_processed: int) -> None:
        """Record the cumulative byte count, emitting a line if due."""
        self.processed = total_processed
        if total_processed < self._next_report:
            return

        self._reported_anything = True
        self._next_report = total_processed + self.report_interval
        self.emit(self.render(total_processed))

    def render(self, total_processed: int) -> str:
        """Format the progress line for total_processed bytes."""
        percent = 100.0 * total_processed / self.total_bytes
        rounded = round(percent)
        if rounded >= 100:
            self._hit_100 = True

        line = f"[{self.caption}] {self.action} {rounded:3d}%"
        if self.show_bar:
            bar_width = LINE_WIDTH - (len(line) + 3)
            cutoff = int(bar_width * min(percent, 100.0) / 100.0)
            line += " [" + "=" * cutoff + " " * (bar_width - cutoff) + "]"
        return line

    def done(self) -> None:
        """Force a final 100% line if any earlier line was emitted."""
        if self._reported_anything and not self._hit_100:
            self._next_report = 0
            self.report(self.total_bytes)


def transfer_reporter(
    caption: str,
    action: str,
    total_bytes: int,
    *,
    show_bar: bool = True,
    emit: Emitter | None = None,
) -> ProgressReporter:
    """Create a reporter for an object-store upload or download."""
    return ProgressReporter(
        caption, action, total_bytes, TRANSFER_REPORT_INTERVAL, show_bar=show_bar, emit=emit
    )


def crypto_reporter(
    caption: str,
    action: str,
    total_bytes: int,
    *,
    show_bar: bool = True,
    emit: Emitter | None = None,
) -> ProgressReporter:
    """Create a reporter for an encrypt or decrypt pass."""
    return ProgressReporter(
        caption, action, total_bytes, CRYPTO_REPORT_INTERVAL, show_bar=show_bar, emit=emit
    )
