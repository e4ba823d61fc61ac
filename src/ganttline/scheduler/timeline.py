"""Machine occupancy tracking for gap searches."""

from __future__ import annotations

import bisect
from collections.abc import Iterable

from ganttline.logger import get_logger

logger = get_logger()

# Start of the gap before the first busy period; callers clamp with their own bound
_OPEN_START = -(2**62)


class MachineTimeline:
    """Busy intervals of one machine as sorted, non-overlapping ``[start, end)`` pairs.

    Touching intervals are merged, and empty (zero-length) intervals are
    dropped since they never block anything.
    """

    def __init__(self, intervals: Iterable[tuple[int, int]] = (), machine_id: str = "") -> None:
        self.machine_id = machine_id
        self.busy_periods: list[tuple[int, int]] = self._merge_periods(intervals)

    @staticmethod
    def _merge_periods(periods: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
        """Merge overlapping or touching periods into a sorted list."""
        sorted_periods = sorted((s, e) for s, e in periods if e > s)
        if not sorted_periods:
            return []

        merged: list[tuple[int, int]] = [sorted_periods[0]]
        for start, end in sorted_periods[1:]:
            last_start, last_end = merged[-1]
            if start <= last_end:
                merged[-1] = (last_start, max(last_end, end))
            else:
                merged.append((start, end))
        return merged

    def is_free(self, start: int, duration: int) -> bool:
        """True if ``[start, start + duration)`` overlaps no busy period."""
        if duration <= 0:
            return True
        end = start + duration
        idx = bisect.bisect_right(self.busy_periods, start, key=lambda p: p[0])
        if idx > 0 and self.busy_periods[idx - 1][1] > start:
            return False
        return idx >= len(self.busy_periods) or self.busy_periods[idx][0] >= end

    def earliest_fit(self, lower: int, duration: int) -> int:
        """First start at or after ``lower`` where the duration fits.

        Always succeeds: past the last busy period the machine is free.
        """
        candidate = lower
        # Skip periods that end before the lower bound
        idx = bisect.bisect_right(self.busy_periods, lower, key=lambda p: p[1])
        for start, end in self.busy_periods[idx:]:
            if candidate + duration <= start:
                break
            candidate = max(candidate, end)
        logger.checks(
            f"Machine {self.machine_id}: earliest fit for {duration} from {lower} is {candidate}"
        )
        return candidate

    def latest_fit(self, lower: int, upper_end: int, duration: int) -> int | None:
        """Right-most start in ``[lower, upper_end - duration]`` where the duration fits.

        Gaps are tried after the last period first, then between periods from
        right to left, then before the first period.

        Returns:
            The start, or None if no gap inside the window is large enough
        """
        bound = upper_end - duration
        if bound < lower:
            logger.checks(
                f"Machine {self.machine_id}: window [{lower}, {upper_end}) "
                f"too small for {duration}"
            )
            return None

        for gap_start, gap_end in self._gaps_right_to_left():
            candidate = bound if gap_end is None else min(bound, gap_end - duration)
            if candidate >= max(lower, gap_start):
                logger.checks(
                    f"Machine {self.machine_id}: latest fit for {duration} "
                    f"in [{lower}, {upper_end}) is {candidate}"
                )
                return candidate

        logger.checks(f"Machine {self.machine_id}: no gap for {duration} in [{lower}, {upper_end})")
        return None

    def _gaps_right_to_left(self) -> list[tuple[int, int | None]]:
        """Free gaps as (start, end) pairs; the trailing gap's end is None (unbounded)."""
        if not self.busy_periods:
            return [(_OPEN_START, None)]
        gaps: list[tuple[int, int | None]] = [(self.busy_periods[-1][1], None)]
        for (_, prev_end), (next_start, _) in zip(
            reversed(self.busy_periods[:-1]), reversed(self.busy_periods[1:])
        ):
            gaps.append((prev_end, next_start))
        gaps.append((_OPEN_START, self.busy_periods[0][0]))
        return gaps
