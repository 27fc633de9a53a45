"""Inquiry windows for the G2B list operations.

The upstream rejects wide inquiry ranges with result code 07, so a requested
range is cut into closed, minute-granularity windows:

    split_windows(202601010000, 202601200000, 7 days)
      -> [01 00:00 .. 07 23:59], [08 00:00 .. 14 23:59], [15 00:00 .. 20 00:00]
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

COMPACT_FORMAT = "%Y%m%d%H%M"
ONE_MINUTE = timedelta(minutes=1)
MIN_RETRY_WIDTH = timedelta(hours=1)


def parse_compact(value: str) -> datetime:
    """Parse YYYYMMDDHHmm. Raises ValueError on anything else."""
    s = (value or "").strip()
    if len(s) != 12 or not s.isdigit():
        raise ValueError(f"Expected YYYYMMDDHHmm, got {value!r}")
    return datetime.strptime(s, COMPACT_FORMAT)


def format_compact(dt: datetime) -> str:
    return dt.strftime(COMPACT_FORMAT)


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval [begin, end] at minute precision."""

    begin: datetime
    end: datetime

    @classmethod
    def from_compact(cls, begin: str, end: str) -> "TimeWindow":
        return cls(parse_compact(begin), parse_compact(end))

    @property
    def width(self) -> timedelta:
        """Covered span, counting the end minute."""
        return self.end - self.begin + ONE_MINUTE

    def halve(self) -> Optional[list["TimeWindow"]]:
        """Two contiguous halves for a range-too-large retry; None below the retry floor."""
        if self.width <= MIN_RETRY_WIDTH:
            return None
        half = timedelta(minutes=(self.width // ONE_MINUTE + 1) // 2)
        return split_windows(self.begin, self.end, half)

    def as_params(self) -> dict[str, str]:
        return {"inqryBgnDt": format_compact(self.begin), "inqryEndDt": format_compact(self.end)}

    def to_dict(self) -> dict[str, str]:
        return {"from": format_compact(self.begin), "to": format_compact(self.end)}


def split_windows(begin: datetime, end: datetime, max_width: timedelta) -> list[TimeWindow]:
    """
    Cover [begin, end] with ordered, contiguous, non-overlapping windows.
    Each window spans at most max_width; the last one may be shorter.
    """
    begin = begin.replace(second=0, microsecond=0)
    end = end.replace(second=0, microsecond=0)
    if begin > end:
        raise ValueError(f"Window begin {format_compact(begin)} is after end {format_compact(end)}")
    if max_width < ONE_MINUTE:
        raise ValueError("Window width must be at least one minute")

    step = max_width - (max_width % ONE_MINUTE)
    windows: list[TimeWindow] = []
    cur = begin
    while cur <= end:
        window_end = min(cur + step - ONE_MINUTE, end)
        windows.append(TimeWindow(cur, window_end))
        cur = window_end + ONE_MINUTE
    return windows


def split_days(begin: datetime, end: datetime, chunk_days: float) -> list[TimeWindow]:
    if chunk_days <= 0:
        raise ValueError("chunkDays must be positive")
    return split_windows(begin, end, timedelta(days=chunk_days))


def default_window(now: Optional[datetime] = None) -> TimeWindow:
    """The last 24 hours, ending at the current minute."""
    end = (now or datetime.now()).replace(second=0, microsecond=0)
    return TimeWindow(end - timedelta(days=1), end)


def month_window(yyyymm: str) -> TimeWindow:
    """Whole calendar month: first day 00:00 to last day 23:59."""
    if len(yyyymm) != 6 or not yyyymm.isdigit():
        raise ValueError(f"Expected YYYYMM, got {yyyymm!r}")
    start = datetime(int(yyyymm[:4]), int(yyyymm[4:]), 1)
    next_month = (start.replace(day=28) + timedelta(days=4)).replace(day=1)
    return TimeWindow(start, next_month - ONE_MINUTE)
