from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo


MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
# "9-12", "09:00-12:00", "9:30-12", "15-24"
_SLOT_RE = re.compile(r"^\s*(\d{1,2})(?::?(\d{2}))?\s*-\s*(\d{1,2})(?::?(\d{2}))?\s*$")


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open [start, end) range in minutes of day."""

    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and self.end > other.start

    def as_dict(self) -> dict:
        return {"start": minutes_to_hhmm(self.start), "end": minutes_to_hhmm(self.end)}

    def __str__(self) -> str:
        return f"{minutes_to_hhmm(self.start)}-{minutes_to_hhmm(self.end)}"


def parse_hhmm(value: str, end_of_day: bool = False) -> int:
    """Strict "HH:mm". With `end_of_day`, "24:00" is also accepted (as 1440) so a window can close at midnight."""
    raw = (value or "").strip()
    if end_of_day and raw == "24:00":
        return MINUTES_PER_DAY
    match = _HHMM_RE.match(raw)
    if not match:
        raise ValueError(f"invalid time: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_hhmm(minutes: int) -> str:
    minutes = int(minutes)
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_slot(value: str) -> Interval:
    """
    Parse a free-text slot token into an Interval.

    Minutes and leading zeros are optional on both sides, so "9-12" and
    "09:00-12:00" are the same slot. "24" / "24:00" is accepted as an end of day.
    """
    match = _SLOT_RE.match(str(value or ""))
    if not match:
        raise ValueError(f"invalid slot: {value!r}")
    sh, sm, eh, em = match.groups()
    start = _to_minutes(int(sh), int(sm or 0))
    end = _to_minutes(int(eh), int(em or 0))
    if not (0 <= start < end <= MINUTES_PER_DAY):
        raise ValueError(f"invalid slot range: {value!r}")
    return Interval(start, end)


def _to_minutes(hours: int, minutes: int) -> int:
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        raise ValueError("invalid time")
    return hours * 60 + minutes


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    # Touching intervals coalesce too: 9-12 + 12-15 -> 9-15.
    merged: List[Interval] = []
    for current in sorted(intervals):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def subtract_intervals(free: Iterable[Interval], busy: Iterable[Interval]) -> List[Interval]:
    result = merge_intervals(free)
    for block in merge_intervals(busy):
        remaining: List[Interval] = []
        for interval in result:
            if not interval.overlaps(block):
                remaining.append(interval)
                continue
            if interval.start < block.start:
                remaining.append(Interval(interval.start, block.start))
            if block.end < interval.end:
                remaining.append(Interval(block.end, interval.end))
        result = remaining
    return result


def find_containing(intervals: Iterable[Interval], candidate: Interval) -> Optional[Interval]:
    for interval in intervals:
        if interval.contains(candidate):
            return interval
    return None


def round_half_up(value: float) -> int:
    """Currency rounding to whole units; 0.5 always rounds away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def combine_local(day: date, hhmm: str, zone: str) -> datetime:
    """Place a calendar date + "HH:mm" in an IANA zone and return an aware datetime."""
    minutes = parse_hhmm(hhmm)
    naive = datetime.combine(day, time(minutes // 60, minutes % 60))
    return naive.replace(tzinfo=ZoneInfo(zone))
