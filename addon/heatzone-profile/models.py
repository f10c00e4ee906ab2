#!/usr/bin/env python3
"""
Data models for the heatzone profile.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Union

from config import PROFILE_NAME, PROFILE_TITLE, PROFILE_TOPIC


# ============================================================================
# Grid geometry
# ============================================================================

DAYS_PER_WEEK = 7
SLOTS_PER_HOUR = 4
SLOT_MINUTES = 15
SLOTS_PER_DAY = 24 * SLOTS_PER_HOUR  # 96, also the end-of-day sentinel
END_OF_DAY = "24:00"

WEEKDAY_LABELS = ("Mo", "Di", "Mi", "Do", "Fr", "Sa", "So")

Week = tuple[tuple[int, ...], ...]


class ModeId(IntEnum):
    """Mode identifiers painted into grid slots."""
    BYPASS = 0
    TEMP1 = 1
    TEMP2 = 2
    TEMP3 = 3
    TEMP4 = 4
    OFF = 5


MODE_IDS = frozenset(int(m) for m in ModeId)


class DrawState(Enum):
    """Drawing gesture lifecycle."""
    IDLE = "idle"
    DRAWING = "drawing"


# ============================================================================
# Wire fields (topic suffixes), in publish order
# ============================================================================

SETPOINT_FIELDS = ("Temp1", "Temp2", "Temp3", "Temp4")
AWAY_FIELD = "TempAway"
HOLIDAY_FIELD = "TempHoliday"
ACTIVATED_FIELD = "Activated"
DAY_FIELDS = tuple(f"Day{i + 1}" for i in range(DAYS_PER_WEEK))

FIELD_NAMES = (
    SETPOINT_FIELDS
    + (AWAY_FIELD, HOLIDAY_FIELD, ACTIVATED_FIELD)
    + DAY_FIELDS
)


# ============================================================================
# Slider ranges
# ============================================================================

@dataclass(frozen=True)
class SliderRange:
    """Allowed range of a temperature slider."""
    minimum: float
    maximum: float
    step: float = 0.5

    def clamp(self, value: float) -> float:
        """Clamps into range and snaps to the slider step."""
        bounded = min(self.maximum, max(self.minimum, float(value)))
        steps = round((bounded - self.minimum) / self.step)
        return min(self.maximum, self.minimum + steps * self.step)


SETPOINT_RANGES = (
    SliderRange(15.0, 30.0),
    SliderRange(15.0, 30.0),
    SliderRange(15.0, 30.0),
    SliderRange(5.0, 20.0),
)
AWAY_RANGE = SliderRange(5.0, 25.0)
HOLIDAY_RANGE = SliderRange(5.0, 20.0)


# ============================================================================
# Time blocks (wire representation)
# ============================================================================

@dataclass(frozen=True)
class TimeBlock:
    """One run of equal mode identifiers, `start` inclusive, `end` exclusive."""
    start: str
    end: str
    mode_id: int

    def to_wire(self) -> dict[str, Any]:
        return {"From": self.start, "To": self.end, "TempID": self.mode_id}

    @classmethod
    def from_wire(cls, raw: Any) -> TimeBlock:
        """Builds a block from a `{From, To, TempID}` object.

        Raises ValueError for anything that is not a usable block.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"block is not an object: {raw!r}")
        try:
            start = raw["From"]
            end = raw["To"]
            mode_raw = raw["TempID"]
        except KeyError as e:
            raise ValueError(f"block is missing {e.args[0]}") from e
        if not isinstance(start, str) or not isinstance(end, str):
            raise ValueError(f"block times must be strings: {raw!r}")
        return cls(start=start, end=end, mode_id=_coerce_mode_id(mode_raw))


def _coerce_mode_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid TempID {value!r}")
    if isinstance(value, int):
        mode_id = value
    elif isinstance(value, float) and value.is_integer():
        mode_id = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        mode_id = int(value.strip())
    else:
        raise ValueError(f"invalid TempID {value!r}")
    if mode_id not in MODE_IDS:
        raise ValueError(f"TempID {mode_id} out of range 0-5")
    return mode_id


# ============================================================================
# Schedule state
# ============================================================================

def empty_week(mode_id: int = ModeId.BYPASS) -> Week:
    return tuple(
        (int(mode_id),) * SLOTS_PER_DAY for _ in range(DAYS_PER_WEEK)
    )


@dataclass(frozen=True)
class Schedule:
    """Immutable schedule value; every mutation builds a new instance."""
    matrix: Week = field(default_factory=empty_week)
    setpoints: tuple[float, float, float, float] = (23.0, 20.0, 18.0, 5.0)
    away_temp: float = 20.0
    holiday_temp: float = 5.0
    active: bool = True

    def with_day(self, day: int, slots: tuple[int, ...]) -> Schedule:
        rows = list(self.matrix)
        rows[day] = tuple(slots)
        return dataclasses.replace(self, matrix=tuple(rows))

    def with_matrix(self, matrix: Week) -> Schedule:
        return dataclasses.replace(self, matrix=matrix)

    def with_setpoint(self, index: int, value: float) -> Schedule:
        temps = list(self.setpoints)
        temps[index] = value
        return dataclasses.replace(self, setpoints=tuple(temps))

    def replace(self, **changes: Any) -> Schedule:
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class PendingEdit:
    """A drag-paint gesture in progress.

    `baseline` is the matrix before the gesture started; every extension is
    recomputed from it so overlapping paints never accumulate.
    """
    start_day: int
    start_slot: int
    mode_id: int
    baseline: Week

    def span(self, day: int, slot: int) -> tuple[range, range]:
        """Day and slot ranges (inclusive of both corners) of the rectangle."""
        days = range(min(self.start_day, day), max(self.start_day, day) + 1)
        slots = range(
            min(self.start_slot, slot), max(self.start_slot, slot) + 1
        )
        return days, slots


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Outbound representation of a schedule, ready for publishing."""
    setpoints: tuple[float, float, float, float]
    away_temp: float
    holiday_temp: float
    active: bool
    days: tuple[tuple[TimeBlock, ...], ...]

    def fields(self) -> dict[str, Any]:
        """Wire values keyed by field name, in publish order."""
        result: dict[str, Any] = {}
        for name, value in zip(SETPOINT_FIELDS, self.setpoints):
            result[name] = value
        result[AWAY_FIELD] = self.away_temp
        result[HOLIDAY_FIELD] = self.holiday_temp
        result[ACTIVATED_FIELD] = self.active
        for name, blocks in zip(DAY_FIELDS, self.days):
            result[name] = [block.to_wire() for block in blocks]
        return result


# ============================================================================
# Inbound field updates (one variant per recognized field kind)
# ============================================================================

@dataclass(frozen=True)
class SetpointUpdate:
    index: int  # 0..3 for Temp1..Temp4
    value: float


@dataclass(frozen=True)
class AwayTempUpdate:
    value: float


@dataclass(frozen=True)
class HolidayTempUpdate:
    value: float


@dataclass(frozen=True)
class ActivatedUpdate:
    value: bool


@dataclass(frozen=True)
class DayUpdate:
    day: int  # 0..6 for Day1..Day7
    slots: tuple[int, ...]


@dataclass(frozen=True)
class UnknownField:
    field: str


@dataclass(frozen=True)
class MalformedField:
    field: str
    reason: str


FieldUpdate = Union[
    SetpointUpdate,
    AwayTempUpdate,
    HolidayTempUpdate,
    ActivatedUpdate,
    DayUpdate,
    UnknownField,
    MalformedField,
]


# ============================================================================
# Profile configuration (display title + MQTT namespace)
# ============================================================================

@dataclass
class ProfileConfig:
    """Per-card configuration: title and topic namespace."""
    title: str = PROFILE_TITLE
    topic: str = PROFILE_TOPIC
    profile: str = PROFILE_NAME

    @property
    def topic_prefix(self) -> str:
        return f"{self.topic}/{self.profile}".lower()
