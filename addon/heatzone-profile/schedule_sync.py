"""ScheduleSynchronizer – single owner of the in-memory heating schedule.

Arbitrates between inbound field updates from the bus, local paint gestures
and slider edits, and outbound saves. Each field updates independently and
the last write to a field wins; there is no cross-field merge.

The Schedule is an immutable value, replaced wholesale on every mutation.
"""

# pylint: disable=too-many-instance-attributes

from __future__ import annotations

import logging
from typing import Any, Callable

from field_parser import parse_field_update
from models import (
    AWAY_RANGE,
    DAYS_PER_WEEK,
    HOLIDAY_RANGE,
    MODE_IDS,
    SETPOINT_RANGES,
    SLOTS_PER_DAY,
    ActivatedUpdate,
    AwayTempUpdate,
    DayUpdate,
    DrawState,
    FieldUpdate,
    HolidayTempUpdate,
    MalformedField,
    ModeId,
    PendingEdit,
    Schedule,
    ScheduleSnapshot,
    SetpointUpdate,
    UnknownField,
)
from schedule_codec import encode_day

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ScheduleSynchronizer:
    """Owns the Schedule and serializes every mutation through itself."""

    def __init__(
        self,
        schedule: Schedule | None = None,
        on_change: Listener | None = None,
    ) -> None:
        self._schedule: Schedule = schedule or Schedule()
        self._selected_mode: int = int(ModeId.BYPASS)
        self._pending: PendingEdit | None = None
        self._listeners: list[Listener] = []
        if on_change is not None:
            self._listeners.append(on_change)

        # Statistics
        self.remote_applied = 0
        self.remote_ignored = 0

    # -----------------------------------------------------------------
    # Read access
    # -----------------------------------------------------------------

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    @property
    def selected_mode(self) -> int:
        return self._selected_mode

    @property
    def pending_edit(self) -> PendingEdit | None:
        return self._pending

    @property
    def draw_state(self) -> DrawState:
        return DrawState.DRAWING if self._pending else DrawState.IDLE

    def add_listener(self, listener: Listener) -> None:
        """Registers a re-render callback fired after each mutation."""
        self._listeners.append(listener)

    def _commit(self, schedule: Schedule) -> None:
        self._schedule = schedule
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("SYNC: Listener failed: %s", e, exc_info=True)

    # -----------------------------------------------------------------
    # Remote updates
    # -----------------------------------------------------------------

    def apply_remote_field(self, field: str, raw_value: Any) -> bool:
        """Parses and applies one inbound field. Never raises."""
        return self.apply(parse_field_update(field, raw_value))

    def apply(self, update: FieldUpdate) -> bool:
        """Applies a parsed field update; returns True if state changed."""
        current = self._schedule

        if isinstance(update, SetpointUpdate):
            new = current.with_setpoint(update.index, update.value)
        elif isinstance(update, AwayTempUpdate):
            new = current.replace(away_temp=update.value)
        elif isinstance(update, HolidayTempUpdate):
            new = current.replace(holiday_temp=update.value)
        elif isinstance(update, ActivatedUpdate):
            new = current.replace(active=update.value)
        elif isinstance(update, DayUpdate):
            new = current.with_day(update.day, update.slots)
        elif isinstance(update, MalformedField):
            self.remote_ignored += 1
            logger.warning(
                "SYNC: ⚠️ Dropping malformed %s update: %s",
                update.field,
                update.reason,
            )
            return False
        elif isinstance(update, UnknownField):
            self.remote_ignored += 1
            logger.warning(
                "SYNC: Message received for unhandled field: %s",
                update.field,
            )
            return False
        else:
            raise TypeError(f"unsupported update type: {type(update)!r}")

        self.remote_applied += 1
        logger.debug("SYNC: ← %s", update)
        self._commit(new)
        return True

    # -----------------------------------------------------------------
    # Local paint gestures
    # -----------------------------------------------------------------

    def select_mode(self, mode_id: int) -> None:
        """Sets the mode painted by subsequent gestures."""
        if int(mode_id) not in MODE_IDS:
            raise ValueError(f"mode {mode_id} out of range 0-5")
        self._selected_mode = int(mode_id)

    @staticmethod
    def _check_cell(day: int, slot: int) -> None:
        if not 0 <= day < DAYS_PER_WEEK:
            raise ValueError(f"day {day} out of range 0-{DAYS_PER_WEEK - 1}")
        if not 0 <= slot < SLOTS_PER_DAY:
            raise ValueError(f"slot {slot} out of range 0-{SLOTS_PER_DAY - 1}")

    def begin_local_edit(
        self, day: int, slot: int, mode_id: int | None = None
    ) -> None:
        """Starts a gesture and paints the starting cell."""
        self._check_cell(day, slot)
        if mode_id is None:
            mode_id = self._selected_mode
        elif int(mode_id) not in MODE_IDS:
            raise ValueError(f"mode {mode_id} out of range 0-5")
        if self._pending is not None:
            logger.debug("SYNC: New gesture replaces unfinished one")

        self._pending = PendingEdit(
            start_day=day,
            start_slot=slot,
            mode_id=int(mode_id),
            baseline=self._schedule.matrix,
        )
        self._paint_span(day, slot)

    def extend_local_edit(self, day: int, slot: int) -> bool:
        """Recomputes the painted rectangle from the gesture baseline.

        A no-op while idle: pointer-enter can race pointer-up.
        """
        if self._pending is None:
            return False
        self._check_cell(day, slot)
        self._paint_span(day, slot)
        return True

    def _paint_span(self, day: int, slot: int) -> None:
        pending = self._pending
        assert pending is not None
        days, slots = pending.span(day, slot)
        rows = [list(row) for row in pending.baseline]
        for d in days:
            rows[d][slots.start:slots.stop] = [pending.mode_id] * len(slots)
        self._commit(
            self._schedule.with_matrix(tuple(tuple(row) for row in rows))
        )

    def end_local_edit(self) -> None:
        """Finishes the gesture; the painted cells stay (not yet published)."""
        self._pending = None

    def cancel_local_edit(self) -> None:
        """Pointer left the grid: ends the gesture keeping the partial paint."""
        if self._pending is not None:
            logger.debug("SYNC: Gesture cancelled, partial paint kept")
        self._pending = None

    # -----------------------------------------------------------------
    # Local slider edits
    # -----------------------------------------------------------------

    def set_setpoint(self, index: int, value: float) -> float:
        if not 0 <= index < len(SETPOINT_RANGES):
            raise ValueError(f"setpoint index {index} out of range 0-3")
        clamped = SETPOINT_RANGES[index].clamp(value)
        self._commit(self._schedule.with_setpoint(index, clamped))
        return clamped

    def set_away_temp(self, value: float) -> float:
        clamped = AWAY_RANGE.clamp(value)
        self._commit(self._schedule.replace(away_temp=clamped))
        return clamped

    def set_holiday_temp(self, value: float) -> float:
        clamped = HOLIDAY_RANGE.clamp(value)
        self._commit(self._schedule.replace(holiday_temp=clamped))
        return clamped

    def set_active(self, active: bool) -> None:
        self._commit(self._schedule.replace(active=bool(active)))

    # -----------------------------------------------------------------
    # Outbound
    # -----------------------------------------------------------------

    def snapshot(self) -> ScheduleSnapshot:
        """Read-only outbound view of the current schedule."""
        current = self._schedule
        return ScheduleSnapshot(
            setpoints=current.setpoints,
            away_temp=current.away_temp,
            holiday_temp=current.holiday_temp,
            active=current.active,
            days=tuple(tuple(encode_day(row)) for row in current.matrix),
        )
