#!/usr/bin/env python3
"""
Schedule codec: dense 96-slot days <-> run-length time blocks.

A day is a sequence of 96 mode identifiers, one per 15 minute slot. On the
wire each day is a list of `{From, To, TempID}` blocks in minimal run-length
form, the last block always ending at "24:00".

Slot ranges are half-open `[start, end)` over integer slots, with 96 as the
end-of-day sentinel. "24:00" only exists at the string edge.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from models import (
    DAYS_PER_WEEK,
    END_OF_DAY,
    SLOT_MINUTES,
    SLOTS_PER_DAY,
    SLOTS_PER_HOUR,
    ModeId,
    TimeBlock,
    Week,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Slot <-> time conversion
# ============================================================================

def slot_to_time(slot: int) -> str:
    """Start time of `slot` as "H:MM" (un-padded hour, padded minutes)."""
    if slot < 0 or slot > SLOTS_PER_DAY:
        raise ValueError(f"slot {slot} out of range 0-{SLOTS_PER_DAY}")
    if slot == SLOTS_PER_DAY:
        return END_OF_DAY
    hour, quarter = divmod(slot, SLOTS_PER_HOUR)
    return f"{hour}:{quarter * SLOT_MINUTES:02d}"


def _split_time(text: str) -> tuple[int, int]:
    parts = text.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"invalid time {text!r}, expected H:MM")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as e:
        raise ValueError(f"invalid time {text!r}, expected H:MM") from e


def time_to_slot(text: str, *, end: bool = False) -> int:
    """Converts "H:MM" to a slot boundary, clamped to [0, 96].

    Start boundaries round down to the containing slot, end boundaries round
    up so a partial slot is still covered. Hour 24 as an end is always 96.
    """
    hour, minute = _split_time(text)
    if end and hour == 24:
        return SLOTS_PER_DAY
    if end:
        slot = hour * SLOTS_PER_HOUR + math.ceil(minute / SLOT_MINUTES)
    else:
        slot = hour * SLOTS_PER_HOUR + minute // SLOT_MINUTES
    return max(0, min(SLOTS_PER_DAY, slot))


# ============================================================================
# Day codec
# ============================================================================

def encode_day(slots: Sequence[int]) -> list[TimeBlock]:
    """Encodes 96 mode identifiers into minimal contiguous time blocks."""
    if len(slots) != SLOTS_PER_DAY:
        raise ValueError(
            f"day must have {SLOTS_PER_DAY} slots, got {len(slots)}"
        )

    blocks: list[TimeBlock] = []
    run_start = 0
    run_mode = int(slots[0])
    for slot in range(1, SLOTS_PER_DAY):
        mode_id = int(slots[slot])
        if mode_id == run_mode:
            continue
        blocks.append(TimeBlock(
            start=slot_to_time(run_start),
            end=slot_to_time(slot),
            mode_id=run_mode,
        ))
        run_start = slot
        run_mode = mode_id

    blocks.append(TimeBlock(
        start=slot_to_time(run_start),
        end=END_OF_DAY,
        mode_id=run_mode,
    ))
    return blocks


def decode_day(blocks: Iterable[TimeBlock]) -> tuple[int, ...]:
    """Decodes time blocks into 96 mode identifiers.

    Slots not covered by any block stay BYPASS. Blocks are applied in order,
    so on overlap the later block wins. Unsorted input is accepted.
    """
    slots = [int(ModeId.BYPASS)] * SLOTS_PER_DAY
    for block in blocks:
        start = time_to_slot(block.start)
        end = time_to_slot(block.end, end=True)
        if end <= start:
            logger.debug(
                "CODEC: empty block %s-%s skipped", block.start, block.end
            )
            continue
        slots[start:end] = [block.mode_id] * (end - start)
    return tuple(slots)


# ============================================================================
# Week helpers
# ============================================================================

def encode_week(matrix: Sequence[Sequence[int]]) -> list[list[TimeBlock]]:
    if len(matrix) != DAYS_PER_WEEK:
        raise ValueError(
            f"week must have {DAYS_PER_WEEK} days, got {len(matrix)}"
        )
    return [encode_day(day) for day in matrix]


def decode_week(days: Sequence[Iterable[TimeBlock]]) -> Week:
    if len(days) != DAYS_PER_WEEK:
        raise ValueError(
            f"week must have {DAYS_PER_WEEK} days, got {len(days)}"
        )
    return tuple(decode_day(blocks) for blocks in days)
