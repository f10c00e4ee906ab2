#!/usr/bin/env python3
"""
Parser for inbound profile messages.

Turns a topic suffix plus payload into one field-update variant. Nothing in
here raises for bad input; unusable payloads become MalformedField.
"""

import json
import logging
import math
from typing import Any

from models import (
    ACTIVATED_FIELD,
    AWAY_FIELD,
    DAY_FIELDS,
    HOLIDAY_FIELD,
    SETPOINT_FIELDS,
    ActivatedUpdate,
    AwayTempUpdate,
    DayUpdate,
    FieldUpdate,
    HolidayTempUpdate,
    MalformedField,
    SetpointUpdate,
    TimeBlock,
    UnknownField,
)
from schedule_codec import decode_day

logger = logging.getLogger(__name__)


def split_topic(topic: str, prefix: str) -> str | None:
    """Returns the field suffix of `topic` under `prefix`, else None.

    The prefix is matched lowercase; the suffix keeps its case ("Temp1").
    """
    base = f"{prefix.lower()}/"
    if not topic.startswith(base):
        return None
    suffix = topic[len(base):]
    return suffix or None


def decode_payload(payload: str | bytes) -> Any:
    """JSON-decodes a payload; non-JSON text is returned as-is."""
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    try:
        return json.loads(payload)
    except (TypeError, ValueError):
        return payload


def coerce_temperature(value: Any) -> float:
    """Float from a JSON number or numeric string; ValueError otherwise."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a temperature: {value!r}")
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"not a temperature: {value!r}") from e
    if not math.isfinite(result):
        raise ValueError(f"not a temperature: {value!r}")
    return result


def coerce_activated(value: Any) -> bool:
    """True for `true`, "true" or 1; anything else is False."""
    if value is True or value == "true":
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 1
    return False


def parse_day_blocks(value: Any) -> tuple[int, ...]:
    """Decodes a wire day array; ValueError unless every block is usable."""
    if not isinstance(value, list):
        raise ValueError(f"day payload is not an array: {value!r}")
    blocks = [TimeBlock.from_wire(item) for item in value]
    return decode_day(blocks)


def parse_field_update(field: str, value: Any) -> FieldUpdate:
    """Builds the update variant for one inbound field.

    `value` may be raw payload text/bytes or an already decoded JSON value.
    """
    if isinstance(value, (str, bytes, bytearray)):
        value = decode_payload(value)

    try:
        if field in SETPOINT_FIELDS:
            return SetpointUpdate(
                index=SETPOINT_FIELDS.index(field),
                value=coerce_temperature(value),
            )
        if field == AWAY_FIELD:
            return AwayTempUpdate(value=coerce_temperature(value))
        if field == HOLIDAY_FIELD:
            return HolidayTempUpdate(value=coerce_temperature(value))
        if field == ACTIVATED_FIELD:
            return ActivatedUpdate(value=coerce_activated(value))
        if field in DAY_FIELDS:
            return DayUpdate(
                day=DAY_FIELDS.index(field),
                slots=parse_day_blocks(value),
            )
    except ValueError as e:
        logger.debug("PARSE: %s rejected: %s", field, e)
        return MalformedField(field=field, reason=str(e))

    return UnknownField(field=field)
