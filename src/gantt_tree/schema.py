"""Field schemas and the attribute sanitizer for tasks, links and assignments.

Every write coming from outside (HTTP body, CLI arguments) goes through
:func:`sanitize` before it reaches a store.  Each entity declares the fields
it accepts and how each value is coerced; anything else is dropped without
an error.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Mapping, MutableMapping

from .errors import InvalidInputError

ROOT_PARENT = 0


class FieldKind(str, Enum):
    PASSTHROUGH = "passthrough"
    NUMERIC = "numeric"


FieldSchema = Mapping[str, FieldKind]

TASK_FIELDS: FieldSchema = {
    "start_date": FieldKind.PASSTHROUGH,
    "end_date": FieldKind.PASSTHROUGH,
    "text": FieldKind.PASSTHROUGH,
    "progress": FieldKind.NUMERIC,
    "duration": FieldKind.PASSTHROUGH,
    "parent": FieldKind.PASSTHROUGH,
    "details": FieldKind.PASSTHROUGH,
    "opened": FieldKind.NUMERIC,
    "type": FieldKind.PASSTHROUGH,
    "position": FieldKind.NUMERIC,
}

LINK_FIELDS: FieldSchema = {
    "target": FieldKind.PASSTHROUGH,
    "source": FieldKind.PASSTHROUGH,
    "type": FieldKind.NUMERIC,
}

ASSIGNMENT_FIELDS: FieldSchema = {
    "task": FieldKind.PASSTHROUGH,
    "resource": FieldKind.PASSTHROUGH,
    "value": FieldKind.NUMERIC,
}

# Fields holding a task id; normalized so that cascades can match them.
TASK_REFERENCE_FIELDS = ("parent", "source", "target", "task")

TASK_DEFAULTS: dict[str, Any] = {"progress": 0, "parent": ROOT_PARENT, "text": "New Task"}

_RADIX_PREFIXES = ("0x", "0o", "0b")


def to_number(value: Any) -> int | float:
    """Coerce *value* the way ``value * 1`` would.

    Booleans become ``0``/``1``, ``None`` and blank strings become ``0`` and
    numeric strings are parsed, including unsigned ``0x``/``0o``/``0b``
    literals.  Anything that would come out as ``NaN`` raises
    :class:`InvalidInputError` instead.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if text[:2].lower() in _RADIX_PREFIXES and "_" not in text:
            try:
                return int(text, 0)
            except ValueError:
                pass
        elif "_" not in text:
            try:
                return int(text)
            except ValueError:
                pass
            try:
                number = float(text)
            except ValueError:
                pass
            else:
                if not math.isnan(number):
                    return number
    raise InvalidInputError(f"Expected a number, got {value!r}")


def normalize_ref(value: Any) -> Any:
    """Normalize a task reference: root-like values become ``0``, ids become strings."""
    if value is None or value == "" or str(value) == str(ROOT_PARENT):
        return ROOT_PARENT
    return str(value)


def sanitize(
    update: MutableMapping[str, Any],
    raw: Mapping[str, Any],
    fields: FieldSchema,
) -> MutableMapping[str, Any]:
    """Copy the allow-listed keys of *raw* into *update* and return *update*."""
    for key, value in raw.items():
        kind = fields.get(key)
        if kind is FieldKind.PASSTHROUGH:
            update[key] = normalize_ref(value) if key in TASK_REFERENCE_FIELDS else value
        elif kind is FieldKind.NUMERIC:
            update[key] = to_number(value)
    return update
