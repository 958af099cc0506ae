# iedbridge/bridge/value_inference.py
"""
Text to typed value conversion for bridge commands.

The ingest loop hands every raw value to a strategy and pushes whatever
comes back. A strategy returns None when it cannot build a value; the
command is then dropped without an update.

HeuristicInference looks only at the text:

    "true" / "false" (any case)  -> BOOLEAN
    contains "."                  -> FLOAT
    anything else                 -> INT32

Numbers are read the way C's atof/atoi read them: leading whitespace,
then the longest numeric prefix; no prefix reads as 0. "abc" is INT32 0
and "12abc" is INT32 12. The attribute's declared type is not consulted,
so "3.5" sent to a BOOLEAN attribute is stored as a FLOAT.

SchemaInference converts to the attribute's declared type instead and
refuses text that does not fit it.
"""

import re
from typing import Protocol

from iedbridge.model.nodes import AttributeType, ModelNode, TypedValue, ValueType

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
# Longer digit runs are out of range; int() also refuses very long strings
_INT32_MAX_DIGITS = 10

_INT_PREFIX = re.compile(r"\s*([+-]?)0*(\d+)")
_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?"
    r"|\.\d+(?:[eE][+-]?\d+)?"
    r"|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


def parse_int32(text: str) -> int:
    """atoi-style parse, clamped to the signed 32-bit range."""
    match = _INT_PREFIX.match(text)
    if not match:
        return 0
    sign, digits = match.groups()
    if len(digits) > _INT32_MAX_DIGITS:
        return INT32_MIN if sign == "-" else INT32_MAX
    return max(INT32_MIN, min(INT32_MAX, int(sign + digits)))


def parse_float(text: str) -> float:
    """atof-style parse of the leading numeric prefix."""
    match = _FLOAT_PREFIX.match(text)
    if not match:
        return 0.0
    return float(match.group(1))


def parse_boolean(text: str) -> bool | None:
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


class ValueInference(Protocol):
    """Strategy turning raw bridge text into a typed value."""

    def infer(self, raw: str, attribute: ModelNode) -> TypedValue | None: ...


class HeuristicInference:
    """Infer the type from the text alone."""

    def infer(self, raw: str, attribute: ModelNode | None = None) -> TypedValue:
        flag = parse_boolean(raw)
        if flag is not None:
            return TypedValue.boolean(flag)
        if "." in raw:
            return TypedValue.floating(parse_float(raw))
        return TypedValue.int32(parse_int32(raw))


class SchemaInference:
    """
    Convert to the attribute's declared type.

    Returns None when the text is not a valid literal for that type, or
    when the attribute has no basic type (constructed attributes, quality).
    """

    _INTEGER_TYPES = (
        AttributeType.INT32,
        AttributeType.INT32U,
        AttributeType.ENUMERATED,
    )
    _FLOAT_TYPES = (AttributeType.FLOAT32, AttributeType.FLOAT64)

    def infer(self, raw: str, attribute: ModelNode) -> TypedValue | None:
        declared = attribute.attribute_type
        text = raw.strip()

        if declared is AttributeType.BOOLEAN:
            flag = parse_boolean(text)
            if flag is None and text in ("0", "1"):
                flag = text == "1"
            return TypedValue.boolean(flag) if flag is not None else None

        if declared in self._INTEGER_TYPES:
            try:
                value = int(text)
            except ValueError:
                return None
            lower = 0 if declared is AttributeType.INT32U else INT32_MIN
            if not lower <= value <= INT32_MAX:
                return None
            return TypedValue.int32(value)

        if declared in self._FLOAT_TYPES:
            try:
                return TypedValue.floating(float(text))
            except ValueError:
                return None

        if declared is AttributeType.UTC_TIME:
            try:
                return TypedValue.utc_time(int(text))
            except ValueError:
                return None

        if declared is AttributeType.VISIBLE_STRING:
            return TypedValue(ValueType.STRING, raw[:255])

        return None


STRATEGIES: dict[str, type] = {
    "heuristic": HeuristicInference,
    "schema": SchemaInference,
}


def create_strategy(name: str) -> ValueInference:
    """Strategy instance by configuration name."""
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown value inference strategy {name!r}, "
            f"expected one of {sorted(STRATEGIES)}"
        ) from None
