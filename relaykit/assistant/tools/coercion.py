"""
Argument coercion for external tool calls.

Language models frequently send numbers as strings ("42", "page 3") or
booleans as words ("yes"). This module reshapes a raw argument map so it
matches the declared parameter types of the target tool, and falls back to
naming heuristics when no schema is known. Coercion never adds keys and never
fails: values that cannot be converted pass through unchanged.
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"[-+]?\d+(?:\.\d+)?")
NUMERIC_KEY_PATTERN = re.compile(r".*(_id|_iid|_number|_count)$")
NUMERIC_KEYS = frozenset({
    "project_id", "merge_request_iid", "iid", "id",
    "limit", "offset", "page", "per_page",
})

TRUTHY = frozenset({"true", "1", "yes", "on"})
FALSY = frozenset({"false", "0", "no", "off"})


def extract_number(text: str, integer: bool) -> Optional[Union[int, float]]:
    """Return the first numeric token in text, or None when there is none."""
    match = NUMBER_PATTERN.search(text)
    if not match:
        return None
    token = match.group(0)
    if integer:
        return int(token.split(".", 1)[0])
    return float(token)


def parse_boolean(text: str) -> Optional[bool]:
    literal = text.strip().lower()
    if literal in TRUTHY:
        return True
    if literal in FALSY:
        return False
    return None


def _coerce_value(value: Any, expected_type: str) -> Any:
    # bool is a subclass of int; check it first everywhere
    if expected_type in ("number", "integer"):
        if isinstance(value, str):
            number = extract_number(value, integer=expected_type == "integer")
            if number is not None:
                return number
        return value

    if expected_type == "boolean":
        if isinstance(value, str):
            parsed = parse_boolean(value)
            if parsed is not None:
                return parsed
        return value

    if expected_type == "string":
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    return value


def coerce_to_schema(
    args: Mapping[str, Any],
    property_types: Mapping[str, Optional[str]]
) -> Dict[str, Any]:
    """Coerce arguments using the declared JSON type of each property."""
    coerced = dict(args)
    for key, expected_type in property_types.items():
        if key not in coerced or expected_type is None:
            continue
        value = coerced[key]
        if value is None:
            continue
        coerced[key] = _coerce_value(value, expected_type)
    return coerced


def coerce_heuristically(args: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce arguments by key naming when no schema is available."""
    coerced = dict(args)
    for key, value in args.items():
        if not isinstance(value, str):
            continue
        if key in NUMERIC_KEYS or NUMERIC_KEY_PATTERN.match(key):
            number = extract_number(value, integer=True)
            if number is not None:
                coerced[key] = number
                continue
        literal = value.strip().lower()
        if literal == "true":
            coerced[key] = True
        elif literal == "false":
            coerced[key] = False
    return coerced


def coerce_arguments(
    args: Mapping[str, Any],
    property_types: Optional[Mapping[str, Optional[str]]] = None,
    label: str = ""
) -> Dict[str, Any]:
    """Coerce a raw argument map for a tool call.

    Args:
        args: Raw arguments as sent by the model
        property_types: Declared type per property; None or empty selects
            the heuristic pass
        label: Tool label used in debug logs

    Returns:
        A new argument map with the same keys
    """
    try:
        if property_types:
            coerced = coerce_to_schema(args, property_types)
        else:
            coerced = coerce_heuristically(args)
    except Exception as e:
        logger.warning(f"Argument coercion skipped for {label}: {e}")
        return dict(args)

    if coerced != dict(args):
        logger.debug(f"Coerced arguments for {label}: before={dict(args)} after={coerced}")
    return coerced
