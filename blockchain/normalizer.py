"""
Flattening of tagged read-call results.

Ledger reads come back as a tree of ``{"type": ..., "value": ...}`` nodes. The
normalizer strips one level of that tagging so converters can read fields
directly. It is idempotent on already-flat input and never raises.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


def _unwrap_field(field: Any) -> Any:
    if isinstance(field, dict) and "value" in field:
        return field["value"]
    return field


def normalize(response: Any) -> Any:
    """Flatten a tagged ledger response one level deep"""
    if response is None:
        return {}

    data = response
    if isinstance(response, dict) and "value" in response:
        data = response["value"]

    if data is None:
        return {}

    if isinstance(data, list):
        return [_unwrap_field(item) for item in data]

    if not isinstance(data, dict):
        return data

    return {key: _unwrap_field(field) for key, field in data.items()}


def to_int(value: Any, default: int = 0) -> int:
    """Coerce a normalized field (int, decimal string, tagged node) to int"""
    value = _unwrap_field(value)
    if value is None or isinstance(value, bool):
        return default if value is None else int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug(f"Could not coerce {value!r} to int, using {default}")
        return default


def to_bool(value: Any, default: bool = False) -> bool:
    value = _unwrap_field(value)
    if value is None:
        return default
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)
