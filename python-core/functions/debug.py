"""
debug.py — Dump: текстовое представление значения для отладки сценария.
"""

import json
from typing import Any, Dict

from functions.base import FunctionCall


def describe_type(value: Any) -> str:
    if value is None:
        return "Type: null"
    if isinstance(value, bool):
        return "Type: boolean"
    if isinstance(value, (int, float)):
        kind = "integer" if isinstance(value, int) or float(value).is_integer() else "float"
        return f"Type: number ({kind})"
    if isinstance(value, str):
        return f"Type: string (length: {len(value)})"
    if isinstance(value, list):
        return f"Type: object (Array, length: {len(value)})"
    if isinstance(value, dict):
        keys = list(value)
        info = f"Type: object (Object, keys: {len(keys)})"
        if keys:
            info += f" [{', '.join(map(str, keys[:3]))}{'...' if len(keys) > 3 else ''}]"
        return info
    return f"Type: {type(value).__name__}"


def dump(params: Dict[str, Any], call: FunctionCall) -> str:
    value = params.get("value")
    output = str(params.get("format") or "json").lower()
    if output == "type":
        return describe_type(value)
    if output == "compact":
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


DEBUG_FUNCTIONS = {
    "Dump": dump,
}
