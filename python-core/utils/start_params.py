"""
start_params.py — разбор параметров команды /start.

  "?start=promo"           -> {"start": "promo"}
  "promo"                  -> {"start": "promo"}
  "name=John&age=25"       -> {"name": "John", "age": 25}
  "ref=promo"              -> {"ref": "promo"}
  "name John age 25 vip"   -> {"name": "John", "age": 25, "vip": True}
"""

from typing import Any, Dict, Optional
from urllib.parse import unquote


def parse_value(value: str) -> Any:
    text = value.strip()
    if text.lower() == "true":
        return True
    if text.lower() == "false":
        return False
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return value


def _pair(chunk: str, params: Dict[str, Any]) -> None:
    key, _, value = chunk.partition("=")
    key = key.strip()
    if key:
        params[unquote(key)] = parse_value(unquote(value.strip()))


def parse_start_params(payload: Optional[str]) -> Dict[str, Any]:
    if not payload or not payload.strip():
        return {}
    text = payload.strip()
    params: Dict[str, Any] = {}

    if text.startswith("?start="):
        params["start"] = unquote(text[len("?start="):])
        return params

    if "=" in text and "&" in text:
        for chunk in text.split("&"):
            if "=" in chunk:
                _pair(chunk, params)
        return params

    if "=" in text:
        _pair(text, params)
        return params

    parts = text.split()
    if len(parts) == 1:
        params["start"] = parts[0]
        return params

    for index in range(0, len(parts), 2):
        key = parts[index]
        params[key] = parse_value(parts[index + 1]) if index + 1 < len(parts) else True
    return params
