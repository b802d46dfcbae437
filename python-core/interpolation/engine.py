"""
engine.py — подстановка {{...}} в значения сценария.

- строки: замена токенов; если поле целиком один токен, подставляется
  типизированное значение (dict/list/число/bool), иначе текст;
- списки и словари обходятся рекурсивно, прочие скаляры не меняются;
- нерешённый токен остаётся в тексте как есть;
- короткая запись функции: {{Plus:values:1:2:3}}, {{Mod:dividend:x:divisor:3}}.
"""

import json
import re
from typing import Any, Dict, List

import structlog

from dialog.exceptions import ResolutionError
from interpolation.context import SOURCES, InterpolationContext
from interpolation.scope_manager import MISSING

logger = structlog.get_logger("scenario_bot.interpolation")

TOKEN_RE = re.compile(r"\{\{([^{}]+)\}\}")
SINGLE_TOKEN_RE = re.compile(r"^\{\{([^{}]+)\}\}$")
IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z0-9_]+)*$")
FUNCTION_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Ключи, на которых останавливается накопление позиционных values
SHORTHAND_KEYWORDS = frozenset({
    "values", "value", "value1", "value2", "operator",
    "dividend", "divisor",
    "separator", "prefix", "suffix",
    "items", "arrays", "cases",
    "key", "namespace", "fallbackValue", "clearAfterRead",
    "date", "format", "amount", "unit", "from", "to",
    "trueResult", "falseResult", "defaultResult",
})


def is_function_descriptor(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("function"), str)


def is_action_descriptor(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("action"), str)


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


async def interpolate(value: Any, context: InterpolationContext) -> Any:
    if isinstance(value, str):
        return await interpolate_string(value, context)
    if isinstance(value, list):
        return [await interpolate(item, context) for item in value]
    if isinstance(value, dict):
        return {key: await interpolate(item, context) for key, item in value.items()}
    return value


async def interpolate_string(text: str, context: InterpolationContext) -> Any:
    if "{{" not in text:
        return text

    single = SINGLE_TOKEN_RE.match(text)
    if single:
        value = await resolve_expression(single.group(1).strip(), context)
        return text if value is MISSING else value

    parts: List[str] = []
    position = 0
    for match in TOKEN_RE.finditer(text):
        parts.append(text[position:match.start()])
        value = await resolve_expression(match.group(1).strip(), context)
        parts.append(match.group(0) if value is MISSING else format_value(value))
        position = match.end()
    parts.append(text[position:])
    return "".join(parts)


async def resolve_expression(expression: str, context: InterpolationContext) -> Any:
    """Значение одного токена или MISSING."""
    if is_shorthand(expression):
        return await _call_shorthand(expression, context)

    source, dot, path = expression.partition(".")
    if source in SOURCES and (dot or not path):
        return context.lookup(source, path)
    return context.resolve(expression)


def is_shorthand(expression: str) -> bool:
    if ":" not in expression:
        return False
    name = expression.split(":", 1)[0].strip()
    return bool(FUNCTION_NAME_RE.match(name)) and name not in SOURCES


def parse_shorthand(expression: str, context: InterpolationContext):
    """'Fn:k1:v1:values:a:b:k2:v2' -> ('Fn', {k1: v1, values: [a, b], k2: v2})."""
    segments = [segment.strip() for segment in expression.split(":")]
    name, rest = segments[0], segments[1:]
    params: Dict[str, Any] = {}
    index = 0
    while index < len(rest):
        key = rest[index]
        index += 1
        if key == "values":
            collected = []
            while index < len(rest) and rest[index] not in SHORTHAND_KEYWORDS:
                collected.append(_shorthand_value(rest[index], context))
                index += 1
            params["values"] = collected
            continue
        if index < len(rest):
            params[key] = _shorthand_value(rest[index], context)
            index += 1
        else:
            params[key] = None
    return name, params


def _shorthand_value(raw: str, context: InterpolationContext) -> Any:
    if IDENTIFIER_RE.match(raw):
        value = context.resolve(raw)
        if value is not MISSING:
            return value
    try:
        return json.loads(raw)
    except ValueError:
        return raw


async def _call_shorthand(expression: str, context: InterpolationContext) -> Any:
    if context.invoke is None:
        return MISSING
    name, params = parse_shorthand(expression, context)
    try:
        return await context.invoke(name, params)
    except ResolutionError as e:
        logger.warning("shorthand_function_unknown", function=name, error=str(e))
        return MISSING
