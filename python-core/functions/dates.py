"""
dates.py — DateFormat, DateParse, DateAdd, DateDiff.

Даты принимаются как ISO-строки ("2025-03-01", "2025-03-01T10:00:00Z"),
числа (Unix-время в секундах) или "now". Формат задаётся токенами
YYYY YY MM M DD D HH H mm m ss s SSS.
"""

import calendar
import datetime
import re
from typing import Any, Dict

from dialog.exceptions import EvaluationError
from functions.base import FunctionCall, normalize_number, parse_number

FORMAT_TOKEN_RE = re.compile(r"YYYY|SSS|YY|MM|DD|HH|mm|ss|M|D|H|m|s")

STRPTIME_TOKENS = {
    "YYYY": "%Y", "YY": "%y", "MM": "%m", "M": "%m", "DD": "%d", "D": "%d",
    "HH": "%H", "H": "%H", "mm": "%M", "m": "%M", "ss": "%S", "s": "%S", "SSS": "%f",
}

UNIT_SECONDS = {
    "second": 1, "seconds": 1,
    "minute": 60, "minutes": 60,
    "hour": 3600, "hours": 3600,
    "day": 86400, "days": 86400,
    "week": 604800, "weeks": 604800,
}


def parse_date(value: Any, function: str = "Date") -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.lower() == "now":
            return datetime.datetime.now(datetime.timezone.utc)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.datetime.fromisoformat(text)
        except ValueError:
            pass
    raise EvaluationError(f'{function} function: invalid date format "{value}"')


def format_date(date: datetime.datetime, pattern: str) -> str:
    values = {
        "YYYY": f"{date.year:04d}",
        "YY": f"{date.year % 100:02d}",
        "MM": f"{date.month:02d}",
        "M": str(date.month),
        "DD": f"{date.day:02d}",
        "D": str(date.day),
        "HH": f"{date.hour:02d}",
        "H": str(date.hour),
        "mm": f"{date.minute:02d}",
        "m": str(date.minute),
        "ss": f"{date.second:02d}",
        "s": str(date.second),
        "SSS": f"{date.microsecond // 1000:03d}",
    }
    return FORMAT_TOKEN_RE.sub(lambda match: values[match.group(0)], pattern)


def _to_strptime(pattern: str) -> str:
    escaped = pattern.replace("%", "%%")
    return FORMAT_TOKEN_RE.sub(lambda match: STRPTIME_TOKENS[match.group(0)], escaped)


def _add_months(date: datetime.datetime, months: int) -> datetime.datetime:
    month_index = date.month - 1 + months
    year = date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(date.day, calendar.monthrange(year, month)[1])
    return date.replace(year=year, month=month, day=day)


def _align(left: datetime.datetime, right: datetime.datetime):
    """Наивная дата против даты с часовым поясом: наивную считаем UTC."""
    if (left.tzinfo is None) != (right.tzinfo is None):
        if left.tzinfo is None:
            left = left.replace(tzinfo=datetime.timezone.utc)
        else:
            right = right.replace(tzinfo=datetime.timezone.utc)
    return left, right


def date_format(params: Dict[str, Any], call: FunctionCall) -> str:
    value = params.get("date")
    if value is None or value == "":
        raise EvaluationError('DateFormat function requires a "date" parameter')
    if not params.get("format"):
        raise EvaluationError('DateFormat function requires a "format" parameter')
    return format_date(parse_date(value, "DateFormat"), str(params["format"]))


def date_parse(params: Dict[str, Any], call: FunctionCall) -> str:
    value = params.get("date")
    if value is None or value == "":
        raise EvaluationError('DateParse function requires a "date" parameter')
    pattern = params.get("format")
    if pattern:
        try:
            parsed = datetime.datetime.strptime(str(value).strip(), _to_strptime(str(pattern)))
        except ValueError:
            raise EvaluationError(f'DateParse function: invalid date format "{value}"')
    else:
        parsed = parse_date(value, "DateParse")
    return parsed.isoformat()


def date_add(params: Dict[str, Any], call: FunctionCall) -> str:
    date = parse_date(params.get("date", "now"), "DateAdd")
    amount = parse_number(params.get("amount", 0))
    if amount is None:
        raise EvaluationError(f'DateAdd function: invalid number "{params.get("amount")}"')
    unit = str(params.get("unit") or "days")

    if unit in ("month", "months", "year", "years"):
        months = int(amount) * (12 if unit.startswith("year") else 1)
        return _add_months(date, months).isoformat()
    if unit not in UNIT_SECONDS:
        raise EvaluationError(f'DateAdd function: unknown unit "{unit}"')
    return (date + datetime.timedelta(seconds=amount * UNIT_SECONDS[unit])).isoformat()


def date_diff(params: Dict[str, Any], call: FunctionCall):
    start = parse_date(params.get("from"), "DateDiff")
    end = parse_date(params.get("to", "now"), "DateDiff")
    unit = str(params.get("unit") or "days")
    if unit not in UNIT_SECONDS:
        raise EvaluationError(f'DateDiff function: unknown unit "{unit}"')
    start, end = _align(start, end)
    seconds = (end - start).total_seconds()
    return normalize_number(round(seconds / UNIT_SECONDS[unit], 6))


DATE_FUNCTIONS = {
    "DateFormat": date_format,
    "DateParse": date_parse,
    "DateAdd": date_add,
    "DateDiff": date_diff,
}
