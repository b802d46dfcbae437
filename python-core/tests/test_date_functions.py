"""
Юнит-тесты для функций дат и Dump (functions/dates.py, functions/debug.py)
"""

import sys
import os
import datetime
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dialog.exceptions import EvaluationError
from functions.dates import format_date, parse_date


async def evaluate(ctx, descriptor):
    return await ctx.processor.functions.evaluate(descriptor, ctx)


def test_format_date_tokens():
    date = datetime.datetime(2025, 3, 7, 9, 5, 4, 120000)
    assert format_date(date, "DD.MM.YYYY HH:mm:ss.SSS") == "07.03.2025 09:05:04.120"
    assert format_date(date, "D/M/YY H:m:s") == "7/3/25 9:5:4"


def test_parse_date_variants():
    assert parse_date("2025-03-01T10:00:00Z").tzinfo == datetime.timezone.utc
    assert parse_date(0) == datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
    with pytest.raises(EvaluationError) as exc:
        parse_date("yesterday-ish", "DateFormat")
    assert "invalid date format" in exc.value.message


@pytest.mark.asyncio
async def test_date_format_function(ctx):
    ctx.session.data["birthday"] = "1990-12-31"
    result = await evaluate(ctx, {"function": "DateFormat", "date": "{{birthday}}", "format": "DD.MM.YYYY"})
    assert result == "31.12.1990"


@pytest.mark.asyncio
async def test_date_format_invalid_date(ctx):
    with pytest.raises(EvaluationError):
        await evaluate(ctx, {"function": "DateFormat", "date": "31/12/1990", "format": "YYYY"})


@pytest.mark.asyncio
async def test_date_parse_with_format(ctx):
    result = await evaluate(ctx, {"function": "DateParse", "date": "31.12.1990", "format": "DD.MM.YYYY"})
    assert result == "1990-12-31T00:00:00"


@pytest.mark.asyncio
async def test_date_add_units(ctx):
    base = "2025-01-31T00:00:00"
    assert await evaluate(ctx, {"function": "DateAdd", "date": base, "amount": 1, "unit": "days"}) == "2025-02-01T00:00:00"
    assert await evaluate(ctx, {"function": "DateAdd", "date": base, "amount": 1, "unit": "months"}) == "2025-02-28T00:00:00"
    assert await evaluate(ctx, {"function": "DateAdd", "date": base, "amount": -2, "unit": "hours"}) == "2025-01-30T22:00:00"


@pytest.mark.asyncio
async def test_date_diff(ctx):
    descriptor = {"function": "DateDiff", "from": "2025-01-01", "to": "2025-01-15", "unit": "days"}
    assert await evaluate(ctx, descriptor) == 14
    descriptor = {"function": "DateDiff", "from": "2025-01-01T00:00:00", "to": "2025-01-01T01:30:00Z", "unit": "hours"}
    assert await evaluate(ctx, descriptor) == 1.5


@pytest.mark.asyncio
async def test_dump_formats(ctx):
    value = {"a": [1, 2]}
    assert await evaluate(ctx, {"function": "Dump", "value": value, "format": "compact"}) == '{"a":[1,2]}'
    assert await evaluate(ctx, {"function": "Dump", "value": "abc", "format": "type"}) == "Type: string (length: 3)"
    assert "\n" in await evaluate(ctx, {"function": "Dump", "value": value})


@pytest.mark.asyncio
async def test_date_format_accepts_epoch_zero(ctx):
    result = await evaluate(ctx, {"function": "DateFormat", "date": 0, "format": "DD.MM.YYYY"})
    assert result == "01.01.1970"
    with pytest.raises(EvaluationError):
        await evaluate(ctx, {"function": "DateFormat", "date": "", "format": "YYYY"})
