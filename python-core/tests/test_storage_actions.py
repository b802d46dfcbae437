"""
Юнит-тесты для Store / ReadStorage (actions/storage.py, functions/storage.py) и Log
"""

import sys
import os
import pytest
from structlog.testing import capture_logs

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


@pytest.mark.asyncio
async def test_store_keeps_typed_value(engine, ctx):
    ctx.session.data["cart"] = [1, 2]
    await engine.processor.process_action({"action": "Store", "key": "saved", "value": "{{cart}}"}, ctx)
    assert ctx.session.storage["default"]["saved"] == {"value": [1, 2], "clearAfterRead": False}


@pytest.mark.asyncio
async def test_store_without_key_is_skipped(engine, ctx):
    await engine.processor.process_action({"action": "Store", "value": 1}, ctx)
    assert ctx.session.storage == {}


@pytest.mark.asyncio
async def test_read_storage_function_with_namespace_and_fallback(engine, ctx):
    await engine.processor.process_action({"action": "Store", "key": "k", "value": "v", "namespace": "ns"}, ctx)
    functions = engine.processor.functions
    assert await functions.evaluate({"function": "ReadStorage", "key": "k", "namespace": "ns"}, ctx) == "v"
    assert await functions.evaluate({"function": "ReadStorage", "key": "k", "fallbackValue": "none"}, ctx) == "none"


@pytest.mark.asyncio
async def test_clear_after_read_consumes_once(engine, ctx):
    await engine.processor.process_action(
        {"action": "Store", "key": "otp", "value": "1234", "clearAfterRead": True}, ctx)
    functions = engine.processor.functions
    assert await functions.evaluate({"function": "ReadStorage", "key": "otp"}, ctx) == "1234"
    assert await functions.evaluate({"function": "ReadStorage", "key": "otp", "fallbackValue": "gone"}, ctx) == "gone"


@pytest.mark.asyncio
async def test_read_storage_action_save_to_and_on_read(engine, ctx, transport):
    ctx.session.store("city", "Paris")
    await engine.processor.process_action({
        "action": "ReadStorage",
        "key": "city",
        "saveTo": "lastCity",
        "onRead": {"action": "SendMessage", "text": "City: {{value}}"},
    }, ctx)
    assert ctx.session.data["lastCity"] == "Paris"
    assert transport.texts == ["City: Paris"]


@pytest.mark.asyncio
async def test_store_shorthand_read_in_text(engine, ctx, transport):
    ctx.session.store("score", 42)
    await engine.processor.process_action({"action": "SendMessage", "text": "Score: {{ReadStorage:key:\"score\"}}"}, ctx)
    assert transport.texts == ["Score: 42"]


@pytest.mark.asyncio
async def test_log_action_writes_structured_event(engine, ctx):
    ctx.session.data["name"] = "Ann"
    with capture_logs() as logs:
        await engine.processor.process_action(
            {"action": "Log", "level": "warning", "message": "user {{name}}", "data": {"step": 2}}, ctx)
    entry = next(item for item in logs if item["event"] == "scenario_log")
    assert entry["log_level"] == "warning"
    assert entry["message"] == "user Ann"
    assert entry["data_step"] == 2
