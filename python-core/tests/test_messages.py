"""
Юнит-тесты для SendMessage, UpdateMessage, DeleteMessage (actions/messages.py)
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from actions.messages import message_options
from dialog.exceptions import EvaluationError


@pytest.mark.asyncio
async def test_send_message_interpolates_and_stores_id(engine, ctx, transport):
    ctx.session.data["name"] = "Ann"
    await engine.processor.process_action({"action": "SendMessage", "text": "{{greeting}}, {{name}}!"}, ctx)
    assert transport.texts == ["Hello, Ann!"]
    assert transport.sent[0]["options"]["parse_mode"] == "Markdown"
    assert ctx.session.last_message_id == 100


@pytest.mark.asyncio
async def test_inline_actions_register_callbacks(engine, ctx, transport):
    await engine.processor.process_action({
        "action": "SendMessage",
        "text": "Choose",
        "inlineActions": [
            {"title": "One", "onClick": {"action": "Navigate", "menuItem": "A"}},
            {"title": "Broken"},
            {"title": "Two", "onClick": [{"action": "Navigate", "menuItem": "B"}]},
        ],
    }, ctx)
    rows = transport.sent[0]["options"]["buttons"]
    assert [row[0]["text"] for row in rows] == ["One", "Two"]
    ids = [row[0]["callback_data"] for row in rows]
    assert ctx.session.last_message_action_ids == ids
    assert engine.processor.callbacks.get(ids[0]) == {"action": "Navigate", "menuItem": "A"}


@pytest.mark.asyncio
async def test_inline_actions_from_map_function(engine, ctx, transport):
    ctx.session.data["items"] = ["Tea", "Coffee"]
    await engine.processor.process_action({
        "action": "SendMessage",
        "text": "Menu",
        "inlineActions": {
            "function": "Map",
            "items": "{{items}}",
            "forEach": {"title": "{{it}}", "onClick": {"action": "Store", "key": "drink", "value": "{{it}}"}},
        },
    }, ctx)
    rows = transport.sent[0]["options"]["buttons"]
    assert [row[0]["text"] for row in rows] == ["Tea", "Coffee"]
    graph = engine.processor.callbacks.get(rows[1][0]["callback_data"])
    assert graph == {"action": "Store", "key": "drink", "value": "Coffee"}


@pytest.mark.asyncio
async def test_on_success_receives_message_id(engine, ctx, transport):
    await engine.processor.process_action({
        "action": "SendMessage",
        "text": "first",
        "onSuccess": {"action": "SendMessage", "text": "sent #{{messageId}}"},
    }, ctx)
    assert transport.texts == ["first", "sent #100"]


@pytest.mark.asyncio
async def test_blank_text_is_skipped(engine, ctx, transport):
    await engine.processor.process_action({"action": "SendMessage", "text": "   "}, ctx)
    assert transport.sent == []


@pytest.mark.asyncio
async def test_function_text_is_stringified(engine, ctx, transport):
    await engine.processor.process_action({"action": "SendMessage", "text": {"function": "Plus", "values": [2, 2]}}, ctx)
    assert transport.texts == ["4"]


@pytest.mark.asyncio
async def test_unresolved_token_stays_visible(engine, ctx, transport):
    await engine.processor.process_action({"action": "SendMessage", "text": "Hi {{user.name}}"}, ctx)
    assert transport.texts == ["Hi {{user.name}}"]


@pytest.mark.asyncio
async def test_update_message_edits_last_message(engine, ctx, transport):
    await engine.processor.process_action({"action": "SendMessage", "text": "v1"}, ctx)
    await engine.processor.process_action({"action": "UpdateMessage", "text": "v2"}, ctx)
    assert transport.edited[0]["id"] == 100
    assert transport.edited[0]["text"] == "v2"


@pytest.mark.asyncio
async def test_update_missing_message_is_tolerated(engine, ctx, transport):
    transport.missing.add(55)
    await engine.processor.process_actions([
        {"action": "UpdateMessage", "messageId": 55, "text": "x"},
        {"action": "SendMessage", "text": "after"},
    ], ctx)
    assert transport.texts == ["after"]


@pytest.mark.asyncio
async def test_update_without_any_message_fails(engine, ctx):
    with pytest.raises(EvaluationError):
        await engine.processor.process_action({"action": "UpdateMessage", "text": "x"}, ctx)


@pytest.mark.asyncio
async def test_delete_already_gone_message(engine, ctx, transport):
    await engine.processor.process_action({"action": "SendMessage", "text": "bye"}, ctx)
    await engine.processor.process_action({"action": "DeleteMessage"}, ctx)
    assert transport.deleted == [100]
    assert ctx.session.last_message_id is None
    await engine.processor.process_actions([
        {"action": "DeleteOutput", "messageId": 100},
        {"action": "SendMessage", "text": "still fine"},
    ], ctx)
    assert transport.texts[-1] == "still fine"


def test_message_options():
    params = {"parseMode": "none", "attachments": [{"type": "photo", "url": "http://x"}], "replyKeyboard": [["Yes"]]}
    options = message_options(params, [[{"text": "a", "callback_data": "a1"}]])
    assert options["parse_mode"] is None
    assert options["attachments"] == params["attachments"]
    assert options["reply_keyboard"] == [["Yes"]]
    assert options["buttons"][0][0]["callback_data"] == "a1"
