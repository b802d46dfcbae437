"""
Тесты TelegramTransport (bot/telegram_transport.py) на AsyncMock-боте.
"""

import sys
import os
import pytest
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from telegram import InlineKeyboardMarkup, ReplyKeyboardMarkup
from telegram.error import BadRequest, NetworkError

from bot.telegram_transport import TelegramTransport, build_markup
from dialog.exceptions import MessageNotFound, TransportError


def make_bot():
    bot = MagicMock()
    for name, message_id in (("send_message", 10), ("send_photo", 11), ("send_document", 12)):
        setattr(bot, name, AsyncMock(return_value=MagicMock(message_id=message_id)))
    bot.edit_message_text = AsyncMock()
    bot.delete_message = AsyncMock()
    return bot


def test_build_markup_kinds():
    inline = build_markup({"buttons": [[{"text": "Go", "callback_data": "a1"}]]})
    assert isinstance(inline, InlineKeyboardMarkup)
    assert inline.inline_keyboard[0][0].callback_data == "a1"
    assert isinstance(build_markup({"reply_keyboard": [["Да", "Нет"]]}), ReplyKeyboardMarkup)
    assert build_markup({}) is None


@pytest.mark.asyncio
async def test_send_text_with_buttons():
    bot = make_bot()
    transport = TelegramTransport(bot)
    message_id = await transport.send("5", "Hi", {"parse_mode": "Markdown",
                                                  "buttons": [[{"text": "Go", "callback_data": "a1"}]]})
    assert message_id == 10
    kwargs = bot.send_message.call_args.kwargs
    assert kwargs["chat_id"] == "5"
    assert kwargs["parse_mode"] == "Markdown"
    assert isinstance(kwargs["reply_markup"], InlineKeyboardMarkup)


@pytest.mark.asyncio
async def test_buttons_go_on_last_attachment():
    bot = make_bot()
    transport = TelegramTransport(bot)
    message_id = await transport.send("5", "Files", {
        "buttons": [[{"text": "Go", "callback_data": "a1"}]],
        "attachments": [{"type": "photo", "url": "http://x/p.png"}, {"type": "document", "file": "id123"}],
    })
    assert message_id == 12
    assert bot.send_message.call_args.kwargs["reply_markup"] is None
    assert bot.send_photo.call_args.kwargs["reply_markup"] is None
    assert bot.send_photo.call_args.kwargs["photo"] == "http://x/p.png"
    assert isinstance(bot.send_document.call_args.kwargs["reply_markup"], InlineKeyboardMarkup)


@pytest.mark.asyncio
async def test_parse_error_retries_as_plain_text():
    bot = make_bot()
    bot.send_message.side_effect = [BadRequest("Can't parse entities: bad tag"), MagicMock(message_id=77)]
    transport = TelegramTransport(bot)
    assert await transport.send("5", "*broken", {"parse_mode": "Markdown"}) == 77
    assert bot.send_message.call_args.kwargs["parse_mode"] is None


@pytest.mark.asyncio
async def test_send_failure_becomes_transport_error():
    bot = make_bot()
    bot.send_message.side_effect = NetworkError("timed out")
    with pytest.raises(TransportError):
        await TelegramTransport(bot).send("5", "Hi")


@pytest.mark.asyncio
async def test_edit_error_mapping():
    bot = make_bot()
    transport = TelegramTransport(bot)

    bot.edit_message_text.side_effect = BadRequest("Message is not modified")
    await transport.edit("5", 10, "same")

    bot.edit_message_text.side_effect = BadRequest("Message to edit not found")
    with pytest.raises(MessageNotFound):
        await transport.edit("5", 10, "text")

    bot.edit_message_text.side_effect = BadRequest("Chat not found")
    with pytest.raises(TransportError):
        await transport.edit("5", 10, "text")


@pytest.mark.asyncio
async def test_delete_not_found():
    bot = make_bot()
    bot.delete_message.side_effect = BadRequest("Message to delete not found")
    with pytest.raises(MessageNotFound):
        await TelegramTransport(bot).delete("5", 10)


def test_contact_button_and_one_time_keyboard():
    markup = build_markup({
        "reply_keyboard": [[{"text": "Share", "request_contact": True}, "Skip"]],
        "one_time_keyboard": True,
    })
    assert markup.one_time_keyboard is True
    share, skip = markup.keyboard[0]
    assert share.request_contact is True
    assert skip.text == "Skip" and not skip.request_contact
