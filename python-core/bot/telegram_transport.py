"""
telegram_transport.py — реализация Transport поверх python-telegram-bot.

session_id == chat_id. Ошибки Telegram переводятся в TransportError,
"сообщение не найдено" в MessageNotFound.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)
from telegram.error import BadRequest, TelegramError

from bot.transport import Transport
from dialog.exceptions import MessageNotFound, TransportError

logger = structlog.get_logger("scenario_bot.telegram_transport")

NOT_FOUND_MARKERS = ("message to delete not found", "message to edit not found", "message can't be deleted")
PARSE_ERROR_MARKER = "can't parse entities"
NOT_MODIFIED_MARKER = "message is not modified"


def build_markup(options: Dict[str, Any]):
    rows = options.get("buttons")
    if rows:
        return InlineKeyboardMarkup([
            [InlineKeyboardButton(button["text"], callback_data=button["callback_data"]) for button in row]
            for row in rows
        ])
    keyboard = options.get("reply_keyboard")
    if keyboard:
        return ReplyKeyboardMarkup(
            [[_reply_button(label) for label in row] for row in keyboard],
            resize_keyboard=True,
            one_time_keyboard=bool(options.get("one_time_keyboard")),
        )
    return None


def _reply_button(label: Any) -> KeyboardButton:
    if isinstance(label, dict):
        return KeyboardButton(
            str(label.get("text", "")),
            request_contact=bool(label.get("request_contact")) or None,
        )
    return KeyboardButton(str(label))


def _file_ref(attachment: Dict[str, Any]) -> Any:
    if attachment.get("url"):
        return attachment["url"]
    file = attachment.get("file")
    if isinstance(file, str) and Path(file).exists():
        return Path(file)
    return file


def _is_not_found(error: TelegramError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in NOT_FOUND_MARKERS)


class TelegramTransport(Transport):
    def __init__(self, bot):
        self.bot = bot

    async def send(self, session_id: str, text: str, options: Optional[Dict[str, Any]] = None) -> Any:
        options = options or {}
        markup = build_markup(options)
        attachments: List[Dict[str, Any]] = options.get("attachments") or []
        message_id = None
        try:
            if text:
                message = await self._with_parse_fallback(
                    self.bot.send_message,
                    options.get("parse_mode"),
                    chat_id=session_id,
                    text=text,
                    reply_markup=None if attachments else markup,
                    disable_web_page_preview=True,
                )
                message_id = message.message_id
            for index, attachment in enumerate(attachments):
                last = index == len(attachments) - 1
                message = await self._send_attachment(session_id, attachment, markup if last else None)
                message_id = message.message_id
        except TelegramError as e:
            logger.warning("telegram_send_error", session_id=session_id, error=str(e))
            raise TransportError(f"send failed: {e}") from e
        return message_id

    async def edit(self, session_id: str, message_ref: Any, text: str,
                   options: Optional[Dict[str, Any]] = None) -> None:
        options = options or {}
        markup = build_markup(options)
        try:
            await self._with_parse_fallback(
                self.bot.edit_message_text,
                options.get("parse_mode"),
                chat_id=session_id,
                message_id=message_ref,
                text=text,
                reply_markup=markup if isinstance(markup, InlineKeyboardMarkup) else None,
                disable_web_page_preview=True,
            )
        except BadRequest as e:
            if NOT_MODIFIED_MARKER in str(e).lower():
                return
            if _is_not_found(e):
                raise MessageNotFound(str(e)) from e
            raise TransportError(f"edit failed: {e}") from e
        except TelegramError as e:
            raise TransportError(f"edit failed: {e}") from e

    async def delete(self, session_id: str, message_ref: Any) -> None:
        try:
            await self.bot.delete_message(chat_id=session_id, message_id=message_ref)
        except BadRequest as e:
            if _is_not_found(e):
                raise MessageNotFound(str(e)) from e
            raise TransportError(f"delete failed: {e}") from e
        except TelegramError as e:
            raise TransportError(f"delete failed: {e}") from e

    async def _send_attachment(self, session_id: str, attachment: Dict[str, Any], markup):
        kind = attachment.get("type", "document")
        caption = attachment.get("caption")
        if kind == "photo":
            return await self.bot.send_photo(chat_id=session_id, photo=_file_ref(attachment),
                                             caption=caption, reply_markup=markup)
        return await self.bot.send_document(chat_id=session_id, document=_file_ref(attachment),
                                            caption=caption, reply_markup=markup)

    async def _with_parse_fallback(self, method, parse_mode, **kwargs):
        try:
            return await method(parse_mode=parse_mode, **kwargs)
        except BadRequest as e:
            if parse_mode is None or PARSE_ERROR_MARKER not in str(e).lower():
                raise
            # Разметка не разобралась: повторяем как обычный текст
            logger.warning("telegram_parse_mode_fallback", parse_mode=parse_mode, error=str(e))
            return await method(parse_mode=None, **kwargs)
