"""
handlers.py — Telegram-хендлеры: переводят Update в InboundEvent и отдают в FlowManager.
"""

from typing import Any, Dict, List, Optional

import structlog
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import CallbackQueryHandler, ContextTypes, MessageHandler, filters

from bot.transport import InboundEvent

logger = structlog.get_logger("scenario_bot.handlers")

FLOOD_TEXT = "⏳ Пожалуйста, не отправляйте сообщения так быстро."


def chat_meta(update: Update) -> Dict[str, Any]:
    user = update.effective_user
    chat = update.effective_chat
    meta = {"chat_id": chat.id if chat else None}
    if user is not None:
        meta.update(user_id=user.id, username=user.username, first_name=user.first_name,
                    last_name=user.last_name, language_code=user.language_code)
    return {"chat": meta}


def message_attachments(message) -> List[Dict[str, Any]]:
    attachments = []
    if message.document is not None:
        document = message.document
        attachments.append({
            "type": "document",
            "file_id": document.file_id,
            "file_name": document.file_name,
            "mime_type": document.mime_type,
            "file_size": document.file_size,
        })
    if message.photo:
        # Telegram присылает несколько размеров, берём самый большой
        photo = message.photo[-1]
        attachments.append({
            "type": "photo",
            "file_id": photo.file_id,
            "file_size": photo.file_size,
        })
    return attachments


def event_from_update(update: Update) -> Optional[InboundEvent]:
    chat = update.effective_chat
    if chat is None:
        return None
    meta = chat_meta(update)

    query = update.callback_query
    if query is not None:
        return InboundEvent(kind="callback", session_id=chat.id, payload=query.data, meta=meta)

    message = update.effective_message
    if message is None:
        return None
    if message.contact is not None:
        contact = message.contact
        payload = {
            "phone_number": contact.phone_number,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
            "user_id": contact.user_id,
        }
        return InboundEvent(kind="contact", session_id=chat.id, payload=payload, meta=meta)
    attachments = message_attachments(message)
    if attachments:
        return InboundEvent(kind="document", session_id=chat.id, text=message.caption,
                            attachments=attachments, meta=meta)
    if message.text is not None:
        return InboundEvent(kind="text", session_id=chat.id, text=message.text, meta=meta)
    return None


def setup_handlers(application, flow_manager, antiflood):
    async def handle_update(update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        if query is not None:
            try:
                await query.answer()
            except TelegramError as e:
                logger.warning("callback_answer_failed", error=str(e))

        event = event_from_update(update)
        if event is None:
            return

        user = update.effective_user
        if user is not None and await antiflood.is_limited(user.id):
            if update.effective_message is not None and query is None:
                await update.effective_message.reply_text(FLOOD_TEXT)
            return

        logger.info("update_received", session_id=event.session_id, kind=event.kind)
        await flow_manager.handle_event(event)

    application.add_handler(CallbackQueryHandler(handle_update))
    application.add_handler(
        MessageHandler(filters.TEXT | filters.Document.ALL | filters.PHOTO | filters.CONTACT, handle_update)
    )
