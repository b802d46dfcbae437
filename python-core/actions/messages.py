"""
messages.py — вывод сообщений: SendMessage (EmitOutput), UpdateMessage (EditOutput),
DeleteMessage (DeleteOutput).
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import structlog

from actions.base import BaseAction
from dialog.exceptions import EvaluationError, MessageNotFound
from interpolation.engine import format_value, interpolate, is_function_descriptor

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.actions.messages")

DEFAULT_PARSE_MODE = "Markdown"


async def resolve_inline_actions(inline_actions: Any, ctx: "ProcessingContext") -> Any:
    """
    Дескриптор функции (например Map) вычисляется целиком; литеральный список
    только интерполируется, вложенные в onClick функции выполнятся при нажатии.
    """
    if is_function_descriptor(inline_actions):
        return await ctx.processor.functions.evaluate(inline_actions, ctx)
    return await interpolate(inline_actions, ctx.interpolation())


async def build_buttons(inline_actions: Any, ctx: "ProcessingContext") -> Tuple[List[List[Dict[str, str]]], List[str]]:
    """inlineActions [{title, onClick}] -> ряды кнопок и зарегистрированные callback-id."""
    inline_actions = await resolve_inline_actions(inline_actions, ctx)
    if not inline_actions:
        return [], []
    if not isinstance(inline_actions, list):
        logger.warning("inline_actions_not_list", value_type=type(inline_actions).__name__)
        return [], []

    rows, action_ids = [], []
    for item in inline_actions:
        if not isinstance(item, dict) or not item.get("onClick"):
            continue
        action_id = ctx.processor.callbacks.register(item["onClick"], owner=ctx.session.id)
        action_ids.append(action_id)
        rows.append([{"text": format_value(item.get("title")), "callback_data": action_id}])
    return rows, action_ids


def message_options(params: Dict[str, Any], buttons: List) -> Dict[str, Any]:
    parse_mode = params.get("parseMode", DEFAULT_PARSE_MODE)
    if isinstance(parse_mode, str) and parse_mode.lower() in ("", "none", "plain"):
        parse_mode = None
    options: Dict[str, Any] = {"parse_mode": parse_mode}
    if buttons:
        options["buttons"] = buttons
    if params.get("attachments"):
        options["attachments"] = params["attachments"]
    if params.get("replyKeyboard"):
        options["reply_keyboard"] = params["replyKeyboard"]
        if params.get("oneTimeKeyboard"):
            options["one_time_keyboard"] = True
    return options


def render_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else format_value(value)


async def delete_message(ctx: "ProcessingContext", message_id: Any) -> bool:
    """Удаляет сообщение и забывает его callback-id. Уже удалённое сообщение не ошибка."""
    session = ctx.session
    transport = ctx.processor.require_transport()
    deleted = True
    try:
        await transport.delete(session.id, message_id)
    except MessageNotFound as e:
        deleted = False
        logger.info("message_already_gone", session_id=session.id, message_id=message_id, error=str(e))
    if session.last_message_id is not None and str(message_id) == str(session.last_message_id):
        ctx.processor.callbacks.remove_many(session.last_message_action_ids)
        session.last_message_id = None
        session.last_message_action_ids = []
    return deleted


class SendMessageAction(BaseAction):
    action_type = "SendMessage"
    aliases = ("EmitOutput",)
    graph_fields = frozenset({"onSuccess", "inlineActions"})

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        session = ctx.session
        text = render_text(params.get("text"))
        if not text.strip() and not params.get("attachments"):
            logger.warning("message_empty_skipped", session_id=session.id)
            return

        buttons, action_ids = await build_buttons(params.get("inlineActions"), ctx)
        transport = ctx.processor.require_transport()
        message_id = await transport.send(session.id, text, message_options(params, buttons))

        session.last_message_id = message_id
        session.last_message_action_ids = action_ids
        ctx.scope.set_variable("sent", True)
        logger.info("message_sent", session_id=session.id, message_id=message_id, buttons=len(action_ids))

        await self.run_graph(params.get("onSuccess"), ctx, {"messageId": message_id})


class UpdateMessageAction(BaseAction):
    action_type = "UpdateMessage"
    aliases = ("EditOutput",)
    graph_fields = frozenset({"inlineActions"})

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        session = ctx.session
        message_id = params.get("messageId") or session.last_message_id
        if not message_id:
            raise EvaluationError('UpdateMessage action requires "messageId" or a previously sent message')

        buttons, action_ids = await build_buttons(params.get("inlineActions"), ctx)
        transport = ctx.processor.require_transport()
        try:
            await transport.edit(session.id, message_id, render_text(params.get("text")),
                                 message_options(params, buttons))
        except MessageNotFound as e:
            ctx.processor.callbacks.remove_many(action_ids)
            logger.warning("message_edit_target_gone", session_id=session.id, message_id=message_id, error=str(e))
            return

        if str(message_id) == str(session.last_message_id) and buttons:
            ctx.processor.callbacks.remove_many(session.last_message_action_ids)
            session.last_message_action_ids = action_ids
        logger.info("message_updated", session_id=session.id, message_id=message_id)


class DeleteMessageAction(BaseAction):
    action_type = "DeleteMessage"
    aliases = ("DeleteOutput",)

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        message_id: Optional[Any] = params.get("messageId") or ctx.session.last_message_id
        if not message_id:
            logger.warning("message_delete_nothing", session_id=ctx.session.id)
            return
        await delete_message(ctx, message_id)
