"""
input.py — запрос ввода у пользователя: RequestInput, RequestContact, CancelAwaitingInput,
а также переходы автомата ожидания (завершение, отмена, таймаут).
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

from actions.base import BaseAction, as_bool
from actions.messages import delete_message, message_options, render_text
from dialog.context_manager import AwaitingInput
from dialog.exceptions import EvaluationError
from dialog.state_machine import INPUT_KINDS
from functions.base import parse_number

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.actions.input")

DEFAULT_HINT = "Enter value:"
DEFAULT_CANCEL_TEXT = "Cancel"
CANCEL_GRAPH = {"action": "CancelAwaitingInput"}
DEFAULT_CONTACT_MESSAGE = "Пожалуйста, поделитесь своим контактом:"
DEFAULT_CONTACT_BUTTON = "📱 Поделиться контактом"


def attachments_key(key: str) -> str:
    return f"{key}_attachments"


class RequestInputAction(BaseAction):
    action_type = "RequestInput"
    graph_fields = frozenset({"onDone", "onCancel", "onTimeout"})

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        session = ctx.session
        key = str(self.require(params, "key"))
        input_type = str(params.get("inputType") or "text")
        if input_type not in INPUT_KINDS:
            raise EvaluationError(f'RequestInput action: unknown inputType "{input_type}"')
        timeout = parse_number(params.get("timeout")) if params.get("timeout") is not None else None

        waiting = AwaitingInput(
            key=key,
            on_done=params.get("onDone"),
            on_cancel=params.get("onCancel"),
            on_timeout=params.get("onTimeout"),
            input_type=input_type,
            allow_attachments=as_bool(params.get("allowAttachments")),
            timeout=timeout,
            clear_input_on_done=as_bool(params.get("clearInputOnDone")),
            remove_hint_on_cancel=as_bool(params.get("removeHintOnCancel")),
        )
        ctx.processor.input.arm(session, waiting)

        hint = params.get("hint", DEFAULT_HINT)
        if hint is None or hint == "":
            return
        buttons = []
        if as_bool(params.get("showCancel"), default=True):
            cancel_id = ctx.processor.callbacks.register(dict(CANCEL_GRAPH), owner=session.id)
            buttons = [[{"text": str(params.get("cancelText") or DEFAULT_CANCEL_TEXT), "callback_data": cancel_id}]]

        transport = ctx.processor.require_transport()
        waiting.hint_message_id = await transport.send(session.id, str(hint), message_options(params, buttons))


class RequestContactAction(BaseAction):
    """
    Просит поделиться контактом: одноразовая клавиатура с кнопкой request_contact
    и ожидание ввода типа contact. onSuccess получает контакт в input и data[key],
    onFailure выполняется при отмене ожидания.
    """
    action_type = "RequestContact"
    graph_fields = frozenset({"onSuccess", "onFailure"})

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        session = ctx.session
        message = render_text(params.get("message")) or DEFAULT_CONTACT_MESSAGE
        waiting = AwaitingInput(
            key=str(params.get("key") or "contact"),
            on_done=params.get("onSuccess"),
            on_cancel=params.get("onFailure"),
            input_type="contact",
        )
        ctx.processor.input.arm(session, waiting)
        ctx.scope.set_variable("message", message)
        ctx.scope.set_variable("status", "waiting")

        button = {"text": str(params.get("buttonText") or DEFAULT_CONTACT_BUTTON), "request_contact": True}
        options = {"parse_mode": None, "reply_keyboard": [[button]], "one_time_keyboard": True}
        transport = ctx.processor.require_transport()
        waiting.hint_message_id = await transport.send(session.id, message, options)
        logger.info("contact_requested", session_id=session.id, key=waiting.key)


class CancelAwaitingInputAction(BaseAction):
    action_type = "CancelAwaitingInput"

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        await cancel_awaiting_input(ctx)


async def cancel_awaiting_input(ctx: "ProcessingContext") -> Optional[AwaitingInput]:
    session = ctx.session
    waiting = ctx.processor.input.clear(session)
    if waiting is None:
        logger.info("awaiting_input_cancel_nothing", session_id=session.id)
        return None

    logger.info("awaiting_input_cancelled", session_id=session.id, key=waiting.key)
    if waiting.remove_hint_on_cancel and waiting.hint_message_id:
        await delete_message(ctx, waiting.hint_message_id)
    if waiting.on_cancel:
        with ctx.scope.scope({"inputKey": waiting.key}):
            await ctx.processor.process_actions(waiting.on_cancel, ctx)
    return waiting


async def complete_awaiting_input(ctx: "ProcessingContext", value: Any,
                                  attachments: Optional[List[Dict[str, Any]]] = None) -> AwaitingInput:
    """Записывает ввод в data[key], снимает ожидание и выполняет onDone."""
    session = ctx.session
    waiting = ctx.processor.input.clear(session)
    if waiting is None:
        raise EvaluationError("No input is awaited")

    session.data[waiting.key] = value
    keep_attachments = bool(attachments) and (waiting.allow_attachments or waiting.input_type == "document")
    if keep_attachments:
        session.data[attachments_key(waiting.key)] = list(attachments)
    logger.info("awaiting_input_completed", session_id=session.id, key=waiting.key,
                attachments=len(attachments or []) if keep_attachments else 0)

    try:
        if waiting.on_done:
            with ctx.scope.scope({"input": value, "inputKey": waiting.key}):
                await ctx.processor.process_actions(waiting.on_done, ctx)
    finally:
        if waiting.clear_input_on_done:
            session.data.pop(waiting.key, None)
            session.data.pop(attachments_key(waiting.key), None)
    return waiting


async def expire_awaiting_input(ctx: "ProcessingContext", generation: int) -> Optional[AwaitingInput]:
    """Хук таймаута: снимает ожидание, если оно всё ещё то же самое, и выполняет onTimeout."""
    waiting = ctx.processor.input.expire(ctx.session, generation)
    if waiting is None:
        return None
    if waiting.on_timeout:
        with ctx.scope.scope({"inputKey": waiting.key}):
            await ctx.processor.process_actions(waiting.on_timeout, ctx)
    return waiting
