"""
flow_manager.py — маршрутизация входящих событий в графы сценария.

События одной сессии обрабатываются строго по очереди (asyncio.Lock на сессию),
разные сессии независимо. Любая ошибка графа останавливается здесь:
логируется, пользователь получает извинение, сессия остаётся рабочей.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

import structlog

from actions.input import cancel_awaiting_input, complete_awaiting_input, expire_awaiting_input
from actions.processor import ActionProcessor
from bot.transport import InboundEvent, Transport
from config.settings import EngineSettings
from dialog.context_manager import ProcessingContext, Session
from dialog.exceptions import TransportError
from dialog.scenario_loader import Scenario
from dialog.state_machine import extract_input
from registry.registry_manager import RegistryManager
from storage.action_mapping import ActionMappingTable
from storage.session_store import SessionStore
from utils.metrics import EngineMetrics
from utils.start_params import parse_start_params

logger = structlog.get_logger("scenario_bot.flow_manager")

APOLOGY_TEXT = "⚠️ Извините, произошла техническая ошибка. Попробуйте позже."
EXPIRED_TEXT = "❌ Это действие уже было использовано или устарело."
NO_DOCUMENT_HANDLER_TEXT = "❌ Нет обработчика для документов в текущем меню."
USAGE_HINT = (
    "🤖 Я обрабатываю команды. Используйте:\n"
    "/start - начать работу\n"
    "/menu - главное меню\n"
    "/help - помощь\n\n"
    "Или используйте кнопки меню для навигации."
)
HELP_MENU = "Help"
MENU_WORDS = ("меню", "menu")
HELP_WORDS = ("помощь", "help")
BACK_WORDS = ("назад", "back")


class FlowManager:
    def __init__(self, processor: ActionProcessor, sessions: SessionStore):
        self.processor = processor
        self.sessions = sessions
        self.settings: EngineSettings = processor.settings
        self._locks: Dict[str, asyncio.Lock] = {}
        processor.input.on_timeout = self._on_input_timeout
        if sessions.on_evict is None:
            sessions.on_evict = self._on_session_evicted

    @classmethod
    def build(cls, scenario: Scenario, transport: Optional[Transport],
              registries: Optional[RegistryManager] = None,
              settings: Optional[EngineSettings] = None,
              metrics: Optional[EngineMetrics] = None,
              http_session_factory: Optional[Callable[..., Any]] = None) -> "FlowManager":
        settings = settings or EngineSettings()
        registries = registries or RegistryManager().initialize()
        processor = ActionProcessor(
            registries,
            scenario,
            transport=transport,
            callbacks=ActionMappingTable(settings.callback_table_size),
            settings=settings,
            metrics=metrics,
            http_session_factory=http_session_factory,
        )
        sessions = SessionStore(settings.session_timeout_sec, settings.sweep_interval_sec, metrics=metrics)
        return cls(processor, sessions)

    # --- Публичный интерфейс ---

    async def handle_event(self, event: InboundEvent) -> None:
        async with self._session(event.session_id) as session:
            ctx = self._context(session, event)
            logger.info("event_received", session_id=session.id, kind=event.kind)
            try:
                await self._route(ctx, event)
            except Exception as e:
                await self._report_failure(ctx, e)

    async def start(self, session_id: str, payload: Optional[str] = None,
                    chat: Optional[Dict[str, Any]] = None) -> None:
        async with self._session(session_id) as session:
            ctx = self._context(session)
            try:
                await self._start(ctx, payload, chat)
            except Exception as e:
                await self._report_failure(ctx, e)

    async def dispatch(self, session_id: str, graph: Any, local: Optional[Dict[str, Any]] = None) -> None:
        """Выполняет граф для сессии. Ошибки не перехватываются: их получает вызывающий."""
        async with self._session(session_id) as session:
            ctx = self._context(session)
            with ctx.scope.scope(local or {}):
                await self.processor.process_actions(graph, ctx)

    async def call_function(self, session_id: str, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        async with self._session(session_id) as session:
            ctx = self._context(session)
            return await self.processor.functions.call(name, params or {}, ctx)

    async def close(self) -> None:
        self.processor.input.close()
        await self.sessions.stop()

    # --- Сессии и блокировки ---

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _session(self, session_id: Any) -> AsyncIterator[Session]:
        session_id = str(session_id)
        async with self._lock(session_id):
            session = await self.sessions.get_or_create(session_id)
            session.touch()
            yield session

    def _context(self, session: Session, event: Optional[InboundEvent] = None) -> ProcessingContext:
        return ProcessingContext(session=session, processor=self.processor, event=event)

    async def _on_session_evicted(self, session: Session) -> None:
        self.processor.input.forget(session.id)
        lock = self._locks.get(session.id)
        if lock is not None and not lock.locked():
            self._locks.pop(session.id, None)

    async def _on_input_timeout(self, session_id: str, generation: int) -> None:
        session = await self.sessions.get(session_id)
        if session is None:
            return
        async with self._lock(session_id):
            ctx = self._context(session)
            try:
                await expire_awaiting_input(ctx, generation)
            except Exception as e:
                await self._report_failure(ctx, e)

    # --- Маршрутизация ---

    async def _route(self, ctx: ProcessingContext, event: InboundEvent) -> None:
        if event.kind == "callback":
            await self._handle_callback(ctx, event)
            return
        if ctx.session.awaiting_input is not None and await self._handle_awaiting_input(ctx, event):
            return
        if event.kind == "text":
            await self._handle_text(ctx, event)
        elif event.kind == "document":
            await self._handle_menu_event(ctx, "onDocument", NO_DOCUMENT_HANDLER_TEXT, event)
        elif event.kind == "contact":
            await self._handle_menu_event(ctx, "onContact", USAGE_HINT, event)

    async def _handle_callback(self, ctx: ProcessingContext, event: InboundEvent) -> None:
        action_id = str(event.payload or "")
        graph = self.processor.callbacks.get(action_id, owner=ctx.session.id)
        if graph is None:
            logger.info("callback_expired", session_id=ctx.session.id, action_id=action_id)
            await self._reply(ctx, EXPIRED_TEXT)
            return
        logger.info("callback_dispatched", session_id=ctx.session.id, action_id=action_id)
        await self.processor.process_actions(graph, ctx)

    async def _handle_awaiting_input(self, ctx: ProcessingContext, event: InboundEvent) -> bool:
        """True, если событие поглощено автоматом ожидания ввода."""
        waiting = ctx.session.awaiting_input
        text = (event.text or "").strip()
        if event.kind == "text":
            if text.lower() in [word.lower() for word in self.settings.cancel_words]:
                await cancel_awaiting_input(ctx)
                return True
            if text.startswith("/"):
                return False

        if not self.processor.input.matches(waiting, event.kind):
            logger.info("awaiting_input_kind_mismatch", session_id=ctx.session.id,
                        expected=waiting.input_type, kind=event.kind)
            return False

        value, attachments = extract_input(event.kind, event.text, event.payload, event.attachments)
        await complete_awaiting_input(ctx, value, attachments)
        return True

    async def _handle_text(self, ctx: ProcessingContext, event: InboundEvent) -> None:
        text = (event.text or "").strip()
        if text.startswith("/"):
            command, _, payload = text[1:].partition(" ")
            command = command.split("@", 1)[0].lower()
            if command == "start":
                await self._start(ctx, payload, event.meta.get("chat"))
                return
            if command == "menu":
                self.processor.input.clear(ctx.session)
                await self.processor.run_start_actions(ctx)
                return
            if command == "help":
                await self.processor.process_action({"action": "Navigate", "menuItem": HELP_MENU}, ctx)
                return

        lowered = text.lower()
        if lowered in MENU_WORDS:
            await self.processor.run_start_actions(ctx)
        elif lowered in HELP_WORDS:
            await self.processor.process_action({"action": "Navigate", "menuItem": HELP_MENU}, ctx)
        elif lowered in BACK_WORDS:
            await self.processor.process_action({"action": "Back"}, ctx)
        else:
            await self._handle_menu_event(ctx, "onText", USAGE_HINT, event)

    async def _handle_menu_event(self, ctx: ProcessingContext, handler: str, fallback_text: str,
                                 event: InboundEvent) -> None:
        menu = self.processor.menu(ctx.session.current_menu)
        graph = menu.get(handler) if menu else None
        if not graph:
            await self._reply(ctx, fallback_text)
            return
        local = {"text": event.text, "payload": event.payload, "attachments": event.attachments}
        with ctx.scope.scope(local):
            await self.processor.process_actions(graph, ctx)

    async def _start(self, ctx: ProcessingContext, payload: Optional[str],
                     chat: Optional[Dict[str, Any]] = None) -> None:
        session = ctx.session
        if chat:
            session.data["telegramData"] = dict(chat)
        session.data["startPayload"] = payload or ""
        session.data["startParams"] = parse_start_params(payload)
        self.processor.input.clear(session)
        self.processor.navigation.reset(session)
        logger.info("session_started", session_id=session.id, params=list(session.data["startParams"]))
        await self.processor.run_start_actions(ctx)

    # --- Ответы пользователю ---

    async def _reply(self, ctx: ProcessingContext, text: str) -> None:
        transport = self.processor.transport
        if transport is None:
            return
        try:
            await transport.send(ctx.session.id, text, {"parse_mode": None})
        except TransportError as e:
            logger.error("reply_failed", session_id=ctx.session.id, error=str(e))

    async def _report_failure(self, ctx: ProcessingContext, error: Exception) -> None:
        logger.error("dispatch_failed", session_id=ctx.session.id, error=str(error),
                     error_type=type(error).__name__, action=getattr(error, "failed_action", None))
        if self.processor.metrics is not None:
            self.processor.metrics.record_dispatch_error(error)
        await self._reply(ctx, APOLOGY_TEXT)
