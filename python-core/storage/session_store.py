"""
session_store.py — in-memory хранилище сессий с вытеснением по неактивности.

Сессия создаётся лениво при первом событии; фоновая задача раз в
sweep_interval секунд удаляет сессии, неактивные дольше timeout.
Состояние живёт только в памяти процесса.
"""

import asyncio
import inspect
import time
from typing import Awaitable, Callable, Dict, List, Optional, Union

import structlog

from dialog.context_manager import Session
from utils.metrics import EngineMetrics

logger = structlog.get_logger("scenario_bot.session_store")

EvictionCallback = Callable[[Session], Union[None, Awaitable[None]]]


class SessionStore:
    def __init__(self, timeout: float = 1800, sweep_interval: float = 60,
                 on_evict: Optional[EvictionCallback] = None, metrics: Optional[EngineMetrics] = None):
        self._sessions: Dict[str, Session] = {}
        self.timeout = timeout
        self.sweep_interval = sweep_interval
        self.on_evict = on_evict
        self.metrics = metrics
        self._task: Optional[asyncio.Task] = None

    async def get_or_create(self, session_id: str) -> Session:
        session_id = str(session_id)
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(id=session_id)
            self._sessions[session_id] = session
            logger.info("session_created", session_id=session_id)
            self._update_gauge()
        return session

    async def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(str(session_id))

    async def delete(self, session_id: str) -> bool:
        removed = self._sessions.pop(str(session_id), None)
        self._update_gauge()
        return removed is not None

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Удаляет неактивные сессии, возвращает их id."""
        now = now if now is not None else time.time()
        expired = [s for s in self._sessions.values() if s.idle_for(now) > self.timeout]
        for session in expired:
            self._sessions.pop(session.id, None)
            if self.on_evict is not None:
                result = self.on_evict(session)
                if inspect.isawaitable(result):
                    await result
        if expired:
            logger.info("sessions_evicted", count=len(expired), remaining=len(self._sessions))
            if self.metrics is not None:
                self.metrics.record_evicted(len(expired))
            self._update_gauge()
        return [session.id for session in expired]

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error("session_sweep_failed", error=str(e))

    def _update_gauge(self) -> None:
        if self.metrics is not None:
            self.metrics.set_live_sessions(len(self._sessions))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return str(session_id) in self._sessions
