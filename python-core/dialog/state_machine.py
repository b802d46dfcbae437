"""
state_machine.py — два автомата сессии: навигация по меню (back-stack)
и ожидание ввода пользователя (IDLE -> WAITING -> IDLE).
"""

import asyncio
import itertools
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import structlog

from dialog.context_manager import AwaitingInput, Session

logger = structlog.get_logger("scenario_bot.state_machine")

INPUT_KINDS = ("text", "document", "contact", "any")


class NavigationStateMachine:
    """
    Стек посещённых меню. Текущее меню: вершина стека. Терминального
    состояния нет: автомат живёт столько же, сколько сессия.
    """

    def __init__(self, max_size: int = 20):
        self.max_size = max_size

    def navigate(self, session: Session, menu: str, add_to_back_stack: bool = True,
                 unique_in_stack: bool = True) -> None:
        session.current_menu = menu
        if not add_to_back_stack:
            return
        stack = session.back_stack
        if unique_in_stack:
            stack[:] = [item for item in stack if item != menu]
        if not stack or stack[-1] != menu:
            stack.append(menu)
        while len(stack) > self.max_size:
            stack.pop(0)

    def back(self, session: Session) -> Optional[str]:
        """Новая вершина стека или None, если возвращаться некуда (стек сброшен)."""
        stack = session.back_stack
        if len(stack) > 1:
            stack.pop()
            session.current_menu = stack[-1]
            return session.current_menu
        self.reset(session)
        return None

    def reset(self, session: Session) -> None:
        session.current_menu = None
        session.back_stack.clear()


# (session_id, generation) -> None; вызывается по истечении таймаута ожидания
TimeoutHook = Callable[[str, int], Awaitable[None]]


class AwaitingInputStateMachine:
    """
    Не больше одной записи ожидания на сессию. Повторный arm заменяет
    предыдущую запись, её графы onDone/onCancel не выполняются.
    """

    def __init__(self, on_timeout: Optional[TimeoutHook] = None):
        self.on_timeout = on_timeout
        self._timers: Dict[str, asyncio.Task] = {}
        self._generations = itertools.count(1)

    def arm(self, session: Session, waiting: AwaitingInput) -> Optional[AwaitingInput]:
        previous = session.awaiting_input
        if previous is not None:
            self._cancel_timer(session.id)
            logger.warning("awaiting_input_replaced", session_id=session.id,
                           previous_key=previous.key, key=waiting.key)
        waiting.generation = next(self._generations)
        session.awaiting_input = waiting
        if waiting.timeout and waiting.timeout > 0:
            self._timers[session.id] = asyncio.create_task(
                self._expire_later(session, waiting.generation, waiting.timeout)
            )
        logger.info("awaiting_input_armed", session_id=session.id, key=waiting.key,
                    input_type=waiting.input_type, timeout=waiting.timeout)
        return previous

    def is_waiting(self, session: Session) -> bool:
        return session.awaiting_input is not None

    def matches(self, waiting: AwaitingInput, kind: str) -> bool:
        if kind not in ("text", "document", "contact"):
            return False
        if waiting.input_type == "any" or waiting.input_type == kind:
            return True
        return kind == "document" and waiting.allow_attachments

    def clear(self, session: Session) -> Optional[AwaitingInput]:
        """Снимает ожидание (завершение или отмена), возвращает снятую запись."""
        waiting = session.awaiting_input
        session.awaiting_input = None
        self._cancel_timer(session.id)
        return waiting

    def expire(self, session: Session, generation: int) -> Optional[AwaitingInput]:
        """Снимает ожидание по таймауту, только если оно не было заменено или завершено."""
        waiting = session.awaiting_input
        if waiting is None or waiting.generation != generation:
            return None
        session.awaiting_input = None
        self._timers.pop(session.id, None)
        logger.info("awaiting_input_timeout", session_id=session.id, key=waiting.key)
        return waiting

    def forget(self, session_id: str) -> None:
        self._cancel_timer(session_id)

    def close(self) -> None:
        for task in self._timers.values():
            task.cancel()
        self._timers.clear()

    async def _expire_later(self, session: Session, generation: int, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.on_timeout is not None:
            await self.on_timeout(session.id, generation)
        else:
            self.expire(session, generation)

    def _cancel_timer(self, session_id: str) -> None:
        task = self._timers.pop(session_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()


def extract_input(kind: str, text: Optional[str], payload: Any,
                  attachments: Optional[list]) -> Tuple[Any, list]:
    """Значение для записи в data[key] и список вложений события."""
    attachments = list(attachments or [])
    if kind == "contact":
        return payload, attachments
    if kind == "document":
        if text:
            return text, attachments
        first = attachments[0] if attachments else {}
        return first.get("file_name") or first.get("file_id"), attachments
    return text, attachments
