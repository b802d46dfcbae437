"""
action_mapping.py — таблица callback-id для inline-кнопок.

Граф действий кнопки хранится под коротким id ("a1", "a2", ...), который
помещается в callback_data (лимит Telegram 64 байта). Id предсказуемы,
поэтому запись привязана к сессии, создавшей кнопку: нажатие из другой
сессии считается устаревшим. При переполнении удаляется старшая половина
записей по порядку вставки; это не LRU.
"""

from collections import OrderedDict
from typing import Any, Iterable, NamedTuple, Optional

import structlog

logger = structlog.get_logger("scenario_bot.action_mapping")


class CallbackEntry(NamedTuple):
    owner: Optional[str]
    graph: Any


class ActionMappingTable:
    def __init__(self, capacity: int = 1000):
        self.capacity = max(2, int(capacity))
        self._entries: "OrderedDict[str, CallbackEntry]" = OrderedDict()
        self._counter = 0

    def register(self, graph: Any, owner: Optional[str] = None) -> str:
        self._counter += 1
        action_id = f"a{self._counter}"
        self._entries[action_id] = CallbackEntry(None if owner is None else str(owner), graph)
        if len(self._entries) > self.capacity:
            self._evict_oldest_half()
        return action_id

    def get(self, action_id: str, owner: Optional[str] = None) -> Optional[Any]:
        """Граф кнопки; None, если id неизвестен или кнопка принадлежит другой сессии."""
        entry = self._entries.get(action_id)
        if entry is None:
            return None
        if owner is not None and entry.owner is not None and entry.owner != str(owner):
            logger.warning("callback_owner_mismatch", action_id=action_id, session_id=str(owner))
            return None
        return entry.graph

    def remove(self, action_id: str) -> bool:
        return self._entries.pop(action_id, None) is not None

    def remove_many(self, action_ids: Iterable[str]) -> int:
        return sum(1 for action_id in list(action_ids) if self.remove(action_id))

    def _evict_oldest_half(self) -> None:
        drop = len(self._entries) // 2
        for _ in range(drop):
            self._entries.popitem(last=False)
        logger.info("callback_table_evicted", dropped=drop, remaining=len(self._entries))

    def __contains__(self, action_id: str) -> bool:
        return action_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
