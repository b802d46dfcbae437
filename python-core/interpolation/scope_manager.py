"""
scope_manager.py — стек локальных областей видимости переменных.

Каждое действие и каждая функция кладут свой фрейм на вход и снимают его
на выходе (в том числе при ошибке). Внутренний фрейм перекрывает внешние.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

# Маркер "переменная не найдена": отличает его от найденного None
MISSING = object()


class ScopeManager:
    def __init__(self):
        self._scopes: List[Dict[str, Any]] = []

    def create_scope(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._scopes.append(dict(initial or {}))

    def set_variable(self, name: str, value: Any) -> None:
        if not self._scopes:
            self.create_scope()
        self._scopes[-1][name] = value

    def get_variable(self, name: str) -> Any:
        """Значение только из текущего фрейма, без поиска по внешним."""
        if not self._scopes:
            return MISSING
        return self._scopes[-1].get(name, MISSING)

    def find_variable(self, path: str) -> Any:
        """
        Поиск по пути с точками ("response.body.id").
        Корень ищется от внутреннего фрейма к внешнему, дальше спуск по полям
        найденного значения. Возвращает MISSING, никогда не бросает.
        """
        if not path:
            return MISSING
        root, _, rest = path.partition(".")
        for scope in reversed(self._scopes):
            if root in scope:
                value = scope[root]
                return descend(value, rest) if rest else value
        return MISSING

    def has_variable(self, path: str) -> bool:
        return self.find_variable(path) is not MISSING

    def clear_scope(self) -> None:
        if self._scopes:
            self._scopes.pop()

    @contextmanager
    def scope(self, initial: Optional[Dict[str, Any]] = None) -> Iterator["ScopeManager"]:
        self.create_scope(initial)
        try:
            yield self
        finally:
            self.clear_scope()

    @property
    def depth(self) -> int:
        return len(self._scopes)

    def current_scope(self) -> Dict[str, Any]:
        return self._scopes[-1] if self._scopes else {}

    def all_scopes(self) -> List[Dict[str, Any]]:
        return list(self._scopes)

    def merged(self) -> Dict[str, Any]:
        """Все фреймы одним словарём, внутренние поверх внешних."""
        result: Dict[str, Any] = {}
        for scope in self._scopes:
            result.update(scope)
        return result

    def clear_all(self) -> None:
        self._scopes = []


def descend(value: Any, path: str) -> Any:
    """Спуск по вложенным полям dict/list. Пустой путь возвращает само значение."""
    if not path:
        return value
    current = value
    for part in path.split("."):
        current, found = _step(current, part)
        if not found:
            return MISSING
    return current


def _step(current: Any, part: str) -> Tuple[Any, bool]:
    if isinstance(current, dict):
        if part in current:
            return current[part], True
        return None, False
    if isinstance(current, (list, tuple)) and part.lstrip("-").isdigit():
        index = int(part)
        if -len(current) <= index < len(current):
            return current[index], True
    return None, False
