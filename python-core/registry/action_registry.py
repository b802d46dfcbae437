"""
action_registry.py — таблица тип действия -> фабрика обработчика.

Порядок поиска: пользовательский обработчик точного типа -> встроенный
обработчик точного типа -> "*" (если зарегистрирован) -> None.
"""

from typing import Any, Callable, Dict, List, Optional

import structlog

from dialog.exceptions import RegistrationError

logger = structlog.get_logger("scenario_bot.action_registry")

WILDCARD = "*"

# Фабрика без аргументов, возвращающая объект с async process(descriptor, context)
ActionFactory = Callable[[], Any]


class ActionRegistry:
    def __init__(self):
        self._builtin: Dict[str, ActionFactory] = {}
        self._custom: Dict[str, ActionFactory] = {}

    def register_builtin(self, action_type: str, factory: ActionFactory) -> None:
        self._builtin[action_type] = factory

    def register(self, action_type: str, factory: ActionFactory, overwrite: bool = False,
                 verbose: bool = True) -> None:
        if not action_type:
            raise RegistrationError("Action type must not be empty")
        if not callable(factory):
            raise RegistrationError(f"Action '{action_type}' factory is not callable")
        if self.has(action_type) and not overwrite:
            raise RegistrationError(f"Action '{action_type}' already registered. Use overwrite=True to replace.")
        self._custom[action_type] = factory
        if verbose:
            logger.info("action_registered", action=action_type)

    def unregister(self, action_type: str) -> bool:
        """Снимает пользовательский обработчик; встроенный снова становится видимым."""
        return self._custom.pop(action_type, None) is not None

    def has(self, action_type: str) -> bool:
        """Есть ли обработчик именно этого типа (без учёта "*")."""
        return action_type in self._custom or action_type in self._builtin

    def resolve(self, action_type: str) -> Optional[ActionFactory]:
        for table in (self._custom, self._builtin):
            if action_type in table:
                return table[action_type]
        for table in (self._custom, self._builtin):
            if WILDCARD in table:
                return table[WILDCARD]
        return None

    def names(self) -> List[str]:
        return list(dict.fromkeys([*self._builtin, *self._custom]))

    def __len__(self) -> int:
        return len(self.names())
