"""
registry_manager.py — точка регистрации действий и функций.

Создаётся один раз при старте и передаётся процессорам явно.
Встроенные действия/функции регистрируются в initialize(); повторный
вызов безопасен. Замена существующей записи требует overwrite=True.
"""

import asyncio
import functools
from typing import Any, Callable, Dict, Mapping

import structlog

from dialog.exceptions import RegistrationError
from registry.action_registry import ActionRegistry
from registry.function_registry import FunctionRegistry

logger = structlog.get_logger("scenario_bot.registry")


class RegistryManager:
    def __init__(self):
        self.actions = ActionRegistry()
        self.functions = FunctionRegistry()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> "RegistryManager":
        if self._initialized:
            logger.warning("registry_already_initialized")
            return self

        # Импорт здесь: встроенные модули сами зависят от registry/*
        from actions.builtins import BUILTIN_ACTIONS
        from functions.builtins import BUILTIN_FUNCTIONS

        for action_class in BUILTIN_ACTIONS:
            for action_type in (action_class.action_type, *action_class.aliases):
                self.actions.register_builtin(action_type, action_class)
        for name, executor in BUILTIN_FUNCTIONS.items():
            self.functions.register(name, executor, verbose=False, builtin=True)

        self._initialized = True
        logger.info("registry_initialized", actions=len(self.actions), functions=len(self.functions))
        return self

    def _require_initialized(self, what: str) -> None:
        if not self._initialized:
            raise RegistrationError(f"RegistryManager must be initialized before registering {what}")

    def register_action(self, action_type: str, factory: Callable[..., Any],
                        overwrite: bool = False, verbose: bool = True) -> None:
        """
        factory — класс-наследник BaseAction, любая фабрика без аргументов
        с методом process(), либо async-функция (descriptor, context).
        """
        self._require_initialized("actions")
        if asyncio.iscoroutinefunction(factory):
            from actions.base import CallableAction
            factory = functools.partial(CallableAction, action_type, factory)
        self.actions.register(action_type, factory, overwrite=overwrite, verbose=verbose)

    def register_function(self, name: str, executor: Callable[..., Any],
                          overwrite: bool = False, verbose: bool = True) -> None:
        self._require_initialized("functions")
        self.functions.register(name, executor, overwrite=overwrite, verbose=verbose)

    def register_actions(self, actions: Mapping[str, Callable[..., Any]], overwrite: bool = False,
                         verbose: bool = True) -> None:
        for action_type, factory in actions.items():
            self.register_action(action_type, factory, overwrite=overwrite, verbose=False)
        if verbose:
            logger.info("actions_registered", actions=list(actions))

    def register_functions(self, functions: Mapping[str, Callable[..., Any]], overwrite: bool = False,
                           verbose: bool = True) -> None:
        for name, executor in functions.items():
            self.register_function(name, executor, overwrite=overwrite, verbose=False)
        if verbose:
            logger.info("functions_registered", functions=list(functions))

    def unregister_action(self, action_type: str) -> bool:
        return self.actions.unregister(action_type)

    def unregister_function(self, name: str) -> bool:
        return self.functions.unregister(name)

    def describe(self) -> Dict[str, Any]:
        return {"actions": self.actions.names(), "functions": self.functions.names()}
