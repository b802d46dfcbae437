"""
function_registry.py — таблица имя функции -> исполнитель.

Исполнитель: callable(params, call) -> значение (sync или async),
где call — functions.base.FunctionCall.
"""

from typing import Any, Callable, Dict, List, Optional

import structlog

from dialog.exceptions import RegistrationError

logger = structlog.get_logger("scenario_bot.function_registry")

FunctionExecutor = Callable[..., Any]


class FunctionRegistry:
    def __init__(self):
        self._functions: Dict[str, FunctionExecutor] = {}
        self._builtin: set = set()

    def register(self, name: str, executor: FunctionExecutor, overwrite: bool = False,
                 verbose: bool = True, builtin: bool = False) -> None:
        if not name:
            raise RegistrationError("Function name must not be empty")
        if not callable(executor):
            raise RegistrationError(f"Function '{name}' executor is not callable")
        if name in self._functions and not overwrite:
            raise RegistrationError(f"Function '{name}' already registered. Use overwrite=True to replace.")
        self._functions[name] = executor
        if builtin:
            self._builtin.add(name)
        else:
            self._builtin.discard(name)
        if verbose:
            logger.info("function_registered", function=name, builtin=builtin)

    def unregister(self, name: str) -> bool:
        self._builtin.discard(name)
        return self._functions.pop(name, None) is not None

    def get(self, name: str) -> Optional[FunctionExecutor]:
        return self._functions.get(name)

    def has(self, name: str) -> bool:
        return name in self._functions

    def is_builtin(self, name: str) -> bool:
        return name in self._builtin

    def names(self) -> List[str]:
        return list(self._functions)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        return len(self._functions)
