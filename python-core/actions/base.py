"""
base.py — базовый класс обработчиков действий.

process(): кладёт в стек фрейм с полями действия, интерполирует параметры
(кроме вложенных графов), выполняет execute() и снимает фрейм в любом случае.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, FrozenSet, Optional, Tuple

from dialog.exceptions import EvaluationError

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext


class BaseAction(ABC):
    action_type: str = ""
    aliases: Tuple[str, ...] = ()
    # Поля с вложенными графами: интерполируются в момент выполнения графа
    graph_fields: FrozenSet[str] = frozenset()

    async def process(self, descriptor: Dict[str, Any], ctx: "ProcessingContext") -> None:
        fields = {key: value for key, value in descriptor.items() if key != "action"}
        with ctx.scope.scope(fields):
            params = await ctx.processor.functions.resolve(fields, ctx, skip=self.graph_fields)
            await self.execute(params, ctx)

    @abstractmethod
    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        ...

    async def run_graph(self, graph: Any, ctx: "ProcessingContext",
                        local: Optional[Dict[str, Any]] = None) -> None:
        if not graph:
            return
        with ctx.scope.scope(local or {}):
            await ctx.processor.process_actions(graph, ctx)

    def require(self, params: Dict[str, Any], name: str) -> Any:
        value = params.get(name)
        if value is None or value == "":
            raise EvaluationError(f'{self.action_type} action requires "{name}"')
        return value


class CallableAction(BaseAction):
    """Обёртка для действий-плагинов, заданных async-функцией (params, context)."""

    def __init__(self, action_type: str, handler: Callable[[Dict[str, Any], "ProcessingContext"], Awaitable[None]]):
        self.action_type = action_type
        self.handler = handler

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        await self.handler(params, ctx)


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
