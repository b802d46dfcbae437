"""
processor.py — вычисление дескрипторов функций {function: Name, ...params}.

1. Имя есть в реестре: поля дескриптора интерполируются и передаются исполнителю.
2. Имя объявлено в сценарии: переданные параметры накладываются на объявленные
   значения по умолчанию, вычисляется выражение result; если результат —
   дескриптор действия, он выполняется и возвращается.
3. Иначе ResolutionError.
"""

import inspect
from typing import TYPE_CHECKING, Any, Dict, FrozenSet

import structlog

from dialog.exceptions import ResolutionError
from functions.base import FunctionCall
from interpolation.engine import interpolate_string, is_action_descriptor, is_function_descriptor
from registry.function_registry import FunctionRegistry

if TYPE_CHECKING:
    from actions.processor import ActionProcessor
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.functions")


class FunctionProcessor:
    def __init__(self, registry: FunctionRegistry, actions: "ActionProcessor"):
        self.registry = registry
        self.actions = actions

    async def resolve(self, value: Any, ctx: "ProcessingContext",
                      skip: FrozenSet[str] = frozenset()) -> Any:
        """
        Интерполирует значение и сразу вычисляет вложенные дескрипторы функций.
        Ключи верхнего уровня из skip остаются как есть.
        """
        if is_function_descriptor(value):
            return await self.evaluate(value, ctx)
        if isinstance(value, str):
            if "{{" not in value:
                return value
            return await interpolate_string(value, ctx.interpolation())
        if isinstance(value, list):
            return [await self.resolve(item, ctx) for item in value]
        if isinstance(value, dict):
            resolved = {}
            for key, item in value.items():
                resolved[key] = item if key in skip else await self.resolve(item, ctx)
            return resolved
        return value

    async def evaluate(self, descriptor: Dict[str, Any], ctx: "ProcessingContext") -> Any:
        name = descriptor.get("function")
        raw = {key: value for key, value in descriptor.items() if key != "function"}

        executor = self.registry.get(name)
        if executor is not None:
            return await self._run_executor(name, executor, raw, ctx)

        if self.has_scenario_function(name):
            provided = await self.resolve(raw, ctx)
            return await self.call_scenario_function(name, provided, ctx)

        raise ResolutionError(name, "function")

    async def call(self, name: str, params: Dict[str, Any], ctx: "ProcessingContext") -> Any:
        """
        Вызов по имени с уже вычисленными аргументами (короткая запись {{Fn:k:v}},
        FlowManager.call_function). Значения повторно не интерполируются.
        """
        executor = self.registry.get(name)
        if executor is not None:
            return await self._run_executor(name, executor, dict(params), ctx, resolved=True)

        if self.has_scenario_function(name):
            return await self.call_scenario_function(name, dict(params), ctx)

        raise ResolutionError(name, "function")

    def has_scenario_function(self, name: str) -> bool:
        scenario = self.actions.scenario
        return scenario is not None and name in (scenario.functions or {})

    async def call_scenario_function(self, name: str, provided: Dict[str, Any],
                                     ctx: "ProcessingContext") -> Any:
        definition = self.actions.scenario.functions.get(name) or {}
        defaults = definition.get("params") or {}
        if not isinstance(defaults, dict):
            logger.warning("scenario_function_bad_params", function=name)
            defaults = {}

        params = await self.resolve(defaults, ctx)
        for key, value in provided.items():
            if value is not None:
                params[key] = value

        logger.debug("scenario_function_called", function=name, params=list(params))
        with ctx.scope.scope():
            return await self.evaluate_result(definition.get("result"), ctx.with_params(params))

    async def evaluate_result(self, result: Any, ctx: "ProcessingContext") -> Any:
        if is_function_descriptor(result):
            return await self.evaluate(result, ctx)
        value = await self.resolve(result, ctx)
        if is_action_descriptor(value):
            await self.actions.process_actions(value, ctx)
        return value

    async def _run_executor(self, name: str, executor, raw: Dict[str, Any], ctx: "ProcessingContext",
                            resolved: bool = False) -> Any:
        skip = getattr(executor, "lazy_params", frozenset())
        params = raw if resolved else await self.resolve(raw, ctx, skip=skip)
        call = FunctionCall(name=name, params=params, context=ctx, processor=self)
        with ctx.scope.scope():
            result = executor(params, call)
            if inspect.isawaitable(result):
                result = await result
        if self.actions.metrics is not None:
            self.actions.metrics.record_function(name)
        logger.debug("function_evaluated", function=name, session_id=ctx.session.id)
        return result
