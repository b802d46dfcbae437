"""
base.py — общие части встроенных функций: контекст вызова, разбор чисел, ленивые параметры.
"""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from dialog.exceptions import EvaluationError

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext
    from functions.processor import FunctionProcessor

NUMBER_PREFIX_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

Number = Union[int, float]


def lazy_params(*names: str):
    """
    Параметры, которые процессор не вычисляет заранее: шаблоны и ветки,
    которые функция вычисляет сама (Map.forEach, Equals.trueResult...).
    """
    def decorator(executor):
        executor.lazy_params = frozenset(names)
        return executor
    return decorator


@dataclass
class FunctionCall:
    name: str
    params: Dict[str, Any]
    context: "ProcessingContext"
    processor: "FunctionProcessor"

    @property
    def session(self):
        return self.context.session

    @property
    def scope(self):
        return self.context.scope

    async def evaluate(self, value: Any) -> Any:
        """Вычисляет выражение: дескриптор функции, шаблон или структура с токенами."""
        return await self.processor.evaluate_result(value, self.context)

    async def interpolate(self, value: Any) -> Any:
        return await self.processor.resolve(value, self.context)

    def fail(self, message: str) -> EvaluationError:
        return EvaluationError(f"{self.name} function: {message}")


def parse_number(value: Any) -> Optional[Number]:
    """Число из значения сценария, как parseFloat: '12.5px' -> 12.5, 'abc' -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = NUMBER_PREFIX_RE.match(value)
        if not match:
            return None
        text = match.group(0).strip()
        if "." in text or "e" in text.lower():
            return float(text)
        return int(text)
    return None


def to_number(value: Any, function: str) -> Number:
    number = parse_number(value)
    if number is None:
        raise EvaluationError(f'{function} function: invalid number "{value}"')
    return number


def normalize_number(value: Number) -> Number:
    """30.0 -> 30; дробные остаются float."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
