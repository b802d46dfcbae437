"""
arithmetic.py — Plus, Minus, Multiply, Divide, Mod.

Операнды сворачиваются слева направо; строки разбираются как числа
("12" -> 12, "1.5" -> 1.5); нечисловой операнд — EvaluationError.
"""

import math
from typing import Any, Dict, List

from dialog.exceptions import EvaluationError
from functions.base import FunctionCall, normalize_number, to_number


def _operands(params: Dict[str, Any], function: str) -> List:
    values = params.get("values")
    if not isinstance(values, list):
        raise EvaluationError(f'{function} function requires "values" parameter as array')
    return [to_number(value, function) for value in values]


def plus(params: Dict[str, Any], call: FunctionCall):
    return normalize_number(sum(_operands(params, "Plus")))


def minus(params: Dict[str, Any], call: FunctionCall):
    numbers = _operands(params, "Minus")
    if not numbers:
        return 0
    if len(numbers) == 1:
        return normalize_number(-numbers[0])
    result = numbers[0]
    for number in numbers[1:]:
        result -= number
    return normalize_number(result)


def multiply(params: Dict[str, Any], call: FunctionCall):
    result = 1
    for number in _operands(params, "Multiply"):
        result *= number
    return normalize_number(result)


def divide(params: Dict[str, Any], call: FunctionCall):
    numbers = _operands(params, "Divide")
    if not numbers:
        raise EvaluationError("Divide function requires at least one value")
    if len(numbers) == 1:
        if numbers[0] == 0:
            raise EvaluationError("Divide function: division by zero")
        return normalize_number(1 / numbers[0])
    result = numbers[0]
    for number in numbers[1:]:
        if number == 0:
            raise EvaluationError("Divide function: division by zero")
        result /= number
    return normalize_number(result)


def mod(params: Dict[str, Any], call: FunctionCall):
    dividend = params.get("dividend")
    divisor = params.get("divisor")
    if dividend is None or divisor is None:
        raise EvaluationError('Mod function requires "dividend" and "divisor" parameters')
    dividend = to_number(dividend, "Mod")
    divisor = to_number(divisor, "Mod")
    if divisor == 0:
        raise EvaluationError("Mod function: modulo by zero")
    # Знак результата следует за делимым: Mod(-17, 5) = -2
    return normalize_number(math.fmod(dividend, divisor))


ARITHMETIC_FUNCTIONS = {
    "Plus": plus,
    "Minus": minus,
    "Multiply": multiply,
    "Divide": divide,
    "Mod": mod,
}
