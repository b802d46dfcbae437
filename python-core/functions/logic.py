"""
logic.py — условные функции: Compare, Equals, Switch, IsNotEmpty.
"""

from typing import Any, Dict

from dialog.exceptions import EvaluationError
from functions.base import FunctionCall, lazy_params, to_number
from interpolation.engine import TOKEN_RE

COMPARE_OPERATORS = {
    "more": lambda a, b: a > b,
    ">": lambda a, b: a > b,
    "moreThanOrEquals": lambda a, b: a >= b,
    ">=": lambda a, b: a >= b,
    "equals": lambda a, b: a == b,
    "==": lambda a, b: a == b,
    "===": lambda a, b: a == b,
    "less": lambda a, b: a < b,
    "<": lambda a, b: a < b,
    "lessThanOrEquals": lambda a, b: a <= b,
    "<=": lambda a, b: a <= b,
}


def strict_equal(left: Any, right: Any) -> bool:
    """Равенство без неявных приведений: 1 != "1", True != 1, но 1 == 1.0."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def compare(params: Dict[str, Any], call: FunctionCall) -> bool:
    for name in ("value1", "value2"):
        if params.get(name) is None:
            raise EvaluationError(f'Compare function requires "{name}" parameter')
    operator = params.get("operator")
    if not operator:
        raise EvaluationError('Compare function requires "operator" parameter')
    check = COMPARE_OPERATORS.get(str(operator))
    if check is None:
        raise EvaluationError(f'Compare function: unknown operator "{operator}"')
    return check(to_number(params["value1"], "Compare"), to_number(params["value2"], "Compare"))


@lazy_params("trueResult", "falseResult")
async def equals(params: Dict[str, Any], call: FunctionCall) -> Any:
    values = params.get("values")
    if not isinstance(values, list):
        raise EvaluationError('Equals function requires "values" parameter as array')
    are_equal = all(strict_equal(value, values[0]) for value in values[1:])
    call.scope.set_variable("areEqual", are_equal)

    branch = params.get("trueResult") if are_equal else params.get("falseResult")
    if branch is not None:
        return await call.evaluate(branch)
    return are_equal


@lazy_params("cases", "defaultResult")
async def switch(params: Dict[str, Any], call: FunctionCall) -> Any:
    value = params.get("value")
    cases = params.get("cases") or []
    if not isinstance(cases, list):
        raise EvaluationError('Switch function requires "cases" parameter as array')

    for case in cases:
        if not isinstance(case, dict):
            continue
        match = await call.interpolate(case.get("match"))
        if strict_equal(value, match):
            return await call.evaluate(case.get("result"))

    if "defaultResult" in params:
        return await call.evaluate(params["defaultResult"])
    return None


def is_not_empty(params: Dict[str, Any], call: FunctionCall) -> bool:
    value = params.get("value")
    if value is None:
        return False
    if isinstance(value, str):
        # Нерешённый токен {{...}} считается пустым значением
        return bool(TOKEN_RE.sub("", value).strip())
    if isinstance(value, (list, dict)):
        return len(value) > 0
    return True


LOGIC_FUNCTIONS = {
    "Compare": compare,
    "Equals": equals,
    "Switch": switch,
    "IsNotEmpty": is_not_empty,
}
