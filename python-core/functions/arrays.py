"""
arrays.py — работа со списками: JoinToString, CombineArrays, ArraySize, Map.
"""

from typing import Any, Dict, List

import structlog

from dialog.exceptions import EvaluationError
from functions.base import FunctionCall, lazy_params
from interpolation.engine import format_value

logger = structlog.get_logger("scenario_bot.functions.arrays")


def join_to_string(params: Dict[str, Any], call: FunctionCall) -> str:
    values = params.get("values")
    separator = format_value(params.get("separator", ""))
    prefix = format_value(params.get("prefix", ""))
    suffix = format_value(params.get("suffix", ""))
    if not isinstance(values, list):
        logger.warning("join_values_not_list", value_type=type(values).__name__)
        return ""

    parts = [format_value(value) for value in values if value is not None]
    parts = [part for part in parts if part != ""]
    call.scope.set_variable("count", len(parts))
    return prefix + separator.join(parts) + suffix


def combine_arrays(params: Dict[str, Any], call: FunctionCall) -> List[Any]:
    arrays = params.get("arrays")
    if not isinstance(arrays, list):
        raise EvaluationError("CombineArrays function requires arrays parameter (array of arrays)")

    combined: List[Any] = []
    for index, array in enumerate(arrays):
        if not isinstance(array, list):
            if array is not None:
                logger.warning("combine_skipped_non_list", index=index, value_type=type(array).__name__)
            continue
        combined.extend(array)
    return combined


def array_size(params: Dict[str, Any], call: FunctionCall) -> int:
    if "value" not in params or params["value"] is None:
        raise EvaluationError('ArraySize function requires a "value" parameter')
    value = params["value"]
    if not isinstance(value, list):
        raise EvaluationError(
            f"ArraySize function: value parameter must be an array, got {type(value).__name__}"
        )
    return len(value)


@lazy_params("forEach")
async def map_items(params: Dict[str, Any], call: FunctionCall) -> List[Any]:
    """Шаблон forEach вычисляется для каждого элемента в своей области: it, index."""
    items = params.get("items")
    if not isinstance(items, list):
        raise EvaluationError(f"Map function: items parameter must be an array, got {type(items).__name__}")
    template = params.get("forEach")
    if template is None:
        raise EvaluationError("Map function: forEach parameter is required")

    results = []
    for index, item in enumerate(items):
        with call.scope.scope({"it": item, "index": index}):
            results.append(await call.interpolate(template))
    return results


ARRAY_FUNCTIONS = {
    "JoinToString": join_to_string,
    "CombineArrays": combine_arrays,
    "ArraySize": array_size,
    "Map": map_items,
}
