"""
Юнит-тесты для JoinToString, CombineArrays, ArraySize, Map (functions/arrays.py)
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dialog.exceptions import EvaluationError


async def evaluate(ctx, descriptor):
    return await ctx.processor.functions.evaluate(descriptor, ctx)


@pytest.mark.asyncio
async def test_join_drops_null_and_empty(ctx):
    descriptor = {
        "function": "JoinToString",
        "values": ["a", None, "", "b", 3],
        "separator": ", ",
        "prefix": "[",
        "suffix": "]",
    }
    assert await evaluate(ctx, descriptor) == "[a, b, 3]"


@pytest.mark.asyncio
async def test_join_non_list_is_empty_string(ctx):
    assert await evaluate(ctx, {"function": "JoinToString", "values": "abc"}) == ""


@pytest.mark.asyncio
async def test_combine_arrays_skips_non_arrays(ctx):
    ctx.session.data["extra"] = [3, 4]
    descriptor = {"function": "CombineArrays", "arrays": [[1, 2], "x", None, "{{extra}}"]}
    assert await evaluate(ctx, descriptor) == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_array_size(ctx):
    ctx.session.data["items"] = ["a", "b", "c"]
    assert await evaluate(ctx, {"function": "ArraySize", "value": "{{items}}"}) == 3
    with pytest.raises(EvaluationError):
        await evaluate(ctx, {"function": "ArraySize", "value": "not a list"})


@pytest.mark.asyncio
async def test_map_binds_it_and_index_per_item(ctx):
    ctx.session.data["products"] = [{"name": "Tea"}, {"name": "Coffee"}]
    descriptor = {
        "function": "Map",
        "items": "{{products}}",
        "forEach": {"title": "{{index}}. {{it.name}}", "onClick": {"action": "Store", "key": "pick", "value": "{{it.name}}"}},
    }
    result = await evaluate(ctx, descriptor)
    assert result == [
        {"title": "0. Tea", "onClick": {"action": "Store", "key": "pick", "value": "Tea"}},
        {"title": "1. Coffee", "onClick": {"action": "Store", "key": "pick", "value": "Coffee"}},
    ]
    assert ctx.scope.depth == 0
    assert ctx.session.storage == {}


@pytest.mark.asyncio
async def test_map_requires_list(ctx):
    with pytest.raises(EvaluationError):
        await evaluate(ctx, {"function": "Map", "items": "nope", "forEach": "{{it}}"})


@pytest.mark.asyncio
async def test_map_function_in_template(ctx):
    descriptor = {
        "function": "Map",
        "items": [1, 2, 3],
        "forEach": {"function": "Multiply", "values": ["{{it}}", 10]},
    }
    assert await evaluate(ctx, descriptor) == [10, 20, 30]
