"""
Юнит-тесты для FunctionProcessor (functions/processor.py): реестр, функции сценария, ошибки.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from conftest import FakeTransport, make_context, make_engine, make_scenario
from dialog.exceptions import ResolutionError
from functions.base import lazy_params


def engine_with_functions(functions, transport=None, **data):
    return make_engine(make_scenario(functions=functions, **data), transport or FakeTransport())


@pytest.mark.asyncio
async def test_unknown_function_raises_resolution_error(ctx):
    with pytest.raises(ResolutionError) as exc:
        await ctx.processor.functions.evaluate({"function": "NoSuchThing"}, ctx)
    assert exc.value.name == "NoSuchThing"


@pytest.mark.asyncio
async def test_scenario_function_overlays_defaults():
    engine = engine_with_functions({
        "Greet": {
            "params": {"name": "guest", "greeting": "Hello"},
            "result": "{{greeting}}, {{name}}!",
        },
    })
    ctx = make_context(engine)
    functions = engine.processor.functions
    assert await functions.evaluate({"function": "Greet"}, ctx) == "Hello, guest!"
    assert await functions.evaluate({"function": "Greet", "name": "Ann"}, ctx) == "Hello, Ann!"
    assert ctx.scope.depth == 0


@pytest.mark.asyncio
async def test_scenario_function_params_tier_beats_data():
    engine = engine_with_functions({"Who": {"params": {"name": "param"}, "result": "{{name}}"}}, name="data")
    ctx = make_context(engine)
    assert await engine.processor.functions.evaluate({"function": "Who"}, ctx) == "param"
    assert await engine.processor.functions.evaluate({"function": "Who", "name": None}, ctx) == "param"


@pytest.mark.asyncio
async def test_scenario_function_with_nested_function_result():
    engine = engine_with_functions({
        "Total": {
            "params": {"price": 10, "qty": 1},
            "result": {"function": "Multiply", "values": ["{{params.price}}", "{{params.qty}}"]},
        },
    })
    ctx = make_context(engine)
    assert await engine.processor.functions.evaluate({"function": "Total", "qty": 3}, ctx) == 30


@pytest.mark.asyncio
async def test_scenario_function_action_result_is_dispatched():
    transport = FakeTransport()
    engine = engine_with_functions({
        "Notify": {
            "params": {"text": "default"},
            "result": {"action": "SendMessage", "text": "Note: {{text}}"},
        },
    }, transport=transport)
    ctx = make_context(engine)
    result = await engine.processor.functions.evaluate({"function": "Notify", "text": "hi"}, ctx)
    assert result == {"action": "SendMessage", "text": "Note: hi"}
    assert transport.texts == ["Note: hi"]


@pytest.mark.asyncio
async def test_custom_sync_and_async_functions(engine, ctx):
    registries = engine.processor.registries

    def double(params, call):
        return params["value"] * 2

    async def greet(params, call):
        return f"hi {call.session.id}"

    registries.register_function("Double", double)
    registries.register_function("Greet", greet)
    functions = engine.processor.functions
    assert await functions.evaluate({"function": "Double", "value": 21}, ctx) == 42
    assert await functions.evaluate({"function": "Greet"}, ctx) == "hi 1"


@pytest.mark.asyncio
async def test_lazy_params_are_not_resolved(engine, ctx):
    seen = {}

    @lazy_params("template")
    def capture(params, call):
        seen.update(params)
        return "ok"

    engine.processor.registries.register_function("Capture", capture)
    ctx.session.data["x"] = 1
    await engine.processor.functions.evaluate({"function": "Capture", "template": "{{x}}", "other": "{{x}}"}, ctx)
    assert seen == {"template": "{{x}}", "other": 1}


@pytest.mark.asyncio
async def test_shorthand_calls_registry(ctx):
    ctx.session.data["a"] = 2
    value = await ctx.processor.functions.resolve("Sum: {{Plus:values:1:a:3}}", ctx)
    assert value == "Sum: 6"


@pytest.mark.asyncio
async def test_call_by_name(ctx):
    assert await ctx.processor.functions.call("Plus", {"values": [1, 2]}, ctx) == 3


@pytest.mark.asyncio
async def test_function_metrics_recorded(engine, ctx, metrics):
    await ctx.processor.functions.evaluate({"function": "Plus", "values": [1]}, ctx)
    value = metrics.registry.get_sample_value("scenario_functions_total", {"function": "Plus"})
    assert value == 1.0


@pytest.mark.asyncio
async def test_shorthand_arguments_are_not_interpolated_twice(ctx):
    ctx.session.data["name"] = "{{env.version}}"
    functions = ctx.processor.functions
    assert await functions.resolve("{{JoinToString:values:name}}", ctx) == "{{env.version}}"
    assert await functions.evaluate({"function": "JoinToString", "values": ["{{name}}"]}, ctx) == "{{env.version}}"

    ctx.session.data["name"] = "{{Divide:values:0}}"
    assert await functions.resolve("{{JoinToString:values:name}}", ctx) == "{{Divide:values:0}}"


@pytest.mark.asyncio
async def test_call_passes_values_verbatim(ctx):
    result = await ctx.processor.functions.call("JoinToString", {"values": ["{{greeting}}", "x"], "separator": "-"}, ctx)
    assert result == "{{greeting}}-x"
