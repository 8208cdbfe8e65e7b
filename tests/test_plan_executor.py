import pytest

from agent.executor_agent import PlanExecutor
from agent.tools.base import FunctionTool
from agent.tools.registry import ToolRegistry
from core.errors import ExecutionError, ToolError, ValidationError
from models.plan import LiteralValue, Reference, load_plan, parse_value


def _plan(*steps, goal="test"):
    return load_plan({"goal": goal, "steps": list(steps)})


@pytest.mark.asyncio
async def test_steps_run_in_declaration_order(ctx):
    order = []

    def recorder(name):
        async def run(input, ctx):
            order.append(name)
            return name
        return FunctionTool(name, run)

    registry = ToolRegistry([recorder(f"t{i}") for i in range(4)])
    plan = _plan(*[{"name": f"s{i}", "tool": f"t{i}", "input": {}} for i in range(4)])

    store = await PlanExecutor(registry).execute(plan, ctx)

    assert order == ["t0", "t1", "t2", "t3"]
    assert store == {"s0": "t0", "s1": "t1", "s2": "t2", "s3": "t3"}


@pytest.mark.asyncio
async def test_reference_substitutes_whole_step_result(ctx, echo_registry):
    # "$a" resolves to the whole stored result of step a, not to a field of it
    plan = _plan(
        {"name": "a", "tool": "echo", "input": {"v": "1"}},
        {"name": "b", "tool": "echo", "input": {"v": "$a"}},
    )
    store = await PlanExecutor(echo_registry).execute(plan, ctx)
    assert store == {"a": {"v": "1"}, "b": {"v": {"v": "1"}}}


@pytest.mark.asyncio
async def test_nested_references_and_initial_seeds(ctx, echo_registry):
    plan = _plan(
        {"name": "a", "tool": "echo", "input": {"x": {"deep": ["$seed", 2]}}},
    )
    store = await PlanExecutor(echo_registry).execute(plan, ctx, initial={"seed": "S"})
    assert store["a"] == {"x": {"deep": ["S", 2]}}
    assert store["seed"] == "S"


@pytest.mark.asyncio
async def test_step_may_not_reuse_an_initial_name(ctx, echo_registry):
    plan = _plan({"name": "symbols", "tool": "echo", "input": {"v": 1}})
    seed = {"symbols": ["BTC"]}

    with pytest.raises(ValidationError):
        await PlanExecutor(echo_registry).execute(plan, ctx, initial=seed)
    assert seed == {"symbols": ["BTC"]}

    events = [e async for e in PlanExecutor(echo_registry).stream(plan, ctx, initial=seed)]
    assert [e.type for e in events] == ["error"]
    assert events[0].step == "validation"


@pytest.mark.asyncio
async def test_double_sentinel_is_a_literal(ctx, echo_registry):
    plan = _plan({"name": "a", "tool": "echo", "input": {"price": "$$5"}})
    store = await PlanExecutor(echo_registry).execute(plan, ctx)
    assert store["a"] == {"price": "$5"}


@pytest.mark.asyncio
async def test_failure_stops_remaining_steps(ctx):
    ran = []

    async def ok(input, ctx):
        ran.append(input["i"])
        return input["i"]

    async def fail(input, ctx):
        ran.append(input["i"])
        raise RuntimeError("third step exploded")

    registry = ToolRegistry([FunctionTool("ok", ok), FunctionTool("fail", fail)])
    plan = _plan(*[
        {"name": f"s{i}", "tool": "fail" if i == 3 else "ok", "input": {"i": i}}
        for i in range(1, 6)
    ])
    executor = PlanExecutor(registry)

    with pytest.raises(ToolError) as exc:
        await executor.execute(plan, ctx)
    assert exc.value.step == "s3"
    assert exc.value.tool == "fail"
    assert ran == [1, 2, 3]

    ran.clear()
    events = [e async for e in executor.stream(plan, ctx)]
    terminal = [e for e in events if e.is_terminal]
    assert ran == [1, 2, 3]
    assert len(terminal) == 1
    assert terminal[0].type == "error"
    assert terminal[0].step == "s3"
    assert "third step exploded" in terminal[0].message
    assert events[-1] is terminal[0]


@pytest.mark.asyncio
async def test_unknown_tool(ctx, echo_registry):
    plan = _plan({"name": "a", "tool": "nope", "input": {}})
    with pytest.raises(ExecutionError, match="Tool 'nope' not found"):
        await PlanExecutor(echo_registry).execute(plan, ctx)


@pytest.mark.asyncio
async def test_missing_reference_fails_fast(ctx, echo_registry):
    plan = _plan({"name": "a", "tool": "echo", "input": {"v": "$undefined"}})
    with pytest.raises(ExecutionError, match="undefined"):
        await PlanExecutor(echo_registry).execute(plan, ctx)


@pytest.mark.asyncio
async def test_stream_emits_progress_then_complete(ctx, echo_registry):
    plan = _plan(
        {"name": "a", "tool": "echo", "input": {"v": 1}},
        {"name": "b", "tool": "echo", "input": {"v": "$a"}},
    )
    events = [e async for e in PlanExecutor(echo_registry).stream(plan, ctx)]

    assert [(e.type, e.step) for e in events] == [
        ("progress", "a"), ("progress", "a"),
        ("progress", "b"), ("progress", "b"),
        ("complete", "complete"),
    ]
    assert events[-1].data == {"a": {"v": 1}, "b": {"v": {"v": 1}}}
    timestamps = [e.timestamp for e in events]
    assert timestamps == sorted(timestamps)


def test_forward_reference_is_rejected():
    with pytest.raises(ValidationError, match="not an earlier step"):
        _plan(
            {"name": "a", "tool": "echo", "input": {"v": "$b"}},
            {"name": "b", "tool": "echo", "input": {}},
        )


def test_self_reference_is_rejected():
    with pytest.raises(ValidationError):
        _plan({"name": "a", "tool": "echo", "input": {"v": "$a"}})


def test_duplicate_step_names_are_rejected():
    with pytest.raises(ValidationError, match="Duplicate step name"):
        _plan(
            {"name": "a", "tool": "echo", "input": {}},
            {"name": "a", "tool": "echo", "input": {}},
        )


def test_missing_step_fields_are_rejected():
    with pytest.raises(ValidationError, match="Invalid plan"):
        load_plan({"steps": [{"name": "a"}]})


def test_parse_value():
    assert parse_value("$prices") == Reference("prices")
    assert parse_value("$$prices") == LiteralValue("$prices")
    assert parse_value("plain") == LiteralValue("plain")
    assert parse_value({"a": ["$x", 1]}) == {"a": [Reference("x"), LiteralValue(1)]}
    with pytest.raises(ValidationError):
        parse_value("$")
