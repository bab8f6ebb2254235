from __future__ import annotations

import pytest

from stepcraft import dsl
from stepcraft.model import CommandStep, GroupStep, Matrix, Pipeline, Retry, StepType, TriggerStep, WaitStep


def test_command_normalises_shorthand():
    step = dsl.command("Test", "pytest", key="test", depends_on="install", agents="queue=linux, os=ubuntu")
    assert isinstance(step, CommandStep)
    assert step.depends_on == ("install",)
    assert step.agents == {"queue": "linux", "os": "ubuntu"}
    assert step.command_lines == ["pytest"]


def test_command_nested_values_are_typed():
    step = dsl.command(
        "Test",
        ["make deps", "make test"],
        matrix={"py": ["3.11", "3.12"]},
        retry=True,
        soft_fail=True,
    )
    assert step.command == ("make deps", "make test")
    assert step.matrix == Matrix(setup={"py": ("3.11", "3.12")})
    assert step.retry == Retry(automatic=True)
    assert step.soft_fail is True
    assert step.is_parallel


def test_functional_ids_are_never_reused():
    first, second = dsl.command(None, "a"), dsl.command(None, "b")
    assert first.id != second.id


def test_group_children_are_named_after_the_group():
    g = dsl.group("Checks", dsl.command("Lint", "lint"), dsl.wait(), id="g1")
    assert isinstance(g, GroupStep)
    assert [c.id for c in g.steps] == ["g1-1", "g1-2"]
    assert isinstance(g.steps[1], WaitStep)


def test_group_requires_steps():
    with pytest.raises(ValueError, match="at least one step"):
        dsl.group("Empty")


def test_trigger_async_and_build():
    step = dsl.trigger("deploy", is_async=True, build={"branch": "main"})
    assert isinstance(step, TriggerStep)
    assert step.is_async
    assert step.build.branch == "main"


def test_builder_assigns_sequential_ids():
    p = (
        dsl.PipelineBuilder()
        .command("Install", "npm ci", key="install")
        .wait()
        .block("Release", prompt="Ship?")
        .input("Notes", prompt="Notes?", fields=[{"key": "notes", "text": "Notes"}])
        .trigger("deploy-app")
        .group("Checks", dsl.command("Lint", "lint"))
        .annotation("Done", style="success")
        .notify({"slack": "#ci"})
        .plugin("Docker", {"docker#v5.0.0": {"image": "node"}})
        .build()
    )
    assert isinstance(p, Pipeline)
    assert [s.id for s in p] == [f"step-{i}" for i in range(1, 10)]
    assert [s.type for s in p] == [
        StepType.COMMAND,
        StepType.WAIT,
        StepType.BLOCK,
        StepType.INPUT,
        StepType.TRIGGER,
        StepType.GROUP,
        StepType.ANNOTATION,
        StepType.NOTIFY,
        StepType.PLUGIN,
    ]
    assert p.steps[5].steps[0].id == "step-6-1"


def test_builder_keeps_explicit_ids():
    p = dsl.PipelineBuilder().command("A", "a", id="custom").wait().build()
    assert [s.id for s in p] == ["custom", "step-1"]


def test_snapshot_round_trip():
    p = dsl.pipeline(
        dsl.command(
            "Test",
            "tox",
            key="test",
            retry={"automatic": [{"exit_status": "*", "limit": 2}], "manual": {"allowed": False, "reason": "no"}},
            soft_fail=[{"exit_status": 1}],
            matrix={"setup": {"py": ["3.11"]}, "adjustments": [{"with": {"py": "3.11"}, "skip": True}]},
            if_="build.branch == 'main'",
        ),
        dsl.group("G", dsl.block("Approve", fields=[{"key": "env", "select": "Env", "options": ["a", "b"]}])),
        dsl.trigger("deploy", is_async=True, build={"env": {"A": "1"}}),
    )
    assert Pipeline.from_dict(p.to_dict()) == p


def test_builder_never_reuses_an_id_from_an_added_step():
    helper_step = dsl.command("A", "make a", key="a", id="step-1")
    p = dsl.PipelineBuilder().add(helper_step).command("B", "make b", depends_on="a").build()
    assert [s.id for s in p] == ["step-1", "step-2"]


def test_builder_renames_an_added_step_whose_id_is_taken():
    taken = dsl.command("X", "x", id="step-1")
    g = dsl.group("G", dsl.command("Lint", "lint"), id="step-1")
    p = dsl.PipelineBuilder().add(taken).add(g).build()
    assert [s.id for s in p] == ["step-1", "step-2"]
    assert p.steps[1].steps[0].id == "step-2-1"
