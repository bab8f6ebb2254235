# src/stepcraft/dsl.py
from __future__ import annotations

from dataclasses import replace
from itertools import count
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from .model import (
    AnnotationStep,
    BlockStep,
    CommandStep,
    GroupStep,
    InputStep,
    NotifyStep,
    Pipeline,
    PluginStep,
    Step,
    StepType,
    TriggerStep,
    WaitStep,
)

DependsOn = Union[str, Sequence[str], None]

_ids: Iterator[int] = count(1)


def _next_id() -> str:
    return f"step-{next(_ids)}"


def _props(**props: Any) -> Dict[str, Any]:
    # None means "not given"; the model's coercion handles shorthand values
    return {k: v for k, v in props.items() if v is not None}


def _make(step_type: StepType, step_id: Optional[str], props: Dict[str, Any]) -> Step:
    return Step.from_dict({"id": step_id or _next_id(), "type": step_type.value, "properties": props})


# ---------------------------------------------------------------------
# Functional step helpers
# ---------------------------------------------------------------------

def command(
    label: Optional[str],
    cmd: Union[str, Sequence[str]],
    *,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    env: Union[Dict[str, Any], str, None] = None,
    agents: Union[Dict[str, Any], str, None] = None,
    plugins: Any = None,
    matrix: Any = None,
    retry: Any = None,
    soft_fail: Any = None,
    artifact_paths: Any = None,
    timeout_in_minutes: Optional[int] = None,
    parallelism: Optional[int] = None,
    priority: Optional[int] = None,
    branches: Optional[str] = None,
    if_: Optional[str] = None,
    unless: Optional[str] = None,
    id: Optional[str] = None,
) -> CommandStep:
    """Create a command step. `cmd` may be a single line or a list of lines."""
    props = _props(
        label=label,
        command=list(cmd) if isinstance(cmd, (list, tuple)) else cmd,
        key=key,
        depends_on=depends_on,
        env=env,
        agents=agents,
        plugins=plugins,
        matrix=matrix,
        retry=retry,
        soft_fail=soft_fail,
        artifact_paths=artifact_paths,
        timeout_in_minutes=timeout_in_minutes,
        parallelism=parallelism,
        priority=priority,
        branches=branches,
        unless=unless,
    )
    if if_ is not None:
        props["if"] = if_
    return _make(StepType.COMMAND, id, props)


def wait(*, continue_on_failure: bool = False, if_: Optional[str] = None, id: Optional[str] = None) -> WaitStep:
    props: Dict[str, Any] = {}
    if continue_on_failure:
        props["continue_on_failure"] = True
    if if_ is not None:
        props["if"] = if_
    return _make(StepType.WAIT, id, props)


def block(
    label: str,
    *,
    prompt: Optional[str] = None,
    fields: Optional[List[Dict[str, Any]]] = None,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    blocked_state: Optional[str] = None,
    id: Optional[str] = None,
) -> BlockStep:
    return _make(
        StepType.BLOCK,
        id,
        _props(label=label, prompt=prompt, fields=fields, key=key, depends_on=depends_on, blocked_state=blocked_state),
    )


def input_step(
    label: str,
    *,
    prompt: Optional[str] = None,
    fields: Optional[List[Dict[str, Any]]] = None,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    id: Optional[str] = None,
) -> InputStep:
    """Create an input step (named so it does not shadow the builtin)."""
    return _make(
        StepType.INPUT,
        id,
        _props(label=label, prompt=prompt, fields=fields, key=key, depends_on=depends_on),
    )


def trigger(
    pipeline_slug: str,
    *,
    label: Optional[str] = None,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    is_async: bool = False,
    build: Optional[Dict[str, Any]] = None,
    id: Optional[str] = None,
) -> TriggerStep:
    props = _props(trigger=pipeline_slug, label=label, key=key, depends_on=depends_on, build=build)
    if is_async:
        props["async"] = True
    return _make(StepType.TRIGGER, id, props)


def group(
    label: str,
    *steps: Step,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    id: Optional[str] = None,
) -> GroupStep:
    if not steps:
        raise ValueError(f"group({label!r}) must have at least one step")
    group_id = id or _next_id()
    children = [_with_id(s, f"{group_id}-{idx + 1}") for idx, s in enumerate(steps)]
    return _make(StepType.GROUP, group_id, _props(label=label, steps=children, key=key, depends_on=depends_on))


def _with_id(step: Step, new_id: str) -> Step:
    # group children are named after their group, like editor snapshots
    if isinstance(step, GroupStep):
        children = tuple(_with_id(c, f"{new_id}-{idx + 1}") for idx, c in enumerate(step.steps))
        return replace(step, id=new_id, steps=children)
    return replace(step, id=new_id)


def annotation(
    body: str,
    *,
    style: str = "info",
    context: Optional[str] = None,
    append: bool = False,
    label: Optional[str] = None,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    id: Optional[str] = None,
) -> AnnotationStep:
    return _make(
        StepType.ANNOTATION,
        id,
        _props(
            body=body,
            style=style,
            context=context,
            append=append or None,
            label=label,
            key=key,
            depends_on=depends_on,
        ),
    )


def notify(*channels: Dict[str, Any], label: Optional[str] = None, id: Optional[str] = None) -> NotifyStep:
    return _make(StepType.NOTIFY, id, _props(notify=list(channels), label=label))


def plugin(
    label: Optional[str],
    plugins: Dict[str, Any],
    *,
    key: Optional[str] = None,
    depends_on: DependsOn = None,
    env: Union[Dict[str, Any], str, None] = None,
    agents: Union[Dict[str, Any], str, None] = None,
    timeout_in_minutes: Optional[int] = None,
    id: Optional[str] = None,
) -> PluginStep:
    return _make(
        StepType.PLUGIN,
        id,
        _props(
            label=label,
            plugins=plugins,
            key=key,
            depends_on=depends_on,
            env=env,
            agents=agents,
            timeout_in_minutes=timeout_in_minutes,
        ),
    )


def pipeline(*steps: Step) -> Pipeline:
    """
    Pipeline definition helper.

    Users can write, in stepcraft_pipeline.py:
        from stepcraft import dsl

        STEPS = [
            dsl.command("Install", "npm ci", key="install"),
            dsl.wait(),
            dsl.command("Test", "npm test", depends_on="install"),
        ]

    Or define a factory (avoid importing this helper under the same name):
        def pipeline():
            return dsl.pipeline(dsl.command(...), ...)
    """
    return Pipeline(steps=tuple(steps))


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class PipelineBuilder:
    """
    Fluent construction with ids assigned in creation order.

    Ids already used by a step in the builder are skipped, and a step added
    with a taken id gets a fresh one.

    Example:
        PipelineBuilder().command("Install", "npm ci", key="install").wait().build()
    """

    def __init__(self) -> None:
        self._steps: list[Step] = []
        self._counter = count(1)

    def _taken_ids(self) -> set[str]:
        return {s.id for s in Pipeline(steps=tuple(self._steps)).walk()}

    def _fresh_id(self) -> str:
        taken = self._taken_ids()
        while True:
            candidate = f"step-{next(self._counter)}"
            if candidate not in taken:
                return candidate

    def _assign_id(self, kwargs: Dict[str, Any]) -> None:
        if kwargs.get("id") is None:
            kwargs["id"] = self._fresh_id()

    def add(self, step: Step):
        if step.id in self._taken_ids():
            step = _with_id(step, self._fresh_id())
        self._steps.append(step)
        return self

    def command(self, label: Optional[str], cmd: Union[str, Sequence[str]], **kwargs):
        self._assign_id(kwargs)
        return self.add(command(label, cmd, **kwargs))

    def wait(self, **kwargs):
        self._assign_id(kwargs)
        return self.add(wait(**kwargs))

    def block(self, label: str, **kwargs):
        self._assign_id(kwargs)
        return self.add(block(label, **kwargs))

    def input(self, label: str, **kwargs):
        self._assign_id(kwargs)
        return self.add(input_step(label, **kwargs))

    def trigger(self, pipeline_slug: str, **kwargs):
        self._assign_id(kwargs)
        return self.add(trigger(pipeline_slug, **kwargs))

    def group(self, label: str, *steps: Step, **kwargs):
        self._assign_id(kwargs)
        return self.add(group(label, *steps, **kwargs))

    def annotation(self, body: str, **kwargs):
        self._assign_id(kwargs)
        return self.add(annotation(body, **kwargs))

    def notify(self, *channels: Dict[str, Any], **kwargs):
        self._assign_id(kwargs)
        return self.add(notify(*channels, **kwargs))

    def plugin(self, label: Optional[str], plugins: Dict[str, Any], **kwargs):
        self._assign_id(kwargs)
        return self.add(plugin(label, plugins, **kwargs))

    def build(self) -> Pipeline:
        return Pipeline(steps=tuple(self._steps))
