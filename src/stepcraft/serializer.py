# serializer.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from .model import (
    AnnotationStep,
    AutomaticRetry,
    BlockStep,
    CommandStep,
    Field,
    GroupStep,
    InputStep,
    ManualRetry,
    Matrix,
    NotifyStep,
    Pipeline,
    PluginStep,
    Retry,
    SoftFailRule,
    Step,
    TriggerStep,
    WaitStep,
)
from .yaml_writer import YamlWriter

ROOT_KEY = "steps"

Pairs = List[Tuple[str, Any]]


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def serialize(pipeline: Pipeline) -> str:
    """
    Render the pipeline as a CI pipeline document.

    Pure and deterministic: the same snapshot always renders to the same
    text. Missing optional data is omitted; nothing here raises for an
    incomplete step, that is the validator's job.
    """
    w = YamlWriter()
    _write_steps(w, pipeline.steps)
    return w.getvalue()


def serialize_full(
    pipeline: Pipeline,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> str:
    """Same as serialize(), with a comment header and a pipeline-level env block."""
    w = YamlWriter()
    if name:
        w.comment(f"Pipeline: {name}")
    if description:
        w.comment(f"Description: {description}")
    if env:
        w.field("env", {str(k): str(v) for k, v in env.items()})
    _write_steps(w, pipeline.steps)
    return w.getvalue()


# ---------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------

def _write_steps(w: YamlWriter, steps) -> None:
    if not steps:
        w.line(f"{ROOT_KEY}: []")
        return
    w.line(f"{ROOT_KEY}:")
    with w.indent():
        for step in steps:
            write_step(w, step)


def write_step(w: YamlWriter, step: Step) -> None:
    """Write one sequence entry for `step` at the writer's current depth."""
    if isinstance(step, WaitStep):
        pairs = _wait_pairs(step)
        if not pairs:
            w.line("- wait")
            return
        pairs.insert(0, ("wait", None))
    else:
        pairs = _pairs_for(step)

    children = step.steps if isinstance(step, GroupStep) else ()
    if not pairs and not children:
        # keep the entry so positions match the pipeline
        with w.item():
            w.line("{}")
        return
    with w.item():
        for key, value in pairs:
            w.field(key, value)
        if children:
            w.line("steps:")
            with w.indent():
                for child in children:
                    write_step(w, child)


def _pairs_for(step: Step) -> Pairs:
    if isinstance(step, CommandStep):
        return _command_pairs(step)
    if isinstance(step, BlockStep):
        pairs: Pairs = [("block", step.label or "Block Step")]
        _add(pairs, "key", step.key)
        _add(pairs, "prompt", step.prompt)
        if step.blocked_state and step.blocked_state != "passed":
            pairs.append(("blocked_state", step.blocked_state))
        _add(pairs, "fields", [_field(f) for f in step.fields])
        return pairs + _common_pairs(step)
    if isinstance(step, InputStep):
        pairs = [("input", step.label or "Input Step")]
        _add(pairs, "key", step.key)
        _add(pairs, "prompt", step.prompt)
        _add(pairs, "fields", [_field(f) for f in step.fields])
        return pairs + _common_pairs(step)
    if isinstance(step, TriggerStep):
        pairs = [("trigger", step.trigger or "")]
        _add(pairs, "label", step.label)
        _add(pairs, "key", step.key)
        if step.is_async:
            pairs.append(("async", True))
        if step.build is not None:
            build: Dict[str, Any] = {}
            _add_map(build, "branch", step.build.branch)
            _add_map(build, "commit", step.build.commit)
            _add_map(build, "message", step.build.message)
            _add_map(build, "env", step.build.env)
            _add_map(build, "meta_data", step.build.meta_data)
            _add(pairs, "build", build)
        return pairs + _common_pairs(step)
    if isinstance(step, GroupStep):
        pairs = [("group", step.label or "Group Step")]
        _add(pairs, "key", step.key)
        pairs += _common_pairs(step)
        _add(pairs, "notify", [dict(n) for n in step.notify])
        return pairs
    if isinstance(step, AnnotationStep):
        pairs = []
        _add(pairs, "label", step.label)
        _add(pairs, "key", step.key)
        pairs.append(("command", step.annotate_command()))
        return pairs + _common_pairs(step)
    if isinstance(step, NotifyStep):
        pairs = [("notify", [dict(n) for n in step.notify])]
        _add(pairs, "label", step.label)
        _add(pairs, "key", step.key)
        return pairs + _common_pairs(step)
    if isinstance(step, PluginStep):
        pairs = []
        _add(pairs, "label", step.label)
        _add(pairs, "key", step.key)
        pairs += _common_pairs(step)
        _add(pairs, "plugins", _plugins(step.plugins))
        _add(pairs, "env", step.env)
        _add(pairs, "agents", step.agents)
        _add(pairs, "timeout_in_minutes", step.timeout_in_minutes)
        return pairs
    # an unregistered Step subclass still renders its shared properties
    pairs = []
    _add(pairs, "label", step.label)
    _add(pairs, "key", step.key)
    return pairs + _common_pairs(step)


def _command_pairs(step: CommandStep) -> Pairs:
    pairs: Pairs = []
    _add(pairs, "label", step.label)
    _add(pairs, "key", step.key)

    lines = step.command_lines
    if len(lines) == 1:
        _add(pairs, "command", lines[0])
    elif len(lines) > 1:
        pairs.append(("commands", lines))

    pairs += _common_pairs(step)
    _add(pairs, "env", step.env)
    _add(pairs, "agents", step.agents)
    _add(pairs, "plugins", _plugins(step.plugins))
    if step.matrix is not None:
        _add(pairs, "matrix", _matrix(step.matrix))
    _add(pairs, "parallelism", step.parallelism)
    _add(pairs, "priority", step.priority)
    _add(pairs, "concurrency", step.concurrency)
    _add(pairs, "concurrency_group", step.concurrency_group)
    _add(pairs, "timeout_in_minutes", step.timeout_in_minutes)
    if step.retry is not None:
        _add(pairs, "retry", _retry(step.retry))
    _add(pairs, "soft_fail", _soft_fail(step.soft_fail))
    _add(pairs, "artifact_paths", _artifact_paths(step.artifact_paths))
    if step.skip:
        pairs.append(("skip", step.skip))
    if step.cancel_on_build_failing:
        pairs.append(("cancel_on_build_failing", True))
    return pairs


def _wait_pairs(step: WaitStep) -> Pairs:
    pairs: Pairs = []
    _add(pairs, "key", step.key)
    if step.continue_on_failure is True:
        pairs.append(("continue_on_failure", True))
    return pairs + _common_pairs(step)


def _common_pairs(step: Step) -> Pairs:
    pairs: Pairs = []
    _add(pairs, "depends_on", list(step.depends_on))
    if step.allow_dependency_failure:
        pairs.append(("allow_dependency_failure", True))
    _add(pairs, "if", step.if_)
    _add(pairs, "unless", step.unless)
    _add(pairs, "branches", step.branches)
    return pairs


# ---------------------------------------------------------------------
# Nested values -> plain mappings/sequences
# ---------------------------------------------------------------------

def _field(f: Field) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if f.kind == "select":
        out["select"] = f.text
    else:
        out["text"] = f.text
    _add_map(out, "key", f.key)
    _add_map(out, "hint", f.hint)
    if f.required:
        out["required"] = True
    _add_map(out, "default", f.default)
    if f.kind == "select":
        _add_map(out, "options", [{"label": o.label, "value": o.value} for o in f.options])
        if f.multiple:
            out["multiple"] = True
    return out


def _plugins(plugins: Any) -> List[Any]:
    if not isinstance(plugins, dict):
        return []
    out: List[Any] = []
    for name, config in plugins.items():
        if config is None:
            out.append(str(name))
        else:
            out.append({str(name): config})
    return out


def _matrix(matrix: Matrix) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    setup = {dim: list(values) for dim, values in matrix.setup.items()}
    _add_map(out, "setup", setup)
    adjustments = []
    for adj in matrix.adjustments:
        entry: Dict[str, Any] = {"with": dict(adj.with_)}
        if adj.skip:
            entry["skip"] = adj.skip
        if adj.soft_fail:
            entry["soft_fail"] = adj.soft_fail
        adjustments.append(entry)
    _add_map(out, "adjustments", adjustments)
    return out


def _retry(retry: Retry) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    automatic = retry.automatic
    if automatic is True:
        out["automatic"] = True
    elif isinstance(automatic, tuple) and all(isinstance(r, AutomaticRetry) for r in automatic):
        rules = []
        for rule in automatic:
            entry: Dict[str, Any] = {}
            _add_map(entry, "exit_status", rule.exit_status)
            _add_map(entry, "signal", rule.signal)
            _add_map(entry, "signal_reason", rule.signal_reason)
            _add_map(entry, "limit", rule.limit)
            rules.append(entry)
        _add_map(out, "automatic", rules)

    manual = retry.manual
    if isinstance(manual, bool) and manual is False:
        out["manual"] = False
    elif isinstance(manual, ManualRetry):
        entry = {"allowed": manual.allowed}
        _add_map(entry, "reason", manual.reason)
        _add_map(entry, "permit_on_passed", manual.permit_on_passed)
        out["manual"] = entry
    return out


def _soft_fail(value: Any) -> Any:
    if value is True:
        return True
    if isinstance(value, tuple) and value and all(isinstance(r, SoftFailRule) for r in value):
        return [{"exit_status": r.exit_status} for r in value]
    return None


def _artifact_paths(value: Any) -> Any:
    if isinstance(value, str):
        return value or None
    if isinstance(value, (list, tuple)):
        return [str(p) for p in value if str(p).strip()]
    return None


# ---------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------

def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)) and len(value) == 0:
        return False
    return True


def _add(pairs: Pairs, key: str, value: Any) -> None:
    if _present(value):
        pairs.append((key, value))


def _add_map(out: Dict[str, Any], key: str, value: Any) -> None:
    if _present(value):
        out[key] = value
