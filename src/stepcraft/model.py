# model.py
from __future__ import annotations

import hashlib
import json
import shlex
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Type


class StepType(str, Enum):
    COMMAND = "command"
    WAIT = "wait"
    BLOCK = "block"
    INPUT = "input"
    TRIGGER = "trigger"
    GROUP = "group"
    ANNOTATION = "annotation"
    NOTIFY = "notify"
    PLUGIN = "plugin"


# property name in the editor snapshot -> dataclass attribute
_RENAMED = {"if": "if_", "async": "is_async", "with": "with_"}
_RENAMED_BACK = {v: k for k, v in _RENAMED.items()}


# ---------------------------------------------------------------------
# Coercion helpers (editor snapshots are loosely typed)
# ---------------------------------------------------------------------

def _as_tuple(value: Any) -> Tuple[Any, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def _as_str_map(value: Any) -> Dict[str, str]:
    """
    Accept a mapping or the editor's "k=v,k2=v2" shorthand.
    Values are stringified so rendering stays uniform.
    """
    if not value:
        return {}
    if isinstance(value, str):
        out: Dict[str, str] = {}
        for pair in value.split(","):
            k, sep, v = pair.partition("=")
            if sep and k.strip() and v.strip():
                out[k.strip()] = v.strip()
        return out
    if isinstance(value, dict):
        return {str(k): "" if v is None else _stringify(v) for k, v in value.items()}
    return {}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return _stringify(value)


# free-text step properties; YAML and JSON may hand these over as numbers or lists
_TEXT_PROPERTIES = (
    "label",
    "key",
    "branches",
    "prompt",
    "blocked_state",
    "trigger",
    "body",
    "style",
    "context",
    "concurrency_group",
)


def to_plain(value: Any) -> Any:
    """Convert dataclasses/tuples into JSON-friendly structures."""
    if isinstance(value, Step):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        out: Dict[str, Any] = {}
        for f in fields(value):
            v = getattr(value, f.name)
            if _is_empty(v):
                continue
            out[_RENAMED_BACK.get(f.name, f.name)] = to_plain(v)
        return out
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)) and len(value) == 0:
        return True
    return False


def _json_dumps_stable(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------
# Nested values
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class SelectOption:
    label: str
    value: str

    @classmethod
    def from_value(cls, data: Any) -> SelectOption:
        if isinstance(data, dict):
            value = _stringify(data.get("value", data.get("label", "")))
            return cls(label=_stringify(data.get("label", value)), value=value)
        return cls(label=_stringify(data), value=_stringify(data))


@dataclass(frozen=True)
class Field:
    """A block/input step field. `kind` is "text" or "select"."""
    key: str = ""
    text: str = ""
    kind: str = "text"
    hint: Optional[str] = None
    required: bool = False
    default: Any = None
    options: Tuple[SelectOption, ...] = ()
    multiple: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Field:
        is_select = "select" in data or data.get("kind") == "select" or bool(data.get("options"))
        kind = "select" if is_select else "text"
        text = data.get("select") if kind == "select" and "select" in data else data.get("text", "")
        return cls(
            key=_stringify(data.get("key") or ""),
            text=_stringify(text or ""),
            kind=kind,
            hint=data.get("hint") or None,
            required=bool(data.get("required", False)),
            default=data.get("default"),
            options=tuple(SelectOption.from_value(o) for o in data.get("options") or ()),
            multiple=bool(data.get("multiple", False)),
        )


@dataclass(frozen=True)
class MatrixAdjustment:
    with_: Dict[str, str] = field(default_factory=dict)
    skip: Any = False
    soft_fail: Any = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MatrixAdjustment:
        return cls(
            with_=_as_str_map(data.get("with")),
            skip=data.get("skip", False),
            soft_fail=data.get("soft_fail", False),
        )


@dataclass(frozen=True)
class Matrix:
    """Dimension name -> values, plus per-combination adjustments."""
    setup: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    adjustments: Tuple[MatrixAdjustment, ...] = ()

    @classmethod
    def from_value(cls, value: Any) -> Matrix:
        if isinstance(value, Matrix):
            return value
        if not isinstance(value, dict):
            return cls()
        if "setup" in value and isinstance(value.get("setup"), dict):
            setup_raw = value["setup"]
            adjustments = tuple(
                MatrixAdjustment.from_dict(a) for a in value.get("adjustments") or () if isinstance(a, dict)
            )
        else:
            setup_raw = value
            adjustments = ()
        setup = {
            str(dim): tuple("" if v is None else _stringify(v) for v in _as_tuple(values))
            for dim, values in setup_raw.items()
        }
        return cls(setup=setup, adjustments=adjustments)


@dataclass(frozen=True)
class AutomaticRetry:
    exit_status: Any = None
    signal: Optional[str] = None
    signal_reason: Optional[str] = None
    limit: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AutomaticRetry:
        return cls(
            exit_status=data.get("exit_status"),
            signal=data.get("signal"),
            signal_reason=data.get("signal_reason"),
            limit=data.get("limit"),
        )


@dataclass(frozen=True)
class ManualRetry:
    allowed: bool = True
    reason: Optional[str] = None
    permit_on_passed: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ManualRetry:
        return cls(
            allowed=bool(data.get("allowed", True)),
            reason=data.get("reason"),
            permit_on_passed=data.get("permit_on_passed"),
        )


@dataclass(frozen=True)
class Retry:
    """
    `automatic` is a bool or a tuple of AutomaticRetry rules.
    `manual` is a bool or a ManualRetry.
    Anything else is kept as-is for the validator to report.
    """
    automatic: Any = None
    manual: Any = None

    @classmethod
    def from_value(cls, value: Any) -> Optional[Retry]:
        if isinstance(value, Retry):
            return value
        if value is None or value is False:
            return None
        if value is True:
            return cls(automatic=True)
        if not isinstance(value, dict):
            return cls(automatic=value)

        automatic = value.get("automatic")
        if isinstance(automatic, dict):
            automatic = (AutomaticRetry.from_dict(automatic),)
        elif isinstance(automatic, list) and all(isinstance(r, dict) for r in automatic):
            automatic = tuple(AutomaticRetry.from_dict(r) for r in automatic)

        manual = value.get("manual")
        if isinstance(manual, dict):
            manual = ManualRetry.from_dict(manual)
        return cls(automatic=automatic, manual=manual)


@dataclass(frozen=True)
class SoftFailRule:
    exit_status: Any = "*"


def _soft_fail(value: Any) -> Any:
    if isinstance(value, list) and all(isinstance(r, dict) for r in value):
        return tuple(SoftFailRule(exit_status=r.get("exit_status", "*")) for r in value)
    return value if value is not None else False


@dataclass(frozen=True)
class TriggerBuild:
    branch: Optional[str] = None
    commit: Optional[str] = None
    message: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    meta_data: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Any) -> Optional[TriggerBuild]:
        if not isinstance(value, dict) or not value:
            return None
        return cls(
            branch=value.get("branch") or None,
            commit=value.get("commit") or None,
            message=value.get("message") or None,
            env=_as_str_map(value.get("env")),
            meta_data=_as_str_map(value.get("meta_data")),
        )


# ---------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------

_STEP_TYPES: Dict[StepType, Type["Step"]] = {}


@dataclass(frozen=True)
class Step:
    """
    Shared properties every analysis pass needs.

    `key` is the user-assigned dependency handle; `id` is the editor's
    internal identifier and is never used for `depends_on` resolution.
    """
    type: ClassVar[StepType]

    id: str
    label: Optional[str] = None
    key: Optional[str] = None
    depends_on: Tuple[str, ...] = ()
    allow_dependency_failure: bool = False
    if_: Any = None
    unless: Any = None
    branches: Optional[str] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "type" in cls.__dict__:
            _STEP_TYPES[cls.type] = cls

    @property
    def display_name(self) -> str:
        return self.label or self.key or self.id

    @property
    def is_parallel(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        props = to_plain(self)
        props.pop("id", None)
        return {"id": self.id, "type": self.type.value, "properties": props}

    @staticmethod
    def from_dict(data: Dict[str, Any], *, default_id: str = "step") -> Step:
        """
        Build a step from the editor snapshot shape {id, type, properties}.

        Raises:
            ValueError: unknown step type
        """
        raw_type = data.get("type", "command")
        try:
            step_type = StepType(raw_type)
        except ValueError:
            raise ValueError(f"Unknown step type: {raw_type!r}") from None

        cls = _STEP_TYPES[step_type]
        step_id = str(data.get("id") or default_id)
        props = dict(data.get("properties") or {})
        return cls(id=step_id, **cls._coerce(props, step_id))

    @classmethod
    def _coerce(cls, props: Dict[str, Any], step_id: str) -> Dict[str, Any]:
        names = {f.name for f in fields(cls)} - {"id"}
        kwargs: Dict[str, Any] = {}
        for raw_name, value in props.items():
            name = _RENAMED.get(raw_name, raw_name)
            if name not in names:
                continue
            kwargs[name] = value

        if "depends_on" in kwargs:
            kwargs["depends_on"] = tuple(str(d) for d in _as_tuple(kwargs["depends_on"]))
        for name in _TEXT_PROPERTIES:
            if name in kwargs:
                kwargs[name] = _optional_text(kwargs[name])
        if "allow_dependency_failure" in kwargs:
            kwargs["allow_dependency_failure"] = bool(kwargs["allow_dependency_failure"])
        return kwargs


def _common_fields(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    if "env" in kwargs:
        kwargs["env"] = _as_str_map(kwargs["env"])
    if "agents" in kwargs:
        kwargs["agents"] = _as_str_map(kwargs["agents"])
    if "plugins" in kwargs:
        plugins = kwargs["plugins"]
        if isinstance(plugins, list):
            # CI documents list plugins as single-entry mappings
            merged: Dict[str, Any] = {}
            for entry in plugins:
                if isinstance(entry, dict):
                    merged.update(entry)
                elif isinstance(entry, str):
                    merged[entry] = None
            plugins = merged
        kwargs["plugins"] = plugins if plugins else {}
    return kwargs


@dataclass(frozen=True)
class CommandStep(Step):
    type: ClassVar[StepType] = StepType.COMMAND

    command: Any = None
    env: Dict[str, str] = field(default_factory=dict)
    agents: Dict[str, str] = field(default_factory=dict)
    plugins: Any = field(default_factory=dict)
    matrix: Optional[Matrix] = None
    retry: Optional[Retry] = None
    soft_fail: Any = False
    artifact_paths: Any = None
    timeout_in_minutes: Any = None
    parallelism: Any = None
    priority: Any = None
    concurrency: Optional[int] = None
    concurrency_group: Optional[str] = None
    skip: Any = False
    cancel_on_build_failing: bool = False

    @property
    def command_lines(self) -> List[str]:
        if self.command is None:
            return []
        if isinstance(self.command, (list, tuple)):
            return [str(c) for c in self.command]
        return [str(self.command)]

    @property
    def command_text(self) -> str:
        return "\n".join(self.command_lines)

    @property
    def is_parallel(self) -> bool:
        if self.matrix is not None and self.matrix.setup:
            return True
        return isinstance(self.parallelism, int) and not isinstance(self.parallelism, bool) and self.parallelism > 1

    @classmethod
    def _coerce(cls, props, step_id):
        if "commands" in props and "command" not in props:
            props["command"] = props.pop("commands")
        kwargs = _common_fields(super()._coerce(props, step_id))
        if isinstance(kwargs.get("command"), list):
            kwargs["command"] = tuple(str(c) for c in kwargs["command"])
        if "matrix" in kwargs:
            kwargs["matrix"] = Matrix.from_value(kwargs["matrix"]) if kwargs["matrix"] else None
        if "retry" in kwargs:
            kwargs["retry"] = Retry.from_value(kwargs["retry"])
        if "soft_fail" in kwargs:
            kwargs["soft_fail"] = _soft_fail(kwargs["soft_fail"])
        if isinstance(kwargs.get("artifact_paths"), list):
            kwargs["artifact_paths"] = tuple(kwargs["artifact_paths"])
        return kwargs


@dataclass(frozen=True)
class WaitStep(Step):
    type: ClassVar[StepType] = StepType.WAIT

    continue_on_failure: Any = False


@dataclass(frozen=True)
class BlockStep(Step):
    type: ClassVar[StepType] = StepType.BLOCK

    prompt: Optional[str] = None
    fields: Tuple[Field, ...] = ()
    blocked_state: Optional[str] = None

    @classmethod
    def _coerce(cls, props, step_id):
        if "block" in props and not props.get("label"):
            props["label"] = props["block"]
        kwargs = super()._coerce(props, step_id)
        if "fields" in kwargs:
            kwargs["fields"] = tuple(Field.from_dict(f) for f in kwargs["fields"] or () if isinstance(f, dict))
        return kwargs


@dataclass(frozen=True)
class InputStep(Step):
    type: ClassVar[StepType] = StepType.INPUT

    prompt: Optional[str] = None
    fields: Tuple[Field, ...] = ()

    @classmethod
    def _coerce(cls, props, step_id):
        if "input" in props and not props.get("label"):
            props["label"] = props["input"]
        kwargs = super()._coerce(props, step_id)
        if "fields" in kwargs:
            kwargs["fields"] = tuple(Field.from_dict(f) for f in kwargs["fields"] or () if isinstance(f, dict))
        return kwargs


@dataclass(frozen=True)
class TriggerStep(Step):
    type: ClassVar[StepType] = StepType.TRIGGER

    trigger: Optional[str] = None
    is_async: bool = False
    build: Optional[TriggerBuild] = None

    @classmethod
    def _coerce(cls, props, step_id):
        kwargs = super()._coerce(props, step_id)
        if "build" in kwargs:
            kwargs["build"] = TriggerBuild.from_value(kwargs["build"])
        if "is_async" in kwargs:
            kwargs["is_async"] = bool(kwargs["is_async"])
        return kwargs


@dataclass(frozen=True)
class GroupStep(Step):
    type: ClassVar[StepType] = StepType.GROUP

    steps: Tuple[Step, ...] = ()
    notify: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def _coerce(cls, props, step_id):
        if "group" in props and not props.get("label"):
            props["label"] = props["group"]
        kwargs = super()._coerce(props, step_id)
        if "steps" in kwargs:
            kwargs["steps"] = tuple(
                _child_step(child, f"{step_id}-{idx + 1}")
                for idx, child in enumerate(kwargs["steps"] or ())
            )
        if "notify" in kwargs:
            kwargs["notify"] = tuple(n for n in _as_tuple(kwargs["notify"]) if isinstance(n, dict))
        return kwargs


def _child_step(child: Any, default_id: str) -> Step:
    # group children may be steps, snapshots, bare commands or {command, label}
    if isinstance(child, Step):
        return child
    if isinstance(child, str):
        return CommandStep(id=default_id, command=child)
    if isinstance(child, dict) and "type" in child:
        return Step.from_dict(child, default_id=default_id)
    if isinstance(child, dict):
        return Step.from_dict({"id": default_id, "type": "command", "properties": child})
    raise ValueError(f"Unsupported group child: {child!r}")


@dataclass(frozen=True)
class AnnotationStep(Step):
    type: ClassVar[StepType] = StepType.ANNOTATION

    body: Optional[str] = None
    style: str = "info"
    context: Optional[str] = None
    append: bool = False
    command: Optional[str] = None

    @classmethod
    def _coerce(cls, props, step_id):
        kwargs = super()._coerce(props, step_id)
        if "command" in kwargs:
            command = kwargs["command"]
            if isinstance(command, (list, tuple)):
                command = "\n".join(_stringify(c) for c in command)
            kwargs["command"] = _optional_text(command)
        if "append" in kwargs:
            kwargs["append"] = bool(kwargs["append"])
        return kwargs

    def annotate_command(self) -> str:
        """The agent command that publishes this annotation."""
        if self.command:
            return self.command
        parts = ["buildkite-agent", "annotate", shlex.quote(self.body or "")]
        if self.style:
            parts += ["--style", shlex.quote(self.style)]
        if self.context:
            parts += ["--context", shlex.quote(self.context)]
        if self.append:
            parts.append("--append")
        return " ".join(parts)


@dataclass(frozen=True)
class NotifyStep(Step):
    type: ClassVar[StepType] = StepType.NOTIFY

    notify: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def _coerce(cls, props, step_id):
        kwargs = super()._coerce(props, step_id)
        if "notify" in kwargs:
            kwargs["notify"] = tuple(n for n in _as_tuple(kwargs["notify"]) if isinstance(n, dict))
        return kwargs


@dataclass(frozen=True)
class PluginStep(Step):
    type: ClassVar[StepType] = StepType.PLUGIN

    plugins: Any = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    agents: Dict[str, str] = field(default_factory=dict)
    timeout_in_minutes: Any = None

    @classmethod
    def _coerce(cls, props, step_id):
        return _common_fields(super()._coerce(props, step_id))


# ---------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Pipeline:
    """Ordered steps. Order defines default execution and wait-barrier scope."""
    steps: Tuple[Step, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def walk(self) -> Iterator[Step]:
        """Every step depth-first; group children follow their group."""
        def _walk(steps):
            for step in steps:
                yield step
                if isinstance(step, GroupStep):
                    yield from _walk(step.steps)

        return _walk(self.steps)

    def find(self, key: str) -> Optional[Step]:
        for step in self.walk():
            if step.key == key:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"steps": [s.to_dict() for s in self.steps]}

    @classmethod
    def from_dict(cls, data: Any) -> Pipeline:
        raw = data.get("steps", []) if isinstance(data, dict) else data
        return cls(
            steps=tuple(
                Step.from_dict(s, default_id=f"step-{idx + 1}") for idx, s in enumerate(raw or ())
            )
        )

    def fingerprint(self) -> str:
        """Stable SHA-256 of the snapshot, usable as a cache key for rendered output."""
        return hashlib.sha256(_json_dumps_stable(self.to_dict()).encode("utf-8")).hexdigest()
