# loader.py
from __future__ import annotations

import json
import runpy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field as PydanticField, ValidationError

from . import dsl
from .model import Pipeline, Step, StepType
from .ui.console import get_console


@dataclass
class PipelineLoadError(Exception):
    """
    Structured load error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.source:
            lines.append(f"source={self.source}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


# -------------------- Schemas --------------------

class StepPayload(BaseModel):
    id: Optional[str] = None
    type: str = "command"
    properties: Dict[str, Any] = PydanticField(default_factory=dict)


class PipelineDocument(BaseModel):
    steps: List[StepPayload] = PydanticField(default_factory=list)


# -------------------- Loading --------------------

def load_pipeline(path: str | Path) -> Pipeline:
    """
    Load a pipeline from a file path.

    Supported inputs:
      - *.py:          defines pipeline() -> Pipeline or STEPS = [Step, ...]
      - *.json:        editor snapshot {"steps": [{"id", "type", "properties"}]}
      - *.yml/*.yaml:  an existing CI pipeline document

    Raises:
      PipelineLoadError
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise PipelineLoadError("not_found", f"Pipeline file not found: {p}", source=str(p))

    suffix = p.suffix.lower()
    get_console().print_debug(f"loading pipeline from {p} ({suffix or 'no suffix'})")
    if suffix == ".py":
        return _load_python(p)
    if suffix == ".json":
        return _load_json(p)
    if suffix in (".yml", ".yaml"):
        return _load_yaml(p)
    raise PipelineLoadError(
        "unsupported",
        f"Unsupported pipeline file type: {p.name}",
        details={"supported": ".py, .json, .yml, .yaml"},
        source=str(p),
    )


def _load_python(p: Path) -> Pipeline:
    module_name = f"stepcraft_pipeline_{p.stem}"
    globals_dict = runpy.run_path(str(p), run_name=module_name)

    result: Any = None
    factory = globals_dict.get("pipeline")
    # skip the dsl helper itself when it was imported under the same name
    if callable(factory) and factory is not dsl.pipeline:
        result = factory()
    elif "STEPS" in globals_dict:
        result = globals_dict["STEPS"]

    if isinstance(result, Pipeline):
        return result
    if isinstance(result, (list, tuple)) and all(isinstance(s, Step) for s in result):
        return Pipeline(steps=tuple(result))
    raise PipelineLoadError(
        "invalid_definition",
        "Pipeline file must return/define steps. "
        "Define pipeline() -> Pipeline or STEPS = [Step, ...].",
        details={"got": type(result).__name__},
        source=str(p),
    )


def _load_json(p: Path) -> Pipeline:
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PipelineLoadError("invalid_json", str(e), source=str(p)) from e
    return load_snapshot(raw, source=str(p))


def load_snapshot(raw: Any, source: Optional[str] = None) -> Pipeline:
    """Validate an editor snapshot (dict with "steps" or a bare list) and build the pipeline."""
    if isinstance(raw, list):
        raw = {"steps": raw}
    try:
        doc = PipelineDocument.model_validate(raw)
    except ValidationError as e:
        raise PipelineLoadError(
            "invalid_snapshot",
            "Pipeline snapshot does not match the expected shape",
            details={"errors": e.error_count(), "first": e.errors()[0]["msg"]},
            source=source,
        ) from e

    steps = []
    for idx, payload in enumerate(doc.steps):
        try:
            steps.append(Step.from_dict(payload.model_dump(), default_id=f"step-{idx + 1}"))
        except ValueError as e:
            raise PipelineLoadError("invalid_step", str(e), details={"index": idx}, source=source) from e
    return Pipeline(steps=tuple(steps))


def _load_yaml(p: Path) -> Pipeline:
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise PipelineLoadError("invalid_yaml", str(e), source=str(p)) from e
    return import_document(raw, source=str(p))


# -------------------- CI document import --------------------

def detect_step_type(entry: Any) -> StepType:
    """Infer the step type of one entry of a CI document's steps sequence."""
    if entry == "wait" or (isinstance(entry, dict) and "wait" in entry):
        return StepType.WAIT
    if not isinstance(entry, dict):
        return StepType.COMMAND
    for key, step_type in (
        ("block", StepType.BLOCK),
        ("input", StepType.INPUT),
        ("trigger", StepType.TRIGGER),
        ("group", StepType.GROUP),
        ("notify", StepType.NOTIFY),
    ):
        if key in entry:
            return step_type
    if "plugins" in entry and "command" not in entry and "commands" not in entry:
        return StepType.PLUGIN
    return StepType.COMMAND


def _entry_snapshot(entry: Any, step_id: str) -> Dict[str, Any]:
    step_type = detect_step_type(entry)
    if isinstance(entry, str):
        props: Dict[str, Any] = {} if step_type == StepType.WAIT else {"command": entry}
        return {"id": step_id, "type": step_type.value, "properties": props}

    props = dict(entry)
    if "name" in props and "label" not in props:
        props["label"] = props.pop("name")
    if step_type == StepType.WAIT:
        wait = props.pop("wait", None)
        if isinstance(wait, dict):
            props.update(wait)
    elif step_type == StepType.GROUP:
        props["steps"] = [
            _entry_snapshot(child, f"{step_id}-{idx + 1}")
            for idx, child in enumerate(props.get("steps") or ())
            if isinstance(child, (str, dict))
        ]
    return {"id": step_id, "type": step_type.value, "properties": props}


def import_document(raw: Any, source: Optional[str] = None) -> Pipeline:
    """Convert a parsed CI pipeline document (`steps:` sequence) into a pipeline."""
    if isinstance(raw, dict):
        entries = raw.get("steps")
    else:
        entries = raw
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise PipelineLoadError(
            "invalid_document",
            'Pipeline document must contain a "steps" sequence',
            details={"got": type(entries).__name__},
            source=source,
        )
    for idx, entry in enumerate(entries):
        if not isinstance(entry, (str, dict)):
            raise PipelineLoadError(
                "invalid_document",
                f"Unsupported step entry at position {idx + 1}",
                details={"got": type(entry).__name__},
                source=source,
            )
    snapshots = [_entry_snapshot(entry, f"step-{idx + 1}") for idx, entry in enumerate(entries)]
    return load_snapshot(snapshots, source=source)
