# validator.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .graph import DependencyGraph
from .matrix import expand_matrix
from .model import (
    AnnotationStep,
    AutomaticRetry,
    BlockStep,
    CommandStep,
    Field,
    GroupStep,
    InputStep,
    ManualRetry,
    NotifyStep,
    Pipeline,
    PluginStep,
    SoftFailRule,
    Step,
    StepType,
    TriggerStep,
    WaitStep,
)
from .settings import ValidatorSettings
from .ui.console import get_console


class IssueKind(str, Enum):
    STRUCTURAL = "structural"
    DEPENDENCY = "dependency"
    MATRIX = "matrix"
    TEXT_SYNTAX = "text-syntax"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class Issue:
    title: str
    message: str
    suggestion: str = ""
    kind: IssueKind = IssueKind.STRUCTURAL
    step_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "message": self.message,
            "suggestion": self.suggestion,
            "kind": self.kind.value,
            "step_id": self.step_id,
        }


@dataclass(frozen=True)
class Summary:
    status: str  # "pass" | "warnings" | "failed"
    text: str
    details: str
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "text": self.text,
            "details": self.details,
            "errors": self.error_count,
            "warnings": self.warning_count,
            "info": self.info_count,
        }


@dataclass(frozen=True)
class ValidationReport:
    """`valid` is True iff there are no errors; warnings and info never block."""
    valid: bool
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)
    info: List[Issue] = field(default_factory=list)
    summary: Optional[Summary] = None

    def issues_of(self, kind: IssueKind, severity: str = "error") -> List[Issue]:
        bucket = {"error": self.errors, "warning": self.warnings, "info": self.info}[severity]
        return [i for i in bucket if i.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
            "info": [i.to_dict() for i in self.info],
            "summary": self.summary.to_dict() if self.summary else None,
        }


class _Collector:
    """Per-call accumulator; passes never stop at the first finding."""

    def __init__(self) -> None:
        self.errors: List[Issue] = []
        self.warnings: List[Issue] = []
        self.info: List[Issue] = []

    def error(self, title, message, suggestion="", kind=IssueKind.STRUCTURAL, step=None) -> None:
        self.errors.append(Issue(title, message, suggestion, kind, step.id if step else None))

    def warning(self, title, message, suggestion="", kind=IssueKind.SEMANTIC, step=None) -> None:
        self.warnings.append(Issue(title, message, suggestion, kind, step.id if step else None))

    def suggest(self, title, message, suggestion="", kind=IssueKind.SEMANTIC, step=None) -> None:
        self.info.append(Issue(title, message, suggestion, kind, step.id if step else None))

    def report(self) -> ValidationReport:
        return ValidationReport(
            valid=not self.errors,
            errors=list(self.errors),
            warnings=list(self.warnings),
            info=list(self.info),
            summary=_summarize(len(self.errors), len(self.warnings), len(self.info)),
        )


def _summarize(errors: int, warnings: int, info: int) -> Summary:
    if errors == 0 and warnings == 0:
        details = f"{info} suggestions" if info else "No issues found"
        return Summary("pass", "Pipeline validation passed!", details, errors, warnings, info)
    if errors:
        return Summary(
            "failed", "Pipeline validation failed", f"{errors} errors, {warnings} warnings", errors, warnings, info
        )
    return Summary(
        "warnings", "Pipeline has warnings", f"{warnings} warnings, {info} suggestions", errors, warnings, info
    )


CONDITION_OPERATORS = ("==", "!=", "=~", "!~", "&&", "||")
ANNOTATION_STYLES = ("info", "success", "warning", "error")
MAX_RETRY_LIMIT = 10

_ROOT_KEY = re.compile(r"^steps:(\s|$)", re.MULTILINE)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    return None


class _StepNames:
    """Display name per step object; ids are not guaranteed unique."""

    def __init__(self, steps: Sequence[Step]) -> None:
        self._names = {id(s): s.label or s.key or f"Step {idx + 1}" for idx, s in enumerate(steps)}

    def __getitem__(self, step: Step) -> str:
        return self._names[id(step)]


class UnifiedValidator:
    """
    Runs every check over one pipeline snapshot and returns a report.

    Passes:
      1. structure        duplicate ids/keys/labels, empty pipeline
      2. steps            required fields per step type, risky commands
      3. dependencies     unresolved depends_on, cycles
      4. matrix           dimension and combination bounds
      5. text syntax      only when a rendered document is given
      6. domain rules     parallel steps without a wait, artifact paths
      7. best practices   info-level hints

    The validator keeps no state between calls.
    """

    def __init__(self, settings: Optional[ValidatorSettings] = None):
        self.settings = settings or ValidatorSettings()

    def validate(self, pipeline: Pipeline, text: Optional[str] = None) -> ValidationReport:
        out = _Collector()
        steps = list(pipeline.walk())
        names = _StepNames(steps)

        self._check_structure(pipeline, steps, out)
        self._check_steps(steps, names, out)
        self._check_dependencies(pipeline, names, out)
        self._check_matrices(steps, names, out)
        if text is not None:
            self._check_text(text, out)
        self._check_domain_rules(pipeline, steps, names, out)
        self._check_best_practices(pipeline, steps, names, out)

        report = out.report()
        get_console().print_debug(
            f"validated {len(steps)} steps: {len(report.errors)} errors, "
            f"{len(report.warnings)} warnings, {len(report.info)} suggestions"
        )
        return report

    # ---------------------------------------------------------------------
    # 1. Structure
    # ---------------------------------------------------------------------

    def _check_structure(self, pipeline: Pipeline, steps: List[Step], out: _Collector) -> None:
        if len(pipeline) == 0:
            out.error("Pipeline is empty", "Add at least one step to your pipeline")
            return

        dup_ids = _duplicates(s.id for s in steps)
        if dup_ids:
            out.error(
                "Duplicate step ids found",
                f"The following step ids are used multiple times: {', '.join(dup_ids)}",
                "Each step needs its own id",
            )

        dup_keys = _duplicates(s.key for s in steps)
        if dup_keys:
            out.error(
                "Duplicate step keys found",
                f"The following keys are used multiple times: {', '.join(dup_keys)}",
                "Each step key must be unique",
            )

        dup_labels = _duplicates(s.label for s in steps)
        if dup_labels:
            out.warning(
                "Duplicate step labels found",
                f"The following labels are used multiple times: {', '.join(dup_labels)}",
                "Consider using unique labels for better clarity",
                kind=IssueKind.STRUCTURAL,
            )

    # ---------------------------------------------------------------------
    # 2. Per step type
    # ---------------------------------------------------------------------

    def _check_steps(self, steps: List[Step], names: _StepNames, out: _Collector) -> None:
        for step in steps:
            label = names[step]
            if isinstance(step, CommandStep):
                self._check_command(step, label, out)
            elif isinstance(step, WaitStep):
                if not isinstance(step.continue_on_failure, bool):
                    out.error(
                        "Invalid wait step configuration",
                        f'Step "{label}" has invalid continue_on_failure value',
                        "continue_on_failure must be true or false",
                        step=step,
                    )
            elif isinstance(step, BlockStep):
                if not (step.prompt or "").strip():
                    out.warning(
                        "Block step missing prompt",
                        f'Step "{label}" has no prompt text',
                        "Add a prompt to explain what approval is needed",
                        step=step,
                    )
                self._check_fields(step, step.fields, label, "Block", out)
            elif isinstance(step, InputStep):
                if not (step.prompt or "").strip():
                    out.error(
                        "Input step missing prompt",
                        f'Step "{label}" has no prompt text',
                        "Add a prompt to explain what input is needed",
                        step=step,
                    )
                if not step.fields:
                    out.error(
                        "Input step missing fields",
                        f'Step "{label}" has no input fields defined',
                        "Add at least one field for user input",
                        step=step,
                    )
                else:
                    self._check_fields(step, step.fields, label, "Input", out)
            elif isinstance(step, TriggerStep):
                if not (step.trigger or "").strip():
                    out.error(
                        "Trigger step missing pipeline",
                        f'Step "{label}" has no pipeline to trigger',
                        "Specify which pipeline to trigger",
                        step=step,
                    )
            elif isinstance(step, GroupStep):
                if not (step.label or "").strip():
                    out.warning(
                        "Group step missing name",
                        f'Step "{label}" has no group name',
                        "Add a group name for better organization",
                        step=step,
                    )
                if not step.steps:
                    out.error(
                        "Group step has no steps",
                        f'Group "{label}" contains no steps',
                        "Add steps to the group or remove it",
                        step=step,
                    )
            elif isinstance(step, AnnotationStep):
                if not (step.body or "").strip() and not (step.command or "").strip():
                    out.error(
                        "Annotation step missing content",
                        f'Step "{label}" has no annotation body',
                        "Add Markdown content for the annotation",
                        step=step,
                    )
                if step.style not in ANNOTATION_STYLES:
                    out.warning(
                        "Unknown annotation style",
                        f'Step "{label}" uses style "{step.style}"',
                        f"Use one of: {', '.join(ANNOTATION_STYLES)}",
                        step=step,
                    )
            elif isinstance(step, NotifyStep):
                if not step.notify:
                    out.error(
                        "Notify step missing channels",
                        f'Step "{label}" has no notification targets',
                        "Add at least one channel, e.g. slack or email",
                        step=step,
                    )
            elif isinstance(step, PluginStep):
                if not isinstance(step.plugins, dict) or not step.plugins:
                    out.error(
                        "Plugin step missing plugins",
                        f'Step "{label}" has no plugins configured',
                        "Select a plugin for this step",
                        step=step,
                    )
                else:
                    self._check_plugins(step, step.plugins, label, out)
                self._check_timeout(step, step.timeout_in_minutes, label, out)

            self._check_common(step, label, out)

    def _check_command(self, step: CommandStep, label: str, out: _Collector) -> None:
        text = step.command_text
        if not text.strip():
            out.error(
                "Command step missing command",
                f'Step "{label}" has no command to execute',
                "Add a command for this step",
                step=step,
            )

        for pattern in self.settings.dangerous_commands:
            if pattern in text:
                out.warning(
                    "Potentially dangerous command",
                    f'Step "{label}" contains: {pattern}',
                    "Double-check this command is intentional",
                    step=step,
                )

        self._check_plugins(step, step.plugins, label, out)
        if step.retry is not None:
            self._check_retry(step, label, out)
        self._check_timeout(step, step.timeout_in_minutes, label, out)

        if step.parallelism is not None:
            parallelism = _as_int(step.parallelism)
            if parallelism is None or parallelism < 1:
                out.error(
                    "Invalid parallelism",
                    f'Step "{label}" has invalid parallelism: {step.parallelism}',
                    "Parallelism must be a positive whole number",
                    step=step,
                )

        if step.priority is not None and _as_int(step.priority) is None:
            out.error(
                "Invalid priority",
                f'Step "{label}" has invalid priority: {step.priority}',
                "Priority must be a whole number",
                step=step,
            )

        soft_fail = step.soft_fail
        valid_soft_fail = isinstance(soft_fail, bool) or (
            isinstance(soft_fail, tuple) and all(isinstance(r, SoftFailRule) for r in soft_fail)
        )
        if not valid_soft_fail:
            out.error(
                "Invalid soft_fail configuration",
                f'Step "{label}" has invalid soft_fail: {soft_fail!r}',
                "soft_fail must be true/false or a list of exit_status rules",
                step=step,
            )

    def _check_fields(self, step: Step, fields: Sequence[Field], label: str, kind: str, out: _Collector) -> None:
        seen: List[str] = []
        for idx, f in enumerate(fields):
            if not f.key:
                out.error(
                    f"{kind} field missing key",
                    f'Field {idx + 1} in step "{label}" has no key',
                    "Each field must have a unique key",
                    step=step,
                )
            elif f.key in seen:
                out.error(
                    f"Duplicate {kind.lower()} field key",
                    f'Field key "{f.key}" is used more than once in step "{label}"',
                    "Each field must have a unique key",
                    step=step,
                )
            else:
                seen.append(f.key)

            if kind == "Input" and not f.text and not f.hint:
                out.warning(
                    "Input field missing label",
                    f'Field "{f.key or idx + 1}" in step "{label}" has no text or hint',
                    "Add text or hint to describe the field",
                    step=step,
                )
            if f.kind == "select" and not f.options:
                out.error(
                    "Select field missing options",
                    f'Field "{f.key or idx + 1}" in step "{label}" has no options',
                    "Add at least one option to the select field",
                    step=step,
                )

    def _check_common(self, step: Step, label: str, out: _Collector) -> None:
        for attr, name in (("if_", "if"), ("unless", "unless")):
            condition = getattr(step, attr)
            if condition is None or condition == "":
                continue
            if not isinstance(condition, str):
                out.error(
                    "Invalid conditional format",
                    f'Step "{label}" has non-string {name} conditional',
                    "Conditionals must be strings",
                    step=step,
                )
                continue
            has_operator = any(op in condition for op in CONDITION_OPERATORS)
            if not has_operator and "build." not in condition and "pipeline." not in condition:
                out.warning(
                    "Suspicious conditional",
                    f'Step "{label}" has conditional: "{condition}"',
                    "Conditionals typically use build.* or pipeline.* variables with operators",
                    step=step,
                )

    def _check_plugins(self, step: Step, plugins: Any, label: str, out: _Collector) -> None:
        if not plugins:
            return
        if not isinstance(plugins, dict):
            out.error(
                "Invalid plugins format",
                f'Step "{label}" has invalid plugins configuration',
                "Plugins must be a mapping of plugin name to configuration",
                step=step,
            )
            return
        for name, config in plugins.items():
            if config is None:
                out.warning(
                    "Null plugin configuration",
                    f'Plugin "{name}" in step "{label}" has null configuration',
                    "Consider removing or configuring the plugin",
                    step=step,
                )

    def _check_retry(self, step: CommandStep, label: str, out: _Collector) -> None:
        retry = step.retry
        automatic = retry.automatic
        if isinstance(automatic, tuple) and all(isinstance(r, AutomaticRetry) for r in automatic):
            for idx, rule in enumerate(automatic):
                if rule.exit_status is None and not rule.signal and not rule.signal_reason and rule.limit is None:
                    out.warning(
                        "Incomplete retry rule",
                        f'Retry rule {idx + 1} in step "{label}" has no conditions',
                        "Add exit_status, signal, or other conditions",
                        step=step,
                    )
                limit = _as_int(rule.limit) if rule.limit is not None else None
                if rule.limit is not None and (limit is None or not 0 <= limit <= MAX_RETRY_LIMIT):
                    out.error(
                        "Invalid retry limit",
                        f'Retry rule {idx + 1} in step "{label}" has limit {rule.limit}',
                        f"Retry limit must be between 0 and {MAX_RETRY_LIMIT}",
                        step=step,
                    )
        elif automatic is not None and not isinstance(automatic, bool):
            out.error(
                "Invalid retry configuration",
                f'Step "{label}" has invalid automatic retry configuration',
                "retry.automatic must be true/false or a list of retry rules",
                step=step,
            )

        manual = retry.manual
        if isinstance(manual, ManualRetry):
            if not manual.allowed and not manual.reason:
                out.warning(
                    "Incomplete manual retry configuration",
                    f'Step "{label}" has incomplete manual retry settings',
                    "Specify allowed and reason for manual retry",
                    step=step,
                )
        elif manual is not None and not isinstance(manual, bool):
            out.error(
                "Invalid retry configuration",
                f'Step "{label}" has invalid manual retry configuration',
                "retry.manual must be true/false or a mapping",
                step=step,
            )

    def _check_timeout(self, step: Step, timeout: Any, label: str, out: _Collector) -> None:
        if timeout is None or timeout == "":
            return
        minutes = _as_int(timeout)
        if minutes is None or minutes <= 0:
            out.error(
                "Invalid timeout value",
                f'Step "{label}" has invalid timeout: {timeout}',
                "Timeout must be a positive number",
                step=step,
            )
        elif minutes > self.settings.max_timeout_minutes:
            out.warning(
                "Very long timeout",
                f'Step "{label}" has timeout of {minutes} minutes ({minutes // 60} hours)',
                "Consider if such a long timeout is necessary",
                step=step,
            )

    # ---------------------------------------------------------------------
    # 3. Dependencies
    # ---------------------------------------------------------------------

    def _check_dependencies(self, pipeline: Pipeline, names: _StepNames, out: _Collector) -> None:
        graph = DependencyGraph.from_pipeline(pipeline)

        for step, missing in graph.unresolved():
            out.error(
                "Invalid dependency",
                f'Step "{names[step]}" depends on non-existent step: "{missing}"',
                "Check that the dependency key exists",
                kind=IssueKind.DEPENDENCY,
                step=step,
            )

        for cycle in graph.detect_cycles():
            out.error(
                "Circular dependency detected",
                f"Steps form a circular dependency: {cycle}",
                "Remove the circular reference",
                kind=IssueKind.DEPENDENCY,
                step=graph.steps[cycle.path[0]],
            )

    # ---------------------------------------------------------------------
    # 4. Matrix
    # ---------------------------------------------------------------------

    def _check_matrices(self, steps: List[Step], names: _StepNames, out: _Collector) -> None:
        s = self.settings
        for step in steps:
            if not isinstance(step, CommandStep) or step.matrix is None:
                continue
            label = names[step]
            expansion = expand_matrix(step.matrix, sample_limit=s.sample_limit)

            if expansion.dimension_count == 0:
                out.error(
                    "Empty matrix configuration",
                    f'Step "{label}" has empty matrix',
                    "Add at least one dimension to the matrix",
                    kind=IssueKind.MATRIX,
                    step=step,
                )
                continue

            if expansion.dimension_count > s.max_matrix_dimensions:
                out.error(
                    "Too many matrix dimensions",
                    f'Step "{label}" has {expansion.dimension_count} dimensions (max {s.max_matrix_dimensions})',
                    "Reduce the number of matrix dimensions",
                    kind=IssueKind.MATRIX,
                    step=step,
                )

            for dim in expansion.empty_dimensions:
                out.error(
                    "Invalid matrix dimension",
                    f'Dimension "{dim}" in step "{label}" has no values',
                    "Each dimension must have at least one non-empty value",
                    kind=IssueKind.MATRIX,
                    step=step,
                )

            total = expansion.total_combinations
            if total > s.max_matrix_combinations:
                out.error(
                    "Matrix generates too many jobs",
                    f'Step "{label}" generates {total} jobs (max {s.max_matrix_combinations})',
                    "Reduce the number of matrix combinations",
                    kind=IssueKind.MATRIX,
                    step=step,
                )
            elif total > s.warn_matrix_combinations:
                out.warning(
                    "Large matrix configuration",
                    f'Step "{label}" generates {total} jobs',
                    "Consider if all combinations are necessary",
                    kind=IssueKind.MATRIX,
                    step=step,
                )

            for dim in expansion.unknown_adjustment_dimensions:
                out.warning(
                    "Unknown matrix adjustment dimension",
                    f'An adjustment in step "{label}" refers to dimension "{dim}" which is not in the matrix setup',
                    "Adjustments should only use dimensions declared in setup",
                    kind=IssueKind.MATRIX,
                    step=step,
                )

    # ---------------------------------------------------------------------
    # 5. Text syntax
    # ---------------------------------------------------------------------

    def _check_text(self, text: str, out: _Collector) -> None:
        if not text.strip():
            out.error(
                "Empty YAML",
                "The YAML content is empty",
                "Generate or write pipeline configuration",
                kind=IssueKind.TEXT_SYNTAX,
            )
            return

        lines = text.split("\n")

        tab_lines = [idx + 1 for idx, line in enumerate(lines) if "\t" in line]
        if tab_lines:
            out.error(
                "Tabs found in YAML",
                f"YAML must use spaces, not tabs. Found tabs on lines: {', '.join(map(str, tab_lines))}",
                "Replace all tabs with spaces",
                kind=IssueKind.TEXT_SYNTAX,
            )

        trailing = [idx + 1 for idx, line in enumerate(lines) if line.rstrip("\r").endswith((" ", "\t"))]
        if trailing:
            out.warning(
                "Trailing spaces found",
                f"Lines with trailing spaces: {', '.join(map(str, trailing))}",
                "Remove trailing spaces for cleaner YAML",
                kind=IssueKind.TEXT_SYNTAX,
            )

        if not _ROOT_KEY.search(text):
            out.error(
                "Missing steps declaration",
                'YAML must contain a top-level "steps:" field',
                'Add "steps:" at the beginning of your pipeline',
                kind=IssueKind.TEXT_SYNTAX,
            )

        widths = sorted(
            {len(line) - len(line.lstrip(" ")) for line in lines if line.strip() and line.startswith(" ")}
        )
        if widths and any(w % widths[0] for w in widths[1:]):
            out.warning(
                "Inconsistent indentation",
                "YAML indentation levels are not consistent",
                "Use consistent spacing (2 or 4 spaces per level)",
                kind=IssueKind.TEXT_SYNTAX,
            )

    # ---------------------------------------------------------------------
    # 6. Domain rules
    # ---------------------------------------------------------------------

    def _check_domain_rules(
        self, pipeline: Pipeline, steps: List[Step], names: _StepNames, out: _Collector
    ) -> None:
        sequences: List[Sequence[Step]] = [pipeline.steps]
        sequences += [s.steps for s in steps if isinstance(s, GroupStep)]
        for sequence in sequences:
            previous: Optional[Step] = None
            for idx, step in enumerate(sequence):
                if previous is not None and previous.is_parallel and step.is_parallel:
                    out.warning(
                        "Missing wait between parallel steps",
                        f'Parallel steps "{names[previous]}" and "{names[step]}" '
                        f"run back to back at positions {idx} and {idx + 1}",
                        "Consider adding a wait step between parallel executions",
                        step=step,
                    )
                previous = step

        for step in steps:
            if not isinstance(step, CommandStep):
                continue
            paths = step.artifact_paths
            if paths is None or isinstance(paths, str):
                continue
            label = names[step]
            if isinstance(paths, (list, tuple)):
                if len(paths) == 0:
                    out.warning(
                        "Empty artifact paths",
                        f'Step "{label}" has empty artifact_paths array',
                        "Remove artifact_paths or add paths to upload",
                        step=step,
                    )
                elif not all(isinstance(p, str) for p in paths):
                    out.error(
                        "Invalid artifact_paths format",
                        f'Step "{label}" has non-string entries in artifact_paths',
                        "artifact_paths must be a string or array of strings",
                        step=step,
                    )
            else:
                out.error(
                    "Invalid artifact_paths format",
                    f'Step "{label}" has invalid artifact_paths',
                    "artifact_paths must be a string or array of strings",
                    step=step,
                )

    # ---------------------------------------------------------------------
    # 7. Best practices
    # ---------------------------------------------------------------------

    def _check_best_practices(
        self, pipeline: Pipeline, steps: List[Step], names: _StepNames, out: _Collector
    ) -> None:
        for step in steps:
            if step.type in (StepType.COMMAND, StepType.BLOCK, StepType.INPUT) and not step.key:
                out.suggest(
                    "Consider adding step keys",
                    f'Step "{names[step]}" has no key',
                    "Keys help with dependencies and build insights",
                    step=step,
                )

        for idx, step in enumerate(steps):
            if step.type != StepType.WAIT and not step.label:
                out.suggest(
                    "Missing step label",
                    f"Step {idx + 1} ({step.type.value}) has no label",
                    "Labels make builds easier to understand",
                    step=step,
                )

        if len(pipeline) > self.settings.large_pipeline_steps:
            out.suggest(
                "Large pipeline",
                f"Pipeline has {len(pipeline)} steps",
                "Consider breaking into multiple pipelines or using dynamic pipeline uploads",
            )


def _duplicates(values) -> List[str]:
    seen: set = set()
    dupes: List[str] = []
    for v in values:
        if not v:
            continue
        if v in seen and v not in dupes:
            dupes.append(v)
        seen.add(v)
    return dupes


def validate(
    pipeline: Pipeline,
    text: Optional[str] = None,
    settings: Optional[ValidatorSettings] = None,
) -> ValidationReport:
    """Validate with default (or given) settings."""
    return UnifiedValidator(settings).validate(pipeline, text)
