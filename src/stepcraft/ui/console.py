"""Console output formatting utilities for stepcraft."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from stepcraft.graph import Layout, Timeline
    from stepcraft.matrix import MatrixExpansion
    from stepcraft.validator import Issue, ValidationReport


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_pipeline_loaded(self, source: str, step_count: int, fingerprint: str) -> None:
        """Print pipeline load information."""
        short_key = fingerprint[:12] + "..." if len(fingerprint) > 12 else fingerprint
        print(f"Pipeline: {source}")
        print(f"Steps: {step_count}")
        print(f"Snapshot: {short_key}")

    def print_issue(self, severity: str, issue: Issue) -> None:
        """Print one validation finding."""
        prefix = {"error": "ERROR", "warning": "WARNING", "info": "INFO"}.get(severity, severity.upper())
        print(f"  {prefix}: {issue.title}")
        print(f"    {issue.message}")
        if issue.suggestion:
            print(f"    Hint: {issue.suggestion}")

    def print_report(self, report: ValidationReport) -> None:
        """Print a full validation report, errors first."""
        print("\n" + "=" * 40)
        print("VALIDATION")
        print("=" * 40)
        print(f"{report.summary.text} ({report.summary.details})")
        for title, severity, issues in (
            ("Errors", "error", report.errors),
            ("Warnings", "warning", report.warnings),
            ("Suggestions", "info", report.info),
        ):
            if not issues:
                continue
            print(f"\n{title}:")
            for issue in issues:
                self.print_issue(severity, issue)

    def print_layout(self, layout: Layout) -> None:
        """Print graph levels and edges."""
        labels = {n.node_id: n.label for n in layout.nodes}
        for level, bucket in enumerate(layout.levels):
            names = ", ".join(labels.get(n, n) for n in bucket)
            print(f"=== Level {level}: {names} ===")
        if layout.edges:
            print("\nEdges:")
            for edge in layout.edges:
                print(f"  {edge.source} -> {edge.target} ({edge.kind})")

    def print_timeline(self, timeline: Timeline) -> None:
        """Print estimated start and end minutes per step."""
        print(f"\nEstimated duration: {timeline.total_minutes:g}m")
        for entry in timeline.entries:
            print(f"  [{entry.start:>5g}m - {entry.end:>5g}m] {entry.label} (level {entry.level})")

    def print_matrix(self, name: str, expansion: MatrixExpansion) -> None:
        """Print a matrix preview."""
        print(f"\nMATRIX: {name}")
        print(f"Dimensions: {expansion.dimension_count}")
        print(f"Jobs: {expansion.total_combinations}")
        for combo in expansion.sample_combinations:
            print("  " + " ".join(f"{k}={v}" for k, v in combo.items()))
        if expansion.remaining:
            print(f"  ... and {expansion.remaining} more")
        if expansion.empty_dimensions:
            print(f"Empty dimensions: {', '.join(expansion.empty_dimensions)}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
