# yaml_writer.py
from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Mapping

# ---------------------------------------------------------------------
# Quoting rule
# ---------------------------------------------------------------------
# A scalar is emitted in double quotes when it is:
#   - empty
#   - a reserved word (case-insensitive)
#   - a number in any form YAML resolves (hex, octal, underscores, .inf, .nan)
#   - contains a structural/special character
#   - has leading or trailing whitespace
#   - contains a line break or tab
#   - starts with a quote or the null indicator
# Everything else is emitted as a plain scalar.
# ---------------------------------------------------------------------

RESERVED_WORDS = frozenset({"true", "false", "null", "yes", "no", "on", "off"})
SPECIAL_CHARS = ":{}[],&*#?|-<>=!%@`"

# every form PyYAML resolves to int or float, plus 0o octal and bare exponents
_NUMERIC = re.compile(
    r"""^[+-]?(?:
        0b[01_]+
      | 0o[0-7_]+
      | 0x[0-9a-f_]+
      | [0-9][0-9_]*(?:\.[0-9_]*)?(?:e[+-]?[0-9]+)?
      | \.[0-9_]+(?:e[+-]?[0-9]+)?
      | \.(?:inf|nan)
    )$""",
    re.VERBOSE | re.IGNORECASE,
)
_SPECIAL = re.compile("[" + re.escape(SPECIAL_CHARS) + "]")
_INDICATOR_START = ("'", '"', "~")

INDENT = "  "


def needs_quoting(value: str) -> bool:
    if value == "":
        return True
    if value.lower() in RESERVED_WORDS:
        return True
    if _NUMERIC.match(value):
        return True
    if _SPECIAL.search(value):
        return True
    if value != value.strip():
        return True
    if "\n" in value or "\r" in value or "\t" in value:
        return True
    return value.startswith(_INDICATOR_START)


def quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def scalar(value: Any) -> str:
    """Render a single scalar; strings go through the quoting rule."""
    if value is None:
        return "~"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    return quote(text) if needs_quoting(text) else text


# ---------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------

class YamlWriter:
    """
    Line-oriented writer that owns indentation.

    Every nesting level is exactly one INDENT. Sequence entries open with
    "- ", which has the same width as INDENT, so the lines that follow the
    first line of an entry stay aligned with it:

        w = YamlWriter()
        w.line("steps:")
        with w.indent():
            with w.item():
                w.line("label: Build")
                w.line("command: make")

        steps:
          - label: Build
            command: make
    """

    def __init__(self) -> None:
        self._lines: List[str] = []
        self._depth = 0
        self._bullets = 0

    def line(self, text: str) -> None:
        if self._bullets:
            prefix = INDENT * (self._depth - self._bullets) + "- " * self._bullets
            self._bullets = 0
        else:
            prefix = INDENT * self._depth
        self._lines.append(prefix + text)

    def comment(self, text: str) -> None:
        self.line("# " + " ".join(str(text).split()))

    @contextmanager
    def indent(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    @contextmanager
    def item(self) -> Iterator[None]:
        """Open a sequence entry; the next line written gets the "- " marker."""
        self._depth += 1
        self._bullets += 1
        try:
            yield
        finally:
            self._depth -= 1
            self._bullets = 0

    # -- generic values ------------------------------------------------

    def field(self, key: Any, value: Any) -> None:
        """Write `key: value`, nesting mappings and sequences below the key."""
        k = scalar(str(key))
        if isinstance(value, Mapping):
            if not value:
                self.line(f"{k}: {{}}")
                return
            self.line(f"{k}:")
            with self.indent():
                self.mapping(value)
        elif isinstance(value, (list, tuple)):
            if not value:
                self.line(f"{k}: []")
                return
            self.line(f"{k}:")
            with self.indent():
                self.sequence(value)
        else:
            self.line(f"{k}: {scalar(value)}")

    def mapping(self, data: Mapping[Any, Any]) -> None:
        for k, v in data.items():
            self.field(k, v)

    def sequence(self, items: Iterable[Any]) -> None:
        for entry in items:
            with self.item():
                if isinstance(entry, Mapping) and entry:
                    self.mapping(entry)
                elif isinstance(entry, (list, tuple)) and entry:
                    self.sequence(entry)
                elif isinstance(entry, Mapping):
                    self.line("{}")
                elif isinstance(entry, (list, tuple)):
                    self.line("[]")
                else:
                    self.line(scalar(entry))

    def getvalue(self) -> str:
        return "\n".join(self._lines) + "\n"
