from __future__ import annotations

import pytest
import yaml
from hypothesis import given, settings
from hypothesis import strategies as st

from stepcraft.yaml_writer import YamlWriter, needs_quoting, quote, scalar


@pytest.mark.parametrize(
    "value",
    [
        "",
        "true",
        "False",
        "NULL",
        "yes",
        "No",
        "on",
        "OFF",
        "42",
        "-7",
        "3.14",
        ".5",
        "Build: Backend",
        "npm-test",
        "a,b",
        "#comment",
        "50%",
        "user@host",
        "x=1",
        " leading",
        "trailing ",
        "two\nlines",
        "'quoted",
        "~",
    ],
)
def test_values_that_need_quotes(value):
    assert needs_quoting(value)


@pytest.mark.parametrize("value", ["Run Tests", "npm ci", "make", "Deploy to prod", "truthy", "v1.2.3beta"])
def test_plain_values(value):
    assert not needs_quoting(value)


def test_scalar_rendering():
    assert scalar("true") == '"true"'
    assert scalar("Build: Backend") == '"Build: Backend"'
    assert scalar("Run Tests") == "Run Tests"
    assert scalar(True) == "true"
    assert scalar(False) == "false"
    assert scalar(None) == "~"
    assert scalar(30) == "30"


def test_quote_escapes_backslash_quote_and_newline():
    assert quote('say "hi"\\now\n') == '"say \\"hi\\"\\\\now\\n"'


def test_writer_nests_items_and_mappings():
    w = YamlWriter()
    w.line("steps:")
    with w.indent():
        with w.item():
            w.field("label", "Build")
            w.field("env", {"CI": "true", "NODE": "20"})
            w.field("commands", ["make", "make test"])
        with w.item():
            w.line("wait")

    assert w.getvalue() == (
        "steps:\n"
        "  - label: Build\n"
        "    env:\n"
        '      CI: "true"\n'
        '      NODE: "20"\n'
        "    commands:\n"
        "      - make\n"
        "      - make test\n"
        "  - wait\n"
    )


def test_writer_empty_collections():
    w = YamlWriter()
    w.field("env", {})
    w.field("depends_on", [])
    assert w.getvalue() == "env: {}\ndepends_on: []\n"


def test_sequence_of_mappings_parses_back():
    w = YamlWriter()
    w.field("options", [{"label": "Staging", "value": "staging"}, {"label": "Prod", "value": "prod"}])
    assert yaml.safe_load(w.getvalue()) == {
        "options": [{"label": "Staging", "value": "staging"}, {"label": "Prod", "value": "prod"}]
    }


# Letters chosen so hex, octal, binary, exponents, .inf/.nan and the reserved words can all be spelled.
_ALPHABET = "abefinostxyABEFINOX0179_+ .:-#\"'\\\n{}[],&*?|<>=!%@`~"


@settings(max_examples=300)
@given(st.text(alphabet=_ALPHABET, max_size=12))
def test_every_scalar_reads_back_as_the_same_string(text):
    loaded = yaml.safe_load(f"value: {scalar(text)}\n")
    assert loaded == {"value": text}


@settings(max_examples=300)
@given(st.text(alphabet=_ALPHABET, max_size=12))
def test_quoting_covers_every_value_yaml_would_reinterpret(text):
    # PyYAML is the reference: anything it does not read back verbatim when left plain must be quoted
    try:
        plain = yaml.safe_load(f"value: {text}\n")
    except (yaml.YAMLError, ValueError):
        plain = None
    if plain != {"value": text}:
        assert needs_quoting(text)


@pytest.mark.parametrize(
    "value, resolved",
    [
        ("0x1F", 31),
        ("1_000", 1000),
        ("017", 15),
        ("0b101", 5),
        ("+12", 12),
        ("1.5e+3", 1500.0),
        ("-.INF", float("-inf")),
    ],
)
def test_yaml_numeric_forms_are_quoted(value, resolved):
    assert yaml.safe_load(f"value: {value}\n") == {"value": resolved}
    assert needs_quoting(value)
    assert yaml.safe_load(f"value: {scalar(value)}\n") == {"value": value}


def test_nan_is_quoted():
    assert isinstance(yaml.safe_load("value: .NaN\n")["value"], float)
    assert scalar(".NaN") == '".NaN"'
