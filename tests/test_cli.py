from __future__ import annotations

import json
from pathlib import Path

import yaml
from click.testing import CliRunner

from stepcraft.cli import cli


def _write_snapshot(path, steps):
    path.write_text(json.dumps({"steps": steps}), encoding="utf-8")


SCENARIO = [
    {"id": "s1", "type": "command", "properties": {"label": "Install", "key": "install", "command": "npm ci"}},
    {
        "id": "s2",
        "type": "command",
        "properties": {"label": "Test", "key": "test", "command": "npm test", "depends_on": ["install"]},
    },
    {
        "id": "s3",
        "type": "command",
        "properties": {"label": "Build", "key": "build", "command": "npm run build", "depends_on": ["test"]},
    },
]

BROKEN = [
    {"id": "s1", "type": "command", "properties": {"label": "Deploy", "key": "deploy", "depends_on": ["missing-key"]}},
]


def test_render_discovers_default_snapshot():
    runner = CliRunner()
    with runner.isolated_filesystem():
        _write_snapshot(Path("pipeline.json"), SCENARIO)
        result = runner.invoke(cli, ["render", "--name", "Demo"])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("# Pipeline: Demo\nsteps:\n")
    assert [s["key"] for s in yaml.safe_load(result.output)["steps"]] == ["install", "test", "build"]


def test_render_without_pipeline_file_fails():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["render"])
    assert result.exit_code == 1
    assert "No pipeline file found" in result.output


def test_multiple_candidates_is_an_error(tmp_path):
    runner = CliRunner()
    with runner.isolated_filesystem(temp_dir=tmp_path):
        _write_snapshot(Path("pipeline.json"), SCENARIO)
        _write_snapshot(Path("web.pipeline.json"), SCENARIO)
        result = runner.invoke(cli, ["render"])
    assert result.exit_code == 1
    assert "Multiple pipeline files found" in result.output


def test_validate_json_report(tmp_path):
    path = tmp_path / "ok.pipeline.json"
    _write_snapshot(path, SCENARIO)
    result = CliRunner().invoke(cli, ["validate", "--pipeline", str(path), "--json"])

    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["valid"] is True
    assert report["summary"]["status"] == "pass"


def test_validate_fails_on_errors(tmp_path):
    path = tmp_path / "broken.json"
    _write_snapshot(path, BROKEN)
    result = CliRunner().invoke(cli, ["validate", "--pipeline", str(path)])

    assert result.exit_code == 1
    assert "Pipeline validation failed" in result.output
    assert "missing-key" in result.output


def test_validate_strict_fails_on_warnings(tmp_path):
    path = tmp_path / "danger.json"
    _write_snapshot(
        path, [{"id": "s1", "type": "command", "properties": {"label": "Clean", "key": "clean", "command": "rm -rf /"}}]
    )
    runner = CliRunner()
    assert runner.invoke(cli, ["validate", "--pipeline", str(path)]).exit_code == 0
    assert runner.invoke(cli, ["validate", "--pipeline", str(path), "--strict"]).exit_code == 1


def test_validate_checks_yaml_text(tmp_path):
    path = tmp_path / "ok.json"
    _write_snapshot(path, SCENARIO)
    doc = tmp_path / "hand-edited.yml"
    doc.write_text("steps:\n\t- command: make\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["validate", "--pipeline", str(path), "--yaml", str(doc), "--json"])
    assert result.exit_code == 1
    titles = [e["title"] for e in json.loads(result.output)["errors"]]
    assert titles == ["Tabs found in YAML"]


def test_export_writes_only_valid_pipelines(tmp_path):
    good = tmp_path / "good.json"
    bad = tmp_path / "bad.json"
    _write_snapshot(good, SCENARIO)
    _write_snapshot(bad, BROKEN)
    out = tmp_path / "out.yml"
    runner = CliRunner()

    result = runner.invoke(cli, ["export", "--pipeline", str(bad), "--output", str(out)])
    assert result.exit_code == 1
    assert "Export blocked" in result.output
    assert not out.exists()

    result = runner.invoke(cli, ["export", "--pipeline", str(good), "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(out.read_text(encoding="utf-8"))["steps"][0]["key"] == "install"


def test_graph_outputs(tmp_path):
    path = tmp_path / "ok.json"
    _write_snapshot(path, SCENARIO)
    runner = CliRunner()

    text = runner.invoke(cli, ["graph", "--pipeline", str(path)])
    assert text.exit_code == 0, text.output
    assert "=== Level 0: Install ===" in text.output

    as_json = json.loads(runner.invoke(cli, ["graph", "--pipeline", str(path), "--json"]).output)
    assert as_json["levels"] == [["install"], ["test"], ["build"]]

    dot = runner.invoke(cli, ["graph", "--pipeline", str(path), "--dot"]).output
    assert '"install" -> "test";' in dot


def test_matrix_preview(tmp_path):
    path = tmp_path / "matrix.json"
    _write_snapshot(
        path,
        [
            {
                "id": "s1",
                "type": "command",
                "properties": {
                    "label": "Test",
                    "key": "test",
                    "command": "tox",
                    "matrix": {"py": ["3.11", "3.12"], "os": ["linux", "mac"]},
                },
            }
        ],
    )
    runner = CliRunner()

    result = runner.invoke(cli, ["matrix", "--pipeline", str(path)])
    assert result.exit_code == 0, result.output
    assert "Jobs: 4" in result.output
    assert "py=3.11 os=linux" in result.output

    missing = runner.invoke(cli, ["matrix", "--pipeline", str(path), "--step", "nope"])
    assert missing.exit_code == 1


def test_graph_timeline(tmp_path):
    path = tmp_path / "ok.json"
    _write_snapshot(path, SCENARIO)
    runner = CliRunner()

    text = runner.invoke(cli, ["graph", "--pipeline", str(path), "--timeline"])
    assert text.exit_code == 0, text.output
    assert "Estimated duration: 15m" in text.output

    data = json.loads(runner.invoke(cli, ["graph", "--pipeline", str(path), "--json", "--timeline"]).output)
    assert data["timeline"]["total_minutes"] == 15.0
    assert [e["start"] for e in data["timeline"]["entries"]] == [0.0, 5.0, 10.0]
