from __future__ import annotations

import json

import pytest

from stepcraft.loader import PipelineLoadError, detect_step_type, import_document, load_pipeline, load_snapshot
from stepcraft.model import BlockStep, CommandStep, GroupStep, Pipeline, PluginStep, StepType, WaitStep
from stepcraft.serializer import serialize


def test_load_json_snapshot(tmp_path, scenario):
    path = tmp_path / "pipeline.json"
    path.write_text(json.dumps(scenario.to_dict()), encoding="utf-8")

    loaded = load_pipeline(path)
    assert loaded == scenario
    assert loaded.fingerprint() == scenario.fingerprint()


def test_load_bare_list_assigns_ids():
    p = load_snapshot([{"type": "command", "properties": {"command": "make"}}, {"type": "wait"}])
    assert [s.id for s in p] == ["step-1", "step-2"]
    assert isinstance(p.steps[1], WaitStep)


def test_invalid_snapshot_shape(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"steps": [{"type": "command", "properties": "nope"}]}), encoding="utf-8")
    with pytest.raises(PipelineLoadError) as exc:
        load_pipeline(path)
    assert exc.value.kind == "invalid_snapshot"


def test_unknown_step_type():
    with pytest.raises(PipelineLoadError) as exc:
        load_snapshot({"steps": [{"type": "teleport"}]})
    assert exc.value.kind == "invalid_step"
    assert "teleport" in exc.value.message


def test_missing_and_unsupported_files(tmp_path):
    with pytest.raises(PipelineLoadError) as exc:
        load_pipeline(tmp_path / "nope.json")
    assert exc.value.kind == "not_found"

    other = tmp_path / "pipeline.toml"
    other.write_text("", encoding="utf-8")
    with pytest.raises(PipelineLoadError) as exc:
        load_pipeline(other)
    assert exc.value.kind == "unsupported"


def test_detect_step_type():
    assert detect_step_type("wait") == StepType.WAIT
    assert detect_step_type({"wait": None, "continue_on_failure": True}) == StepType.WAIT
    assert detect_step_type("make test") == StepType.COMMAND
    assert detect_step_type({"block": "Release"}) == StepType.BLOCK
    assert detect_step_type({"input": "Info"}) == StepType.INPUT
    assert detect_step_type({"trigger": "deploy"}) == StepType.TRIGGER
    assert detect_step_type({"group": "Tests", "steps": []}) == StepType.GROUP
    assert detect_step_type({"notify": [{"slack": "#ci"}]}) == StepType.NOTIFY
    assert detect_step_type({"plugins": [{"docker#v5": None}]}) == StepType.PLUGIN
    assert detect_step_type({"command": "make", "plugins": []}) == StepType.COMMAND


def test_import_yaml_document(tmp_path):
    path = tmp_path / "pipeline.yml"
    path.write_text(
        "steps:\n"
        "  - label: Install\n"
        "    key: install\n"
        "    command: npm ci\n"
        "  - wait\n"
        "  - block: Release\n"
        "    key: release\n"
        "  - group: Checks\n"
        "    steps:\n"
        "      - name: Lint\n"
        "        commands:\n"
        "          - npm run lint\n"
        "          - npm run format\n"
        "  - label: Publish\n"
        "    plugins:\n"
        "      - docker#v5.0.0:\n"
        "          image: node\n",
        encoding="utf-8",
    )
    p = load_pipeline(path)

    assert [type(s) for s in p] == [CommandStep, WaitStep, BlockStep, GroupStep, PluginStep]
    assert p.steps[2].label == "Release"
    child = p.steps[3].steps[0]
    assert child.id == "step-4-1"
    assert child.label == "Lint"
    assert child.command_lines == ["npm run lint", "npm run format"]
    assert p.steps[4].plugins == {"docker#v5.0.0": {"image": "node"}}


def test_import_round_trips_rendered_text(scenario):
    import yaml

    imported = import_document(yaml.safe_load(serialize(scenario)))
    assert serialize(imported) == serialize(scenario)


def test_import_rejects_non_sequence():
    with pytest.raises(PipelineLoadError) as exc:
        import_document({"steps": {"label": "x"}})
    assert exc.value.kind == "invalid_document"


def test_load_python_steps(tmp_path):
    path = tmp_path / "stepcraft_pipeline.py"
    path.write_text(
        "from stepcraft import dsl\n"
        "\n"
        "STEPS = [\n"
        "    dsl.command('Install', 'npm ci', key='install'),\n"
        "    dsl.wait(),\n"
        "    dsl.command('Test', 'npm test', depends_on='install'),\n"
        "]\n",
        encoding="utf-8",
    )
    p = load_pipeline(path)
    assert isinstance(p, Pipeline)
    assert [s.type for s in p] == [StepType.COMMAND, StepType.WAIT, StepType.COMMAND]
    assert p.steps[2].depends_on == ("install",)


def test_load_python_factory_and_helper_name_clash(tmp_path):
    factory = tmp_path / "factory.py"
    factory.write_text(
        "from stepcraft import dsl\n"
        "\n"
        "def pipeline():\n"
        "    return dsl.pipeline(dsl.command('Build', 'make'))\n",
        encoding="utf-8",
    )
    assert len(load_pipeline(factory)) == 1

    clash = tmp_path / "clash.py"
    clash.write_text(
        "from stepcraft import command, pipeline\n"
        "\n"
        "STEPS = [command('Build', 'make'), command('Test', 'make test')]\n",
        encoding="utf-8",
    )
    assert len(load_pipeline(clash)) == 2


def test_load_python_without_steps(tmp_path):
    path = tmp_path / "empty.py"
    path.write_text("X = 1\n", encoding="utf-8")
    with pytest.raises(PipelineLoadError) as exc:
        load_pipeline(path)
    assert exc.value.kind == "invalid_definition"
