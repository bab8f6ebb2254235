from __future__ import annotations

import pytest

from stepcraft import dsl
from stepcraft.graph import EXPLICIT, IMPLICIT_WAIT, DependencyGraph, GraphError, estimate_duration, layout_pipeline


def _cyclic():
    return dsl.pipeline(
        dsl.command("A", "a", key="a", depends_on="b"),
        dsl.command("B", "b", key="b", depends_on="c"),
        dsl.command("C", "c", key="c", depends_on="a"),
    )


def test_nodes_use_key_then_id():
    p = dsl.pipeline(dsl.command("A", "a", key="a", id="s1"), dsl.command("B", "b", id="s2"))
    graph = DependencyGraph.from_pipeline(p)
    assert graph.nodes == ["a", "s2"]


def test_explicit_edges_point_from_dependency(scenario):
    graph = DependencyGraph.from_pipeline(scenario)
    assert [(e.source, e.target, e.kind) for e in graph.edges] == [
        ("install", "test", EXPLICIT),
        ("test", "build", EXPLICIT),
    ]
    assert graph.detect_cycles() == []


def test_single_cycle_names_all_three_keys():
    cycles = DependencyGraph.from_pipeline(_cyclic()).detect_cycles()
    assert len(cycles) == 1
    assert sorted(cycles[0].nodes) == ["a", "b", "c"]
    assert cycles[0].path[0] == cycles[0].path[-1]
    assert str(cycles[0]).count("→") == 3


def test_self_dependency_is_a_cycle():
    p = dsl.pipeline(dsl.command("A", "a", key="a", depends_on="a"))
    cycles = DependencyGraph.from_pipeline(p).detect_cycles()
    assert [c.path for c in cycles] == [("a", "a")]


def test_unresolved_dependencies_are_collected():
    p = dsl.pipeline(dsl.command("A", "a", key="a", depends_on=["missing-key", "a2"]), dsl.command("B", "b", key="a2"))
    graph = DependencyGraph.from_pipeline(p)
    assert [missing for _step, missing in graph.unresolved()] == ["missing-key"]
    assert graph.edges_of_kind(EXPLICIT)[0].source == "a2"


def test_wait_is_a_full_barrier():
    p = dsl.pipeline(
        dsl.command("A", "a", key="a"),
        dsl.command("B", "b", key="b"),
        dsl.wait(id="w1"),
        dsl.command("C", "c", key="c"),
        dsl.wait(id="w2"),
        dsl.command("D", "d", key="d"),
    )
    graph = DependencyGraph.from_pipeline(p)

    implicit = {(e.source, e.target) for e in graph.edges_of_kind(IMPLICIT_WAIT)}
    assert implicit == {
        ("a", "w1"),
        ("b", "w1"),
        ("w1", "c"),
        ("w1", "w2"),
        ("c", "w2"),
        ("w2", "d"),
    }
    levels = graph.compute_levels()
    assert levels == {"a": 0, "b": 0, "w1": 1, "c": 2, "w2": 3, "d": 4}


def test_wait_inside_group_only_affects_the_group():
    p = dsl.pipeline(
        dsl.command("Outside", "x", key="outside"),
        dsl.group(
            "G",
            dsl.command("First", "1", key="first"),
            dsl.wait(),
            dsl.command("Second", "2", key="second"),
            key="g",
        ),
    )
    graph = DependencyGraph.from_pipeline(p)
    sources = {e.source for e in graph.edges_of_kind(IMPLICIT_WAIT)}
    assert "outside" not in sources
    assert graph.compute_levels()["second"] == 2


def test_levels_leave_cycle_members_at_zero():
    p = dsl.pipeline(*_cyclic().steps, dsl.command("D", "d", key="d", depends_on="c"))
    levels = DependencyGraph.from_pipeline(p).compute_levels()
    assert levels == {"a": 0, "b": 0, "c": 0, "d": 0}


def test_topological_order_groups_parallel_steps():
    p = dsl.pipeline(
        dsl.command("Install", "i", key="install"),
        dsl.command("Lint", "l", key="lint", depends_on="install"),
        dsl.command("Test", "t", key="test", depends_on="install"),
        dsl.command("Build", "b", key="build", depends_on=["lint", "test"]),
    )
    assert DependencyGraph.from_pipeline(p).topological_order() == [["install"], ["lint", "test"], ["build"]]


def test_topological_order_raises_on_cycle():
    with pytest.raises(GraphError, match="cycle"):
        DependencyGraph.from_pipeline(_cyclic()).topological_order()


def test_layout_buckets_and_positions(scenario):
    layout = layout_pipeline(scenario)
    assert layout.levels == [["install"], ["test"], ["build"]]
    assert [(n.level, n.position) for n in layout.nodes] == [(0, 0), (1, 0), (2, 0)]
    assert layout.nodes[1].y > layout.nodes[0].y

    data = layout.to_dict()
    assert data["edges"][0] == {"source": "install", "target": "test", "kind": "explicit"}
    assert data["nodes"][0]["label"] == "Install"


def test_layout_dot_marks_implicit_edges_dashed():
    p = dsl.pipeline(dsl.command("A", "a", key="a"), dsl.wait(id="w"), dsl.command("B", "b", key="b"))
    dot = layout_pipeline(p).to_dot()
    assert dot.startswith("digraph pipeline {")
    assert '"a" -> "w" [style=dashed];' in dot
    assert '"w" [label="w", shape=circle];' in dot


def test_nodes_are_indexed_by_position_not_id():
    p = dsl.pipeline(
        dsl.command("A", "make a", key="a", id="step-1"),
        dsl.command("B", "make b", key="b", depends_on="a", id="step-1"),
    )
    graph = DependencyGraph.from_pipeline(p)
    assert graph.nodes == ["a", "b"]
    assert [(e.source, e.target) for e in graph.edges] == [("a", "b")]
    assert graph.detect_cycles() == []


def test_timeline_follows_levels():
    p = dsl.pipeline(
        dsl.command("Install", "i", key="install"),
        dsl.command("Lint", "l", key="lint", depends_on="install"),
        dsl.trigger("deploy", key="deploy", depends_on="install"),
        dsl.block("Ship", key="ship", depends_on=["lint", "deploy"]),
    )
    timeline = DependencyGraph.from_pipeline(p).timeline()

    spans = {e.node_id: (e.level, e.start, e.end) for e in timeline.entries}
    assert spans == {
        "install": (0, 0.0, 5.0),
        "lint": (1, 5.0, 10.0),
        "deploy": (1, 5.0, 7.0),
        "ship": (2, 10.0, 11.0),
    }
    assert timeline.total_minutes == 11.0
    assert timeline.to_dict()["entries"][2]["label"] == "trigger"


def test_duration_estimates():
    assert estimate_duration(dsl.command("A", "a")) == 5.0
    assert estimate_duration(dsl.command("A", "a", parallelism=4)) == 2.5
    assert estimate_duration(dsl.command("A", "a", retry=True)) == 7.5
    assert estimate_duration(dsl.group("G", dsl.command("A", "a"))) == 10.0
    assert estimate_duration(dsl.notify({"slack": "#ci"})) == 5.0


def test_timeline_survives_cycles():
    timeline = DependencyGraph.from_pipeline(_cyclic()).timeline()
    assert {e.level for e in timeline.entries} == {0}
    assert timeline.total_minutes == 5.0
