from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.catalog import SKILL_NODES


def _load_script():
    path = PROJECT_BASE / "scripts" / "render_skill_tree.py"
    spec = importlib.util.spec_from_file_location("render_skill_tree", path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_catalog_skill_tree_is_well_formed() -> None:
    script = _load_script()
    graph = script.build_skill_graph()

    assert set(graph.nodes) == set(SKILL_NODES)
    assert script.check_skill_graph(graph) == []


def test_prerequisite_edges_point_to_dependants() -> None:
    graph = _load_script().build_skill_graph()

    assert graph.has_edge("focus-1-1", "focus-2-1")
    assert set(graph.predecessors("disc-2-1")) == {"disc-1-1", "disc-1-2"}


def test_check_reports_cycles_and_tier_inversions() -> None:
    script = _load_script()
    graph = script.build_skill_graph()
    graph.add_edge("focus-4-1", "focus-1-1")
    graph.add_edge("ghost", "focus-1-1")

    problems = script.check_skill_graph(graph)

    assert "prerequisites form a cycle" in problems
    assert any("focus-4-1 (tier 4) gates focus-1-1" in problem for problem in problems)
    assert any(problem.startswith("ghost is referenced") for problem in problems)
