#!/usr/bin/env python3
"""Render the skill tree as a layered prerequisite graph."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

import networkx as nx

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from habitrpg.catalog import SKILL_NODES

BRANCH_COLOURS = {
    "discipline": "#d62728",
    "focus": "#1f77b4",
    "resilience": "#2ca02c",
}
DEFAULT_COLOUR = "#7f7f7f"


def build_skill_graph() -> nx.DiGraph:
    """Return a graph with an edge from every prerequisite to its dependant."""

    graph = nx.DiGraph()
    for node in SKILL_NODES.values():
        graph.add_node(
            node.id,
            label=node.name,
            branch=node.branch,
            tier=node.tier,
            cost=node.cost,
            week_unlock=node.week_unlock,
        )
    for node in SKILL_NODES.values():
        for prerequisite in node.prerequisite_ids:
            graph.add_edge(prerequisite, node.id)
    return graph


def check_skill_graph(graph: nx.DiGraph) -> list[str]:
    """List structural problems: unknown prerequisites, cycles, tier inversions."""

    problems: list[str] = []
    for node_id in graph.nodes:
        if node_id not in SKILL_NODES:
            problems.append(f"{node_id} is referenced as a prerequisite but not defined")
    if not nx.is_directed_acyclic_graph(graph):
        problems.append("prerequisites form a cycle")
    for source, target in graph.edges:
        source_tier = graph.nodes[source].get("tier")
        target_tier = graph.nodes[target].get("tier")
        if source_tier is not None and target_tier is not None and source_tier >= target_tier:
            problems.append(f"{source} (tier {source_tier}) gates {target} (tier {target_tier})")
    return problems


def render_skill_tree(output_path: Path, dpi: int = 200, size: float = 16.0) -> None:
    import matplotlib.pyplot as plt
    from matplotlib.lines import Line2D

    graph = build_skill_graph()
    pos = nx.multipartite_layout(graph, subset_key="tier", align="horizontal")
    # Tier 1 at the top.
    pos = {node: (x, -y) for node, (x, y) in pos.items()}

    plt.figure(figsize=(size, size * 0.6), dpi=dpi)
    colours = [
        BRANCH_COLOURS.get(graph.nodes[node].get("branch"), DEFAULT_COLOUR) for node in graph.nodes
    ]
    nx.draw_networkx_nodes(graph, pos, node_color=colours, node_size=900, alpha=0.85)
    labels = {
        node: f"{graph.nodes[node]['label']}\n{graph.nodes[node]['cost']} shards"
        for node in graph.nodes
    }
    nx.draw_networkx_labels(graph, pos, labels=labels, font_size=6)
    nx.draw_networkx_edges(graph, pos, arrows=True, arrowsize=10, edge_color="#555555")

    legend_handles = [
        Line2D([], [], marker="o", linestyle="", color=colour, label=branch.title())
        for branch, colour in BRANCH_COLOURS.items()
    ]
    plt.legend(handles=legend_handles, loc="upper left", frameon=False, fontsize=8)
    plt.axis("off")
    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, bbox_inches="tight")
    plt.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("img/skill-tree.png"),
        help="Where to write the rendered graph image.",
    )
    parser.add_argument("--dpi", type=int, default=200, help="Rendering DPI for the figure.")
    parser.add_argument("--size", type=float, default=16.0, help="Figure width in inches.")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only validate the prerequisite graph and print any problems.",
    )

    args = parser.parse_args()
    if args.check:
        problems = check_skill_graph(build_skill_graph())
        for problem in problems:
            print(problem)
        raise SystemExit(1 if problems else 0)
    render_skill_tree(args.output, dpi=args.dpi, size=args.size)


if __name__ == "__main__":
    main()
