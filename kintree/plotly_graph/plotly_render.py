from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence, Tuple
from plotly import graph_objects as go

from ..graph import EdgeKind, FamilyGraph, build_graph
from .colors import build_sibling_colors
from .layout import LayoutConfig, compute_layout
from .normalize import display_label, hover_label


def _edge_trace(graph: FamilyGraph, pos: Dict[int, Tuple[float, float]], kind: EdgeKind, line: dict, hover: str):
    edge_x: list = []
    edge_y: list = []
    edge_cd: list = []
    for e in graph.edges_of_kind(kind):
        if e.source not in pos or e.target not in pos:
            continue
        x0, y0 = pos[e.source]
        x1, y1 = pos[e.target]
        # screen y grows downward; plotly's grows upward
        edge_x += [x0, x1, None]
        edge_y += [-y0, -y1, None]
        cd = {"union_node_id": e.source, "person_node_id": e.target}
        edge_cd += [cd, cd, None]

    return go.Scatter(
        x=edge_x,
        y=edge_y,
        mode="lines",
        hoverinfo="text",
        hovertext=[hover if cd else "" for cd in edge_cd],
        hoverdistance=48,
        line=line,
        showlegend=False,
        customdata=edge_cd,
    )


def build_figure(graph: FamilyGraph, pos: Dict[int, Tuple[float, float]]) -> go.Figure:
    if not graph.nodes:
        fig = go.Figure()
        fig.update_layout(title="No family data found")
        return fig

    descent_trace = _edge_trace(graph, pos, EdgeKind.DESCENT, dict(width=2, color="#555"), "Parents-Child")
    union_trace = _edge_trace(graph, pos, EdgeKind.UNION, dict(width=2, color="#E91E63", dash="dot"), "Spouse")

    colors = build_sibling_colors(graph)

    person_ids = [n.id for n in graph.person_nodes]
    node_trace = go.Scatter(
        x=[pos[i][0] for i in person_ids],
        y=[-pos[i][1] for i in person_ids],
        mode="markers+text",
        text=[display_label(graph.nodes[i].person).replace("\n", "<br>") for i in person_ids],
        hovertext=[hover_label(graph.nodes[i].person).replace("\n", "<br>") for i in person_ids],
        hoverinfo="text",
        textposition="top center",
        marker=dict(size=18, color=[colors[i] for i in person_ids], line=dict(width=1, color="#333")),
        textfont=dict(size=9),
        showlegend=False,
        customdata=person_ids,
    )

    union_ids = [n.id for n in graph.union_nodes]
    union_trace_nodes = go.Scatter(
        x=[pos[i][0] for i in union_ids],
        y=[-pos[i][1] for i in union_ids],
        mode="markers",
        hoverinfo="text",
        hovertext=[f"Union {graph.nodes[i].token}" for i in union_ids],
        marker=dict(size=6, color=[colors[i] for i in union_ids]),
        showlegend=False,
        customdata=union_ids,
    )

    fig = go.Figure(data=[descent_trace, union_trace, union_trace_nodes, node_trace])
    fig.update_layout(
        showlegend=False,
        hovermode="closest",
        dragmode="pan",
        autosize=True,
        margin=dict(l=0, r=0, t=0, b=0),
        plot_bgcolor="white",
        paper_bgcolor="white",
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False, scaleanchor="y", scaleratio=1),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
    )
    return fig


def build_figure_for_members(members: Sequence[Any], config: Optional[LayoutConfig] = None):
    """Build, lay out and render ``members``. Returns (figure, converged)."""
    graph = build_graph(members)
    pos, converged = compute_layout(graph, config)
    return build_figure(graph, pos), converged


def figure_json(fig: go.Figure) -> dict:
    return json.loads(fig.to_json())


def write_html(fig: go.Figure, out_path: str) -> None:
    config = {"scrollZoom": True, "displayModeBar": True, "responsive": True}
    fig.write_html(out_path, include_plotlyjs="cdn", full_html=True, config=config)


def to_html(fig: go.Figure) -> str:
    config = {"scrollZoom": True, "displayModeBar": True, "responsive": True}
    return fig.to_html(include_plotlyjs="cdn", full_html=True, config=config)
