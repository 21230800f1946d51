from __future__ import annotations
from typing import List

from ..graph import FamilyGraph, NodeKind

UNION_COLOR = "#555555"
DEFAULT_COLOR = "#D3D3D3"


def build_sibling_colors(graph: FamilyGraph) -> List[str]:
    """Node colors in node order: siblings (same parent token) share a color."""
    sibling_palette = [
        "#FFA07A", "#98FB98", "#87CEFA", "#DDA0DD", "#F4A460",
        "#66CDAA", "#FFB6C1", "#E6E6FA", "#20B2AA"
    ]

    parent_tokens = list(dict.fromkeys(
        n.parent_marriage_id for n in graph.person_nodes if n.parent_marriage_id is not None
    ))
    token_color = {t: sibling_palette[i % len(sibling_palette)] for i, t in enumerate(parent_tokens)}

    node_colors: List[str] = []
    for node in graph.nodes:
        if node.kind is NodeKind.UNION:
            node_colors.append(UNION_COLOR)
        else:
            node_colors.append(token_color.get(node.parent_marriage_id, DEFAULT_COLOR))
    return node_colors
