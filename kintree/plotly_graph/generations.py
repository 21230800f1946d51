from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from ..graph import EdgeKind, FamilyGraph, NodeKind

logger = logging.getLogger(__name__)

GENERATION_YEARS = 25


@dataclass
class Generations:
    ordinals: Dict[int, float]
    passes: int
    converged: bool

    def span(self) -> tuple[float, float]:
        if not self.ordinals:
            return (0.0, 0.0)
        return (min(self.ordinals.values()), max(self.ordinals.values()))


def assign_generations(
    graph: FamilyGraph,
    max_passes: int = 100,
    generation_years: int = GENERATION_YEARS,
) -> Generations:
    """
    Generational ordinal per node, smaller = older.
    - People start from their birth year bucket (or 0 without a birth date).
    - Each pass lifts spouses to a shared ordinal and children below their
      parents' union. Values only ever grow, so a token cycle never settles;
      the pass limit stops it and the result is flagged as not converged.
    - Union nodes sit half a band from the people they join.
    """
    people = graph.person_nodes
    years = [p.birth_date.year for p in people if p.birth_date is not None]
    earliest = min(years) if years else 0

    gen: Dict[int, int] = {}
    for p in people:
        gen[p.id] = (p.birth_date.year - earliest) // generation_years if p.birth_date else 0

    descent = graph.edges_of_kind(EdgeKind.DESCENT)
    records = list(graph.unions.values())

    def union_ordinal(record) -> int | None:
        if record.spouse_ids:
            return max(gen[s] for s in record.spouse_ids)
        if record.child_ids:
            return min(gen[c] for c in record.child_ids) - 1
        return None

    by_node = {r.node_id: r for r in records}
    passes = 0
    converged = False
    while passes < max_passes:
        passes += 1
        changed = False
        for record in records:
            if not record.spouse_ids:
                continue
            top = max(gen[s] for s in record.spouse_ids)
            for s in record.spouse_ids:
                if gen[s] != top:
                    gen[s] = top
                    changed = True
        for e in descent:
            parent = union_ordinal(by_node[e.source])
            if parent is not None and gen[e.target] < parent + 1:
                gen[e.target] = parent + 1
                changed = True
        if not changed:
            converged = True
            break

    if not converged:
        logger.warning(
            "Generation banding did not settle after %d passes; using best-effort ordinals", passes
        )

    ordinals: Dict[int, float] = {pid: float(g) for pid, g in gen.items()}
    for node in graph.nodes:
        if node.kind is not NodeKind.UNION:
            continue
        record = by_node[node.id]
        if record.spouse_ids:
            ordinals[node.id] = max(gen[s] for s in record.spouse_ids) + 0.5
        elif record.child_ids:
            ordinals[node.id] = min(gen[c] for c in record.child_ids) - 0.5
        else:
            ordinals[node.id] = 0.0
    return Generations(ordinals=ordinals, passes=passes, converged=converged)
