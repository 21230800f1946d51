"""Turn a flat list of family members into a person/union graph.

Union nodes are synthesized from the union tokens on each member:
spouses sharing a ``marriage_id`` hang off one union node, and children
hang off the union registered for their ``parent_marriage_id``. The build
is pure and deterministic, so rebuilding an unchanged list yields the same
node ids and edges.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


class NodeKind(str, enum.Enum):
    PERSON = "person"
    UNION = "union"


class EdgeKind(str, enum.Enum):
    UNION = "union"
    DESCENT = "descent"


@dataclass(frozen=True)
class PersonNode:
    id: int
    person: Any
    kind: NodeKind = field(default=NodeKind.PERSON, init=False)

    @property
    def key(self) -> Tuple[str, int]:
        return (NodeKind.PERSON.value, self.id)

    @property
    def birth_date(self) -> Optional[date]:
        return getattr(self.person, "date_of_birth", None)

    @property
    def marriage_id(self) -> Optional[int]:
        return self.person.marriage_id

    @property
    def parent_marriage_id(self) -> Optional[int]:
        return self.person.parent_marriage_id


@dataclass(frozen=True)
class UnionNode:
    id: int
    token: int
    # True for a parent-pair union inferred from children only
    derived: bool = False
    kind: NodeKind = field(default=NodeKind.UNION, init=False)

    @property
    def key(self) -> Tuple[str, int]:
        return (NodeKind.UNION.value, self.token)


GraphNode = Union[PersonNode, UnionNode]


@dataclass(frozen=True)
class Edge:
    source: int
    target: int
    kind: EdgeKind


@dataclass
class UnionRecord:
    """Token table entry. ``member_ids[0]`` is the union node itself (the anchor)."""
    node_id: int
    member_ids: List[int]
    child_ids: List[int] = field(default_factory=list)

    @property
    def spouse_ids(self) -> List[int]:
        return self.member_ids[1:]


@dataclass
class FamilyGraph:
    nodes: List[GraphNode]
    edges: List[Edge]
    unions: Dict[int, UnionRecord]

    @property
    def person_nodes(self) -> List[PersonNode]:
        return [n for n in self.nodes if n.kind is NodeKind.PERSON]

    @property
    def union_nodes(self) -> List[UnionNode]:
        return [n for n in self.nodes if n.kind is NodeKind.UNION]

    def edges_of_kind(self, kind: EdgeKind) -> List[Edge]:
        return [e for e in self.edges if e.kind is kind]

    def to_payload(self) -> dict:
        nodes = []
        for n in self.nodes:
            if n.kind is NodeKind.PERSON:
                p = n.person
                data = {
                    "id": n.id, "kind": n.kind.value,
                    "label": f"{p.first_name} {p.last_name}",
                    "first_name": p.first_name, "last_name": p.last_name,
                    "birth_date": _iso(p.date_of_birth),
                    "death_date": _iso(getattr(p, "date_of_death", None)),
                    "parent_marriage_id": p.parent_marriage_id,
                    "marriage_id": p.marriage_id,
                }
            else:
                data = {"id": n.id, "kind": n.kind.value, "token": n.token, "derived": n.derived}
            nodes.append({"data": data})
        edges = [
            {"data": {"id": f"{e.kind.value}-{e.source}-{e.target}",
                      "source": e.source, "target": e.target, "type": e.kind.value}}
            for e in self.edges
        ]
        return {"nodes": nodes, "edges": edges}


def _iso(d) -> Optional[str]:
    return d.isoformat() if d is not None else None


def build_graph(members: Sequence[Any]) -> FamilyGraph:
    """Build the family graph for ``members`` (any objects with the member fields)."""
    person_nodes = [PersonNode(id=i, person=m) for i, m in enumerate(members)]
    nodes: List[GraphNode] = list(person_nodes)
    table: Dict[int, UnionRecord] = {}

    def add_union(token: int, derived: bool) -> UnionRecord:
        node_id = len(nodes)
        nodes.append(UnionNode(id=node_id, token=token, derived=derived))
        record = UnionRecord(node_id=node_id, member_ids=[node_id])
        table[token] = record
        return record

    # spousal unions
    for pn in person_nodes:
        token = pn.marriage_id
        if token is None:
            continue
        record = table.get(token) or add_union(token, derived=False)
        record.member_ids.append(pn.id)

    # parent-pair unions with no spousal record; needs two or more children
    children_by_token: Dict[int, List[int]] = {}
    for pn in person_nodes:
        if pn.parent_marriage_id is not None:
            children_by_token.setdefault(pn.parent_marriage_id, []).append(pn.id)
    for token, child_ids in children_by_token.items():
        if token in table or len(child_ids) < 2:
            continue
        add_union(token, derived=True)

    edges: List[Edge] = []
    for pn in person_nodes:
        token = pn.parent_marriage_id
        if token is None:
            continue
        record = table.get(token)
        if record is None:
            # lone child of an unregistered token stays unattached
            continue
        record.child_ids.append(pn.id)
        edges.append(Edge(source=record.node_id, target=pn.id, kind=EdgeKind.DESCENT))

    for record in table.values():
        for member_id in record.member_ids[1:]:
            edges.append(Edge(source=record.node_id, target=member_id, kind=EdgeKind.UNION))

    return FamilyGraph(nodes=nodes, edges=edges, unions=table)
