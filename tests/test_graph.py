"""Tests for kintree/graph.py — person/union graph building."""
from kintree.graph import Edge, EdgeKind, NodeKind, build_graph
from tests.conftest import FAMILY, member


def _edge_set(graph):
    return {(e.source, e.target, e.kind) for e in graph.edges}


class TestNodes:
    def test_empty(self):
        graph = build_graph([])
        assert graph.nodes == []
        assert graph.edges == []
        assert graph.unions == {}

    def test_people_without_tokens(self):
        graph = build_graph([member("Alice"), member("Bob")])
        assert [n.kind for n in graph.nodes] == [NodeKind.PERSON, NodeKind.PERSON]
        assert graph.edges == []

    def test_person_nodes_first_in_input_order(self):
        graph = build_graph(FAMILY)
        people = graph.person_nodes
        assert [p.id for p in people] == list(range(len(FAMILY)))
        assert [p.person.first_name for p in people] == [m.first_name for m in FAMILY]

    def test_union_ids_follow_people(self):
        graph = build_graph(FAMILY)
        n = len(FAMILY)
        assert [u.id for u in graph.union_nodes] == [n, n + 1]
        assert [u.token for u in graph.union_nodes] == [1, 2]

    def test_node_keys(self):
        graph = build_graph(FAMILY)
        assert graph.nodes[0].key == ("person", 0)
        assert graph.union_nodes[0].key == ("union", 1)

    def test_union_count_bounded_by_tokens(self):
        graph = build_graph(FAMILY)
        tokens = {m.marriage_id for m in FAMILY} | {m.parent_marriage_id for m in FAMILY}
        tokens.discard(None)
        assert len(graph.person_nodes) == len(FAMILY)
        assert len(graph.union_nodes) <= len(tokens)


class TestSpousalUnions:
    def test_one_union_per_token(self):
        graph = build_graph([member("Alice", marriage_id=7), member("Bob"), member("Carol", marriage_id=7)])
        assert len(graph.union_nodes) == 1
        union = graph.union_nodes[0]
        assert union.derived is False
        assert graph.unions[7].spouse_ids == [0, 2]

    def test_union_edges_skip_anchor(self):
        graph = build_graph([member("Alice", marriage_id=7), member("Carol", marriage_id=7)])
        assert graph.unions[7].member_ids == [2, 0, 1]
        assert _edge_set(graph) == {(2, 0, EdgeKind.UNION), (2, 1, EdgeKind.UNION)}

    def test_union_edges_link_matching_marriage_token(self):
        graph = build_graph(FAMILY)
        for e in graph.edges_of_kind(EdgeKind.UNION):
            union = graph.nodes[e.source]
            person = graph.nodes[e.target]
            assert union.kind is NodeKind.UNION
            assert person.kind is NodeKind.PERSON
            assert person.marriage_id == union.token

    def test_single_spouse_still_gets_union(self):
        graph = build_graph([member("Widow", marriage_id=3)])
        assert len(graph.union_nodes) == 1
        assert _edge_set(graph) == {(1, 0, EdgeKind.UNION)}


class TestDescent:
    def test_family_edges(self):
        graph = build_graph(FAMILY)
        assert _edge_set(graph) == {
            (8, 2, EdgeKind.DESCENT), (9, 4, EdgeKind.DESCENT),
            (9, 5, EdgeKind.DESCENT), (8, 6, EdgeKind.DESCENT),
            (8, 0, EdgeKind.UNION), (8, 1, EdgeKind.UNION),
            (9, 2, EdgeKind.UNION), (9, 3, EdgeKind.UNION),
        }

    def test_descent_edges_come_first(self):
        kinds = [e.kind for e in build_graph(FAMILY).edges]
        assert kinds == sorted(kinds, key=lambda k: k is EdgeKind.UNION)

    def test_descent_source_token_matches_child(self):
        graph = build_graph(FAMILY)
        for e in graph.edges_of_kind(EdgeKind.DESCENT):
            assert graph.nodes[e.source].token == graph.nodes[e.target].parent_marriage_id

    def test_derived_union_for_two_children(self):
        graph = build_graph([member("Ann", parent_marriage_id=5), member("Ben", parent_marriage_id=5)])
        assert len(graph.union_nodes) == 1
        union = graph.union_nodes[0]
        assert union.derived is True
        assert union.token == 5
        assert graph.unions[5].child_ids == [0, 1]
        assert _edge_set(graph) == {(2, 0, EdgeKind.DESCENT), (2, 1, EdgeKind.DESCENT)}

    def test_lone_child_token_is_left_unattached(self):
        # documented gap: one child, token never used as a marriage_id
        graph = build_graph([member("Orphan", parent_marriage_id=42), member("Other")])
        assert graph.union_nodes == []
        assert graph.edges == []

    def test_lone_child_attaches_to_existing_marriage(self):
        graph = build_graph([member("Mum", marriage_id=42), member("Only", parent_marriage_id=42)])
        assert (2, 1, EdgeKind.DESCENT) in _edge_set(graph)

    def test_unresolved_cousin_has_no_edges(self):
        graph = build_graph(FAMILY)
        cousin = 7
        assert all(cousin not in (e.source, e.target) for e in graph.edges)


class TestDeterminism:
    def test_rebuild_is_identical(self):
        first = build_graph(FAMILY)
        second = build_graph(FAMILY)
        assert [(n.id, n.kind, n.key) for n in first.nodes] == [(n.id, n.kind, n.key) for n in second.nodes]
        assert first.edges == second.edges

    def test_edges_are_values(self):
        assert Edge(1, 2, EdgeKind.DESCENT) == Edge(1, 2, EdgeKind.DESCENT)


class TestPayload:
    def test_payload_shape(self):
        payload = build_graph(FAMILY).to_payload()
        assert len(payload["nodes"]) == 10
        assert len(payload["edges"]) == 8
        dad = payload["nodes"][2]["data"]
        assert dad["label"] == "Dad Smith"
        assert dad["kind"] == "person"
        assert dad["birth_date"] == "1950-05-05"
        assert dad["death_date"] is None
        union = payload["nodes"][8]["data"]
        assert union == {"id": 8, "kind": "union", "token": 1, "derived": False}
        edge = payload["edges"][0]["data"]
        assert edge == {"id": "descent-8-2", "source": 8, "target": 2, "type": "descent"}
