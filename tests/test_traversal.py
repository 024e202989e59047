import pytest

from memgraph.models import Entity, KnowledgeGraph, PathStep, Relation
from memgraph.traversal import get_related, traverse


@pytest.fixture
def graph():
    return KnowledgeGraph(
        entities=[
            Entity("Bug:Login", "Bug"),
            Entity("Bug:Logout", "Bug"),
            Entity("Module:Auth", "Module"),
            Entity("Service:API", "Service"),
        ],
        relations=[
            Relation("Bug:Login", "Module:Auth", "affects"),
            Relation("Bug:Logout", "Module:Auth", "affects"),
            Relation("Module:Auth", "Service:API", "part_of"),
            Relation("Module:Auth", "Ghost", "part_of"),
        ],
    )


def names(related):
    return [r.entity.name for r in related.relations]


def test_get_related_outgoing(graph):
    result = get_related(graph, "Module:Auth", None, "outgoing")
    assert result.entity == "Module:Auth"
    assert names(result) == ["Service:API"]
    assert all(r.direction == "outgoing" for r in result.relations)


def test_get_related_incoming(graph):
    result = get_related(graph, "Module:Auth", None, "incoming")
    assert names(result) == ["Bug:Login", "Bug:Logout"]
    assert all(r.direction == "incoming" for r in result.relations)


def test_get_related_both_keeps_relation_order(graph):
    result = get_related(graph, "Module:Auth", None, "both")
    assert names(result) == ["Bug:Login", "Bug:Logout", "Service:API"]


def test_get_related_filters_by_type(graph):
    result = get_related(graph, "Module:Auth", "part_of", "both")
    assert names(result) == ["Service:API"]
    assert all(r.relation_type == "part_of" for r in result.relations)


def test_get_related_unknown_direction_is_empty(graph):
    assert get_related(graph, "Module:Auth", None, "sideways").relations == []


def test_traverse_outgoing_chain(graph):
    result = traverse(
        graph, "Bug:Login", [PathStep("affects", "out"), PathStep("part_of", "out")], 10
    )
    assert result.start_node == "Bug:Login"
    assert [p.nodes for p in result.paths] == [
        ["Bug:Login", "Module:Auth", "Service:API"],
        ["Bug:Login", "Module:Auth", "Ghost"],
    ]
    assert all(p.relations == ["affects", "part_of"] for p in result.paths)
    assert [e.name for e in result.end_nodes] == ["Service:API"]


def test_traverse_incoming(graph):
    result = traverse(graph, "Module:Auth", [PathStep("affects", "in")], 10)
    assert [p.nodes[-1] for p in result.paths] == ["Bug:Login", "Bug:Logout"]
    assert [e.name for e in result.end_nodes] == ["Bug:Login", "Bug:Logout"]


def test_traverse_target_type_filter(graph):
    step = PathStep("part_of", "out", target_type="Service")
    result = traverse(graph, "Module:Auth", [step], 10)
    assert [p.nodes for p in result.paths] == [["Module:Auth", "Service:API"]]

    miss = traverse(graph, "Module:Auth", [PathStep("part_of", "out", "Bug")], 10)
    assert miss.paths == []
    assert miss.end_nodes == []


def test_traverse_truncates_to_max_results(graph):
    result = traverse(graph, "Module:Auth", [PathStep("affects", "in")], 1)
    assert len(result.paths) == 1
    assert result.paths[0].nodes == ["Module:Auth", "Bug:Login"]


def test_traverse_empty_path_returns_start(graph):
    result = traverse(graph, "Bug:Login", [], 5)
    assert [p.nodes for p in result.paths] == [["Bug:Login"]]
    assert [p.relations for p in result.paths] == [[]]
    assert [e.name for e in result.end_nodes] == ["Bug:Login"]


def test_traverse_dead_end(graph):
    result = traverse(graph, "Service:API", [PathStep("part_of", "out")], 5)
    assert result.paths == []
    assert result.end_nodes == []