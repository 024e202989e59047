import pytest

from memgraph.models import Entity, KnowledgeGraph
from memgraph.summarize import summarize


def _graph():
    return KnowledgeGraph(
        entities=[
            Entity("Bug:Login", "Bug", ["Status: Open", "Priority: High", "Login fails"]),
            Entity("Bug:Logout", "Bug", ["Status: Closed"]),
            Entity("Module:Auth", "Module", []),
            Entity("Task:Long", "Task", ["x" * 250, "second"]),
        ]
    )


def test_brief_uses_first_observation():
    summary = summarize(_graph(), ["Bug:Login"], None, "brief")
    assert summary.total_entities == 1
    assert summary.entities[0].brief == "Status: Open"
    assert summary.by_type is None


def test_brief_truncates_to_100_chars():
    summary = summarize(_graph(), ["Task:Long"], None, "brief")
    assert len(summary.entities[0].brief) == 100


def test_brief_empty_observations():
    summary = summarize(_graph(), ["Module:Auth"], None, "brief")
    assert summary.entities[0].brief == ""


def test_detailed_joins_observations():
    summary = summarize(_graph(), ["Bug:Login"], None, "detailed")
    assert summary.entities[0].brief == "; ".join(_graph().entities[0].observations)


def test_filter_by_type():
    summary = summarize(_graph(), None, "Bug", "detailed")
    assert [b.name for b in summary.entities] == ["Bug:Login", "Bug:Logout"]


def test_names_take_precedence_over_type():
    summary = summarize(_graph(), ["Module:Auth"], "Bug", "brief")
    assert [b.name for b in summary.entities] == ["Module:Auth"]


def test_stats_counts():
    graph = _graph()
    summary = summarize(graph, None, None, "stats")
    assert summary.entities is None
    assert summary.total_entities == len(graph.entities)
    assert sum(summary.by_type.values()) == len(graph.entities)
    assert summary.by_status == {"Open": 1, "Closed": 1}
    assert summary.by_priority == {"High": 1}


def test_stats_without_status_gives_none():
    summary = summarize(_graph(), ["Module:Auth"], None, "stats")
    assert summary.by_status is None
    assert summary.by_priority is None
    assert summary.by_type == {"Module": 1}


@pytest.mark.parametrize("fmt", ["unknown", ""])
def test_unknown_format_falls_back_to_brief(fmt):
    graph = _graph()
    assert summarize(graph, None, None, fmt) == summarize(graph, None, None, "brief")