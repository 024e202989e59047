"""Read-only queries over a knowledge graph."""

from __future__ import annotations

from .models import KnowledgeGraph, Relation, current_timestamp


def read_graph(
    graph: KnowledgeGraph, limit: int | None = None, offset: int | None = None
) -> KnowledgeGraph:
    """A page of entities plus every relation touching one of them."""
    start = offset or 0
    if limit is None:
        entities = graph.entities[start:]
    else:
        entities = graph.entities[start:start + limit]
    names = {e.name for e in entities}
    relations = [r for r in graph.relations if r.from_ in names or r.to in names]
    return KnowledgeGraph(entities=list(entities), relations=relations)


def open_nodes(graph: KnowledgeGraph, names: list[str]) -> KnowledgeGraph:
    """The named entities and the relations between them."""
    wanted = set(names)
    entities = [e for e in graph.entities if e.name in wanted]
    found = {e.name for e in entities}
    relations = [r for r in graph.relations if r.from_ in found and r.to in found]
    return KnowledgeGraph(entities=entities, relations=relations)


def _valid_at(relation: Relation, moment: int) -> bool:
    if relation.valid_from is not None and moment < relation.valid_from:
        return False
    if relation.valid_to is not None and moment > relation.valid_to:
        return False
    return True


def relations_at_time(
    graph: KnowledgeGraph, timestamp: int | None = None, entity_name: str | None = None
) -> list[Relation]:
    """Relations valid at timestamp (default now), optionally touching entity_name."""
    moment = current_timestamp() if timestamp is None else timestamp
    return [
        r
        for r in graph.relations
        if (entity_name is None or r.from_ == entity_name or r.to == entity_name)
        and _valid_at(r, moment)
    ]


def relation_history(graph: KnowledgeGraph, entity_name: str) -> list[Relation]:
    """Every relation touching entity_name, expired ones included."""
    return [r for r in graph.relations if r.from_ == entity_name or r.to == entity_name]