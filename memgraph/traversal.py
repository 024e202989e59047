"""Neighbour lookup and pattern-based traversal of a graph."""

from __future__ import annotations

from collections.abc import Sequence

from .models import (
    Entity,
    KnowledgeGraph,
    PathStep,
    RelatedEntities,
    RelatedEntity,
    TraversalPath,
    TraversalResult,
)


def _find_entity(graph: KnowledgeGraph, name: str) -> Entity | None:
    return next((e for e in graph.entities if e.name == name), None)


def get_related(
    graph: KnowledgeGraph,
    entity_name: str,
    relation_type: str | None = None,
    direction: str = "both",
) -> RelatedEntities:
    """Entities linked to entity_name; direction is "outgoing", "incoming" or "both"."""
    related: list[RelatedEntity] = []
    for relation in graph.relations:
        if direction == "outgoing":
            matches = relation.from_ == entity_name
        elif direction == "incoming":
            matches = relation.to == entity_name
        elif direction == "both":
            matches = entity_name in (relation.from_, relation.to)
        else:
            matches = False
        if not matches:
            continue
        if relation_type is not None and relation.relation_type != relation_type:
            continue

        outgoing = relation.from_ == entity_name
        target = _find_entity(graph, relation.to if outgoing else relation.from_)
        if target is not None:
            related.append(
                RelatedEntity(
                    relation_type=relation.relation_type,
                    direction="outgoing" if outgoing else "incoming",
                    entity=target,
                )
            )
    return RelatedEntities(entity=entity_name, relations=related)


def _step_target(step: PathStep, node: str, relation) -> str | None:
    if relation.relation_type != step.relation_type:
        return None
    if step.direction == "out" and relation.from_ == node:
        return relation.to
    if step.direction == "in" and relation.to == node:
        return relation.from_
    return None


def traverse(
    graph: KnowledgeGraph, start: str, path: Sequence[PathStep], max_results: int
) -> TraversalResult:
    """Follow a sequence of steps from start, keeping at most max_results paths per step."""
    current: list[tuple[str, list[str], list[str]]] = [(start, [start], [])]

    for step in path:
        following: list[tuple[str, list[str], list[str]]] = []
        for node, nodes, rels in current:
            for relation in graph.relations:
                target = _step_target(step, node, relation)
                if target is None:
                    continue
                if step.target_type is not None:
                    entity = _find_entity(graph, target)
                    if entity is None or entity.entity_type != step.target_type:
                        continue
                following.append((target, [*nodes, target], [*rels, step.relation_type]))
        current = following[:max_results]

    end_names = {end for end, _, _ in current}
    return TraversalResult(
        start_node=start,
        paths=[TraversalPath(nodes=nodes, relations=rels) for _, nodes, rels in current],
        end_nodes=[e for e in graph.entities if e.name in end_names],
    )