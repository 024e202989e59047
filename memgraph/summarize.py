"""Summaries of entities in a graph."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from .models import Entity, EntityBrief, KnowledgeGraph, Summary

_BRIEF_LENGTH = 100


def _select(
    entities: Iterable[Entity], entity_names: list[str] | None, entity_type: str | None
) -> list[Entity]:
    if entity_names is not None:
        wanted = set(entity_names)
        return [e for e in entities if e.name in wanted]
    if entity_type is not None:
        return [e for e in entities if e.entity_type == entity_type]
    return list(entities)


def _strip_prefix(text: str, prefix: str) -> str:
    while text.startswith(prefix):
        text = text[len(prefix):]
    return text.strip()


def _brief(entities: list[Entity]) -> Summary:
    briefs = [
        EntityBrief(
            e.name,
            e.entity_type,
            (e.observations[0] if e.observations else "")[:_BRIEF_LENGTH],
        )
        for e in entities
    ]
    return Summary(total_entities=len(entities), entities=briefs)


def _detailed(entities: list[Entity]) -> Summary:
    briefs = [
        EntityBrief(e.name, e.entity_type, "; ".join(e.observations)) for e in entities
    ]
    return Summary(total_entities=len(entities), entities=briefs)


def _stats(entities: list[Entity]) -> Summary:
    by_type: Counter[str] = Counter()
    by_status: Counter[str] = Counter()
    by_priority: Counter[str] = Counter()
    for entity in entities:
        by_type[entity.entity_type] += 1
        for obs in entity.observations:
            if obs.startswith("Status:"):
                by_status[_strip_prefix(obs, "Status:")] += 1
            if obs.startswith("Priority:"):
                by_priority[_strip_prefix(obs, "Priority:")] += 1
    return Summary(
        total_entities=len(entities),
        by_status=dict(by_status) or None,
        by_type=dict(by_type),
        by_priority=dict(by_priority) or None,
    )


def summarize(
    graph: KnowledgeGraph,
    entity_names: list[str] | None = None,
    entity_type: str | None = None,
    fmt: str = "brief",
) -> Summary:
    """Summarise selected entities as "brief", "detailed" or "stats"; other formats give brief."""
    entities = _select(graph.entities, entity_names, entity_type)
    if fmt == "detailed":
        return _detailed(entities)
    if fmt == "stats":
        return _stats(entities)
    return _brief(entities)