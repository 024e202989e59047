"""Reading and writing a graph as a JSON-lines file."""

from __future__ import annotations

import json
from pathlib import Path

from .models import Entity, KnowledgeGraph, Relation


def _parse_entity(value: object) -> Entity | None:
    try:
        entity = Entity.from_dict(value)
    except ValueError:
        return None
    return entity if entity.name and entity.entity_type else None


def _parse_relation(value: object) -> Relation | None:
    try:
        relation = Relation.from_dict(value)
    except ValueError:
        return None
    return relation if relation.from_ and relation.to else None


def load_graph_file(file_path: str | Path) -> KnowledgeGraph:
    """Load a graph, skipping blank and unrecognised lines; a missing file is empty."""
    path = Path(file_path)
    graph = KnowledgeGraph()
    if not path.exists():
        return graph

    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError:
            continue
        entity = _parse_entity(value)
        if entity is not None:
            graph.entities.append(entity)
            continue
        relation = _parse_relation(value)
        if relation is not None:
            graph.relations.append(relation)
    return graph


def save_graph_file(file_path: str | Path, graph: KnowledgeGraph) -> None:
    """Write all entities, then all relations, one JSON object per line."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(e.to_dict(), ensure_ascii=False) for e in graph.entities]
    lines.extend(json.dumps(r.to_dict(), ensure_ascii=False) for r in graph.relations)
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")