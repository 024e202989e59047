"""Rule-based inference of relations that are implied but not stored."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque

from .models import (
    InferredRelation,
    InferStats,
    KnowledgeGraph,
    Relation,
    current_timestamp,
)

_DECAY_FACTORS = {
    "depends_on": 0.95,
    "contains": 0.95,
    "part_of": 0.95,
    "implements": 0.90,
    "fixes": 0.90,
    "caused_by": 0.90,
    "affects": 0.85,
    "assigned_to": 0.85,
    "blocked_by": 0.85,
    "relates_to": 0.70,
    "supersedes": 0.70,
    "requires": 0.70,
}
_UNKNOWN_DECAY = 0.60


def get_decay_factor(relation_type: str) -> float:
    """Confidence multiplier for one hop along a relation of this type."""
    return _DECAY_FACTORS.get(relation_type, _UNKNOWN_DECAY)


def generate_explanation(path: list[str], relation_types: list[str]) -> str:
    """Describe an inference path such as "A -[depends_on]-> B"."""
    if len(path) < 2 or not relation_types:
        return ""
    parts = [f"Inferred via path: {path[0]}"]
    for index, node in enumerate(path[1:]):
        rel_type = relation_types[index] if index < len(relation_types) else "?"
        parts.append(f" -[{rel_type}]-> {node}")
    return "".join(parts)


class InferenceRule(ABC):
    """A rule that derives new relations from existing ones."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def apply(
        self, graph: KnowledgeGraph, target: str, min_confidence: float
    ) -> tuple[list[InferredRelation], InferStats]:
        """Infer relations starting at target with at least min_confidence."""


class TransitiveDependencyRule(InferenceRule):
    """Infers transitive relations by breadth-first search with confidence decay."""

    def __init__(self, max_depth: int = 3) -> None:
        self.max_depth = max_depth

    @property
    def name(self) -> str:
        return "TransitiveDependencyRule"

    def apply(
        self, graph: KnowledgeGraph, target: str, min_confidence: float
    ) -> tuple[list[InferredRelation], InferStats]:
        inferred: list[InferredRelation] = []
        stats = InferStats()

        if not any(e.name == target for e in graph.entities):
            return inferred, stats

        outgoing: defaultdict[str, list[Relation]] = defaultdict(list)
        for relation in graph.relations:
            outgoing[relation.from_].append(relation)

        visited = {target}
        queue: deque[tuple[str, list[str], list[str], float]] = deque(
            [(target, [target], [], 1.0)]
        )

        while queue:
            current, path, rel_types, confidence = queue.popleft()
            stats.nodes_visited += 1

            depth = len(path) - 1
            if depth >= self.max_depth:
                stats.max_depth_reached = max(stats.max_depth_reached, depth)
                continue

            for relation in outgoing.get(current, ()):
                next_node = relation.to
                if next_node in visited:
                    continue

                new_confidence = confidence * get_decay_factor(relation.relation_type)
                if new_confidence < min_confidence:
                    continue

                new_path = [*path, next_node]
                new_rel_types = [*rel_types, relation.relation_type]

                if len(new_path) >= 3:
                    inferred.append(
                        InferredRelation(
                            relation=Relation(
                                from_=target,
                                to=next_node,
                                relation_type=f"inferred_{new_rel_types[0]}",
                                created_by="InferenceEngine",
                                created_at=current_timestamp(),
                            ),
                            confidence=new_confidence,
                            rule_name=self.name,
                            explanation=generate_explanation(new_path, new_rel_types),
                        )
                    )
                    stats.paths_found += 1

                visited.add(next_node)
                stats.max_depth_reached = max(stats.max_depth_reached, len(new_path) - 1)
                queue.append((next_node, new_path, new_rel_types, new_confidence))

        return inferred, stats


class InferenceEngine:
    """Runs a set of inference rules and merges their results."""

    def __init__(self, rules: list[InferenceRule] | None = None) -> None:
        self.rules: list[InferenceRule] = (
            list(rules) if rules is not None else [TransitiveDependencyRule(3)]
        )

    @classmethod
    def with_max_depth(cls, max_depth: int) -> InferenceEngine:
        return cls([TransitiveDependencyRule(max_depth)])

    @classmethod
    def empty(cls) -> InferenceEngine:
        return cls([])

    def register_rule(self, rule: InferenceRule) -> None:
        self.rules.append(rule)

    def rule_count(self) -> int:
        return len(self.rules)

    def infer(
        self, graph: KnowledgeGraph, target: str, min_confidence: float
    ) -> tuple[list[InferredRelation], InferStats]:
        """Apply every rule and return all inferred relations with combined stats."""
        started = time.perf_counter()
        all_inferred: list[InferredRelation] = []
        total = InferStats()
        for rule in self.rules:
            relations, stats = rule.apply(graph, target, min_confidence)
            all_inferred.extend(relations)
            total.nodes_visited += stats.nodes_visited
            total.paths_found += stats.paths_found
            total.max_depth_reached = max(total.max_depth_reached, stats.max_depth_reached)
        total.execution_time_ms = int((time.perf_counter() - started) * 1000)
        return all_inferred, total