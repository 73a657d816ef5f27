"""
Bounded graph exploration: keyword matches for graph boosts, direct traversal,
and multi-hop path search.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .config import Settings, settings
from .errors import ValidationError
from .models import Edge, GraphMatch, RelationshipStep, TraversalHit, TraversalPath
from .storage import GraphStore
from .validation import validate_relation_types

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PathState:
    node_id: str
    steps: Tuple[Edge, ...]
    edge_ids: FrozenSet[str]

    def extend(self, edge: Edge, node_id: str) -> "_PathState":
        return _PathState(node_id, self.steps + (edge,), self.edge_ids | {edge.id})


class GraphTraversalEngine:
    def __init__(self, store: GraphStore, config: Optional[Settings] = None) -> None:
        self.store = store
        self.config = config or settings

    def _relation_types(self, types: Optional[Sequence[str]]) -> List[str]:
        if not types:
            return list(self.config.traversal_relation_types)
        return validate_relation_types(types, self.config.relation_types)

    @staticmethod
    def _check_bound(name: str, value: int, upper: int) -> None:
        if not 1 <= value <= upper:
            raise ValidationError(f"{name} must be between 1 and {upper}", fields=[name])

    async def keyword_matches(self, query: str) -> List[GraphMatch]:
        """
        Nodes matching the query text, each with the same base relevance score.
        """
        query = query.strip()
        if not query:
            return []
        node_ids = await self.store.keyword_search(query, self.config.keyword_match_limit)
        logger.debug("Graph matches found for %r: %d", query, len(node_ids))
        return [GraphMatch(doc_id=node_id, score=self.config.keyword_match_score) for node_id in node_ids]

    async def traverse(
        self, start_id: str, depth: int, types: Optional[Sequence[str]] = None
    ) -> List[TraversalHit]:
        self._check_bound("depth", depth, self.config.max_depth)
        return await self.store.traverse(start_id, depth, self._relation_types(types))

    async def multi_hop(
        self, start_id: str, hops: int, types: Optional[Sequence[str]] = None
    ) -> List[TraversalPath]:
        """
        Breadth-first path expansion from ``start_id`` over 1..hops relationships,
        ignoring edge direction. A relationship is used at most once per path.
        Rows come out in ascending hop order and stop at ``multi_hop_limit``.
        When ``distinct_traversal_nodes`` is set, each node is reported once via
        the first (shortest) path that reaches it and only those paths are
        extended further.
        """
        self._check_bound("hops", hops, self.config.max_hops)
        allowed = self._relation_types(types)
        limit = self.config.multi_hop_limit
        distinct = self.config.distinct_traversal_nodes

        start = await self.store.get_node(start_id)
        start_ref = {"id": start.id, "name": start.name}
        seen = {start_id}
        frontier = [_PathState(start_id, (), frozenset())]
        rows: List[TraversalPath] = []
        for hop in range(1, hops + 1):
            next_frontier: List[_PathState] = []
            for state in frontier:
                for edge in await self.store.relationships(state.node_id, allowed):
                    if edge.id in state.edge_ids:
                        continue
                    neighbor_id = edge.target if edge.source == state.node_id else edge.source
                    if distinct:
                        if neighbor_id in seen:
                            continue
                        seen.add(neighbor_id)
                    path = state.extend(edge, neighbor_id)
                    next_frontier.append(path)
                    rows.append(await self._row(start_ref, path, hop))
                    if len(rows) >= limit:
                        return rows
            if not next_frontier:
                break
            frontier = next_frontier
        return rows

    async def _row(self, start_ref: Dict[str, str], path: _PathState, hop: int) -> TraversalPath:
        related = await self.store.get_node(path.node_id)
        return TraversalPath(
            start=start_ref,
            related=related,
            relationships=[RelationshipStep(type=edge.type, weight=edge.weight) for edge in path.steps],
            hop_count=hop,
            path_length=hop + 1,
        )
