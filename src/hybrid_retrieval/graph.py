"""
Relationship graph store built on a NetworkX multi-digraph.

Edges are keyed by relation type, so a pair of nodes may be joined by several
edges of different types. Re-adding an existing (source, target, type) edge
updates its weight.
"""
from __future__ import annotations

import json
import logging
from collections import Counter, deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import networkx as nx
from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, StoreError, ValidationError
from .models import Edge, GraphStats, Node, TraversalHit, generate_id

logger = logging.getLogger(__name__)

RESERVED_NODE_KEYS = {"id", "name", "type", "tags"}


class NetworkXGraphStore:
    def __init__(self, persist_path: Optional[Path] = None) -> None:
        self.persist_path = persist_path
        self.graph = nx.MultiDiGraph()
        self.edge_index: Dict[str, Tuple[str, str, str]] = {}
        if persist_path is not None and Path(persist_path).exists():
            self.load(persist_path)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[str, Any]:
        return {
            "nodes": [{"id": node_id, **attrs} for node_id, attrs in self.graph.nodes(data=True)],
            "edges": [
                {"source": source, "target": target, **attrs}
                for source, target, attrs in self.graph.edges(data=True)
            ],
        }

    def save(self, path: Optional[Path] = None) -> Path:
        path = Path(path or self.persist_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self.snapshot()), encoding="utf-8")
        except OSError as exc:
            logger.error("Graph snapshot to %s failed: %s", path, exc)
            raise StoreError(f"Graph snapshot failed: {exc}") from exc
        return path

    def load(self, path: Path) -> None:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Graph snapshot %s could not be read: %s", path, exc)
            raise StoreError(f"Graph snapshot could not be read: {exc}") from exc
        self.graph.clear()
        self.edge_index.clear()
        for entry in data.get("nodes", []):
            attrs = dict(entry)
            self.graph.add_node(attrs.pop("id"), **attrs)
        for entry in data.get("edges", []):
            attrs = dict(entry)
            source, target = attrs.pop("source"), attrs.pop("target")
            self.graph.add_edge(source, target, key=attrs["type"], **attrs)
            self.edge_index[attrs["id"]] = (source, target, attrs["type"])
        logger.info(
            "Loaded graph with %d nodes and %d edges from %s",
            self.graph.number_of_nodes(),
            self.graph.number_of_edges(),
            path,
        )

    def _persist(self) -> None:
        if self.persist_path is not None:
            self.save()

    # ------------------------------------------------------------------
    # Node & Edge management
    # ------------------------------------------------------------------
    def _node(self, node_id: str) -> Node:
        if node_id not in self.graph:
            raise NotFoundError("Node", node_id)
        attrs = self.graph.nodes[node_id]
        return Node(
            id=node_id,
            name=attrs.get("name") or node_id,
            type=attrs.get("type"),
            tags=list(attrs.get("tags") or []),
            properties=dict(attrs.get("properties") or {}),
        )

    def _edge(self, source: str, target: str, key: str) -> Edge:
        attrs = self.graph.edges[source, target, key]
        return Edge(
            id=attrs["id"], source=source, target=target, type=attrs["type"], weight=attrs["weight"]
        )

    async def add_node(self, node_id: str, data: Dict[str, Any]) -> Node:
        existing = self.graph.nodes[node_id] if node_id in self.graph else {}
        properties = dict(existing.get("properties") or {})
        properties.update({k: v for k, v in data.items() if k not in RESERVED_NODE_KEYS})
        tags = data.get("tags") or []
        try:
            node = Node(
                id=node_id,
                name=data.get("name") or node_id,
                type=data.get("type"),
                tags=list(tags) if isinstance(tags, list) else [tags],
                properties=properties,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid node {node_id}: {exc.errors()[0]['msg']}") from exc
        self.graph.add_node(
            node_id, name=node.name, type=node.type, tags=node.tags, properties=node.properties
        )
        self._persist()
        return node

    async def add_edge(self, source: str, target: str, type: str, weight: float = 1.0) -> Edge:
        for node_id in (source, target):
            if node_id not in self.graph:
                raise NotFoundError("Node", node_id)
        if self.graph.has_edge(source, target, key=type):
            self.graph.edges[source, target, type]["weight"] = weight
        else:
            edge_id = generate_id()
            self.graph.add_edge(source, target, key=type, id=edge_id, type=type, weight=weight)
            self.edge_index[edge_id] = (source, target, type)
        self._persist()
        return self._edge(source, target, type)

    async def get_node(self, node_id: str) -> Node:
        return self._node(node_id)

    async def get_edge(self, edge_id: str) -> Edge:
        if edge_id not in self.edge_index:
            raise NotFoundError("Edge", edge_id)
        return self._edge(*self.edge_index[edge_id])

    async def delete_node(self, node_id: str) -> bool:
        if node_id not in self.graph:
            return False
        for _, _, attrs in self.graph.in_edges(node_id, data=True):
            self.edge_index.pop(attrs["id"], None)
        for _, _, attrs in self.graph.out_edges(node_id, data=True):
            self.edge_index.pop(attrs["id"], None)
        self.graph.remove_node(node_id)
        self._persist()
        return True

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    def _incident(self, node_id: str, types: Sequence[str]) -> List[Edge]:
        allowed = set(types)
        seen = set()
        edges: List[Edge] = []
        incident = list(self.graph.out_edges(node_id, keys=True)) + list(
            self.graph.in_edges(node_id, keys=True)
        )
        for source, target, key in incident:
            if key not in allowed:
                continue
            edge = self._edge(source, target, key)
            if edge.id in seen:
                continue
            seen.add(edge.id)
            edges.append(edge)
        return edges

    async def relationships(self, node_id: str, types: Sequence[str]) -> List[Edge]:
        """Edges of the given types touching ``node_id`` in either direction."""
        if node_id not in self.graph:
            raise NotFoundError("Node", node_id)
        return self._incident(node_id, types)

    async def traverse(self, start_id: str, depth: int, types: Sequence[str]) -> List[TraversalHit]:
        if start_id not in self.graph:
            raise NotFoundError("Node", start_id)
        visited = {start_id}
        queue = deque([(start_id, 0)])
        while queue:
            node_id, current_depth = queue.popleft()
            if current_depth >= depth:
                continue
            for edge in self._incident(node_id, types):
                neighbor_id = edge.target if edge.source == node_id else edge.source
                if neighbor_id in visited:
                    continue
                visited.add(neighbor_id)
                queue.append((neighbor_id, current_depth + 1))
        visited.discard(start_id)
        hits = []
        for node_id in sorted(visited):
            node = self._node(node_id)
            hits.append(
                TraversalHit(id=node.id, name=node.name, types=[node.type] if node.type else [])
            )
        return hits

    async def keyword_search(self, query: str, limit: int) -> List[str]:
        """
        Ids of nodes whose id contains ``query`` or whose name, type or tags
        contain it case-insensitively, in insertion order.
        """
        lowered = query.lower()
        matches: List[str] = []
        for node_id, attrs in self.graph.nodes(data=True):
            if len(matches) >= limit:
                break
            tags = [str(tag) for tag in attrs.get("tags") or []]
            if (
                query in str(node_id)
                or lowered in str(attrs.get("name") or "").lower()
                or lowered in str(attrs.get("type") or "").lower()
                or any(lowered in tag.lower() for tag in tags)
                or query in tags
            ):
                matches.append(node_id)
        return matches

    async def get_stats(self) -> GraphStats:
        types = Counter(attrs.get("type") or "unknown" for _, attrs in self.graph.nodes(data=True))
        return GraphStats(
            total_nodes=self.graph.number_of_nodes(),
            total_edges=self.graph.number_of_edges(),
            node_types=dict(types),
        )
