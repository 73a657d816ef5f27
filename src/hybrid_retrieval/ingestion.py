"""
Ingestion routing: clean an incoming record, decide which stores should
receive it, and dispatch the writes.

Dispatch is best-effort and not transactional across the two stores. The first
failing write stops the ingest and is reported with the counts of writes that
already landed; nothing is rolled back.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import Settings, settings
from .embeddings import EmbeddingProvider
from .errors import HybridRetrievalError, NoiseRejected, PartialIngestError, ValidationError
from .models import Document, IngestResult, RouteDecision, generate_id
from .storage import GraphStore, VectorStore
from .validation import validate_edge, validate_graph_node

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("text", "content", "title", "description")
RELATIONSHIP_FIELDS = ("nodes", "edges", "relationships", "parent_id", "children")

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\s.,!?]")


def clean_text(raw: str) -> str:
    collapsed = _WHITESPACE.sub(" ", raw)
    return _DISALLOWED.sub("", collapsed).strip()


def first_text(payload: Mapping[str, Any]) -> str:
    for field in TEXT_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def has_structure(payload: Mapping[str, Any]) -> bool:
    return bool(payload.get("nodes")) or bool(payload.get("edges"))


def clean_payload(payload: Mapping[str, Any], min_length: Optional[int] = None) -> Dict[str, Any]:
    """
    Payloads carrying nodes or edges pass through untouched. Anything else must
    yield at least ``min_length`` characters of cleaned text or it is rejected.
    """
    if has_structure(payload):
        return dict(payload)
    min_length = settings.min_text_length if min_length is None else min_length
    cleaned = clean_text(first_text(payload))
    if len(cleaned) < min_length:
        raise NoiseRejected(f"Data too noisy or short (<{min_length} chars)", fields=["text"])
    return {**payload, "text": cleaned}


def decide_route(payload: Mapping[str, Any]) -> RouteDecision:
    has_text = bool(first_text(payload))
    has_relationships = has_structure(payload) or any(
        payload.get(field) for field in RELATIONSHIP_FIELDS[2:]
    )
    if has_text and has_relationships:
        return RouteDecision.BOTH
    if has_text:
        return RouteDecision.VECTOR_ONLY
    if has_relationships:
        return RouteDecision.GRAPH_ONLY
    return RouteDecision.METADATA_ONLY


def _endpoint(edge: Mapping[str, Any], key: str, alias: str) -> Optional[str]:
    value = edge.get(key)
    if value is None:
        value = edge.get(alias)
    return None if value is None else str(value)


def normalize_edge(edge: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Accept ``from``/``to`` as aliases of ``source``/``target``. Endpoints are
    stringified the same way node ids are, so JSON numbers line up.
    """
    normalized = dict(edge)
    normalized["source"] = _endpoint(edge, "source", "from")
    normalized["target"] = _endpoint(edge, "target", "to")
    normalized.pop("from", None)
    normalized.pop("to", None)
    return normalized


class IngestionRouter:
    def __init__(
        self,
        vector_store: VectorStore,
        graph_store: GraphStore,
        embedder: EmbeddingProvider,
        config: Optional[Settings] = None,
    ) -> None:
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.embedder = embedder
        self.config = config or settings

    def _structure(self, payload: Mapping[str, Any]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        nodes = payload.get("nodes") or []
        edges = payload.get("edges") or []
        if not isinstance(nodes, list) or not isinstance(edges, list):
            raise ValidationError("nodes and edges must be lists", fields=["nodes", "edges"])
        for node in nodes:
            validate_graph_node(node, self.config.node_types)
        normalized = [normalize_edge(edge) if isinstance(edge, Mapping) else edge for edge in edges]
        for edge in normalized:
            validate_edge(edge, self.config.relation_types)
        return [dict(node) for node in nodes], normalized

    async def ingest(self, payload: Any) -> IngestResult:
        if not isinstance(payload, Mapping):
            raise ValidationError("data must be an object", fields=["data"])
        cleaned = clean_payload(payload, self.config.min_text_length)
        decision = decide_route(cleaned)
        nodes, edges = self._structure(cleaned) if decision.to_graph else ([], [])
        text = first_text(cleaned)
        metadata = cleaned.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise ValidationError("metadata must be an object", fields=["metadata"])

        doc_id = str(cleaned.get("id") or generate_id()) if decision.to_vector else None
        logger.info("[%s] Ingesting: %s", decision.value, doc_id or text[:50])
        result = IngestResult(routed_to=decision, doc_id=doc_id, cleaned_text_length=len(text))
        try:
            await self._dispatch(decision, result, text, dict(metadata), nodes, edges)
        except HybridRetrievalError as exc:
            completed = {
                "documents_added": result.documents_added,
                "nodes_added": result.nodes_added,
                "edges_added": result.edges_added,
            }
            logger.error("Hybrid ingest failed: %s", exc)
            raise PartialIngestError(decision.value, completed, exc) from exc
        return result

    async def _dispatch(
        self,
        decision: RouteDecision,
        result: IngestResult,
        text: str,
        metadata: Dict[str, Any],
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
    ) -> None:
        if decision.to_vector:
            embedding = await self.embedder.embed(text)
            await self.vector_store.add_document(
                Document(id=result.doc_id, text=text, embedding=embedding, metadata=metadata)
            )
            result.documents_added += 1
        if decision.to_graph:
            for node in nodes:
                await self.graph_store.add_node(str(node["id"]), node)
                result.nodes_added += 1
            for edge in edges:
                weight = edge.get("weight")
                await self.graph_store.add_edge(
                    edge["source"], edge["target"], edge["type"], 1.0 if weight is None else weight
                )
                result.edges_added += 1
