"""
Search service tying the embedding provider, the two stores, ingestion
routing, graph traversal and score fusion together.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import Settings, ensure_directories, settings
from .embeddings import EmbeddingProvider
from .errors import ValidationError
from .fusion import build_graph_boost, fuse, paginate
from .graph import NetworkXGraphStore
from .ingestion import IngestionRouter
from .models import (
    Document,
    Edge,
    EngineStats,
    FusionMode,
    FusionRequest,
    GraphMatch,
    HybridSearchResponse,
    IngestResult,
    Node,
    TraversalHit,
    TraversalPath,
    VectorSearchResponse,
)
from .storage import PLACEHOLDER_ID, GraphStore, SQLiteVectorStore, VectorStore
from .traversal import GraphTraversalEngine
from .validation import validate_edge, validate_node

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(
        self,
        vector_store: VectorStore,
        graph_store: GraphStore,
        embedder: EmbeddingProvider,
        config: Optional[Settings] = None,
    ) -> None:
        self.config = config or settings
        self.vector_store = vector_store
        self.graph_store = graph_store
        self.embedder = embedder
        self.router = IngestionRouter(vector_store, graph_store, embedder, self.config)
        self.traversal = GraphTraversalEngine(graph_store, self.config)

    # ------------------------------------------------------------------
    # Nodes, edges, documents
    # ------------------------------------------------------------------
    @staticmethod
    def _graph_data(node_id: str, metadata: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            **metadata,
            "name": metadata.get("name") or node_id,
            "type": metadata.get("type"),
            "tags": metadata.get("tags") or [],
        }

    async def add_node(self, payload: Mapping[str, Any]) -> Node:
        """
        Validate, then write the text to the vector store and the node to the
        graph store under the same id. The two writes are independent.
        """
        validate_node(payload, self.config.node_types)
        node_id = str(payload["id"])
        text = str(payload["text"]).strip()
        metadata = dict(payload.get("metadata") or {})
        embedding = await self.embedder.embed(text)
        await self.vector_store.add_document(
            Document(id=node_id, text=text, embedding=embedding, metadata=metadata)
        )
        return await self.graph_store.add_node(node_id, self._graph_data(node_id, metadata))

    async def get_node(self, node_id: str) -> Node:
        return await self.graph_store.get_node(node_id)

    async def update_node(self, node_id: str, payload: Mapping[str, Any]) -> Document:
        if not isinstance(payload, Mapping):
            raise ValidationError("node must be an object")
        validate_node({**payload, "id": node_id}, self.config.node_types)
        text = str(payload["text"]).strip()
        metadata = dict(payload.get("metadata") or {})
        embedding = await self.embedder.embed(text)
        document = await self.vector_store.update_document(
            Document(id=node_id, text=text, embedding=embedding, metadata=metadata)
        )
        await self.graph_store.add_node(node_id, self._graph_data(node_id, metadata))
        return document

    async def delete_node(self, node_id: str) -> bool:
        removed_vector = await self.vector_store.delete_document(node_id)
        removed_graph = await self.graph_store.delete_node(node_id)
        return removed_vector or removed_graph

    async def add_edge(self, payload: Mapping[str, Any]) -> Edge:
        validate_edge(payload, self.config.relation_types)
        weight = payload.get("weight")
        return await self.graph_store.add_edge(
            str(payload["source"]),
            str(payload["target"]),
            payload["type"],
            1.0 if weight is None else float(weight),
        )

    async def get_edge(self, edge_id: str) -> Edge:
        return await self.graph_store.get_edge(edge_id)

    async def get_document(self, doc_id: str) -> Document:
        return await self.vector_store.get_document(doc_id)

    async def list_documents(self, limit: Optional[int] = None) -> List[Document]:
        return await self.vector_store.get_all_documents(limit or self.config.document_list_limit)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    async def _vector_hits(self, query: str, top_k: int) -> VectorSearchResponse:
        query_vec = await self.embedder.embed(query)
        response = await self.vector_store.search(query_vec, top_k)
        results = [hit for hit in response.results if hit.doc_id != PLACEHOLDER_ID]
        return response.model_copy(
            update={"query": query, "results": results, "total_results": len(results)}
        )

    async def vector_search(self, query: str, top_k: Optional[int] = None) -> VectorSearchResponse:
        if not query or not query.strip():
            raise ValidationError("Missing required field: query", fields=["query"])
        top_k = self.config.top_k if top_k is None else top_k
        if top_k < 1:
            raise ValidationError("top_k must be positive", fields=["top_k"])
        return await self._vector_hits(query, top_k)

    async def graph_traversal(self, start_id: str, depth: int = 1) -> List[TraversalHit]:
        return await self.traversal.traverse(start_id, depth)

    async def multi_hop(
        self,
        start_id: str,
        hops: Optional[int] = None,
        relationship_types: Optional[Sequence[str]] = None,
    ) -> List[TraversalPath]:
        return await self.traversal.multi_hop(
            start_id, self.config.default_hops if hops is None else hops, relationship_types
        )

    async def ingest(self, payload: Any) -> IngestResult:
        return await self.router.ingest(payload)

    async def hybrid_search(self, request: FusionRequest) -> HybridSearchResponse:
        """
        Vector hits from a fixed candidate pool, boosted by graph keyword
        matches, then ranked and paginated. Both queries run concurrently.
        """
        logger.info("Hybrid search: %r (%s)", request.query, request.type.value)
        pool = max(self.config.candidate_pool, request.top_k)
        if request.type is FusionMode.VECTOR_ONLY:
            vector_response = await self._vector_hits(request.query, pool)
            matches: List[GraphMatch] = []
        else:
            vector_response, matches = await asyncio.gather(
                self._vector_hits(request.query, pool),
                self.traversal.keyword_matches(request.query),
            )
        boosts = build_graph_boost(matches, request.graph_weight)
        ranked = fuse(vector_response.results, boosts, request.vector_weight)
        page = paginate(ranked, request.page, request.top_k)
        return HybridSearchResponse(
            query=request.query,
            type=request.type,
            vector_weight=request.vector_weight,
            graph_weight=request.graph_weight,
            page=request.page,
            top_k=request.top_k,
            total_pages=page.total_pages,
            results=page.results,
            vector_hits=vector_response.total_results,
            graph_boosts=len(boosts),
        )

    async def stats(self) -> EngineStats:
        vector_stats, graph_stats = await asyncio.gather(
            self.vector_store.get_stats(), self.graph_store.get_stats()
        )
        return EngineStats(
            vector=vector_stats,
            graph=graph_stats,
            total_nodes=graph_stats.total_nodes,
            total_edges=graph_stats.total_edges,
            total_documents=vector_stats.total_documents,
        )


def build_service(config: Optional[Settings] = None) -> SearchService:
    config = config or settings
    ensure_directories(config)
    return SearchService(
        vector_store=SQLiteVectorStore(config.db_path, config.embedding_dim),
        graph_store=NetworkXGraphStore(config.graph_path),
        embedder=EmbeddingProvider.from_settings(config),
        config=config,
    )
