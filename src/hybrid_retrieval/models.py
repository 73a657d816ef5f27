"""
Data models for documents, graph elements, routing, and search results.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def generate_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RouteDecision(str, Enum):
    VECTOR_ONLY = "VECTOR_ONLY"
    GRAPH_ONLY = "GRAPH_ONLY"
    BOTH = "BOTH"
    METADATA_ONLY = "METADATA_ONLY"

    @property
    def to_vector(self) -> bool:
        return self in (RouteDecision.VECTOR_ONLY, RouteDecision.BOTH)

    @property
    def to_graph(self) -> bool:
        return self in (RouteDecision.GRAPH_ONLY, RouteDecision.BOTH)


class FusionMode(str, Enum):
    HYBRID = "hybrid"
    VECTOR_ONLY = "vector_only"
    GRAPH = "graph"


class Document(BaseModel):
    id: str = Field(default_factory=generate_id)
    text: str
    embedding: List[float] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class Node(BaseModel):
    id: str
    name: str
    type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    properties: Dict[str, Any] = Field(default_factory=dict)


class Edge(BaseModel):
    id: str = Field(default_factory=generate_id)
    source: str
    target: str
    type: str
    weight: float = Field(1.0, ge=0.0, le=1.0)


class SearchHit(BaseModel):
    rank: int
    doc_id: str
    text: str
    similarity: float
    hybrid_score: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VectorSearchResponse(BaseModel):
    query: str = ""
    results: List[SearchHit]
    total_results: int
    latency_ms: float = 0.0


class GraphMatch(BaseModel):
    doc_id: str
    score: float


class TraversalHit(BaseModel):
    id: str
    name: str
    types: List[str] = Field(default_factory=list)


class RelationshipStep(BaseModel):
    type: str
    weight: float


class TraversalPath(BaseModel):
    start: Dict[str, str]
    related: Node
    relationships: List[RelationshipStep]
    hop_count: int
    path_length: int


class FusionRequest(BaseModel):
    query: str
    type: FusionMode = FusionMode.HYBRID
    vector_weight: float = Field(0.7, ge=0.0)
    graph_weight: float = Field(0.3, ge=0.0)
    top_k: int = Field(5, ge=1)
    page: int = Field(1, ge=1)

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be empty")
        return value


class HybridSearchResponse(BaseModel):
    query: str
    type: FusionMode
    vector_weight: float
    graph_weight: float
    page: int
    top_k: int
    total_pages: int
    results: List[SearchHit]
    vector_hits: int
    graph_boosts: int


class IngestResult(BaseModel):
    routed_to: RouteDecision
    doc_id: Optional[str] = None
    cleaned_text_length: int = 0
    documents_added: int = 0
    nodes_added: int = 0
    edges_added: int = 0


class VectorStats(BaseModel):
    total_documents: int
    embedding_dimension: int
    status: str
    db_path: Optional[str] = None


class GraphStats(BaseModel):
    total_nodes: int
    total_edges: int
    node_types: Dict[str, int] = Field(default_factory=dict)


class EngineStats(BaseModel):
    vector: VectorStats
    graph: GraphStats
    total_nodes: int
    total_edges: int
    total_documents: int
