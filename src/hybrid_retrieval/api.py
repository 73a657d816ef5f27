"""
FastAPI service exposing node/edge CRUD, ingestion, and vector, graph and
hybrid retrieval. Every response is a success or error envelope.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from .config import configure_logging, settings
from .errors import HybridRetrievalError, ValidationError
from .models import Document, FusionRequest, utcnow
from .search import SearchService, build_service

logger = logging.getLogger(__name__)

DOCUMENT_FIELDS = {"embedding"}


def ok(**fields: object) -> Dict[str, object]:
    return {"success": True, **jsonable_encoder(fields)}


def error_response(status_code: int, error: Dict[str, object]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _document(document: Document) -> Dict[str, object]:
    return document.model_dump(exclude=DOCUMENT_FIELDS)


def get_service(request: Request) -> SearchService:
    return request.app.state.service


def create_app(service: Optional[SearchService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        if getattr(app.state, "service", None) is None:
            app.state.service = build_service(settings)
        logger.info("Hybrid retrieval service ready")
        yield

    app = FastAPI(title="Hybrid Vector + Graph Retrieval", version="0.2.0", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(HybridRetrievalError)
    async def handle_engine_error(request: Request, exc: HybridRetrievalError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc.status_code, exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_error(request: Request, exc: RequestValidationError):
        error = ValidationError("Invalid request: " + "; ".join(e["msg"] for e in exc.errors()))
        return error_response(error.status_code, error.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("%s %s crashed", request.method, request.url.path)
        error = HybridRetrievalError("Internal server error")
        return error_response(error.status_code, error.to_dict())

    @app.get("/health")
    async def health():
        return ok(status="ok", timestamp=utcnow())

    @app.post("/nodes")
    async def create_node(payload: Dict[str, Any], svc: SearchService = Depends(get_service)):
        node = await svc.add_node(payload)
        return ok(node_id=node.id, node=node, text_length=len(str(payload["text"]).strip()))

    @app.get("/nodes/{node_id}")
    async def read_node(node_id: str, svc: SearchService = Depends(get_service)):
        return ok(node=await svc.get_node(node_id))

    @app.put("/nodes/{node_id}")
    async def update_node(
        node_id: str, payload: Dict[str, Any], svc: SearchService = Depends(get_service)
    ):
        document = await svc.update_node(node_id, payload)
        return ok(id=node_id, document=_document(document))

    @app.delete("/nodes/{node_id}")
    async def delete_node(node_id: str, svc: SearchService = Depends(get_service)):
        return ok(deleted=node_id, removed=await svc.delete_node(node_id))

    @app.post("/edges")
    async def create_edge(payload: Dict[str, Any], svc: SearchService = Depends(get_service)):
        return ok(edge=await svc.add_edge(payload))

    @app.get("/edges/{edge_id}")
    async def read_edge(edge_id: str, svc: SearchService = Depends(get_service)):
        return ok(edge=await svc.get_edge(edge_id))

    @app.get("/documents")
    async def list_documents(
        limit: Optional[int] = Query(None, ge=1), svc: SearchService = Depends(get_service)
    ):
        documents = await svc.list_documents(limit)
        return ok(total_documents=len(documents), documents=[_document(d) for d in documents])

    @app.get("/documents/{doc_id}")
    async def read_document(doc_id: str, svc: SearchService = Depends(get_service)):
        return ok(document=_document(await svc.get_document(doc_id)))

    @app.post("/search/vector")
    async def vector_search(payload: Dict[str, Any], svc: SearchService = Depends(get_service)):
        query = str(payload.get("query") or payload.get("query_text") or "")
        raw_top_k = payload.get("top_k")
        try:
            top_k = int(raw_top_k) if raw_top_k is not None else None
        except (TypeError, ValueError) as exc:
            raise ValidationError("top_k must be an integer", fields=["top_k"]) from exc
        response = await svc.vector_search(query, top_k=top_k)
        return ok(
            query=query,
            type="vector_only",
            results=response.results,
            total=response.total_results,
            latency_ms=response.latency_ms,
        )

    @app.get("/search/graph")
    async def graph_search(
        start_id: str, depth: int = 1, svc: SearchService = Depends(get_service)
    ):
        nodes = await svc.graph_traversal(start_id, depth)
        return ok(start_id=start_id, depth=depth, nodes=nodes)

    @app.get("/search/multi-hop")
    async def multi_hop_search(
        start_id: str,
        hops: Optional[int] = None,
        relationship_types: str = "",
        svc: SearchService = Depends(get_service),
    ):
        types = [value.strip() for value in relationship_types.split(",") if value.strip()]
        hops = svc.config.default_hops if hops is None else hops
        paths = await svc.multi_hop(start_id, hops, types or None)
        return ok(start_id=start_id, hops=hops, paths=paths, total_paths=len(paths))

    @app.post("/ingest")
    async def ingest(payload: Dict[str, Any], svc: SearchService = Depends(get_service)):
        result = await svc.ingest(payload.get("data"))
        return ok(data_stored=result.routed_to, **result.model_dump())

    @app.post("/search")
    async def hybrid_search(payload: Dict[str, Any], svc: SearchService = Depends(get_service)):
        try:
            request = FusionRequest.model_validate(payload)
        except PydanticValidationError as exc:
            fields = [".".join(str(part) for part in e["loc"]) for e in exc.errors()]
            raise ValidationError(f"Invalid search request: {exc.errors()[0]['msg']}", fields) from exc
        response = await svc.hybrid_search(request)
        return ok(**response.model_dump())

    @app.get("/stats")
    async def stats(svc: SearchService = Depends(get_service)):
        return ok(**(await svc.stats()).model_dump())

    return app


app = create_app()
