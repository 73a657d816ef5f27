"""
Typer-powered CLI for ingesting data and running searches locally.
"""
from __future__ import annotations

import asyncio
import json
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from rich import print
from rich.table import Table

from .config import configure_logging, settings
from .errors import HybridRetrievalError
from .models import FusionMode, FusionRequest
from .search import SearchService, build_service

app = typer.Typer(add_completion=False, help="Hybrid Vector + Graph Retrieval CLI")


@lru_cache(maxsize=1)
def get_service() -> SearchService:
    configure_logging("WARNING")
    return build_service(settings)


def run(coro):
    try:
        return asyncio.run(coro)
    except HybridRetrievalError as exc:
        print(f"[red]{type(exc).__name__}: {exc.message}[/red]")
        raise typer.Exit(code=1) from exc


@app.command()
def ingest(file: Path = typer.Argument(..., help="JSON file with one ingest payload or a list of them")):
    """
    Route each payload to the vector store, the graph store, or both.
    """
    data = json.loads(file.read_text(encoding="utf-8"))
    payloads = data if isinstance(data, list) else [data]
    service = get_service()
    for payload in payloads:
        result = run(service.ingest(payload))
        print(
            f"[green]{result.routed_to.value}[/green] "
            f"documents={result.documents_added} nodes={result.nodes_added} edges={result.edges_added}"
        )


@app.command()
def vector(query: str, top_k: int = 5):
    """
    Run vector search for the given query.
    """
    response = run(get_service().vector_search(query, top_k=top_k))
    table = Table("Rank", "Doc ID", "Similarity", "Snippet")
    for hit in response.results:
        table.add_row(str(hit.rank), hit.doc_id, f"{hit.similarity:.3f}", hit.text[:60])
    print(table)


@app.command()
def graph(start_id: str, depth: int = 1):
    """
    Nodes reachable from the start node within depth.
    """
    hits = run(get_service().graph_traversal(start_id, depth))
    table = Table("Node ID", "Name", "Types")
    for hit in hits:
        table.add_row(hit.id, hit.name, ", ".join(hit.types))
    print(table)


@app.command()
def multihop(
    start_id: str,
    hops: int = 2,
    relationship_type: Optional[List[str]] = typer.Option(None, "--type", help="Repeatable"),
):
    """
    Paths of 1..hops relationships from the start node.
    """
    paths = run(get_service().multi_hop(start_id, hops, relationship_type or None))
    table = Table("Hops", "Node ID", "Name", "Relationships")
    for path in paths:
        table.add_row(
            str(path.hop_count),
            path.related.id,
            path.related.name,
            " -> ".join(step.type for step in path.relationships),
        )
    print(table)


@app.command()
def hybrid(
    query: str,
    mode: FusionMode = FusionMode.HYBRID,
    vector_weight: float = 0.7,
    graph_weight: float = 0.3,
    top_k: int = 5,
    page: int = 1,
):
    """
    Hybrid search combining vector similarity and graph keyword boosts.
    """
    request = FusionRequest(
        query=query,
        type=mode,
        vector_weight=vector_weight,
        graph_weight=graph_weight,
        top_k=top_k,
        page=page,
    )
    response = run(get_service().hybrid_search(request))
    table = Table("Rank", "Doc ID", "Similarity", "Hybrid", "Snippet")
    for hit in response.results:
        table.add_row(
            str(hit.rank),
            hit.doc_id,
            f"{hit.similarity:.3f}",
            f"{hit.hybrid_score:.3f}",
            hit.text[:60],
        )
    print(table)
    print(f"page {response.page}/{response.total_pages}, graph boosts: {response.graph_boosts}")


@app.command()
def stats():
    """
    Document, node and edge counts.
    """
    result = run(get_service().stats())
    table = Table("Store", "Count")
    table.add_row("documents", str(result.total_documents))
    table.add_row("nodes", str(result.total_nodes))
    table.add_row("edges", str(result.total_edges))
    print(table)


@app.command()
def serve(host: str = "127.0.0.1", port: int = 3000):
    """
    Run the HTTP API.
    """
    uvicorn.run("hybrid_retrieval.api:app", host=host, port=port)


if __name__ == "__main__":
    app()
