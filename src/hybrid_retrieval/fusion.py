"""
Score fusion for hybrid retrieval.

The fused score of a vector hit is

    hybrid_score = similarity * vector_weight + graph_boost[doc_id]

where the graph boost has already been multiplied by the graph weight. Only
hits returned by the vector search are ranked; graph matches without a vector
hit adjust nothing.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

from .errors import ValidationError
from .models import GraphMatch, SearchHit


@dataclass
class Page:
    results: List[SearchHit]
    total_hits: int
    total_pages: int


def build_graph_boost(matches: Iterable[GraphMatch], graph_weight: float) -> Dict[str, float]:
    return {match.doc_id: match.score * graph_weight for match in matches}


def fuse(
    hits: Sequence[SearchHit],
    graph_boost: Mapping[str, float],
    vector_weight: float,
) -> List[SearchHit]:
    """
    Score and sort hits by descending hybrid score. The sort is stable, so hits
    with equal scores keep their vector-search order. Ranks are reassigned.
    """
    scored = [
        hit.model_copy(
            update={"hybrid_score": hit.similarity * vector_weight + graph_boost.get(hit.doc_id, 0.0)}
        )
        for hit in hits
    ]
    scored.sort(key=lambda hit: hit.hybrid_score, reverse=True)
    for rank, hit in enumerate(scored, start=1):
        hit.rank = rank
    return scored


def paginate(hits: Sequence[SearchHit], page: int, top_k: int) -> Page:
    if page < 1 or top_k < 1:
        raise ValidationError("page and top_k must be positive", fields=["page", "top_k"])
    offset = (page - 1) * top_k
    return Page(
        results=list(hits[offset : offset + top_k]),
        total_hits=len(hits),
        total_pages=math.ceil(len(hits) / top_k),
    )
