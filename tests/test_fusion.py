import pytest

from hybrid_retrieval.errors import ValidationError
from hybrid_retrieval.fusion import build_graph_boost, fuse, paginate
from hybrid_retrieval.models import GraphMatch, SearchHit


def make_hit(doc_id, similarity, rank=1):
    return SearchHit(rank=rank, doc_id=doc_id, text=f"text for {doc_id}", similarity=similarity)


def test_graph_boost_lifts_lower_similarity_hit():
    hits = [make_hit("x", 0.8, 1), make_hit("y", 0.6, 2)]
    ranked = fuse(hits, {"y": 0.3}, vector_weight=0.7)
    assert [hit.doc_id for hit in ranked] == ["y", "x"]
    scores = {hit.doc_id: hit.hybrid_score for hit in ranked}
    assert scores["x"] == pytest.approx(0.56)
    assert scores["y"] == pytest.approx(0.72)
    assert [hit.rank for hit in ranked] == [1, 2]


def test_build_graph_boost_applies_weight():
    matches = [GraphMatch(doc_id="a", score=0.9), GraphMatch(doc_id="b", score=0.9)]
    assert build_graph_boost(matches, 0.5) == pytest.approx({"a": 0.45, "b": 0.45})


def test_boost_for_unknown_doc_is_ignored():
    ranked = fuse([make_hit("x", 0.5)], {"ghost": 1.0}, vector_weight=1.0)
    assert [hit.doc_id for hit in ranked] == ["x"]
    assert ranked[0].hybrid_score == pytest.approx(0.5)


def test_equal_scores_keep_vector_order():
    hits = [make_hit(name, 0.5, rank) for rank, name in enumerate("abcde", start=1)]
    ranked = fuse(hits, {}, vector_weight=0.7)
    assert [hit.doc_id for hit in ranked] == list("abcde")


def test_fuse_does_not_mutate_input():
    hits = [make_hit("x", 0.8)]
    fuse(hits, {"x": 0.1}, vector_weight=0.5)
    assert hits[0].hybrid_score is None


def test_pagination_over_twelve_hits():
    ranked = fuse([make_hit(f"d{i}", 1 - i / 100) for i in range(12)], {}, vector_weight=1.0)
    first = paginate(ranked, page=1, top_k=5)
    third = paginate(ranked, page=3, top_k=5)
    assert [hit.rank for hit in first.results] == [1, 2, 3, 4, 5]
    assert [hit.rank for hit in third.results] == [11, 12]
    assert first.total_pages == third.total_pages == 3
    assert paginate(ranked, page=4, top_k=5).results == []


def test_paginate_empty_list():
    page = paginate([], page=1, top_k=5)
    assert page.results == []
    assert page.total_pages == 0


def test_paginate_rejects_non_positive_arguments():
    with pytest.raises(ValidationError):
        paginate([], page=0, top_k=5)
    with pytest.raises(ValidationError):
        paginate([], page=1, top_k=0)
