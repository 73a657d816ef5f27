"""
Shared fixtures: a service over a temporary SQLite file, an in-memory graph,
and the deterministic hash embedding.
"""
import pytest

from hybrid_retrieval.config import Settings
from hybrid_retrieval.embeddings import EmbeddingProvider, HashEmbeddingModel
from hybrid_retrieval.graph import NetworkXGraphStore
from hybrid_retrieval.search import SearchService
from hybrid_retrieval.storage import SQLiteVectorStore


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "vectors.db",
        graph_path=tmp_path / "graph.json",
        use_real_embeddings=False,
    )


@pytest.fixture
def embedder(test_settings):
    return EmbeddingProvider(
        fallback=HashEmbeddingModel(dim=test_settings.embedding_dim), dim=test_settings.embedding_dim
    )


@pytest.fixture
def vector_store(test_settings):
    store = SQLiteVectorStore(test_settings.db_path, test_settings.embedding_dim)
    yield store
    store.close()


@pytest.fixture
def graph_store():
    return NetworkXGraphStore()


@pytest.fixture
def service(vector_store, graph_store, embedder, test_settings):
    return SearchService(vector_store, graph_store, embedder, test_settings)