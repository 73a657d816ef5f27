import pytest
from fastapi.testclient import TestClient

from hybrid_retrieval.api import create_app


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


def create_nodes(client):
    for node_id, text, node_type in [
        ("gpt", "GPT models generate text from prompts", "concept"),
        ("openai", "OpenAI trains large language models", "org"),
        ("clinic", "The clinic deployed a triage model", "org"),
    ]:
        response = client.post(
            "/nodes", json={"id": node_id, "text": text, "metadata": {"type": node_type}}
        )
        assert response.status_code == 200
    client.post("/edges", json={"source": "openai", "target": "gpt", "type": "CREATED"})
    client.post("/edges", json={"source": "clinic", "target": "gpt", "type": "USES", "weight": 0.6})


def test_health(client):
    body = client.get("/health").json()
    assert body["success"] is True
    assert body["status"] == "ok"


def test_create_and_read_node(client):
    create_nodes(client)
    body = client.get("/nodes/gpt").json()
    assert body["success"] is True
    assert body["node"]["id"] == "gpt"
    assert body["node"]["type"] == "concept"


def test_missing_node_is_404_envelope(client):
    response = client.get("/nodes/ghost")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "NotFoundError"


def test_node_validation_is_400(client):
    response = client.post("/nodes", json={"text": "no id here"})
    assert response.status_code == 400
    assert response.json()["error"]["fields"] == ["id"]


def test_edge_validation_and_lookup(client):
    create_nodes(client)
    bad = client.post("/edges", json={"source": "openai", "target": "gpt", "type": "FRIEND"})
    assert bad.status_code == 400
    good = client.post(
        "/edges", json={"source": "openai", "target": "clinic", "type": "RELATED", "weight": 0.9}
    )
    edge = good.json()["edge"]
    assert edge["weight"] == 0.9
    fetched = client.get(f"/edges/{edge['id']}").json()["edge"]
    assert (fetched["source"], fetched["target"], fetched["type"]) == ("openai", "clinic", "RELATED")


def test_edge_to_missing_node_is_404(client):
    create_nodes(client)
    response = client.post("/edges", json={"source": "gpt", "target": "nowhere", "type": "USES"})
    assert response.status_code == 404


def test_update_and_delete_node(client):
    create_nodes(client)
    response = client.put("/nodes/clinic", json={"text": "The clinic retired the model"})
    assert response.json()["document"]["text"] == "The clinic retired the model"
    assert "embedding" not in response.json()["document"]
    assert client.delete("/nodes/clinic").json()["deleted"] == "clinic"
    assert client.get("/documents/clinic").status_code == 404


def test_documents_listing(client):
    create_nodes(client)
    body = client.get("/documents", params={"limit": 2}).json()
    assert body["total_documents"] == 2


def test_vector_search(client):
    create_nodes(client)
    body = client.post("/search/vector", json={"query": "OpenAI trains large language models"}).json()
    assert body["type"] == "vector_only"
    assert body["results"][0]["doc_id"] == "openai"
    assert body["total"] == 3


def test_vector_search_requires_query(client):
    assert client.post("/search/vector", json={}).status_code == 400


def test_graph_traversal(client):
    create_nodes(client)
    body = client.get("/search/graph", params={"start_id": "gpt", "depth": 1}).json()
    assert [node["id"] for node in body["nodes"]] == ["clinic"]


def test_multi_hop(client):
    create_nodes(client)
    body = client.get(
        "/search/multi-hop",
        params={"start_id": "openai", "hops": 2, "relationship_types": "CREATED,USES"},
    ).json()
    assert [(p["related"]["id"], p["hop_count"]) for p in body["paths"]] == [("gpt", 1), ("clinic", 2)]
    assert body["total_paths"] == 2


def test_multi_hop_rejects_unknown_type(client):
    create_nodes(client)
    response = client.get(
        "/search/multi-hop", params={"start_id": "openai", "relationship_types": "DROP"}
    )
    assert response.status_code == 400


def test_ingest_routes(client):
    body = client.post(
        "/ingest", json={"data": {"content": "a sufficiently long description text"}}
    ).json()
    assert body["routed_to"] == "VECTOR_ONLY"
    noisy = client.post("/ingest", json={"data": {"content": "short"}})
    assert noisy.status_code == 400
    assert noisy.json()["error"]["type"] == "NoiseRejected"


def test_hybrid_search_envelope(client):
    create_nodes(client)
    body = client.post("/search", json={"query": "gpt", "top_k": 2, "page": 1}).json()
    assert body["success"] is True
    assert body["type"] == "hybrid"
    assert body["total_pages"] == 2
    assert len(body["results"]) == 2
    assert body["graph_boosts"] == 1


def test_hybrid_search_rejects_bad_request(client):
    assert client.post("/search", json={"query": "  "}).status_code == 400
    assert client.post("/search", json={"query": "gpt", "type": "fuzzy"}).status_code == 400
    assert client.post("/search", json={"query": "gpt", "page": 0}).status_code == 400


def test_stats(client):
    create_nodes(client)
    body = client.get("/stats").json()
    assert (body["total_documents"], body["total_nodes"], body["total_edges"]) == (3, 3, 2)


def test_ingest_malformed_node_is_400_envelope(client):
    response = client.post("/ingest", json={"data": {"nodes": [{"id": "n1", "name": 42}]}})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["fields"] == ["name"]
    assert client.get("/stats").json()["total_nodes"] == 0


def test_unexpected_error_still_uses_envelope(service, monkeypatch):
    async def crash():
        raise RuntimeError("boom")

    monkeypatch.setattr(service, "stats", crash)
    client = TestClient(create_app(service), raise_server_exceptions=False)
    response = client.get("/stats")
    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": {"type": "HybridRetrievalError", "message": "Internal server error"},
    }


def test_multi_hop_default_hops_follow_service_config(service):
    service.config.default_hops = 1
    client = TestClient(create_app(service))
    create_nodes(client)
    body = client.get(
        "/search/multi-hop", params={"start_id": "openai", "relationship_types": "CREATED,USES"}
    ).json()
    assert body["hops"] == 1
    assert [p["related"]["id"] for p in body["paths"]] == ["gpt"]
