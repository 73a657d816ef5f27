import pytest

from hybrid_retrieval.errors import ValidationError
from hybrid_retrieval.validation import (
    validate_edge,
    validate_graph_node,
    validate_node,
    validate_relation_types,
)


def test_node_requires_id_and_text():
    with pytest.raises(ValidationError) as excinfo:
        validate_node({"metadata": {}})
    assert excinfo.value.fields == ["id", "text"]
    assert "id, text" in excinfo.value.message


def test_node_rejects_falsy_required_field():
    with pytest.raises(ValidationError) as excinfo:
        validate_node({"id": "n1", "text": ""})
    assert excinfo.value.fields == ["text"]


def test_node_type_must_be_allowed():
    with pytest.raises(ValidationError) as excinfo:
        validate_node({"id": "n1", "text": "hello", "metadata": {"type": "spaceship"}})
    assert "spaceship" in excinfo.value.message


def test_node_accepts_known_type_and_missing_type():
    validate_node({"id": "n1", "text": "hello", "metadata": {"type": "person"}})
    validate_node({"id": "n2", "text": "hello"})


def test_node_metadata_must_be_object():
    with pytest.raises(ValidationError):
        validate_node({"id": "n1", "text": "hello", "metadata": ["person"]})


def test_edge_rejects_unknown_type():
    with pytest.raises(ValidationError) as excinfo:
        validate_edge({"source": "a", "target": "b", "type": "FRIEND"})
    assert "FRIEND" in excinfo.value.message


def test_edge_accepts_allowed_type_with_weight():
    validate_edge({"source": "a", "target": "b", "type": "USES", "weight": 0.9})


@pytest.mark.parametrize("weight", [-0.1, 1.5, "heavy", True])
def test_edge_weight_out_of_range_or_invalid(weight):
    with pytest.raises(ValidationError) as excinfo:
        validate_edge({"source": "a", "target": "b", "type": "USES", "weight": weight})
    assert excinfo.value.fields == ["weight"]


@pytest.mark.parametrize("weight", [0, 1, 0.0, 1.0])
def test_edge_weight_bounds_are_inclusive(weight):
    validate_edge({"source": "a", "target": "b", "type": "RELATED", "weight": weight})


def test_edge_names_every_missing_field():
    with pytest.raises(ValidationError) as excinfo:
        validate_edge({"source": "a"})
    assert excinfo.value.fields == ["target", "type"]


def test_graph_node_only_needs_id():
    validate_graph_node({"id": "n1"})
    with pytest.raises(ValidationError):
        validate_graph_node({"name": "no id"})
    with pytest.raises(ValidationError):
        validate_graph_node({"id": "n1", "type": "spaceship"})


def test_relation_type_filter():
    assert validate_relation_types(["USES", "RELATED"]) == ["USES", "RELATED"]
    with pytest.raises(ValidationError):
        validate_relation_types(["USES", "DROP"])


def test_custom_allow_lists():
    validate_edge({"source": "a", "target": "b", "type": "KNOWS"}, relation_types=["KNOWS"])
    with pytest.raises(ValidationError):
        validate_edge({"source": "a", "target": "b", "type": "USES"}, relation_types=["KNOWS"])


def test_node_labels_must_be_strings():
    with pytest.raises(ValidationError) as excinfo:
        validate_graph_node({"id": "n1", "name": 42})
    assert excinfo.value.fields == ["name"]
    with pytest.raises(ValidationError) as excinfo:
        validate_graph_node({"id": "n1", "tags": ["ml", 7]})
    assert excinfo.value.fields == ["tags"]
    with pytest.raises(ValidationError):
        validate_node({"id": "n1", "text": "body", "metadata": {"tags": {"a": 1}}})
    validate_graph_node({"id": "n1", "name": "Node", "tags": "ml"})
    validate_node({"id": "n1", "text": "body", "metadata": {"tags": ["ml"]}})
