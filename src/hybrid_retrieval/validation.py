"""
Schema checks run on node and edge payloads before any store is touched.
"""
from __future__ import annotations

from numbers import Real
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .config import settings
from .errors import ValidationError

NODE_REQUIRED = ("id", "text")
GRAPH_NODE_REQUIRED = ("id",)
EDGE_REQUIRED = ("source", "target", "type")


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{what} must be an object")
    return payload


def _check_required(payload: Mapping[str, Any], required: Iterable[str]) -> None:
    missing = [field for field in required if not payload.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)


def _check_node_type(value: Any, allowed: Sequence[str]) -> None:
    if value is not None and value not in allowed:
        raise ValidationError(
            f"Invalid node type: {value}. Allowed: {', '.join(allowed)}", fields=["type"]
        )


def _check_labels(payload: Mapping[str, Any]) -> None:
    name = payload.get("name")
    if name is not None and not isinstance(name, str):
        raise ValidationError("Node name must be a string", fields=["name"])
    tags = payload.get("tags")
    # a lone string is a single tag
    if tags is None or isinstance(tags, str):
        return
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValidationError("Node tags must be a list of strings", fields=["tags"])


def validate_node(payload: Any, node_types: Optional[Sequence[str]] = None) -> None:
    """
    A node create/update payload needs ``id`` and ``text``; ``metadata.type``,
    when given, must be a known node type.
    """
    payload = _require_mapping(payload, "node")
    _check_required(payload, NODE_REQUIRED)
    metadata = payload.get("metadata")
    if metadata is None:
        return
    if not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be an object", fields=["metadata"])
    _check_labels(metadata)
    _check_node_type(metadata.get("type"), node_types or settings.node_types)


def validate_graph_node(payload: Any, node_types: Optional[Sequence[str]] = None) -> None:
    """Structural node inside an ingest payload: only ``id`` is required."""
    payload = _require_mapping(payload, "node")
    _check_required(payload, GRAPH_NODE_REQUIRED)
    _check_labels(payload)
    _check_node_type(payload.get("type"), node_types or settings.node_types)


def validate_edge(payload: Any, relation_types: Optional[Sequence[str]] = None) -> None:
    payload = _require_mapping(payload, "edge")
    _check_required(payload, EDGE_REQUIRED)
    allowed = relation_types or settings.relation_types
    if payload["type"] not in allowed:
        raise ValidationError(
            f"Invalid edge type: {payload['type']}. Allowed: {', '.join(allowed)}",
            fields=["type"],
        )
    weight = payload.get("weight")
    if weight is None:
        return
    if isinstance(weight, bool) or not isinstance(weight, Real):
        raise ValidationError("Edge weight must be a number", fields=["weight"])
    if not 0 <= weight <= 1:
        raise ValidationError("Edge weight must be 0-1", fields=["weight"])


def validate_relation_types(types: Sequence[str], allowed: Optional[Sequence[str]] = None) -> List[str]:
    allowed = allowed or settings.relation_types
    unknown = [value for value in types if value not in allowed]
    if unknown:
        raise ValidationError(
            f"Unknown relationship types: {', '.join(unknown)}. Allowed: {', '.join(allowed)}",
            fields=["relationship_types"],
        )
    return list(types)
