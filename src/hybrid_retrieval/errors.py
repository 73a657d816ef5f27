"""
Error taxonomy shared by the engine, the stores, and the HTTP layer.
"""
from __future__ import annotations

from typing import Dict, List, Optional


class HybridRetrievalError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"type": type(self).__name__, "message": self.message}


class ValidationError(HybridRetrievalError):
    """Missing or invalid field in a client payload."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.fields = fields or []

    def to_dict(self) -> Dict[str, object]:
        data = super().to_dict()
        if self.fields:
            data["fields"] = self.fields
        return data


class NoiseRejected(ValidationError):
    """Ingest payload whose cleaned text is too short and carries no structure."""


class DimensionMismatchError(HybridRetrievalError):
    status_code = 400

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must have same dimension ({left} != {right})")
        self.left = left
        self.right = right


class NotFoundError(HybridRetrievalError):
    status_code = 404

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class StoreError(HybridRetrievalError):
    """A call into the vector or graph store failed."""

    status_code = 502


class PartialIngestError(StoreError):
    """
    Raised when ingestion dispatch fails part way. Writes that already succeeded
    are left in place; ``completed`` reports what made it into the stores.
    """

    def __init__(self, route: str, completed: Dict[str, int], cause: Exception) -> None:
        done = ", ".join(f"{key}={value}" for key, value in completed.items())
        super().__init__(f"Ingest routed to {route} failed after {done}: {cause}")
        self.route = route
        self.completed = completed

    def to_dict(self) -> Dict[str, object]:
        data = super().to_dict()
        data["routed_to"] = self.route
        data["completed"] = self.completed
        return data
