"""
Embedding providers and vector similarity.

Text is embedded by a sentence-transformers model when one is configured and
healthy. Otherwise a deterministic hash embedding is used, which needs no model
and always returns the same vector for the same text.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import List, NamedTuple, Optional, Sequence

import numpy as np

from .config import Settings, settings
from .errors import DimensionMismatchError

logger = logging.getLogger(__name__)

TWO_PI = 2 * math.pi


class HashEmbeddingModel:
    """
    Deterministic pseudo-embedding generator suitable for offline use and tests.
    The text is folded into a 32-bit signed rolling hash, then each dimension is
    a phase-shifted sine of that hash mapped into [0, 1].
    """

    def __init__(self, dim: int | None = None, step: int | None = None) -> None:
        self.dim = dim or settings.embedding_dim
        self.step = step or settings.hash_step

    @staticmethod
    def text_hash(text: str) -> int:
        value = 0
        for char in text:
            value = (value * 31 + ord(char)) & 0xFFFFFFFF
        if value >= 0x80000000:
            value -= 0x100000000
        return value

    def embed(self, text: str) -> List[float]:
        value = self.text_hash(text)
        return [
            math.sin(math.fmod(value + i * self.step, TWO_PI)) * 0.5 + 0.5
            for i in range(self.dim)
        ]


class SentenceTransformerEmbeddingModel:
    """
    Wrapper around a sentence-transformers encoder producing L2-normalised vectors.
    """

    def __init__(self, model_name: str | None = None, dim: int | None = None) -> None:
        self.model_name = model_name or settings.embedding_model
        self.dim = dim or settings.embedding_dim
        self.encoder = None

    def load(self) -> None:
        from sentence_transformers import SentenceTransformer

        encoder = SentenceTransformer(self.model_name)
        model_dim = encoder.get_sentence_embedding_dimension()
        if model_dim != self.dim:
            raise ValueError(
                f"Model {self.model_name} produces {model_dim}-d vectors, expected {self.dim}"
            )
        self.encoder = encoder

    def embed(self, text: str) -> List[float]:
        if self.encoder is None:
            self.load()
        vector = self.encoder.encode(text, normalize_embeddings=True)
        return np.asarray(vector, dtype=np.float32).tolist()


class EmbeddingProvider:
    """
    Two-variant embedding strategy. While the real model is healthy every call
    is delegated to it; the first failure, or a call running past ``timeout``
    seconds, switches the provider to the hash fallback for the rest of its
    lifetime.
    """

    def __init__(
        self,
        model: Optional[SentenceTransformerEmbeddingModel] = None,
        fallback: Optional[HashEmbeddingModel] = None,
        dim: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.dim = dim or settings.embedding_dim
        self.timeout = timeout or settings.embedding_timeout
        self.model = model
        self.fallback = fallback or HashEmbeddingModel(dim=self.dim)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "EmbeddingProvider":
        config = config or settings
        fallback = HashEmbeddingModel(dim=config.embedding_dim, step=config.hash_step)
        if not config.use_real_embeddings:
            return cls(fallback=fallback, dim=config.embedding_dim, timeout=config.embedding_timeout)
        model = SentenceTransformerEmbeddingModel(config.embedding_model, config.embedding_dim)
        provider = cls(
            model=model, fallback=fallback, dim=config.embedding_dim, timeout=config.embedding_timeout
        )
        try:
            logger.info("Loading embedding model %s", config.embedding_model)
            model.load()
        except Exception as exc:
            provider.switch_to_fallback(exc)
        return provider

    @property
    def using_fallback(self) -> bool:
        return self.model is None

    def switch_to_fallback(self, reason: Exception) -> None:
        logger.warning("Real embeddings not available, using hash fallback: %s", reason)
        self.model = None

    async def embed(self, text: str) -> List[float]:
        if self.model is not None:
            try:
                vector = await asyncio.wait_for(
                    asyncio.to_thread(self.model.embed, text), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                self.switch_to_fallback(TimeoutError(f"embedding took longer than {self.timeout}s"))
            except Exception as exc:
                self.switch_to_fallback(exc)
            else:
                if len(vector) == self.dim:
                    return vector
                self.switch_to_fallback(DimensionMismatchError(len(vector), self.dim))
        return self.fallback.embed(text)


class SimilarityScore(NamedTuple):
    index: int
    similarity: float


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(len(vec_a), len(vec_b))
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


def batch_similarity(
    query: Sequence[float], vectors: Sequence[Sequence[float]]
) -> List[SimilarityScore]:
    """
    Score every vector against the query, keeping input order. ``index`` is the
    position in ``vectors`` and is what callers should join on.
    """
    return [
        SimilarityScore(index=idx, similarity=cosine_similarity(query, vector))
        for idx, vector in enumerate(vectors)
    ]
