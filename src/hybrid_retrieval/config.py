"""
Central configuration for the hybrid retrieval engine.
"""
import logging
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NODE_TYPES = ["person", "org", "document", "concept", "healthcare_ai", "medical_ml", "test"]
RELATION_TYPES = ["USES", "MENTIONS", "CREATED", "RELATED", "DEPLOYED"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HYBRID_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Path("data")
    db_path: Path = data_dir / "vectors.db"
    graph_path: Path = data_dir / "graph.json"
    log_level: str = "INFO"

    # embeddings
    embedding_dim: int = 384
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    use_real_embeddings: bool = True
    hash_step: int = 12345
    embedding_timeout: float = 30.0

    # fusion
    default_vector_weight: float = 0.7
    default_graph_weight: float = 0.3
    top_k: int = 5
    candidate_pool: int = 100

    # graph
    max_depth: int = 3
    max_hops: int = 5
    default_hops: int = 2
    multi_hop_limit: int = 20
    keyword_match_limit: int = 10
    keyword_match_score: float = 0.9
    distinct_traversal_nodes: bool = True
    traversal_relation_types: List[str] = Field(
        default_factory=lambda: ["USES", "MENTIONS", "RELATED"]
    )

    # ingestion / schema
    min_text_length: int = 10
    node_types: List[str] = Field(default_factory=lambda: list(NODE_TYPES))
    relation_types: List[str] = Field(default_factory=lambda: list(RELATION_TYPES))
    document_list_limit: int = 1000


settings = Settings()


def ensure_directories(config: Settings | None = None) -> None:
    """
    Create folders for the vector database and graph snapshot if missing.
    """
    config = config or settings
    for path in (config.db_path, config.graph_path):
        path.parent.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
