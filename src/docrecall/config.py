"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from docrecall.cache.query_cache import CacheConfig
from docrecall.chunking.chunker import ChunkConfig
from docrecall.embedding.encoder import DEFAULT_MODEL
from docrecall.index.hybrid import HybridConfig
from docrecall.index.keyword import KeywordSearchConfig
from docrecall.index.semantic import SemanticSearchConfig


def _get_default_db_path() -> Path:
    """Prefer a local data/ database when running from a checkout, else the home directory."""
    local_db = Path("data/docrecall.db")
    if local_db.exists():
        return local_db
    return Path.home() / ".docrecall" / "docrecall.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    model_name: str = DEFAULT_MODEL
    chunking: ChunkConfig = field(default_factory=ChunkConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    semantic: SemanticSearchConfig = field(default_factory=SemanticSearchConfig)
    keyword: KeywordSearchConfig = field(default_factory=KeywordSearchConfig)
    hybrid: HybridConfig = field(default_factory=HybridConfig)

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
