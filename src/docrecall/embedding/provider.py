"""Embedding provider interface consumed by the semantic index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np


@dataclass(frozen=True, slots=True)
class ModelInfo:
    provider: str
    model: str
    dimensions: int
    available: bool


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into fixed-length float vectors."""

    def embed(self, text: str) -> np.ndarray: ...

    def embed_batch(self, texts: Sequence[str], batch_size: int | None = None) -> np.ndarray: ...

    def is_available(self) -> bool: ...

    def get_model_info(self) -> ModelInfo: ...
