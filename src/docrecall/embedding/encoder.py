"""Embedding model management."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from docrecall.embedding.provider import ModelInfo
from docrecall.embedding.registry import get_model_dimensions
from docrecall.errors import EmbeddingUnavailableError

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
PROVIDER_NAME = "sentence-transformers"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    backend: Literal["torch", "onnx", "openvino"] | None = None
    device: str | None = None


class SentenceTransformerEmbeddings:
    """Local embedding provider backed by `SentenceTransformer`.

    The model is loaded by :meth:`initialize`. A load failure does not raise:
    it is logged and remembered, and the provider reports itself unavailable
    so search can fall back to keyword matching.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model: SentenceTransformer | None = None
        self._error: Exception | None = None
        self._load_lock = threading.Lock()
        self.dimension = get_model_dimensions(self.config.model_name) or 0

    def initialize(self) -> bool:
        """Load the model once; return whether the provider is usable."""
        with self._load_lock:
            if self._model is not None:
                return True
            try:
                logger.info("Loading embedding model: %s", self.config.model_name)
                self._model = self._load_model()
            except Exception as exc:
                self._error = exc
                logger.warning(
                    "Could not load embedding model %s: %s. Semantic search disabled.",
                    self.config.model_name,
                    exc,
                )
                return False

            self._error = None
            self.dimension = int(self._model.get_sentence_embedding_dimension())
            logger.info(
                "Embedding model ready (%s, %d dimensions, backend: %s)",
                self.config.model_name,
                self.dimension,
                self.config.backend or "torch",
            )
            return True

    def _load_model(self) -> SentenceTransformer:
        kwargs = {}
        if self.config.backend is not None:
            kwargs["backend"] = self.config.backend
        return SentenceTransformer(self.config.model_name, device=self.config.device, **kwargs)

    @property
    def error(self) -> Exception | None:
        return self._error

    def is_available(self) -> bool:
        return self._model is not None

    def _require_model(self) -> SentenceTransformer:
        if self._model is None:
            reason = self._error or "not initialized"
            raise EmbeddingUnavailableError(f"Embedding model not available: {reason}")
        return self._model

    def embed_batch(self, texts: Sequence[str], batch_size: int | None = None) -> np.ndarray:
        """Return float32 embeddings for input texts, one row per text."""
        model = self._require_model()
        embeddings = model.encode(
            list(texts),
            batch_size=batch_size or self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    def embed(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-text embedding."""
        return self.embed_batch([text])[0]

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(
            provider=PROVIDER_NAME,
            model=self.config.model_name,
            dimensions=self.dimension,
            available=self.is_available(),
        )
