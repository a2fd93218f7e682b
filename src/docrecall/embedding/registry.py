"""Known embedding models and their output dimensions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True, slots=True)
class RegisteredModel:
    name: str
    dimensions: int
    description: str
    quality: str


MODEL_REGISTRY: List[RegisteredModel] = [
    RegisteredModel(
        "sentence-transformers/all-MiniLM-L6-v2",
        384,
        "Default model, small and fast, downloads on first use",
        "low",
    ),
    RegisteredModel(
        "sentence-transformers/all-mpnet-base-v2",
        768,
        "Better quality, larger size",
        "medium",
    ),
    RegisteredModel("BAAI/bge-small-en-v1.5", 384, "Fast, English-optimized", "low"),
    RegisteredModel("BAAI/bge-base-en-v1.5", 768, "Better quality, English-optimized", "medium"),
    RegisteredModel("BAAI/bge-large-en-v1.5", 1024, "Highest quality English retrieval", "high"),
    RegisteredModel(
        "nomic-ai/nomic-embed-text-v1.5", 768, "Long-context general purpose embeddings", "high"
    ),
]

_BY_NAME: Dict[str, RegisteredModel] = {model.name: model for model in MODEL_REGISTRY}


def get_model(name: str) -> RegisteredModel | None:
    """Look up a model by full name or by its short name without the organisation."""
    if name in _BY_NAME:
        return _BY_NAME[name]
    for model in MODEL_REGISTRY:
        if model.name.split("/", 1)[-1] == name:
            return model
    return None


def get_model_dimensions(name: str) -> int | None:
    model = get_model(name)
    return model.dimensions if model else None
