"""
Model identifiers, vectors, and the local inference server wire format.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, TypeAlias

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

from .errors import UnknownModel

Vector: TypeAlias = npt.NDArray[np.float32]


class Model(IntEnum):
    """An embedding backend and version. Vectors of different models never mix."""

    QWEN3_EMBEDDING_8B_4BIT_DWQ = 1
    APPLE_NL_CONTEXTUAL_EMBEDDING = 2
    OPENAI_TEXT_EMBEDDING_3_LARGE = 3
    GEMINI_EMBEDDING_001 = 4

    @property
    def canonical_name(self) -> str:
        return _CANONICAL_NAMES[self]

    def __str__(self) -> str:
        return self.canonical_name

    @classmethod
    def parse(cls, name: str) -> "Model":
        """Return the model with the given canonical name."""
        normalized = name.strip()
        for model, canonical in _CANONICAL_NAMES.items():
            if canonical == normalized:
                return model
        raise UnknownModel(f"Unknown model: {name!r}")


_CANONICAL_NAMES: dict[Model, str] = {
    Model.QWEN3_EMBEDDING_8B_4BIT_DWQ: "mlx-community/Qwen3-Embedding-8B-4bit-DWQ",
    Model.APPLE_NL_CONTEXTUAL_EMBEDDING: "apple/nlcontextualembedding",
    Model.OPENAI_TEXT_EMBEDDING_3_LARGE: "openai/text-embedding-3-large",
    Model.GEMINI_EMBEDDING_001: "google/gemini-embedding-001",
}

# The Apple contextual embedding has no deployed provider yet.
DEFAULT_MODELS: tuple[Model, ...] = (
    Model.QWEN3_EMBEDDING_8B_4BIT_DWQ,
    Model.OPENAI_TEXT_EMBEDDING_3_LARGE,
)


def vector_from_float64(values: Iterable[float]) -> Vector:
    """Narrow provider output (usually float64) to a float32 vector."""
    vector = np.asarray(list(values), dtype=np.float32)
    if vector.ndim != 1 or vector.size == 0:
        raise ValueError("An embedding vector must be a non-empty 1-D sequence.")
    return vector


class EmbeddingRequest(BaseModel):
    """Body of ``POST /v1/embeddings``."""

    model: str
    input: list[str]


class ResponseUsage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingData(BaseModel):
    embedding: list[float]
    index: int | None = None


class EmbeddingResponse(BaseModel):
    """Body returned by ``POST /v1/embeddings``."""

    model: str | None = None
    data: list[EmbeddingData] = Field(default_factory=list)
    usage: ResponseUsage = Field(default_factory=ResponseUsage)


class ChatMessage(BaseModel):
    role: str
    content: str


class CompletionRequest(BaseModel):
    """Body of ``POST /v1/chat/completions``."""

    model: str
    messages: list[ChatMessage]
    temperature: float = 0.7
    max_tokens: int = 2048


class CompletionChoice(BaseModel):
    message: ChatMessage
    index: int = 0
    finish_reason: str | None = None


class CompletionResponse(BaseModel):
    """Body returned by ``POST /v1/chat/completions``."""

    id: str | None = None
    model: str | None = None
    choices: list[CompletionChoice] = Field(default_factory=list)
    usage: ResponseUsage = Field(default_factory=ResponseUsage)
