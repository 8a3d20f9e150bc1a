"""Embedding provider clients: OpenAI (default) and local sentence-transformers."""

import asyncio
from functools import lru_cache

import openai
import structlog
from openai import AsyncOpenAI
from sentence_transformers import SentenceTransformer

from snaprag.config import Settings
from snaprag.errors import ProviderError

logger = structlog.get_logger()


class OpenAIEmbeddings:
    """Async OpenAI client turning free text into a fixed-length vector."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
    ):
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required for the openai embedding backend")

        # Callers own retry policy.
        self.client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        """Embed a single non-empty string."""
        if not text or not text.strip():
            raise ProviderError("cannot embed empty text")

        try:
            response = await self.client.embeddings.create(
                model=self.model, input=text, encoding_format="float"
            )
        except openai.APIError as e:
            raise ProviderError(f"embedding request failed: {e}") from e

        data = getattr(response, "data", None) or []
        embedding = getattr(data[0], "embedding", None) if data else None
        if not embedding:
            raise ProviderError("no embedding returned by provider")

        return _check_dimensions(list(embedding), self.dimensions)


@lru_cache(maxsize=4)
def _load_model(model_name: str) -> SentenceTransformer:
    """Load and cache a SentenceTransformer model (avoids reloading on repeated calls)."""
    return SentenceTransformer(model_name)


class LocalEmbeddings:
    """Local sentence-transformers embeddings; no API key required.

    The vector size depends on the model ("BAAI/bge-small-en-v1.5" gives 384),
    so ``EMBEDDING_DIMENSIONS`` must be set to match when this backend is used.
    """

    def __init__(
        self,
        model: str = "BAAI/bge-small-en-v1.5",
        dimensions: int = 384,
        device: str | None = None,  # None = auto-detect (cuda if available, else cpu)
    ):
        self.model_name = model
        self.dimensions = dimensions
        self._model = _load_model(model)
        if device:
            self._model = self._model.to(device)

    async def embed(self, text: str) -> list[float]:
        """Embed one string. Runs in a thread pool to avoid blocking the event loop."""
        if not text or not text.strip():
            raise ProviderError("cannot embed empty text")

        loop = asyncio.get_running_loop()
        try:
            embedding = await loop.run_in_executor(
                None,
                lambda: self._model.encode(
                    [text],
                    normalize_embeddings=True,  # cosine similarity works better when normalized
                    convert_to_numpy=True,
                )[0].tolist(),
            )
        except RuntimeError as e:
            raise ProviderError(f"local embedding failed: {e}") from e

        return _check_dimensions(embedding, self.dimensions)


def _check_dimensions(embedding: list[float], expected: int) -> list[float]:
    if len(embedding) != expected:
        raise ProviderError(
            f"embedding has {len(embedding)} dimensions, expected {expected}"
        )
    return embedding


def build_embeddings(settings: Settings) -> OpenAIEmbeddings | LocalEmbeddings:
    """Pick the embedding backend named by ``EMBEDDING_BACKEND``."""
    if settings.EMBEDDING_BACKEND == "local":
        logger.info("embedding_backend", backend="local", model=settings.LOCAL_EMBEDDING_MODEL)
        return LocalEmbeddings(
            model=settings.LOCAL_EMBEDDING_MODEL,
            dimensions=settings.EMBEDDING_DIMENSIONS,
        )
    if settings.EMBEDDING_BACKEND != "openai":
        raise ValueError(f"unknown EMBEDDING_BACKEND: {settings.EMBEDDING_BACKEND!r}")

    logger.info("embedding_backend", backend="openai", model=settings.EMBEDDING_MODEL)
    return OpenAIEmbeddings(
        api_key=settings.OPENAI_API_KEY,
        model=settings.EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIMENSIONS,
    )
