"""Owner-scoped nearest-neighbour index over content embeddings (ChromaDB)."""

import asyncio
from functools import partial
from pathlib import Path
from typing import Any

import chromadb
import structlog
from chromadb.config import Settings
from chromadb.errors import ChromaError

from snaprag.errors import IndexQueryError

logger = structlog.get_logger()

DEFAULT_THRESHOLD = 0.7


class ChromaVectorIndex:
    """Cosine-similarity index keyed by content id, filtered by owner on every query."""

    def __init__(
        self,
        index_path: Path | str = Path(".chroma_db"),
        collection_name: str = "content_embeddings",
        dimensions: int = 1536,
        collection: Any | None = None,
    ):
        self.dimensions = dimensions
        if collection is None:
            client = chromadb.PersistentClient(
                path=str(index_path), settings=Settings(anonymized_telemetry=False)
            )
            collection = client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine", "dimensions": dimensions},
            )
        self.collection = collection

    async def _run(self, fn, /, *args: Any, **kwargs: Any) -> Any:
        """Run a blocking chromadb call in the default executor."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args, **kwargs))
        except (ValueError, ChromaError) as e:
            raise IndexQueryError(f"vector index call failed: {e}") from e

    def _check(self, embedding: list[float]) -> None:
        if len(embedding) != self.dimensions:
            raise IndexQueryError(
                f"embedding has {len(embedding)} dimensions, index expects {self.dimensions}"
            )

    async def upsert(self, item_id: str, owner_id: str, embedding: list[float]) -> None:
        self._check(embedding)
        await self._run(
            self.collection.upsert,
            ids=[item_id],
            embeddings=[list(embedding)],
            metadatas=[{"owner_id": owner_id}],
        )

    async def delete(self, item_id: str) -> None:
        await self._run(self.collection.delete, ids=[item_id])

    async def query_similar(
        self,
        embedding: list[float],
        owner_id: str,
        threshold: float = DEFAULT_THRESHOLD,
        limit: int = 10,
    ) -> list[tuple[str, float]]:
        """Return ``(item_id, similarity)`` pairs at or above ``threshold``, best first."""
        if not owner_id:
            raise IndexQueryError("owner_id is required for similarity queries")
        self._check(embedding)

        results = await self._run(
            self.collection.query,
            query_embeddings=[list(embedding)],
            n_results=limit,
            where={"owner_id": owner_id},
            include=["distances", "metadatas"],
        )

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        distances = results["distances"][0]
        metadatas = (results.get("metadatas") or [[None] * len(ids)])[0]

        hits = []
        for doc_id, distance, metadata in zip(ids, distances, metadatas):
            if metadata is not None and metadata.get("owner_id") != owner_id:
                logger.error("vector_index_scope_violation", item_id=doc_id)
                continue
            similarity = min(1.0, max(0.0, 1.0 - distance))
            if similarity >= threshold:
                hits.append((doc_id, similarity))

        hits.sort(key=lambda hit: hit[1], reverse=True)
        return hits[:limit]
