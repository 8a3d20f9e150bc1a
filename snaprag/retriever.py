"""Query-side access to the vector and tag indexes, projected to SearchResults."""

from snaprag.models import SearchResult
from snaprag.store import ContentStore
from snaprag.vector_index import DEFAULT_THRESHOLD, ChromaVectorIndex


class ContentRetriever:
    """Retrieves a user's content by embedding similarity or by tag overlap."""

    def __init__(
        self,
        store: ContentStore,
        vector_index: ChromaVectorIndex,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.store = store
        self.vector_index = vector_index
        self.threshold = threshold

    async def semantic_search(
        self, embedding: list[float], owner_id: str, limit: int
    ) -> list[SearchResult]:
        """Nearest owned items to ``embedding``, similarity descending."""
        hits = await self.vector_index.query_similar(
            embedding, owner_id, threshold=self.threshold, limit=limit
        )
        if not hits:
            return []

        items = await self.store.get_items([item_id for item_id, _ in hits], owner_id)

        # Hits whose row is gone (deleted after indexing) are dropped.
        return [
            SearchResult.from_item(items[item_id], similarity=similarity)
            for item_id, similarity in hits
            if item_id in items
        ]

    async def tag_search(self, tags: list[str], owner_id: str, limit: int) -> list[SearchResult]:
        """Owned items sharing at least one of ``tags``, most recent first."""
        items = await self.store.query_by_tags(tags, owner_id, limit)
        return [SearchResult.from_item(item) for item in items]
