"""Ingestion pipeline: enrich new content with tags and an embedding."""

import asyncio

import structlog
from sqlalchemy.exc import SQLAlchemyError

from snaprag.embeddings import LocalEmbeddings, OpenAIEmbeddings
from snaprag.errors import IndexQueryError, InvalidRequestError, NotFoundError, ProviderError
from snaprag.models import ContentItem, IngestionReport
from snaprag.store import ContentStore
from snaprag.tagging import TagExtractor
from snaprag.vector_index import ChromaVectorIndex

logger = structlog.get_logger()

# Failures that leave the item untouched but must not escape enrichment.
_ENRICHMENT_ERRORS = (ProviderError, IndexQueryError, SQLAlchemyError)


class ContentIndexer:
    """Populates the tag and vector indexes for content items.

    Runs after the item row is committed. Tagging and embedding are
    independent: either may fail without affecting the other, and a
    partially enriched item stays queryable by whichever index succeeded.
    """

    def __init__(
        self,
        store: ContentStore,
        vector_index: ChromaVectorIndex,
        embeddings: OpenAIEmbeddings | LocalEmbeddings,
        tag_extractor: TagExtractor,
        max_tags: int = 5,
    ):
        self.store = store
        self.vector_index = vector_index
        self.embeddings = embeddings
        self.tag_extractor = tag_extractor
        self.max_tags = max_tags

    async def enrich(self, item: ContentItem) -> IngestionReport:
        """Tag and embed ``item`` from its ``user_context``; never raises for provider/index failures."""
        report = IngestionReport(item_id=item.id)
        if not item.user_context or not item.user_context.strip():
            logger.debug("enrichment_skipped", item_id=item.id, reason="no_user_context")
            return report

        tag_step = self._apply_tags(item) if not item.tags else _resolved(False)
        embed_step = self._apply_embedding(item) if item.embedding is None else _resolved(False)
        report.tags_applied, report.embedding_applied = await asyncio.gather(tag_step, embed_step)
        try:
            await self.store.mark_enrich_attempted(item.id)
        except SQLAlchemyError as e:
            logger.warning("enrichment_failed", item_id=item.id, step="mark_attempted", error=str(e))

        logger.info(
            "content_enriched",
            item_id=item.id,
            tags_applied=report.tags_applied,
            embedding_applied=report.embedding_applied,
        )
        return report

    async def _apply_tags(self, item: ContentItem) -> bool:
        try:
            interests, prior_tags = await asyncio.gather(
                self.store.get_interests(item.owner_id),
                self.store.recent_tags(item.owner_id),
            )
            suggestion = await self.tag_extractor.extract_tags(
                item.user_context,
                file_type=item.file_type,
                max_tags=self.max_tags,
                user_interests=interests,
                prior_tags=prior_tags,
            )
            if not suggestion.tags:
                return False
            return await self.store.set_tags(item.id, item.owner_id, suggestion.tags)
        except _ENRICHMENT_ERRORS as e:
            logger.warning("enrichment_failed", item_id=item.id, step="tags", error=str(e))
            return False

    async def _apply_embedding(self, item: ContentItem) -> bool:
        try:
            embedding = await self.embeddings.embed(item.user_context)
            # The row is written last: a stored embedding means the vector is indexed.
            await self.vector_index.upsert(item.id, item.owner_id, embedding)
            if not await self.store.set_embedding(item.id, item.owner_id, embedding):
                await self.vector_index.delete(item.id)
                return False
            return True
        except _ENRICHMENT_ERRORS as e:
            logger.warning("enrichment_failed", item_id=item.id, step="embedding", error=str(e))
            return False

    async def index_pending(self, owner_id: str | None = None, limit: int = 100) -> int:
        """Enrich items still missing tags or an embedding. Returns how many were touched."""
        pending = await self.store.list_pending(owner_id=owner_id, limit=limit)
        count = 0
        for item in pending:
            report = await self.enrich(item)
            if report.tags_applied or report.embedding_applied:
                count += 1
        return count

    async def embed_text(self, text: str, owner_id: str, item_id: str | None = None) -> list[float]:
        """Embed ``text``; when ``item_id`` is given, store it for that owned item.

        Provider errors propagate: this is an explicit request, not enrichment.
        """
        if not text or not text.strip():
            raise InvalidRequestError("text is required")

        if item_id is not None and await self.store.get_item(item_id, owner_id) is None:
            raise NotFoundError(f"content item {item_id} not found")

        embedding = await self.embeddings.embed(text)
        if item_id is not None:
            await self.vector_index.upsert(item_id, owner_id, embedding)
            if not await self.store.set_embedding(item_id, owner_id, embedding):
                await self.vector_index.delete(item_id)
                raise NotFoundError(f"content item {item_id} not found")
        return embedding

    async def remove(self, item_id: str, owner_id: str) -> bool:
        """Delete an owned item from the store, the tag index, and the vector index."""
        item = await self.store.delete_item(item_id, owner_id)
        if item is None:
            return False
        await self.vector_index.delete(item_id)
        return True


async def _resolved(value):
    return value
