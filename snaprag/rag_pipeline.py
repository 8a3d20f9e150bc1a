"""Hybrid retrieval orchestrator: semantic + tag search, merge, grounded answer."""

import asyncio
import math

import structlog

from snaprag.embeddings import LocalEmbeddings, OpenAIEmbeddings
from snaprag.errors import GenerationError, IndexQueryError, InvalidRequestError, ProviderError
from snaprag.llm_client import OpenAIClient
from snaprag.models import RAGResponse, SearchQuery, SearchResult, SearchType
from snaprag.retriever import ContentRetriever
from snaprag.tagging import tags_from_query

logger = structlog.get_logger()


def modality_limit(search_type: SearchType, max_results: int) -> int:
    """Per-sub-search result cap. Hybrid splits max_results between both; it never backfills."""
    if search_type == SearchType.HYBRID:
        return math.ceil(max_results / 2)
    return max_results


def merge_results(*result_lists: list[SearchResult], max_results: int) -> list[SearchResult]:
    """Union by id, first occurrence wins, truncated to ``max_results``."""
    merged: dict[str, SearchResult] = {}
    for results in result_lists:
        for result in results:
            merged.setdefault(result.id, result)
    return list(merged.values())[:max_results]


class RAGPipeline:
    """Orchestrates hybrid retrieval and grounded answer generation.

    Every external call is optional to the final response: a failed
    embedding or generation degrades its own step only. An index failure
    fails the request only when its modality is the only one requested.
    """

    def __init__(
        self,
        retriever: ContentRetriever,
        embeddings: OpenAIEmbeddings | LocalEmbeddings,
        llm_client: OpenAIClient | None = None,
    ):
        self.retriever = retriever
        self.embeddings = embeddings
        self.llm_client = llm_client

    async def search(self, query: SearchQuery, owner_id: str) -> RAGResponse:
        if not query.query_text or not query.query_text.strip():
            raise InvalidRequestError("query is required")
        if not owner_id:
            raise InvalidRequestError("owner_id is required")

        search_type = query.search_type
        limit = modality_limit(search_type, query.max_results)
        log = logger.bind(owner_id=owner_id, search_type=str(search_type))

        run_semantic = search_type in (SearchType.SEMANTIC, SearchType.HYBRID)
        run_tags = search_type in (SearchType.TAGS, SearchType.HYBRID)

        semantic_task = (
            self._semantic(query.query_text, owner_id, limit) if run_semantic else _resolved(([], None))
        )
        tag_task = (
            self._tags(query.query_text, owner_id, limit) if run_tags else _resolved([])
        )
        semantic_outcome, tag_outcome = await asyncio.gather(
            semantic_task, tag_task, return_exceptions=True
        )

        single_modality = search_type != SearchType.HYBRID
        semantic_results, query_embedding = self._settle(
            semantic_outcome, "semantic", single_modality, log, default=([], None)
        )
        tag_results = self._settle(tag_outcome, "tags", single_modality, log, default=[])

        results = merge_results(semantic_results, tag_results, max_results=query.max_results)
        log.info(
            "search_completed",
            semantic=len(semantic_results),
            tags=len(tag_results),
            merged=len(results),
        )

        generated_response = None
        if query.generate_response and results:
            generated_response = await self._answer(query.query_text, results, log)

        return RAGResponse(
            results=results,
            generated_response=generated_response,
            query_embedding=query_embedding,
            search_type=search_type,
        )

    @staticmethod
    def _settle(outcome, modality: str, single_modality: bool, log, default):
        if not isinstance(outcome, BaseException):
            return outcome
        if isinstance(outcome, IndexQueryError) and not single_modality:
            log.warning("index_degraded", modality=modality, error=str(outcome))
            return default
        raise outcome

    async def _semantic(
        self, query_text: str, owner_id: str, limit: int
    ) -> tuple[list[SearchResult], list[float] | None]:
        try:
            embedding = await self.embeddings.embed(query_text)
        except ProviderError as e:
            logger.warning("semantic_search_degraded", error=str(e))
            return [], None

        results = await self.retriever.semantic_search(embedding, owner_id, limit)
        return results, embedding

    async def _tags(self, query_text: str, owner_id: str, limit: int) -> list[SearchResult]:
        tags = tags_from_query(query_text)
        if not tags:
            return []
        return await self.retriever.tag_search(tags, owner_id, limit)

    async def _answer(self, query_text: str, results: list[SearchResult], log) -> str | None:
        if self.llm_client is None:
            return None
        try:
            return await self.llm_client.generate_answer(query_text, results)
        except GenerationError as e:
            log.warning("answer_generation_failed", error=str(e))
            return None


async def _resolved(value):
    return value
