"""HTTP routes: retrieval, AI helpers, and content management."""

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import ORJSONResponse

from snaprag.api.dependencies import get_current_user_id, get_services
from snaprag.api.schemas import (
    CaptionRequest,
    CaptionResponse,
    ContentCreate,
    ContentDeleted,
    ContentOut,
    EmbeddingRequest,
    EmbeddingResponse,
    RAGSearchRequest,
    TagRequest,
    TagResponse,
)
from snaprag.errors import InvalidRequestError, NotFoundError
from snaprag.models import SearchQuery
from snaprag.services import Services

logger = structlog.get_logger()

router = APIRouter(tags=["content"])


@router.post("/rag-search")
async def rag_search(
    body: RAGSearchRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Hybrid semantic + tag search over the caller's own content."""
    if not body.query.strip():
        raise InvalidRequestError("query is required")

    response = await services.pipeline.search(
        SearchQuery(
            query_text=body.query,
            search_type=body.search_type,
            max_results=body.max_results,
            generate_response=body.generate_response,
        ),
        owner_id=user_id,
    )
    # Absent optional fields are omitted, not sent as null.
    return ORJSONResponse(response.model_dump(mode="json", exclude_none=True))


@router.post("/ai-tags", response_model=TagResponse)
async def ai_tags(
    body: TagRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    if not body.context.strip():
        raise InvalidRequestError("context is required")

    interests = await services.store.get_interests(user_id)
    prior_tags = await services.store.recent_tags(user_id)
    suggestion = await services.tag_extractor.extract_tags(
        body.context,
        file_type=body.file_type,
        max_tags=body.max_tags,
        user_interests=interests,
        prior_tags=prior_tags,
    )
    return TagResponse(tags=suggestion.tags, confidence=suggestion.confidence)


@router.post("/ai-caption", response_model=CaptionResponse)
async def ai_caption(
    body: CaptionRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    context = body.context
    if not (context and context.strip()) and body.file_id:
        item = await services.store.get_item(body.file_id, user_id)
        if item is None:
            raise NotFoundError(f"content item {body.file_id} not found")
        context = item.user_context
    if not context or not context.strip():
        raise InvalidRequestError("context is required for caption generation")

    result = await services.captioner.generate_caption(
        context, style=body.style, max_length=body.max_length
    )
    return CaptionResponse(
        caption=result.caption,
        confidence=result.confidence,
        suggestions=result.suggestions,
    )


@router.post("/generate-embedding", response_model=EmbeddingResponse)
async def generate_embedding(
    body: EmbeddingRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    embedding = await services.indexer.embed_text(body.text, user_id, item_id=body.file_id)
    return EmbeddingResponse(embedding=embedding)


@router.post("/files", response_model=ContentOut, status_code=201)
async def create_file(
    body: ContentCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Record uploaded content; tagging and embedding run after the response."""
    item = await services.store.create_item(
        owner_id=user_id,
        file_type=body.file_type,
        storage_path=body.storage_path,
        caption=body.caption,
        user_context=body.user_context,
        tags=body.tags,
    )
    if item.user_context and item.user_context.strip():
        background_tasks.add_task(services.indexer.enrich, item)
    return item


@router.get("/files", response_model=list[ContentOut])
async def list_files(
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.store.list_items(user_id, limit=limit)


@router.get("/files/{item_id}", response_model=ContentOut)
async def get_file(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    item = await services.store.get_item(item_id, user_id)
    if item is None:
        raise NotFoundError(f"content item {item_id} not found")
    return item


@router.delete("/files/{item_id}", response_model=ContentDeleted)
async def delete_file(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    if not await services.indexer.remove(item_id, user_id):
        raise NotFoundError(f"content item {item_id} not found")
    return ContentDeleted(id=item_id)
