"""Pydantic models for the content retrieval system."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class FileType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"


class SearchType(StrEnum):
    SEMANTIC = "semantic"
    TAGS = "tags"
    HYBRID = "hybrid"


class CaptionStyle(StrEnum):
    CASUAL = "casual"
    PROFESSIONAL = "professional"
    FUNNY = "funny"
    INSPIRATIONAL = "inspirational"


class ContentItem(BaseModel):
    """An uploaded image or video and the description it is indexed from."""

    id: str
    owner_id: str
    file_type: FileType
    storage_path: str
    caption: str | None = None
    user_context: str | None = None
    tags: list[str] | None = None
    embedding: list[float] | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SearchQuery(BaseModel):
    """A retrieval request; the requesting user is passed alongside it."""

    query_text: str
    search_type: SearchType = SearchType.HYBRID
    max_results: int = Field(default=10, ge=1, le=100)
    generate_response: bool = True


class SearchResult(BaseModel):
    """A content item projected for display."""

    id: str
    user_context: str | None = None
    caption: str | None = None
    tags: list[str] = Field(default_factory=list)
    file_type: FileType
    similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    created_at: datetime

    @classmethod
    def from_item(cls, item: ContentItem, similarity: float | None = None) -> "SearchResult":
        return cls(
            id=item.id,
            user_context=item.user_context,
            caption=item.caption,
            tags=item.tags or [],
            file_type=item.file_type,
            similarity=similarity,
            created_at=item.created_at,
        )


class RAGResponse(BaseModel):
    """Response from the hybrid retrieval pipeline."""

    results: list[SearchResult]
    generated_response: str | None = None
    query_embedding: list[float] | None = None
    search_type: SearchType


class TagSuggestion(BaseModel):
    tags: list[str]
    confidence: float = Field(ge=0.0, le=1.0)
    source: str = "model"  # 'model' or 'fallback'


class CaptionResult(BaseModel):
    caption: str
    suggestions: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class IngestionReport(BaseModel):
    """Outcome of enriching one content item with tags and an embedding."""

    item_id: str
    tags_applied: bool = False
    embedding_applied: bool = False
