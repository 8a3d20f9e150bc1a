"""Request and response bodies of the HTTP API, one pair per operation."""

from datetime import datetime

from pydantic import BaseModel, Field

from snaprag.models import CaptionStyle, FileType, SearchType


class RAGSearchRequest(BaseModel):
    query: str
    search_type: SearchType = SearchType.HYBRID
    max_results: int = Field(default=10, ge=1, le=100)
    generate_response: bool = True


class TagRequest(BaseModel):
    context: str
    file_type: FileType = FileType.IMAGE
    max_tags: int = Field(default=5, ge=1, le=20)


class TagResponse(BaseModel):
    tags: list[str]
    confidence: float


class CaptionRequest(BaseModel):
    file_id: str | None = None
    context: str | None = None
    style: CaptionStyle = CaptionStyle.CASUAL
    max_length: int = Field(default=100, ge=10, le=500)


class CaptionResponse(BaseModel):
    caption: str
    confidence: float
    suggestions: list[str] = []


class EmbeddingRequest(BaseModel):
    text: str
    file_id: str | None = None


class EmbeddingResponse(BaseModel):
    embedding: list[float]
    success: bool = True


class ContentCreate(BaseModel):
    storage_path: str = Field(min_length=1, max_length=1024)
    file_type: FileType
    caption: str | None = None
    user_context: str | None = None
    tags: list[str] | None = None


class ContentOut(BaseModel):
    id: str
    owner_id: str
    file_type: FileType
    storage_path: str
    caption: str | None
    user_context: str | None
    tags: list[str] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContentDeleted(BaseModel):
    id: str
    deleted: bool = True
