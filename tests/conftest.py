"""Shared fixtures for all test modules."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from snaprag.models import ContentItem, FileType, SearchResult
from snaprag.store import ContentStore

DIMENSIONS = 8
SAMPLE_EMBEDDING = [0.1] * DIMENSIONS
OWNER = "user-1"
OTHER_OWNER = "user-2"
BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_item(item_id="item-1", owner_id=OWNER, user_context="having coffee with friends", **kwargs):
    defaults = {
        "file_type": FileType.IMAGE,
        "storage_path": f"{owner_id}/{item_id}",
        "caption": None,
        "tags": None,
        "embedding": None,
        "created_at": BASE_TIME,
    }
    defaults.update(kwargs)
    return ContentItem(id=item_id, owner_id=owner_id, user_context=user_context, **defaults)


def make_result(item_id, similarity=None, minutes=0, **kwargs):
    return SearchResult(
        id=item_id,
        user_context=kwargs.pop("user_context", f"context of {item_id}"),
        caption=kwargs.pop("caption", None),
        tags=kwargs.pop("tags", []),
        file_type=kwargs.pop("file_type", FileType.IMAGE),
        similarity=similarity,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def chat_response(content, prompt_tokens=10, completion_tokens=5):
    """Fake ChatCompletion object as returned by AsyncOpenAI."""
    response = MagicMock()
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response.choices = [choice]
    response.usage = MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


@pytest.fixture
def sample_search_results():
    return [
        make_result("a", similarity=0.92, user_context="Espresso at the corner cafe", tags=["coffee", "cafe"]),
        make_result("b", similarity=0.81, user_context=None, caption="Latte art", tags=[]),
        make_result("c", user_context=None, caption=None, tags=["coffee"]),
    ]


@pytest.fixture
def mock_embeddings():
    embeddings = AsyncMock()
    embeddings.embed = AsyncMock(return_value=list(SAMPLE_EMBEDDING))
    embeddings.dimensions = DIMENSIONS
    return embeddings


@pytest.fixture
def mock_llm_client():
    client = AsyncMock()
    client.generate_answer = AsyncMock(return_value="You had coffee twice this week.")
    client.complete = AsyncMock(return_value="{}")
    client.complete_json = AsyncMock(return_value={})
    client.last_cost = None
    return client


@pytest.fixture
def mock_chroma_collection():
    """MagicMock ChromaDB collection with pre-configured query results."""
    collection = MagicMock()
    collection.upsert = MagicMock()
    collection.delete = MagicMock()
    collection.query = MagicMock(
        return_value={
            "ids": [["id1", "id2"]],
            "distances": [[0.1, 0.2]],
            "metadatas": [[{"owner_id": OWNER}, {"owner_id": OWNER}]],
        }
    )
    return collection


@pytest.fixture
async def store(tmp_path):
    content_store = ContentStore(f"sqlite+aiosqlite:///{tmp_path / 'content.db'}")
    await content_store.create_all()
    yield content_store
    await content_store.dispose()
