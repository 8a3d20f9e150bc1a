"""Relational content store and tag index (SQLAlchemy async ORM)."""

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

import structlog
from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from snaprag.errors import IndexQueryError, InvalidRequestError
from snaprag.models import ContentItem, FileType
from snaprag.tagging import normalize_tag

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentItemRecord(Base):
    __tablename__ = "content_items"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    file_type: Mapped[str] = mapped_column(String(16), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_context: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    embedding: Mapped[list | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    # Last enrichment attempt; NULL until the indexer has tried the item once.
    enrich_attempted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_content_items_owner_created", "owner_id", "created_at"),
    )


class ContentTagRecord(Base):
    """One row per (item, tag); the tag index."""
    __tablename__ = "content_tags"

    content_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("content_items.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(128), primary_key=True, index=True)


class UserProfileRecord(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    interests: Mapped[list | None] = mapped_column(JSON(none_as_null=True), nullable=True)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on DateTime(timezone=True); stored values are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_item(record: ContentItemRecord) -> ContentItem:
    return ContentItem(
        id=record.id,
        owner_id=record.owner_id,
        file_type=FileType(record.file_type),
        storage_path=record.storage_path,
        caption=record.caption,
        user_context=record.user_context,
        tags=record.tags,
        embedding=record.embedding,
        created_at=_as_utc(record.created_at),
    )


class ContentStore:
    """Owner-scoped access to content items, their tags, and user interests.

    Every read takes an ``owner_id``; there is no way to fetch another
    user's items through this class.
    """

    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(database_url)
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ── Content items ──────────────────────────────────────

    async def create_item(
        self,
        owner_id: str,
        file_type: FileType | str,
        storage_path: str,
        caption: str | None = None,
        user_context: str | None = None,
        tags: list[str] | None = None,
    ) -> ContentItem:
        tags = _unique_tags(tags or [])
        record = ContentItemRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            file_type=str(FileType(file_type)),
            storage_path=storage_path,
            caption=caption,
            user_context=user_context,
            tags=tags or None,
        )
        async with self._sessions() as session:
            session.add(record)
            session.add_all(ContentTagRecord(content_id=record.id, tag=t) for t in tags)
            await session.commit()
        logger.info("content_created", item_id=record.id, owner_id=owner_id)
        return _to_item(record)

    async def get_item(self, item_id: str, owner_id: str) -> ContentItem | None:
        async with self._sessions() as session:
            result = await session.execute(
                select(ContentItemRecord).where(
                    ContentItemRecord.id == item_id, ContentItemRecord.owner_id == owner_id
                )
            )
            record = result.scalar_one_or_none()
        return _to_item(record) if record else None

    async def get_items(self, item_ids: list[str], owner_id: str) -> dict[str, ContentItem]:
        """Load several owned items at once, keyed by id. Unknown ids are skipped."""
        if not item_ids:
            return {}
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(ContentItemRecord).where(
                        ContentItemRecord.id.in_(item_ids), ContentItemRecord.owner_id == owner_id
                    )
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise IndexQueryError(f"content lookup failed: {e}") from e
        return {r.id: _to_item(r) for r in records}

    async def list_items(self, owner_id: str, limit: int = 50) -> list[ContentItem]:
        async with self._sessions() as session:
            result = await session.execute(
                select(ContentItemRecord)
                .where(ContentItemRecord.owner_id == owner_id)
                .order_by(ContentItemRecord.created_at.desc(), ContentItemRecord.id)
                .limit(limit)
            )
            return [_to_item(r) for r in result.scalars().all()]

    async def list_pending(self, owner_id: str | None = None, limit: int = 100) -> list[ContentItem]:
        """Items that have a description but are still missing tags or an embedding.

        Items never attempted come first, then those whose last attempt is
        oldest, so items that keep failing cannot starve the rest of a batch.
        """
        query = select(ContentItemRecord).where(
            ContentItemRecord.user_context.is_not(None),
            func.trim(ContentItemRecord.user_context) != "",
            (ContentItemRecord.tags.is_(None)) | (ContentItemRecord.embedding.is_(None)),
        )
        if owner_id is not None:
            query = query.where(ContentItemRecord.owner_id == owner_id)
        query = query.order_by(
            ContentItemRecord.enrich_attempted_at.asc().nulls_first(),
            ContentItemRecord.created_at,
            ContentItemRecord.id,
        )
        async with self._sessions() as session:
            result = await session.execute(query.limit(limit))
            return [_to_item(r) for r in result.scalars().all()]

    async def mark_enrich_attempted(self, item_id: str) -> None:
        async with self._sessions() as session:
            await session.execute(
                update(ContentItemRecord)
                .where(ContentItemRecord.id == item_id)
                .values(enrich_attempted_at=_utcnow())
            )
            await session.commit()

    async def set_tags(self, item_id: str, owner_id: str, tags: list[str]) -> bool:
        """Replace an item's tags in both the row and the tag index."""
        tags = _unique_tags(tags)
        async with self._sessions() as session:
            record = await session.get(ContentItemRecord, item_id)
            if record is None or record.owner_id != owner_id:
                return False
            record.tags = tags
            await session.execute(delete(ContentTagRecord).where(ContentTagRecord.content_id == item_id))
            session.add_all(ContentTagRecord(content_id=item_id, tag=t) for t in tags)
            await session.commit()
        return True

    async def set_embedding(self, item_id: str, owner_id: str, embedding: list[float]) -> bool:
        async with self._sessions() as session:
            record = await session.get(ContentItemRecord, item_id)
            if record is None or record.owner_id != owner_id:
                return False
            record.embedding = list(embedding)
            await session.commit()
        return True

    async def delete_item(self, item_id: str, owner_id: str) -> ContentItem | None:
        async with self._sessions() as session:
            record = await session.get(ContentItemRecord, item_id)
            if record is None or record.owner_id != owner_id:
                return None
            item = _to_item(record)
            await session.execute(delete(ContentTagRecord).where(ContentTagRecord.content_id == item_id))
            await session.delete(record)
            await session.commit()
        logger.info("content_deleted", item_id=item_id, owner_id=owner_id)
        return item

    # ── Tag index ──────────────────────────────────────────

    async def query_by_tags(self, tags: Iterable[str], owner_id: str, limit: int) -> list[ContentItem]:
        """Owned items whose tag set intersects ``tags``, most recent first."""
        tags = _unique_tags(tags)
        if not tags:
            raise InvalidRequestError("at least one tag is required")

        matching_ids = (
            select(ContentTagRecord.content_id)
            .where(ContentTagRecord.tag.in_(tags))
            .distinct()
        )
        query = (
            select(ContentItemRecord)
            .where(
                ContentItemRecord.owner_id == owner_id,
                ContentItemRecord.id.in_(matching_ids),
            )
            .order_by(ContentItemRecord.created_at.desc(), ContentItemRecord.id)
            .limit(limit)
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(query)
                return [_to_item(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise IndexQueryError(f"tag index query failed: {e}") from e

    async def recent_tags(self, owner_id: str, item_limit: int = 20) -> list[str]:
        """Distinct tags from the owner's most recently tagged items."""
        async with self._sessions() as session:
            result = await session.execute(
                select(ContentItemRecord.tags)
                .where(ContentItemRecord.owner_id == owner_id, ContentItemRecord.tags.is_not(None))
                .order_by(ContentItemRecord.created_at.desc())
                .limit(item_limit)
            )
            return _unique(tag for tags in result.scalars().all() for tag in tags or [])

    # ── User profiles ──────────────────────────────────────

    async def get_interests(self, user_id: str) -> list[str]:
        async with self._sessions() as session:
            record = await session.get(UserProfileRecord, user_id)
        return list(record.interests or []) if record else []

    async def set_interests(self, user_id: str, interests: list[str]) -> None:
        async with self._sessions() as session:
            record = await session.get(UserProfileRecord, user_id)
            if record is None:
                session.add(UserProfileRecord(user_id=user_id, interests=list(interests)))
            else:
                record.interests = list(interests)
            await session.commit()


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def _unique_tags(tags: Iterable[str]) -> list[str]:
    """Tags in the canonical lowercase, hyphen-joined form, first occurrence kept."""
    return _unique(normalize_tag(t) for t in tags)
