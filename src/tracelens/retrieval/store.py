"""SQLite-backed document store with per-provider embeddings."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    Integer,
    LargeBinary,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from tracelens.core.exceptions import DimensionMismatchError, StorageError, ValidationError
from tracelens.core.models import DocumentEntry, ProviderType, SearchHit
from tracelens.logging import get_logger
from tracelens.retrieval.similarity import (
    cosine_similarity,
    deserialize_embedding,
    serialize_embedding,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy.engine import Engine

logger = get_logger(__name__)

DEFAULT_DATABASE_PATH = "tracelens-documents.db"


class Base(DeclarativeBase):
    """Base class for document store tables."""

    pass


class DocumentRecord(Base):
    """A knowledge-base document and its embedding in each provider's vector space."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    root_causes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_steps: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)
    openai_embedding: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    openai_embedding_dimension: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gemini_embedding: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    gemini_embedding_dimension: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )


# Blob and dimension column names per provider vector space
_EMBEDDING_COLUMNS: MappingProxyType[ProviderType, tuple[str, str]] = MappingProxyType(
    {
        ProviderType.OPENAI: ("openai_embedding", "openai_embedding_dimension"),
        ProviderType.GEMINI: ("gemini_embedding", "gemini_embedding_dimension"),
    }
)


def _embedding_columns(provider_type: ProviderType) -> tuple[str, str]:
    if provider_type not in _EMBEDDING_COLUMNS:
        raise ValidationError(f"Unsupported provider type: {provider_type}")
    return _EMBEDDING_COLUMNS[provider_type]


def _validate_vector(vector: Sequence[float] | None) -> None:
    if vector is None or len(vector) == 0:
        raise ValidationError("Embedding vector cannot be empty")


def _to_entry(record: DocumentRecord) -> DocumentEntry:
    return DocumentEntry(
        id=record.id,
        category=record.category,
        title=record.title,
        content=record.content,
        summary=record.summary,
        root_causes=record.root_causes,
        resolution_steps=record.resolution_steps,
        tags=record.tags,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class DocumentStore:
    """Persists documents with one embedding vector per provider type.

    Search computes cosine similarity in Python against every stored vector
    of the requested provider type. Every failure of the underlying database
    surfaces as StorageError.
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: Engine | None = None,
        echo: bool = False,
    ) -> None:
        """
        Open (and create if needed) a document store.

        Args:
            database_url: SQLAlchemy URL; defaults to a SQLite file in the working directory.
            engine: Pre-built engine, overrides database_url.
            echo: Whether to log SQL statements.
        """
        try:
            self._engine = engine or create_engine(
                database_url or f"sqlite:///{DEFAULT_DATABASE_PATH}",
                echo=echo,
            )
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize document store: {e}") from e

        self._session_maker = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._lock = threading.RLock()

    @classmethod
    def from_path(cls, path: str, echo: bool = False) -> DocumentStore:
        """Open a store backed by a SQLite file."""
        return cls(f"sqlite:///{path}", echo=echo)

    @classmethod
    def in_memory(cls) -> DocumentStore:
        """Open a private in-memory store shared across threads."""
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        return cls(engine=engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._lock, self._session_maker() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("document_store_error", error=str(e))
            raise StorageError(f"Document store operation failed: {e}") from e

    def insert(
        self,
        entry: DocumentEntry,
        embeddings: Mapping[ProviderType, Sequence[float]] | None = None,
    ) -> int:
        """
        Insert a document with optional embeddings.

        Args:
            entry: Document to store; its id is set on success.
            embeddings: Vectors keyed by provider type.

        Returns:
            Id assigned to the document.

        Raises:
            ValidationError: If title or content is blank, or a vector is empty.
            StorageError: If the write fails.
        """
        if not entry.title or not entry.title.strip():
            raise ValidationError("Document title cannot be empty")
        if not entry.content or not entry.content.strip():
            raise ValidationError("Document content cannot be empty")

        record = DocumentRecord(
            category=entry.category or "general",
            title=entry.title.strip(),
            content=entry.content,
            summary=entry.summary,
            root_causes=entry.root_causes,
            resolution_steps=entry.resolution_steps,
            tags=entry.tags,
        )
        for provider_type, vector in (embeddings or {}).items():
            _validate_vector(vector)
            blob_column, dimension_column = _embedding_columns(provider_type)
            setattr(record, blob_column, serialize_embedding(vector))
            setattr(record, dimension_column, len(vector))

        with self._session() as session:
            session.add(record)
            session.commit()
            entry.id = record.id
            entry.created_at = record.created_at
            entry.updated_at = record.updated_at

        logger.debug(
            "document_inserted",
            document_id=entry.id,
            title=entry.title,
            embeddings=[p.value for p in (embeddings or {})],
        )
        return entry.id

    def update_embedding(
        self, document_id: int, provider_type: ProviderType, vector: Sequence[float]
    ) -> bool:
        """Set or replace one provider's vector for a document. False if the id is unknown."""
        _validate_vector(vector)
        blob_column, dimension_column = _embedding_columns(provider_type)

        with self._session() as session:
            record = session.get(DocumentRecord, document_id)
            if record is None:
                return False
            setattr(record, blob_column, serialize_embedding(vector))
            setattr(record, dimension_column, len(vector))
            record.updated_at = datetime.now(UTC)
            session.commit()
        return True

    def get(self, document_id: int) -> DocumentEntry | None:
        with self._session() as session:
            record = session.get(DocumentRecord, document_id)
            return _to_entry(record) if record is not None else None

    def count(self) -> int:
        """Total number of documents."""
        with self._session() as session:
            return session.scalar(select(func.count(DocumentRecord.id))) or 0

    def count_with_embeddings(self, provider_type: ProviderType) -> int:
        """Number of documents that have a vector for the provider type."""
        blob_column, _ = _embedding_columns(provider_type)
        column = getattr(DocumentRecord, blob_column)
        with self._session() as session:
            return session.scalar(
                select(func.count(DocumentRecord.id)).where(column.is_not(None))
            ) or 0

    def documents_without_embeddings(self, provider_type: ProviderType) -> list[DocumentEntry]:
        """Documents still missing a vector for the provider type, in insertion order."""
        blob_column, _ = _embedding_columns(provider_type)
        column = getattr(DocumentRecord, blob_column)
        with self._session() as session:
            records = session.scalars(
                select(DocumentRecord).where(column.is_(None)).order_by(DocumentRecord.id)
            )
            return [_to_entry(record) for record in records]

    def search(
        self,
        query_vector: Sequence[float],
        provider_type: ProviderType,
        top_k: int,
        *,
        min_score: float | None = None,
        category: str | None = None,
        tag: str | None = None,
    ) -> list[SearchHit]:
        """
        Rank stored documents by cosine similarity to a query vector.

        Args:
            query_vector: Vector produced by the provider type's embedding model.
            provider_type: Vector space to search.
            top_k: Maximum number of hits.
            min_score: Optional threshold in [0, 1]; lower scores are dropped.
            category: Optional category filter.
            tag: Optional tag; documents without it are skipped.

        Returns:
            Hits sorted by descending score; equal scores keep insertion order.

        Raises:
            ValidationError: If top_k <= 0, min_score is out of range, or the query vector is empty.
            DimensionMismatchError: If a stored vector differs in length from the query.
            StorageError: If the read fails.
        """
        if top_k <= 0:
            raise ValidationError("top_k must be positive")
        if min_score is not None and not 0.0 <= min_score <= 1.0:
            raise ValidationError("min_score must be between 0 and 1")
        _validate_vector(query_vector)

        blob_column, dimension_column = _embedding_columns(provider_type)
        column = getattr(DocumentRecord, blob_column)
        statement = select(DocumentRecord).where(column.is_not(None))
        if category:
            statement = statement.where(DocumentRecord.category == category)
        statement = statement.order_by(DocumentRecord.id)

        wanted_tag = tag.strip().lower() if tag and tag.strip() else None
        hits: list[SearchHit] = []
        with self._session() as session:
            for record in session.scalars(statement):
                if wanted_tag and wanted_tag not in _to_entry(record).tag_list:
                    continue
                dimension = getattr(record, dimension_column)
                if dimension is not None and dimension != len(query_vector):
                    raise DimensionMismatchError(len(query_vector), dimension)
                vector = deserialize_embedding(getattr(record, blob_column), dimension)
                score = cosine_similarity(query_vector, vector)
                if min_score is None or score >= min_score:
                    hits.append(SearchHit(document=_to_entry(record), score=score))

        # sorted() is stable, so ties keep insertion (id) order
        hits = sorted(hits, key=lambda hit: hit.score, reverse=True)[:top_k]
        logger.debug(
            "document_search_completed",
            provider=provider_type.value,
            top_k=top_k,
            returned=len(hits),
        )
        return hits

    def clear(self) -> int:
        """Delete every document. Returns the number removed."""
        with self._session() as session:
            result = session.execute(delete(DocumentRecord))
            session.commit()
            removed = result.rowcount or 0
        logger.info("document_store_cleared", removed=removed)
        return removed

    def close(self) -> None:
        """Release database connections."""
        self._engine.dispose()
