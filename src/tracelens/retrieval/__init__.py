"""Embedding-indexed document store and query-time retrieval."""

from tracelens.retrieval.ingest import IngestReport, refresh_document_store
from tracelens.retrieval.parser import DocumentParser
from tracelens.retrieval.service import (
    DOCUMENT_CONTEXT_HEADER,
    RetrievalService,
    format_document_context,
)
from tracelens.retrieval.similarity import (
    cosine_similarity,
    deserialize_embedding,
    serialize_embedding,
)
from tracelens.retrieval.store import DocumentStore

__all__ = [
    # Store
    "DocumentStore",
    "cosine_similarity",
    "serialize_embedding",
    "deserialize_embedding",
    # Retrieval
    "RetrievalService",
    "format_document_context",
    "DOCUMENT_CONTEXT_HEADER",
    # Ingestion
    "DocumentParser",
    "IngestReport",
    "refresh_document_store",
]
