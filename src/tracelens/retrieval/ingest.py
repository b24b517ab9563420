"""Offline rebuild of the document store from parsed knowledge files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tracelens.core.exceptions import ProviderError, StorageError
from tracelens.logging import get_logger
from tracelens.retry import retry_with_backoff

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tracelens.config import ApiKeyLookup
    from tracelens.core.models import DocumentEntry, ProviderType
    from tracelens.embeddings.base import EmbeddingProvider
    from tracelens.retrieval.store import DocumentStore

logger = get_logger(__name__)


@dataclass
class IngestReport:
    """Outcome of a document store refresh."""

    inserted: int = 0
    embedded: dict[str, int] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


async def _embed_with_retry(
    provider: EmbeddingProvider, text: str, api_key: str, max_retries: int, base_delay: float
) -> list[float]:
    @retry_with_backoff(max_retries=max_retries, base_delay=base_delay)
    async def _embed() -> list[float]:
        return await provider.embed(text, api_key)

    return await _embed()


async def refresh_document_store(
    store: DocumentStore,
    documents: list[DocumentEntry],
    embedding_providers: Mapping[ProviderType, EmbeddingProvider],
    api_keys: ApiKeyLookup,
    *,
    clear_existing: bool = True,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> IngestReport:
    """
    Insert documents and embed them for every provider that has an API key.

    Args:
        store: Target document store.
        documents: Parsed documents.
        embedding_providers: Embedding providers keyed by provider type.
        api_keys: Credential lookup.
        clear_existing: Delete all stored documents first.
        max_retries: Retries per embedding call.
        base_delay: Initial backoff delay in seconds.

    Returns:
        IngestReport with counts and per-document failures.

    Raises:
        StorageError: If the store cannot be cleared.
    """
    report = IngestReport()
    if clear_existing:
        store.clear()

    active = {
        provider_type: (provider, api_key)
        for provider_type, provider in embedding_providers.items()
        if (api_key := api_keys.get_api_key(provider_type))
    }
    if not active:
        logger.warning("ingest_without_embeddings", reason="no API keys configured")

    for document in documents:
        try:
            document_id = store.insert(document)
        except StorageError as e:
            report.failures.append(f"{document.title}: {e}")
            logger.error("ingest_insert_failed", title=document.title, error=str(e))
            continue
        report.inserted += 1

        for provider_type, (provider, api_key) in active.items():
            try:
                vector = await _embed_with_retry(
                    provider, document.embedding_content, api_key, max_retries, base_delay
                )
                store.update_embedding(document_id, provider_type, vector)
            except (ProviderError, StorageError) as e:
                report.failures.append(f"{document.title} ({provider_type.value}): {e}")
                logger.error(
                    "ingest_embedding_failed",
                    title=document.title,
                    provider=provider_type.value,
                    error=str(e),
                )
                continue
            report.embedded[provider_type.value] = report.embedded.get(provider_type.value, 0) + 1

    logger.info(
        "ingest_completed",
        inserted=report.inserted,
        embedded=report.embedded,
        failures=len(report.failures),
    )
    return report
