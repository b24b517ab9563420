"""Query-time document retrieval over the embedding store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tracelens.core.exceptions import (
    DimensionMismatchError,
    ProviderError,
    RetrievalError,
    StorageError,
    ValidationError,
)
from tracelens.core.models import AnalysisMode, ProviderType
from tracelens.llm.config import DEFAULT_SIMILARITY_THRESHOLD, TOP_K_BY_MODE
from tracelens.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tracelens.config import ApiKeyLookup
    from tracelens.core.models import SearchHit
    from tracelens.embeddings.base import EmbeddingProvider
    from tracelens.llm.catalog import ModelCatalog
    from tracelens.retrieval.store import DocumentStore

logger = get_logger(__name__)

DOCUMENT_CONTEXT_HEADER = "### Relevant Documentation ###"


def format_document_context(hits: list[SearchHit]) -> str:
    """Render search hits as a prompt section; empty string for no hits."""
    if not hits:
        return ""

    blocks = []
    for number, hit in enumerate(hits, start=1):
        document = hit.document
        lines = [f"**Document {number}:** {document.title} - Similarity: {hit.score:.3f}"]
        if document.summary:
            lines.append(document.summary.strip())
        if document.root_causes:
            lines.append(f"**Root Causes:** {document.root_causes.strip()}")
        if document.resolution_steps:
            lines.append(f"**Resolution Steps:** {document.resolution_steps.strip()}")
        blocks.append("\n".join(lines) + "\n")

    return DOCUMENT_CONTEXT_HEADER + "\n" + "---\n\n".join(f"{block}\n" for block in blocks)


class RetrievalService:
    """Embeds queries with the active provider and searches the document store.

    The active provider type is the default model's provider when a catalog
    is attached; otherwise the preferred provider, then any other provider
    that has both an API key and an embedding provider. Hits scoring below
    the similarity threshold are dropped before top-k is applied.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedding_providers: Mapping[ProviderType, EmbeddingProvider],
        api_keys: ApiKeyLookup,
        *,
        catalog: ModelCatalog | None = None,
        preferred_provider: ProviderType = ProviderType.OPENAI,
        top_k_by_mode: Mapping[AnalysisMode, int] = TOP_K_BY_MODE,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValidationError("similarity_threshold must be between 0 and 1")
        self._store = store
        self._embedding_providers = dict(embedding_providers)
        self._api_keys = api_keys
        self._catalog = catalog
        self._preferred_provider = preferred_provider
        self._top_k_by_mode = dict(top_k_by_mode)
        self._similarity_threshold = similarity_threshold

    def active_provider_type(self) -> ProviderType | None:
        """Provider whose vector space queries are embedded in, or None if none is usable."""
        if self._catalog is not None:
            default = self._catalog.get_default_model()
            if default is not None:
                return default.provider_type

        candidates = [self._preferred_provider] + [
            p for p in ProviderType if p is not self._preferred_provider
        ]
        for provider_type in candidates:
            has_embeddings = provider_type in self._embedding_providers
            if has_embeddings and self._api_keys.get_api_key(provider_type):
                return provider_type
        return None

    def top_k_for(self, detail_level: AnalysisMode) -> int:
        return self._top_k_by_mode.get(detail_level, TOP_K_BY_MODE[AnalysisMode.FULL])

    def is_ready(self) -> bool:
        """True when the active provider's vector space holds at least one document."""
        return self.document_count() > 0

    def document_count(self) -> int:
        """Documents embedded for the active provider; 0 on any storage failure."""
        provider_type = self.active_provider_type()
        if provider_type is None:
            return 0
        try:
            return self._store.count_with_embeddings(provider_type)
        except StorageError as e:
            logger.warning("document_count_unavailable", provider=provider_type.value, error=str(e))
            return 0

    async def retrieve_relevant_documents(
        self,
        query_text: str,
        category: str | None = None,
        tag_filter: str | None = None,
        detail_level: AnalysisMode = AnalysisMode.FULL,
    ) -> list[SearchHit]:
        """
        Find the documents most similar to a query.

        Args:
            query_text: Text to embed and search with.
            category: Optional category filter.
            tag_filter: Optional tag; hits without it are dropped.
            detail_level: OVERVIEW retrieves fewer documents than FULL.

        Returns:
            Ranked hits at or above the similarity threshold, possibly empty.

        Raises:
            ValidationError: If query_text is blank.
            RetrievalError: If no provider is usable, or embedding or search fails.
        """
        if query_text is None or not query_text.strip():
            raise ValidationError("Query text cannot be empty")

        provider_type = self.active_provider_type()
        if provider_type is None:
            raise RetrievalError("No embedding provider with an API key is available")
        embedding_provider = self._embedding_providers.get(provider_type)
        api_key = self._api_keys.get_api_key(provider_type)
        if embedding_provider is None or not api_key:
            raise RetrievalError(f"Embeddings are not available for {provider_type.display_name}")

        top_k = self.top_k_for(detail_level)
        logger.debug(
            "retrieval_started",
            provider=provider_type.value,
            top_k=top_k,
            category=category,
            tag_filter=tag_filter,
        )

        try:
            query_vector = await embedding_provider.embed(query_text.strip(), api_key)
        except ProviderError as e:
            raise RetrievalError(f"Failed to embed query: {e}") from e

        try:
            hits = self._store.search(
                query_vector,
                provider_type,
                top_k,
                min_score=self._similarity_threshold,
                category=category,
                tag=tag_filter,
            )
        except (StorageError, DimensionMismatchError) as e:
            raise RetrievalError(f"Document search failed: {e}") from e

        logger.info("retrieval_completed", provider=provider_type.value, returned=len(hits))
        return hits
