"""Embedding refresh job for one organization.

Flow: rate-limit gate -> fetch documents -> budget clamp -> per-document
eligibility (no content / cooldown) -> embed + upsert -> best-effort k-means
clustering with AI cluster names -> refresh log + refresh state.

Only the organization lookup and the rate-limit gate fail the whole run.
Per-document provider failures and any clustering/naming failure are tallied
or logged and the run continues. The admin-role check belongs to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.core.clustering import ClusterPoint, choose_cluster_count, kmeans_clusters
from app.core.config import Settings, get_settings
from app.core.embeddings import EmbeddingClient, build_document_text
from app.core.errors import OrganizationNotFoundError, ProviderError
from app.core.llm import GenerationClient
from app.core.logging import get_logger, log_with_context
from app.core.rate_limiter import RefreshRateLimiter, utc_now
from app.core.schemas_retrieval import (
    Document,
    EmbeddingRecord,
    RateLimitStatus,
    RefreshLogEntry,
    RefreshResult,
)
from app.db.stores import (
    ClusterNameStore,
    DocumentStore,
    EmbeddingStore,
    RefreshLog,
    RefreshStateStore,
)

logger = get_logger(__name__)

CLUSTER_NAMING_PROMPT = (
    "You are a categorization expert. Given a list of document titles, generate a short, "
    "descriptive category name (2-4 words max) that captures the main theme. "
    "Respond with ONLY the category name, nothing else."
)

# Per-document outcomes
PROCESSED = "processed"
FAILED = "failed"
PAST_DEADLINE = "past_deadline"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def clean_cluster_name(raw: str, cluster_index: int) -> str:
    """Trim quotes/punctuation from a generated label; fall back to "Cluster N"."""
    name = raw.strip().strip("\"'`").strip().rstrip(".")
    return name or f"Cluster {cluster_index + 1}"


class EmbeddingRefreshJob:
    """(Re)computes embeddings and cluster names for an organization's documents."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        generator: GenerationClient,
        documents: DocumentStore,
        embeddings: EmbeddingStore,
        cluster_names: ClusterNameStore,
        refresh_log: RefreshLog,
        refresh_state: RefreshStateStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.embedder = embedder
        self.generator = generator
        self.documents = documents
        self.embeddings = embeddings
        self.cluster_names = cluster_names
        self.refresh_log = refresh_log
        self.refresh_state = refresh_state
        self.settings = settings or get_settings()
        self.clock = clock
        self.rate_limiter = RefreshRateLimiter(refresh_log, self.settings, clock)

    def run(
        self,
        organization_id: str,
        user_id: str,
        deadline: datetime | None = None,
    ) -> RefreshResult:
        """
        Refresh embeddings and cluster names for an organization.

        Args:
            organization_id: Organization scope
            user_id: Admin user triggering the refresh
            deadline: Optional time after which no further documents are started

        Returns:
            RefreshResult with per-outcome counts and remaining rate-limit budget

        Raises:
            OrganizationNotFoundError: If organization_id is blank
            RateLimitedError: If either 24h limit is exhausted (nothing is processed or logged)
        """
        if not organization_id or not organization_id.strip():
            raise OrganizationNotFoundError("Organization not found")

        status = self.rate_limiter.check(organization_id, user_id)

        all_documents = self.documents.list_by_organization(organization_id)
        docs_to_process = min(len(all_documents), status.org_documents_remaining)
        considered = all_documents[:docs_to_process]

        result = RefreshResult(
            organization_id=organization_id,
            total_documents=len(all_documents),
            considered=len(considered),
        )

        existing = {
            record.doc_id: record
            for record in self.embeddings.list_by_organization(organization_id)
        }
        cooldown_cutoff = self.clock() - timedelta(hours=self.settings.EMBEDDING_COOLDOWN_HOURS)

        to_embed: list[Document] = []
        for doc in considered:
            if not doc.content or not doc.content.strip():
                logger.debug(f"Skipping {doc.doc_id} - no content")
                result.skipped_no_content += 1
                continue

            record = existing.get(doc.doc_id)
            if record and record.generated_at and _as_utc(record.generated_at) > cooldown_cutoff:
                result.skipped_cooldown += 1
                continue

            to_embed.append(doc)

        for outcome in self._process_documents(organization_id, to_embed, deadline):
            if outcome == PROCESSED:
                result.processed += 1
            elif outcome == FAILED:
                result.errors += 1
            else:
                result.skipped_deadline += 1

        result.aborted = result.skipped_deadline > 0

        try:
            result.clusters_named, result.clusters_failed = self._name_clusters(
                organization_id, all_documents
            )
        except Exception as e:
            logger.warning(f"Failed to generate cluster names for {organization_id}: {e}")

        self._record_run(organization_id, user_id, result.processed)

        result.rate_limit = RateLimitStatus(
            user_refreshes_used=status.user_refreshes_used + 1,
            user_refreshes_remaining=max(0, status.user_refreshes_remaining - 1),
            org_documents_used=status.org_documents_used + result.processed,
            org_documents_remaining=max(0, status.org_documents_remaining - result.processed),
        )

        log_with_context(
            logger,
            logging.INFO,
            f"Embedding refresh finished: {result.processed} processed",
            organization_id=organization_id,
            user_id=user_id,
            considered=result.considered,
            skipped_cooldown=result.skipped_cooldown,
            skipped_no_content=result.skipped_no_content,
            skipped_deadline=result.skipped_deadline,
            errors=result.errors,
            clusters_named=result.clusters_named,
        )

        return result

    def index_document(self, organization_id: str, doc: Document) -> bool:
        """
        Embed a single document after it was created or edited.

        Runs outside the refresh budget and ignores the cooldown. Provider or
        storage failures are logged and reported as False so the write that
        triggered indexing still succeeds.

        Raises:
            OrganizationNotFoundError: If organization_id is blank
        """
        if not organization_id or not organization_id.strip():
            raise OrganizationNotFoundError("Organization not found")

        if not doc.content or not doc.content.strip():
            logger.debug(f"Not indexing {doc.doc_id} - no content")
            return False

        return self._embed_document(organization_id, doc) == PROCESSED

    def remove_document(self, organization_id: str, doc_id: str) -> bool:
        """Drop the embedding of a deleted document; False if the store failed."""
        try:
            self.embeddings.delete(organization_id, doc_id)
        except Exception as e:
            logger.warning(f"Failed to delete embedding for {doc_id}: {e}")
            return False
        return True

    def _process_documents(
        self,
        organization_id: str,
        documents: list[Document],
        deadline: datetime | None,
    ) -> list[str]:
        def process(doc: Document) -> str:
            if deadline is not None and self.clock() >= deadline:
                return PAST_DEADLINE
            return self._embed_document(organization_id, doc)

        workers = max(1, self.settings.REFRESH_MAX_WORKERS)
        if workers == 1 or len(documents) <= 1:
            return [process(doc) for doc in documents]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(process, documents))

    def _embed_document(self, organization_id: str, doc: Document) -> str:
        try:
            vector = self.embedder.embed(build_document_text(doc.title, doc.content))
            self.embeddings.upsert(
                EmbeddingRecord(
                    doc_id=doc.doc_id,
                    organization_id=organization_id,
                    embedding=vector,
                    model=self.embedder.model,
                    generated_at=self.clock(),
                )
            )
        except ProviderError as e:
            logger.warning(f"Embedding failed for {doc.doc_id}: {e}")
            return FAILED
        except Exception as e:
            logger.error(f"Error processing {doc.doc_id}: {e}")
            return FAILED

        logger.debug(f"Processed {doc.doc_id}")
        return PROCESSED

    def _name_clusters(
        self, organization_id: str, documents: list[Document]
    ) -> tuple[int, int]:
        """Cluster all current embeddings and store a generated name per non-empty cluster."""
        records = self.embeddings.list_by_organization(organization_id)
        if not records:
            return 0, 0

        points = [ClusterPoint(id=r.doc_id, vector=r.embedding) for r in records]
        k = choose_cluster_count(len(points))
        clustering = kmeans_clusters(points, k, self.settings.CLUSTER_MAX_ITERATIONS)

        titles_by_id = {doc.doc_id: doc.title for doc in documents}
        named = failed = 0

        for cluster_index, doc_ids in enumerate(clustering.clusters):
            if not doc_ids:
                continue

            titles = ", ".join(titles_by_id[d] for d in doc_ids if titles_by_id.get(d))
            try:
                raw_name = self.generator.complete(
                    CLUSTER_NAMING_PROMPT,
                    [{"role": "user", "content": f"Documents: {titles}"}],
                    max_output_tokens=self.settings.CLUSTER_NAME_MAX_TOKENS,
                    temperature=0.3,
                )
                name = clean_cluster_name(raw_name, cluster_index)
                self.cluster_names.upsert(organization_id, cluster_index, name)
            except Exception as e:
                logger.warning(f"Failed to name cluster {cluster_index}: {e}")
                failed += 1
                continue

            logger.debug(f"Cluster {cluster_index}: {name!r} ({len(doc_ids)} docs)")
            named += 1

        return named, failed

    def _record_run(self, organization_id: str, user_id: str, processed: int) -> None:
        now = self.clock()
        self.refresh_log.insert(
            RefreshLogEntry(
                organization_id=organization_id,
                user_id=user_id,
                documents_processed=processed,
                created_at=now,
            )
        )

        try:
            self.refresh_state.upsert(organization_id, now, user_id)
        except Exception as e:
            logger.warning(f"Failed to update refresh state for {organization_id}: {e}")
