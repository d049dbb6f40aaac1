"""Document retrieval: semantic ranking, keyword ranking, similar documents, graph.

Two strategies behind one entry point:

    engine.search(org_id, "expense receipts", RetrievalMode.SEMANTIC)

SEMANTIC embeds the query and ranks stored document embeddings by cosine
similarity, keeping results strictly above the threshold. KEYWORD ranks by
substring matches with explanations (see keyword_search). Fallback rule: a
SEMANTIC request over a candidate set with no embeddings at all is served by
KEYWORD, and the outcome reports mode_used=KEYWORD.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from app.core.clustering import (
    ClusterPoint,
    choose_cluster_count,
    cluster_membership,
    kmeans_clusters,
)
from app.core.config import Settings, get_settings
from app.core.embeddings import EmbeddingClient
from app.core.keyword_search import extract_snippet, keyword_search
from app.core.logging import get_logger
from app.core.schemas_retrieval import (
    Document,
    EmbeddingRecord,
    GraphEdge,
    GraphNode,
    RetrievalMode,
    RetrievalOutcome,
    RetrievalResult,
    SimilarDocument,
    SimilarityGraph,
)
from app.core.vector_math import cosine_similarity
from app.db.stores import ClusterNameStore, DocumentStore, EmbeddingStore

logger = get_logger(__name__)


@dataclass
class ScoredDocument:
    """A document id with its similarity to the query."""

    doc_id: str
    similarity: float


# =============================================================================
# Pure ranking
# =============================================================================


def rank_by_vector(
    query_vector: Sequence[float],
    records: Sequence[EmbeddingRecord],
    threshold: float,
    limit: int | None = None,
) -> list[ScoredDocument]:
    """
    Rank embeddings by cosine similarity to a query vector.

    Args:
        query_vector: Query embedding
        records: Candidate document embeddings
        threshold: Results with similarity <= threshold are dropped
        limit: Keep at most this many (None keeps all)

    Returns:
        Scored documents, most similar first
    """
    scored = [
        ScoredDocument(doc_id=r.doc_id, similarity=cosine_similarity(query_vector, r.embedding))
        for r in records
    ]
    scored = [s for s in scored if s.similarity > threshold]
    scored.sort(key=lambda s: s.similarity, reverse=True)
    return scored if limit is None else scored[:limit]


def to_percent(similarity: float) -> int:
    return round(similarity * 100)


# =============================================================================
# Engine
# =============================================================================


class RetrievalEngine:
    """Ranks an organization's documents for a query."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        documents: DocumentStore,
        embeddings: EmbeddingStore,
        cluster_names: ClusterNameStore | None = None,
        settings: Settings | None = None,
    ):
        self.embedder = embedder
        self.documents = documents
        self.embeddings = embeddings
        self.cluster_names = cluster_names
        self.settings = settings or get_settings()

    def load_embeddings(
        self, organization_id: str, doc_ids: list[str] | None = None
    ) -> list[EmbeddingRecord]:
        return self.embeddings.list_by_organization(organization_id, doc_ids=doc_ids)

    def rank_records(
        self,
        query: str,
        records: Sequence[EmbeddingRecord],
        threshold: float,
        limit: int | None = None,
    ) -> list[ScoredDocument]:
        """
        Embed the query and rank candidate embeddings against it.

        Raises:
            ProviderError: If the query embedding fails
        """
        query_vector = self.embedder.embed(query)
        return rank_by_vector(query_vector, records, threshold, limit)

    def search(
        self,
        organization_id: str,
        query: str,
        mode: RetrievalMode = RetrievalMode.SEMANTIC,
        *,
        threshold: float | None = None,
        limit: int | None = None,
        doc_ids: list[str] | None = None,
    ) -> RetrievalOutcome:
        """
        Rank documents with the requested strategy.

        Args:
            organization_id: Organization scope
            query: Raw query text
            mode: SEMANTIC or KEYWORD
            threshold: Semantic similarity floor (default CHAT_SIMILARITY_THRESHOLD)
            limit: Maximum results (default CHAT_TOP_K for semantic, unlimited for keyword)
            doc_ids: Optional access-filtered candidate allowlist

        Returns:
            RetrievalOutcome naming the strategy actually used

        Raises:
            ProviderError: If the query embedding fails (semantic only)
        """
        if not query or not query.strip():
            return RetrievalOutcome(mode_requested=mode, mode_used=mode)

        if mode == RetrievalMode.SEMANTIC:
            records = self.load_embeddings(organization_id, doc_ids)
            if records:
                results = self.semantic_search(
                    organization_id, query, records, threshold=threshold, limit=limit
                )
                return RetrievalOutcome(
                    mode_requested=mode, mode_used=RetrievalMode.SEMANTIC, results=results
                )

            logger.info(
                f"No embeddings for organization {organization_id}, using keyword search"
            )

        results = self.keyword_search(organization_id, query, limit=limit, doc_ids=doc_ids)
        return RetrievalOutcome(mode_requested=mode, mode_used=RetrievalMode.KEYWORD, results=results)

    def semantic_search(
        self,
        organization_id: str,
        query: str,
        records: Sequence[EmbeddingRecord],
        *,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[RetrievalResult]:
        """Semantic ranking over pre-loaded embeddings, enriched with document titles/snippets."""
        if threshold is None:
            threshold = self.settings.CHAT_SIMILARITY_THRESHOLD
        if limit is None:
            limit = self.settings.CHAT_TOP_K

        ranked = self.rank_records(query, records, threshold, limit)
        if not ranked:
            return []

        docs_by_id = {
            doc.doc_id: doc
            for doc in self.documents.get_by_ids(organization_id, [s.doc_id for s in ranked])
        }

        results = []
        for scored in ranked:
            doc = docs_by_id.get(scored.doc_id)
            if doc is None:
                # Embedding outlived its document
                continue
            results.append(
                RetrievalResult(
                    doc_id=doc.doc_id,
                    title=doc.title,
                    doc_type=doc.doc_type,
                    score=scored.similarity,
                    similarity=scored.similarity,
                    snippet=extract_snippet(doc.content or "", query),
                    why_matched=[f"semantic similarity ({to_percent(scored.similarity)}%)"],
                )
            )
        return results

    def keyword_search(
        self,
        organization_id: str,
        query: str,
        *,
        limit: int | None = None,
        doc_ids: list[str] | None = None,
        documents: list[Document] | None = None,
    ) -> list[RetrievalResult]:
        """Keyword ranking over the organization's documents (or a pre-loaded list)."""
        if documents is None:
            documents = self.documents.list_by_organization(organization_id, doc_ids=doc_ids)
        results = keyword_search(documents, query)
        return results if limit is None else results[:limit]

    def find_similar_documents(
        self, organization_id: str, doc_id: str, limit: int = 5
    ) -> list[SimilarDocument]:
        """
        Documents most similar to one document (itself excluded).

        Returns:
            Up to limit documents with integer-percent similarity; empty when the
            document has no embedding
        """
        records = self.load_embeddings(organization_id)
        target = next((r for r in records if r.doc_id == doc_id), None)
        if target is None:
            return []

        others = [r for r in records if r.doc_id != doc_id]
        ranked = rank_by_vector(target.embedding, others, threshold=-1.0, limit=limit)
        if not ranked:
            return []

        docs_by_id = {
            doc.doc_id: doc
            for doc in self.documents.get_by_ids(organization_id, [s.doc_id for s in ranked])
        }

        similar = []
        for scored in ranked:
            doc = docs_by_id.get(scored.doc_id)
            similar.append(
                SimilarDocument(
                    doc_id=scored.doc_id,
                    title=doc.title if doc else "Unknown",
                    doc_type=doc.doc_type if doc else None,
                    similarity=to_percent(scored.similarity),
                )
            )
        return similar

    def build_similarity_graph(self, organization_id: str) -> SimilarityGraph:
        """
        Similarity graph of all embedded documents.

        Each node links to its top GRAPH_NEIGHBORS_PER_NODE neighbours whose
        similarity is above GRAPH_SIMILARITY_THRESHOLD. Cluster membership is
        recomputed with k-means; cluster names come from the last refresh.
        """
        records = self.load_embeddings(organization_id)
        if not records:
            return SimilarityGraph()

        titles = {
            doc.doc_id: doc.title for doc in self.documents.list_by_organization(organization_id)
        }

        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        for record in records:
            nodes.append(GraphNode(id=record.doc_id, label=titles.get(record.doc_id) or record.doc_id))

            others = [r for r in records if r.doc_id != record.doc_id]
            neighbours = rank_by_vector(
                record.embedding,
                others,
                threshold=self.settings.GRAPH_SIMILARITY_THRESHOLD,
                limit=self.settings.GRAPH_NEIGHBORS_PER_NODE,
            )
            edges.extend(
                GraphEdge(source=record.doc_id, target=n.doc_id, strength=n.similarity)
                for n in neighbours
            )

        points = [ClusterPoint(id=r.doc_id, vector=r.embedding) for r in records]
        clustering = kmeans_clusters(
            points, choose_cluster_count(len(points)), self.settings.CLUSTER_MAX_ITERATIONS
        )

        names = (
            self.cluster_names.list_by_organization(organization_id)
            if self.cluster_names is not None
            else {}
        )

        return SimilarityGraph(
            nodes=nodes,
            edges=edges,
            clusters=cluster_membership(clustering),
            cluster_names=names,
            total_documents=len(nodes),
            total_connections=len(edges),
        )
