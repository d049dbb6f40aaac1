"""Request-scoped wiring of caller identity, stores, providers and core components.

Caller identity is resolved upstream (session/auth layer) and forwarded as
headers. Every component is constructed per request from injectable pieces, so
tests replace any of them through app.dependency_overrides.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from app.core.agent_planner import AgentPlanner
from app.core.embedding_refresh import EmbeddingRefreshJob
from app.core.embeddings import EmbeddingClient
from app.core.grounded_answer import GroundedAnswerer
from app.core.llm import GenerationClient
from app.core.retrieval import RetrievalEngine
from app.db.cluster_names import SupabaseClusterNameStore
from app.db.document_embeddings import SupabaseEmbeddingStore
from app.db.documents import SupabaseDocumentStore
from app.db.embedding_refresh_logs import SupabaseRefreshLog
from app.db.organization_refresh_state import SupabaseRefreshStateStore
from app.db.projects import SupabaseProjectStore
from app.db.stores import ProjectStore

ADMIN_ROLES = ("admin", "owner")


@dataclass
class CallerContext:
    """Authenticated caller, as resolved by the upstream auth layer."""

    organization_id: str
    user_id: str
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def get_caller(
    x_organization_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CallerContext:
    """
    Resolve the caller from forwarded identity headers.

    Raises:
        HTTPException 401: If user or organization is missing
    """
    if not x_user_id or not x_organization_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CallerContext(
        organization_id=x_organization_id,
        user_id=x_user_id,
        role=(x_user_role or "member").lower(),
    )


def require_admin(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    """
    Raises:
        HTTPException 403: If the caller is not an organization admin/owner
    """
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Only admins can generate embeddings")
    return caller


# Providers


def get_embedding_client() -> EmbeddingClient:
    return EmbeddingClient()


def get_generation_client() -> GenerationClient:
    return GenerationClient()


# Stores


def get_document_store() -> SupabaseDocumentStore:
    return SupabaseDocumentStore()


def get_embedding_store() -> SupabaseEmbeddingStore:
    return SupabaseEmbeddingStore()


def get_cluster_name_store() -> SupabaseClusterNameStore:
    return SupabaseClusterNameStore()


def get_project_store() -> ProjectStore:
    return SupabaseProjectStore()


# Core components


def get_retrieval_engine(
    embedder: EmbeddingClient = Depends(get_embedding_client),
    documents: SupabaseDocumentStore = Depends(get_document_store),
    embeddings: SupabaseEmbeddingStore = Depends(get_embedding_store),
    cluster_names: SupabaseClusterNameStore = Depends(get_cluster_name_store),
) -> RetrievalEngine:
    return RetrievalEngine(embedder, documents, embeddings, cluster_names)


def get_answerer(
    retrieval: RetrievalEngine = Depends(get_retrieval_engine),
    generator: GenerationClient = Depends(get_generation_client),
    documents: SupabaseDocumentStore = Depends(get_document_store),
) -> GroundedAnswerer:
    return GroundedAnswerer(retrieval, generator, documents)


def get_agent_planner(
    generator: GenerationClient = Depends(get_generation_client),
    documents: SupabaseDocumentStore = Depends(get_document_store),
    retrieval: RetrievalEngine = Depends(get_retrieval_engine),
) -> AgentPlanner:
    return AgentPlanner(generator, documents, retrieval)


def get_refresh_job(
    embedder: EmbeddingClient = Depends(get_embedding_client),
    generator: GenerationClient = Depends(get_generation_client),
    documents: SupabaseDocumentStore = Depends(get_document_store),
    embeddings: SupabaseEmbeddingStore = Depends(get_embedding_store),
    cluster_names: SupabaseClusterNameStore = Depends(get_cluster_name_store),
) -> EmbeddingRefreshJob:
    return EmbeddingRefreshJob(
        embedder,
        generator,
        documents,
        embeddings,
        cluster_names,
        SupabaseRefreshLog(),
        SupabaseRefreshStateStore(),
    )
