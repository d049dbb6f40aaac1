"""API endpoints for embedding refresh and indexing, similar documents and the graph."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.dependencies import (
    CallerContext,
    get_caller,
    get_refresh_job,
    get_retrieval_engine,
    require_admin,
)
from app.core.embedding_refresh import EmbeddingRefreshJob
from app.core.errors import OrganizationNotFoundError, RateLimitedError
from app.core.logging import get_logger
from app.core.retrieval import RetrievalEngine
from app.core.schemas_retrieval import RateLimitStatus, RefreshResult, SimilarityGraph

logger = get_logger(__name__)

router = APIRouter()


@router.post("/refresh", response_model=RefreshResult)
async def refresh_embeddings(
    caller: CallerContext = Depends(require_admin),
    job: EmbeddingRefreshJob = Depends(get_refresh_job),
) -> RefreshResult:
    """
    Regenerate embeddings and cluster names for the caller's organization.

    Raises:
        HTTPException 403: If the caller is not an admin
        HTTPException 404: If the organization cannot be resolved
        HTTPException 429: If a 24h refresh limit is exhausted
        HTTPException 500: If the run fails unexpectedly
    """
    try:
        return await asyncio.to_thread(job.run, caller.organization_id, caller.user_id)

    except RateLimitedError as e:
        raise HTTPException(
            status_code=429,
            detail={
                "error": str(e),
                "limit": e.limit,
                "rate_limit": e.status.model_dump(),
            },
        )
    except OrganizationNotFoundError:
        raise HTTPException(status_code=404, detail="Organization not found")
    except Exception:
        logger.exception(f"Embedding refresh failed for organization {caller.organization_id}")
        raise HTTPException(status_code=500, detail="Failed to generate embeddings")


@router.get("/refresh/status", response_model=RateLimitStatus)
async def refresh_status(
    caller: CallerContext = Depends(require_admin),
    job: EmbeddingRefreshJob = Depends(get_refresh_job),
) -> RateLimitStatus:
    """Remaining refresh budget for the caller and their organization."""
    try:
        return await asyncio.to_thread(
            job.rate_limiter.get_status, caller.organization_id, caller.user_id
        )
    except Exception:
        logger.exception(f"Failed to read refresh status for {caller.organization_id}")
        raise HTTPException(status_code=500, detail="Failed to read refresh status")


@router.get("/similar")
async def similar_documents(
    doc_id: str = Query(..., description="Document to find neighbours for"),
    limit: int = Query(5, ge=1, le=50, description="Maximum similar documents"),
    caller: CallerContext = Depends(get_caller),
    retrieval: RetrievalEngine = Depends(get_retrieval_engine),
) -> dict:
    """Documents most similar to one document, with integer-percent similarity."""
    try:
        similar = await asyncio.to_thread(
            retrieval.find_similar_documents, caller.organization_id, doc_id, limit
        )
        return {"similar": [s.model_dump() for s in similar]}

    except Exception:
        logger.exception(f"Failed to find documents similar to {doc_id}")
        raise HTTPException(status_code=500, detail="Failed to find similar documents")


@router.get("/graph", response_model=SimilarityGraph)
async def similarity_graph(
    caller: CallerContext = Depends(get_caller),
    retrieval: RetrievalEngine = Depends(get_retrieval_engine),
) -> SimilarityGraph:
    """Similarity graph with cluster membership and cluster names."""
    try:
        return await asyncio.to_thread(retrieval.build_similarity_graph, caller.organization_id)
    except Exception:
        logger.exception(f"Failed to build similarity graph for {caller.organization_id}")
        raise HTTPException(status_code=500, detail="Failed to get similarities")


@router.put("/documents/{doc_id}")
async def index_document(
    doc_id: str,
    caller: CallerContext = Depends(get_caller),
    job: EmbeddingRefreshJob = Depends(get_refresh_job),
) -> dict:
    """
    Re-embed one document after it was created or edited.

    An embedding failure never fails the request; "indexed" reports the outcome.

    Raises:
        HTTPException 404: If the document is not in the caller's organization
    """
    try:
        docs = await asyncio.to_thread(job.documents.get_by_ids, caller.organization_id, [doc_id])
        if not docs:
            raise HTTPException(status_code=404, detail="Document not found")

        indexed = await asyncio.to_thread(job.index_document, caller.organization_id, docs[0])
        return {"doc_id": doc_id, "indexed": indexed}

    except HTTPException:
        raise
    except OrganizationNotFoundError:
        raise HTTPException(status_code=404, detail="Organization not found")
    except Exception:
        logger.exception(f"Failed to index document {doc_id}")
        raise HTTPException(status_code=500, detail="Failed to index document")


@router.delete("/documents/{doc_id}")
async def remove_document_embedding(
    doc_id: str,
    caller: CallerContext = Depends(get_caller),
    job: EmbeddingRefreshJob = Depends(get_refresh_job),
) -> dict:
    """Drop the stored embedding of a deleted document."""
    removed = await asyncio.to_thread(job.remove_document, caller.organization_id, doc_id)
    return {"doc_id": doc_id, "removed": removed}
