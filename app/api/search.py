"""API endpoint for document search."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.dependencies import CallerContext, get_caller, get_retrieval_engine
from app.core.errors import ProviderError
from app.core.logging import get_logger
from app.core.retrieval import RetrievalEngine
from app.core.schemas_retrieval import RetrievalMode, RetrievalOutcome

logger = get_logger(__name__)

router = APIRouter()


@router.get("/search", response_model=RetrievalOutcome)
async def search_documents(
    q: str = Query("", description="Query text"),
    mode: RetrievalMode = Query(RetrievalMode.KEYWORD, description="keyword or semantic"),
    limit: int | None = Query(None, ge=1, le=100, description="Maximum results"),
    caller: CallerContext = Depends(get_caller),
    retrieval: RetrievalEngine = Depends(get_retrieval_engine),
) -> RetrievalOutcome:
    """
    Search the caller's organization.

    Semantic requests fall back to keyword ranking when nothing is embedded yet;
    mode_used in the response says which strategy answered.

    Raises:
        HTTPException 502: If the query embedding fails
        HTTPException 500: If search fails unexpectedly
    """
    try:
        return await asyncio.to_thread(
            lambda: retrieval.search(caller.organization_id, q, mode, limit=limit)
        )

    except ProviderError:
        logger.exception("Query embedding failed during search")
        raise HTTPException(status_code=502, detail="Search is temporarily unavailable")
    except Exception:
        logger.exception(f"Search failed for organization {caller.organization_id}")
        raise HTTPException(status_code=500, detail="Search failed")
