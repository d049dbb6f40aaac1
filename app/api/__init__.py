"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import agent, chat, embeddings, search

router = APIRouter()

# Embedding refresh, similar documents and similarity graph
router.include_router(embeddings.router, prefix="/embeddings", tags=["embeddings"])

# Keyword / semantic search
router.include_router(search.router, tags=["search"])

# Grounded chat (organization-wide and per project)
router.include_router(chat.router, tags=["chat"])

# Action-planning agent
router.include_router(agent.router, tags=["agent"])
