"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.config import get_settings

app = FastAPI(
    title="PrimeStride Atlas",
    description="Semantic retrieval, embedding refresh and grounded answering over organization documents",
    version="0.1.0",
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint, with the models requests will use."""
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ATLAS_ENV,
            "embedding_model": settings.EMBEDDING_MODEL,
            "chat_model": settings.CHAT_MODEL,
        },
        status_code=200,
    )


# Embedding, search, chat and agent routes live under /v1
app.include_router(api_router, prefix="/v1", tags=["v1"])
