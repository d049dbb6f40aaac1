"""API endpoints for grounded chat over organization and project documents."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.dependencies import CallerContext, get_answerer, get_caller, get_project_store
from app.core.errors import AnswerFailedError
from app.core.grounded_answer import GroundedAnswerer
from app.core.logging import get_logger
from app.core.schemas_retrieval import ChatTurn, GroundedAnswer
from app.db.stores import ProjectStore

logger = get_logger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    message: str = Field(..., description="User question")
    conversation_history: list[ChatTurn] = Field(default_factory=list)


class ProjectChatRequest(ChatRequest):
    project_id: str = Field(..., description="Project whose documents ground the answer")


@router.post("/chat", response_model=GroundedAnswer)
async def chat(
    request: ChatRequest,
    caller: CallerContext = Depends(get_caller),
    answerer: GroundedAnswerer = Depends(get_answerer),
) -> GroundedAnswer:
    """
    Answer a question from the organization's most relevant documents.

    Raises:
        HTTPException 400: If the message is empty
        HTTPException 502: If the model provider fails
        HTTPException 500: If answering fails unexpectedly
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        return await asyncio.to_thread(
            answerer.answer,
            caller.organization_id,
            request.message,
            request.conversation_history,
        )

    except AnswerFailedError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception(f"Chat failed for organization {caller.organization_id}")
        raise HTTPException(status_code=500, detail="Failed to process chat message")


@router.post("/projects/chat", response_model=GroundedAnswer)
async def project_chat(
    request: ProjectChatRequest,
    caller: CallerContext = Depends(get_caller),
    answerer: GroundedAnswerer = Depends(get_answerer),
    projects: ProjectStore = Depends(get_project_store),
) -> GroundedAnswer:
    """
    Answer a question from every document of one project.

    Raises:
        HTTPException 400: If the message is empty
        HTTPException 404: If the project is not in the caller's organization
        HTTPException 502: If the model provider fails
        HTTPException 500: If answering fails unexpectedly
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        project = await asyncio.to_thread(
            projects.get_project, caller.organization_id, request.project_id
        )
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")

        doc_ids = await asyncio.to_thread(projects.list_document_ids, request.project_id)

        return await asyncio.to_thread(
            answerer.answer_project,
            caller.organization_id,
            project,
            doc_ids,
            request.message,
            request.conversation_history,
        )

    except HTTPException:
        raise
    except AnswerFailedError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception(f"Project chat failed for project {request.project_id}")
        raise HTTPException(status_code=500, detail="Failed to process message")
