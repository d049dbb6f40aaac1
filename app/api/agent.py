"""API endpoint for the action-planning agent."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.dependencies import CallerContext, get_agent_planner, get_caller
from app.core.agent_planner import AgentPlanner
from app.core.errors import AnswerFailedError
from app.core.logging import get_logger
from app.core.schemas_retrieval import AgentResult, ChatTurn

logger = get_logger(__name__)

router = APIRouter()


class AgentRequest(BaseModel):
    message: str = Field(..., description="Instruction for the agent")
    history: list[ChatTurn] = Field(default_factory=list)


@router.post("/agent", response_model=AgentResult)
async def run_agent(
    request: AgentRequest,
    caller: CallerContext = Depends(get_caller),
    planner: AgentPlanner = Depends(get_agent_planner),
) -> AgentResult:
    """
    Plan and execute actions for one instruction.

    Raises:
        HTTPException 400: If the message is empty
        HTTPException 502: If the planning call fails
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        return await asyncio.to_thread(
            planner.run, caller.organization_id, request.message, request.history
        )

    except AnswerFailedError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception(f"Agent run failed for organization {caller.organization_id}")
        raise HTTPException(status_code=500, detail="Agent failed")
