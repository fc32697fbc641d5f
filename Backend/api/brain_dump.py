"""FastAPI route for brain-dump turns."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from decision.turn_handler import TurnHandler
from tools.models import BrainDumpResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["brain-dump"])


class BrainDumpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")


def get_turn_handler(request: Request) -> TurnHandler:
    handler = getattr(request.app.state, "turn_handler", None)
    if handler is None:
        raise HTTPException(status_code=503, detail="Turn handler is not configured")
    return handler


@router.post("/brain-dump", response_model=BrainDumpResponse, response_model_by_alias=True)
async def brain_dump(req: BrainDumpRequest, handler: TurnHandler = Depends(get_turn_handler)):
    text = (req.text or "").strip()
    user_id = (req.user_id or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="text is required")
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")

    try:
        turn = await handler.handle(user_id, text)
    except Exception as e:
        logger.exception("[%s] Brain-dump turn failed", user_id)
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)[:200]}")

    return BrainDumpResponse(
        ok=True,
        actions=[a.to_dict() for a in turn.plan.actions],
        results=turn.results,
        followup_pending=turn.followup_pending,
    )
