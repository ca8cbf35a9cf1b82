"""
Chat routes for ContractLens.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from contractlens.database import get_db
from contractlens.routes.analyses import get_owned_analysis
from contractlens.routes.auth import CurrentUser, get_current_user
from contractlens.services.chat_service import ChatService

# Configure logging
logger = logging.getLogger(__name__)

# Initialize router
router = APIRouter()

_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


class ChatRequest(BaseModel):
    """Chat message request model."""
    message: str = Field(min_length=1)


@router.post("/{analysis_id}")
async def send_message(
    analysis_id: int,
    chat_request: ChatRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Ask a question about an analysis.

    Returns:
        StreamingResponse: ``text/event-stream`` of ``{"content": ...}``
            frames followed by ``[DONE]``
    """
    if not chat_request.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    analysis = get_owned_analysis(db, analysis_id, current_user.id)
    frames = chat_service.stream_reply(db, analysis, current_user.id, chat_request.message)

    return StreamingResponse(
        frames,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/{analysis_id}/messages")
async def get_messages(
    analysis_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Get the caller's conversation about an analysis."""
    get_owned_analysis(db, analysis_id, current_user.id)
    return chat_service.get_messages(db, analysis_id, current_user.id)


@router.delete("/{analysis_id}/messages")
async def clear_messages(
    analysis_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Delete the caller's conversation about an analysis."""
    get_owned_analysis(db, analysis_id, current_user.id)
    chat_service.clear_conversation(db, analysis_id, current_user.id)
    return {"success": True, "message": "Chat history cleared successfully"}
