"""AI chat route: charge, dispatch, refund on failure."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from sonic.ai.gemini import GeminiClient, get_client
from sonic.auth import get_current_user
from sonic.conversation.dispatcher import ResponseDispatcher, last_user_message
from sonic.conversation.models import ChatRequest, ChatResponse
from sonic.database import get_db
from sonic.errors import TokenQuotaExceeded
from sonic.models_db import User
from sonic.services.token_ledger import CHAT_TOKEN_COST, ChargeResult, charge, refund

logger = logging.getLogger(__name__)

router = APIRouter()


def get_llm() -> GeminiClient:
    return get_client()


def get_project_store(request: Request):
    return request.app.state.project_store


@router.post("/ai/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store=Depends(get_project_store),
    llm=Depends(get_llm),
):
    """Answer one chat turn, generating or editing the project as needed."""
    if last_user_message(body.messages) is None:
        raise HTTPException(status_code=400, detail="No user message found")

    if charge(db, current_user, CHAT_TOKEN_COST) == ChargeResult.INSUFFICIENT:
        raise TokenQuotaExceeded(current_user.tokens, CHAT_TOKEN_COST)

    dispatcher = ResponseDispatcher(store, llm)
    try:
        result = await dispatcher.handle(body.conversation_id, current_user.id, body.messages)
    except Exception:
        # The charge only stands for a stored answer
        refund(db, current_user, CHAT_TOKEN_COST)
        raise

    return ChatResponse(data=result)
