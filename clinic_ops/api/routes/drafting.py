"""Article drafting assistant endpoints (admin only)."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.audit import record_admin_action
from clinic_ops.api.dependencies import get_llm, require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.drafting import ChatRequest, ChatResponse, DraftingService, DraftView
from clinic_ops.llm.base import BaseLLM

router = APIRouter()


@router.post("/chat", response_model=ApiSuccess[ChatResponse])
async def drafting_chat(
    body: ChatRequest,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    llm: Optional[BaseLLM] = Depends(get_llm),
):
    """Send one message to the drafting assistant, creating a draft when none is given."""
    response = await DraftingService(db, llm).chat(body.message, body.draft_id)
    await record_admin_action(
        db, request, admin, "chat", "article_draft", response.draft_id,
        changes={"status": response.draft.status, "title": response.draft.title},
    )
    return ApiSuccess(data=response)


@router.get("/drafts/{draft_id}", response_model=ApiSuccess[DraftView])
async def get_draft(
    draft_id: uuid.UUID,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    draft = await DraftingService(db, None).get_draft(draft_id)
    return ApiSuccess(data=draft)
