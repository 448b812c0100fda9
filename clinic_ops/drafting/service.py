"""Conversational article drafting backed by Claude."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.core.errors import ClinicOpsError, NotFoundError, UpstreamError
from clinic_ops.core.models import ArticleDraft
from clinic_ops.core.repository import DraftRepository
from clinic_ops.drafting.models import (
    ArticleReference,
    ChatResponse,
    ConversationMessage,
    DraftView,
    GeneratedArticle,
)
from clinic_ops.drafting.prompts import build_system_prompt
from clinic_ops.llm.base import BaseLLM, LLMError, Message, MessageRole

logger = logging.getLogger(__name__)

TOOL_NAME = "submit_article_draft"
TOOL_DESCRIPTION = "Submit the current article draft together with your reply to the author."
MAX_TOKENS = 8192

_MERGED_FIELDS = ("title", "slug", "excerpt", "content", "key_takeaway", "series")


def draft_to_view(draft: ArticleDraft) -> DraftView:
    return DraftView(
        id=draft.id,
        status=draft.status,
        title=draft.title,
        slug=draft.slug,
        excerpt=draft.excerpt,
        key_takeaway=draft.key_takeaway,
        content=draft.content,
        series=draft.series,
        topics=draft.topics or [],
        conversation=[ConversationMessage.model_validate(m) for m in draft.conversation or []],
        references=[ArticleReference.model_validate(r, from_attributes=True) for r in draft.references],
        updated_at=draft.updated_at,
    )


def merge_article_fields(draft: ArticleDraft, article: GeneratedArticle) -> dict:
    """Non-empty article fields win; empty ones keep the draft's value."""
    updates = {}
    for name in _MERGED_FIELDS:
        value = getattr(article, name)
        updates[name] = value or getattr(draft, name)
    updates["topics"] = article.topics or draft.topics
    if article.ready:
        updates["status"] = "ready"
    return updates


class DraftingService:
    def __init__(self, session: AsyncSession, llm: Optional[BaseLLM]):
        self.session = session
        self.llm = llm
        self.drafts = DraftRepository(session)

    async def get_draft(self, draft_id: uuid.UUID) -> DraftView:
        draft = await self.drafts.get_by_id(draft_id)
        if draft is None:
            raise NotFoundError("Draft not found", details={"draft_id": str(draft_id)})
        return draft_to_view(draft)

    async def chat(self, message: str, draft_id: Optional[uuid.UUID] = None) -> ChatResponse:
        if self.llm is None:
            raise ClinicOpsError("ANTHROPIC_API_KEY not configured", code="LLM_NOT_CONFIGURED")

        if draft_id is not None:
            draft = await self.drafts.get_by_id(draft_id)
            if draft is None:
                raise NotFoundError("Draft not found", details={"draft_id": str(draft_id)})
        else:
            draft = await self.drafts.create(status="drafting")

        conversation = list(draft.conversation or [])
        conversation.append({
            "role": "user",
            "content": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

        messages = [Message(role=MessageRole.SYSTEM, content=build_system_prompt(draft))]
        messages += [Message(role=MessageRole(m["role"]), content=m["content"]) for m in conversation]

        try:
            result = await self.llm.complete_tool(
                messages,
                GeneratedArticle,
                tool_name=TOOL_NAME,
                tool_description=TOOL_DESCRIPTION,
                max_tokens=MAX_TOKENS,
            )
        except LLMError as e:
            logger.error("Drafting call failed for draft %s: %s", draft.id, e)
            raise UpstreamError(f"Article generation failed: {e}", code="LLM_ERROR") from e

        article = result.data
        reply = article.reply or result.text
        conversation.append({
            "role": "assistant",
            "content": reply,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

        await self.drafts.save(draft, conversation=conversation, **merge_article_fields(draft, article))
        if article.references:
            await self.drafts.replace_references(
                draft, [r.model_dump() for r in article.references]
            )
        logger.info(
            "Draft %s updated: %d chars, %d reference(s), %d output tokens",
            draft.id, len(draft.content or ""), len(draft.references), result.usage.get("output_tokens", 0),
        )
        return ChatResponse(
            draft_id=draft.id, message=reply, article=article, draft=draft_to_view(draft)
        )
