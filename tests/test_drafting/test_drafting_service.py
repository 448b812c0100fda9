"""Tests for the article drafting assistant."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_ops.core.errors import ClinicOpsError, NotFoundError, UpstreamError
from clinic_ops.drafting import DraftingService, GeneratedArticle
from clinic_ops.drafting.models import ArticleReference
from clinic_ops.drafting.prompts import DRAFTING_SYSTEM_PROMPT, build_system_prompt
from clinic_ops.drafting.service import TOOL_NAME, merge_article_fields
from clinic_ops.llm.base import LLMValidationError, MessageRole, ToolResult


def _article(**kw):
    values = dict(
        reply="Here is a first pass. Which audience are you writing for?",
        title="Lithium in Late Life",
        slug="lithium-in-late-life",
        content="<p>Draft body</p>",
        series="clinical-wisdom",
        topics=["lithium", "geriatrics"],
        references=[ArticleReference(citation_key="hori2025", title="Lithium and ageing", year=2025)],
    )
    values.update(kw)
    return GeneratedArticle(**values)


def _llm(*articles):
    llm = MagicMock()
    llm.complete_tool = AsyncMock(side_effect=[
        ToolResult(data=a, text="", model="claude-test", usage={"output_tokens": 42}) for a in articles
    ])
    return llm


class TestChat:
    @pytest.mark.asyncio
    async def test_new_draft_created_and_populated(self, session):
        llm = _llm(_article())

        response = await DraftingService(session, llm).chat("Write about lithium in older adults")

        assert response.message.startswith("Here is a first pass")
        assert response.draft.title == "Lithium in Late Life"
        assert response.draft.status == "drafting"
        assert [m.role for m in response.draft.conversation] == ["user", "assistant"]
        assert [r.citation_key for r in response.draft.references] == ["hori2025"]

        kwargs = llm.complete_tool.await_args.kwargs
        assert kwargs["tool_name"] == TOOL_NAME
        messages = llm.complete_tool.await_args.args[0]
        assert messages[0].role == MessageRole.SYSTEM
        assert messages[-1].content == "Write about lithium in older adults"

    @pytest.mark.asyncio
    async def test_follow_up_keeps_fields_and_replaces_references(self, session):
        llm = _llm(
            _article(),
            _article(
                reply="Tightened the intro.",
                title="",
                content="<p>Revised body</p>",
                references=[ArticleReference(citation_key="smith2024", year=2024)],
                ready=True,
            ),
        )
        service = DraftingService(session, llm)
        first = await service.chat("Start a draft")

        second = await service.chat("Tighten the intro", draft_id=first.draft_id)

        assert second.draft_id == first.draft_id
        assert second.draft.title == "Lithium in Late Life"
        assert second.draft.content == "<p>Revised body</p>"
        assert second.draft.status == "ready"
        assert [r.citation_key for r in second.draft.references] == ["smith2024"]
        assert len(second.draft.conversation) == 4

        history = llm.complete_tool.await_args.args[0]
        assert [m.role for m in history[1:]] == [
            MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER,
        ]

    @pytest.mark.asyncio
    async def test_reply_falls_back_to_prose(self, session):
        llm = MagicMock()
        llm.complete_tool = AsyncMock(return_value=ToolResult(
            data=_article(reply=""), text="Prose outside the tool", model="claude-test",
        ))
        response = await DraftingService(session, llm).chat("Hello")
        assert response.message == "Prose outside the tool"

    @pytest.mark.asyncio
    async def test_without_llm(self, session):
        with pytest.raises(ClinicOpsError) as exc:
            await DraftingService(session, None).chat("Hello")
        assert exc.value.code == "LLM_NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_unknown_draft(self, session):
        with pytest.raises(NotFoundError):
            await DraftingService(session, _llm(_article())).chat("Hello", draft_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_llm_failure_becomes_upstream_error(self, session):
        llm = MagicMock()
        llm.complete_tool = AsyncMock(side_effect=LLMValidationError("Model did not call the tool"))
        with pytest.raises(UpstreamError) as exc:
            await DraftingService(session, llm).chat("Hello")
        assert exc.value.code == "LLM_ERROR"


@pytest.mark.asyncio
async def test_get_draft(session):
    service = DraftingService(session, _llm(_article()))
    created = await service.chat("Start")

    view = await service.get_draft(created.draft_id)
    assert view.slug == "lithium-in-late-life"

    with pytest.raises(NotFoundError):
        await service.get_draft(uuid.uuid4())


def test_merge_keeps_existing_values_for_empty_fields():
    draft = SimpleNamespace(title="Old title", slug="old", excerpt="", content="<p>old</p>",
                            key_takeaway=None, series=None, topics=["a"])
    updates = merge_article_fields(draft, GeneratedArticle(reply="ok", content="<p>new</p>"))
    assert updates["title"] == "Old title"
    assert updates["content"] == "<p>new</p>"
    assert updates["topics"] == ["a"]
    assert "status" not in updates


def test_system_prompt_includes_current_draft():
    empty = SimpleNamespace(title=None, content=None)
    assert build_system_prompt(empty) == DRAFTING_SYSTEM_PROMPT

    draft = SimpleNamespace(
        title="Working Title", content="<p>Body</p>", series="off-label", key_takeaway=None, excerpt=None
    )
    prompt = build_system_prompt(draft)
    assert "Title: Working Title" in prompt
    assert "Series: off-label" in prompt
    assert "Key takeaway" not in prompt
