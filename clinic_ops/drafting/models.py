"""Pydantic models for the article drafting assistant."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Series = Literal["off-label", "clinical-wisdom", "literature-renaissance"]


class ArticleReference(BaseModel):
    citation_key: str = Field(description="Short key such as 'hori2025'")
    authors: Optional[str] = None
    title: Optional[str] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    pmid: Optional[str] = None
    url: Optional[str] = None


class GeneratedArticle(BaseModel):
    """The article state the model submits on every turn."""

    reply: str = Field(
        description="Conversational message to the author: questions, explanations, suggestions"
    )
    title: str = ""
    slug: str = ""
    excerpt: str = Field(default="", description="150-160 character excerpt for SEO")
    key_takeaway: str = Field(
        default="", description="One specific, citable sentence with numbers or study names"
    )
    content: str = Field(
        default="", description="Full article as semantic HTML (p, h2, h3, strong, em, blockquote, ul, ol, li)"
    )
    series: Optional[Series] = None
    topics: list[str] = []
    references: list[ArticleReference] = []
    ready: bool = Field(default=False, description="True once the author is happy with the draft")


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


class ChatRequest(BaseModel):
    draft_id: Optional[uuid.UUID] = None
    message: str = Field(min_length=1)


class DraftView(BaseModel):
    id: uuid.UUID
    status: str
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    key_takeaway: Optional[str] = None
    content: Optional[str] = None
    series: Optional[str] = None
    topics: list[str] = []
    conversation: list[ConversationMessage] = []
    references: list[ArticleReference] = []
    updated_at: Optional[datetime] = None


class ChatResponse(BaseModel):
    draft_id: uuid.UUID
    message: str
    article: GeneratedArticle
    draft: DraftView
