"""Article drafting assistant."""

from clinic_ops.drafting.models import ChatRequest, ChatResponse, DraftView, GeneratedArticle
from clinic_ops.drafting.service import DraftingService

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "DraftView",
    "DraftingService",
    "GeneratedArticle",
]
