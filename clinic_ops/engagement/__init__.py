"""Patient engagement lifecycle."""

from clinic_ops.engagement.models import (
    ActorType,
    CurrentEngagement,
    EngagementStatus,
    StatusChangeRequest,
    StatusChangeResult,
)
from clinic_ops.engagement.service import EngagementService

__all__ = [
    "ActorType",
    "CurrentEngagement",
    "EngagementService",
    "EngagementStatus",
    "StatusChangeRequest",
    "StatusChangeResult",
]
