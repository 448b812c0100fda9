"""Pydantic models for patient engagement status."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EngagementStatus(str, Enum):
    ACTIVE = "active"
    UNRESPONSIVE = "unresponsive"
    DISCHARGED = "discharged"
    TRANSFERRED = "transferred"
    INACTIVE = "inactive"
    DECEASED = "deceased"


class ActorType(str, Enum):
    """Who made a status change."""

    ADMIN = "admin"
    PROVIDER = "provider"
    PARTNER_USER = "partner_user"
    SYSTEM = "system"


class StatusChangeRequest(BaseModel):
    status: EngagementStatus
    changed_by_email: str = Field(min_length=3)
    change_reason: Optional[str] = None
    effective_date: Optional[datetime] = None
    changed_by_type: Optional[ActorType] = None


class CurrentEngagement(BaseModel):
    patient_id: uuid.UUID
    status: EngagementStatus
    effective_date: Optional[datetime] = None
    changed_by_email: Optional[str] = None
    change_reason: Optional[str] = None
    previous_status: Optional[EngagementStatus] = None
    is_default: bool = False


class StatusChangeResult(BaseModel):
    """Outcome of a status change; ``changed`` is False for a same-status no-op."""

    patient_id: uuid.UUID
    changed: bool
    status: EngagementStatus
    previous_status: Optional[EngagementStatus] = None
    patient_name: Optional[str] = None
    effective_date: Optional[datetime] = None
    changed_by: Optional[str] = None
    needs_admin_notification: bool = False
    notification_sent: bool = False


class HistoryEntry(BaseModel):
    old_status: Optional[str] = None
    new_status: str
    effective_date: datetime
    changed_by_email: Optional[str] = None
    changed_by_type: Optional[str] = None
    change_reason: Optional[str] = None
    needs_notification: bool = False
    notification_sent: bool = False
    created_at: Optional[datetime] = None
