"""Patient engagement-status transitions.

Any status may move to any other. A same-status request is a no-op, a
non-active target needs a reason, and a non-admin moving a patient out of
``active`` flags the change for admin notification.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.core.errors import ClinicOpsError, NotFoundError, ValidationFailedError
from clinic_ops.core.repository import EngagementRepository, PatientRepository
from clinic_ops.engagement.models import (
    ActorType,
    CurrentEngagement,
    EngagementStatus,
    HistoryEntry,
    StatusChangeRequest,
    StatusChangeResult,
)
from clinic_ops.integrations.email import EmailService

logger = logging.getLogger(__name__)


def resolve_actor_type(requested: Optional[ActorType], is_admin: bool) -> ActorType:
    """Allow-listed admins are always ``admin``; others default to ``partner_user``."""
    if is_admin:
        return ActorType.ADMIN
    if requested is None or requested == ActorType.ADMIN:
        return ActorType.PARTNER_USER
    return requested


def needs_admin_notification(new_status: EngagementStatus, actor: ActorType) -> bool:
    return new_status != EngagementStatus.ACTIVE and actor != ActorType.ADMIN


class EngagementService:
    def __init__(self, session: AsyncSession, email: Optional[EmailService] = None):
        self.session = session
        self.repo = EngagementRepository(session)
        self.patients = PatientRepository(session)
        self.email = email

    async def _require_patient(self, patient_id: uuid.UUID):
        patient = await self.patients.get_by_id(patient_id)
        if patient is None:
            raise NotFoundError("Patient not found", details={"patient_id": str(patient_id)})
        return patient

    async def get_status(self, patient_id: uuid.UUID) -> CurrentEngagement:
        await self._require_patient(patient_id)
        row = await self.repo.get_current(patient_id)
        if row is None:
            return CurrentEngagement(
                patient_id=patient_id, status=EngagementStatus.ACTIVE, is_default=True
            )
        return CurrentEngagement(
            patient_id=patient_id,
            status=EngagementStatus(row.status),
            effective_date=row.effective_date,
            changed_by_email=row.changed_by_email,
            change_reason=row.change_reason,
            previous_status=EngagementStatus(row.previous_status) if row.previous_status else None,
        )

    async def get_history(self, patient_id: uuid.UUID) -> list[HistoryEntry]:
        await self._require_patient(patient_id)
        rows = await self.repo.list_history(patient_id)
        return [HistoryEntry.model_validate(r, from_attributes=True) for r in rows]

    async def change_status(
        self, patient_id: uuid.UUID, request: StatusChangeRequest, is_admin: bool = False
    ) -> StatusChangeResult:
        patient = await self._require_patient(patient_id)

        current = await self.repo.get_current(patient_id)
        previous = EngagementStatus(current.status) if current else EngagementStatus.ACTIVE
        if previous == request.status:
            return StatusChangeResult(patient_id=patient_id, changed=False, status=request.status)
        if request.status != EngagementStatus.ACTIVE and not (request.change_reason or "").strip():
            raise ValidationFailedError(
                "change_reason is required when moving a patient out of active",
                details={"field": "change_reason"},
            )

        actor = resolve_actor_type(request.changed_by_type, is_admin)
        notify = needs_admin_notification(request.status, actor)
        effective = request.effective_date or datetime.now(timezone.utc)

        row = await self.repo.upsert(
            patient_id,
            status=request.status.value,
            effective_date=effective,
            changed_by_email=request.changed_by_email,
            change_reason=request.change_reason,
            previous_status=previous.value,
        )
        history = await self.repo.add_history(
            patient_id=patient_id,
            engagement_status_id=row.id,
            old_status=previous.value,
            new_status=request.status.value,
            effective_date=effective,
            changed_by_email=request.changed_by_email,
            changed_by_type=actor.value,
            change_reason=request.change_reason,
            needs_notification=notify,
        )
        logger.info(
            "Patient %s engagement %s -> %s by %s (%s)",
            patient_id, previous.value, request.status.value, request.changed_by_email, actor.value,
        )

        try:
            async with self.session.begin_nested():
                await self.repo.refresh_activity_summary(patient_id, date.today())
        except Exception as e:
            logger.error("Failed to refresh patient activity summary: %s", e)

        sent = False
        if notify and self.email is not None:
            try:
                response = await self.email.send_engagement_status_notification(
                    patient_name=patient.full_name,
                    previous_status=previous.value,
                    new_status=request.status.value,
                    changed_by=request.changed_by_email,
                    reason=request.change_reason,
                )
            except ClinicOpsError as e:
                logger.warning("Engagement notification not sent: %s", e.message)
            else:
                if response is not None:
                    history.notification_sent = True
                    history.notification_sent_at = datetime.now(timezone.utc)
                    await self.session.flush()
                    sent = True

        return StatusChangeResult(
            patient_id=patient_id,
            changed=True,
            status=request.status,
            previous_status=previous,
            patient_name=patient.full_name,
            effective_date=effective,
            changed_by=request.changed_by_email,
            needs_admin_notification=notify,
            notification_sent=sent,
        )
