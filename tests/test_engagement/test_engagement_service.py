"""Tests for patient engagement-status transitions."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_ops.core.errors import NotFoundError, UpstreamError, ValidationFailedError
from clinic_ops.core.models import AuditLog, PatientActivitySummary
from clinic_ops.core.repository import EngagementRepository
from clinic_ops.engagement import (
    ActorType,
    EngagementService,
    EngagementStatus,
    StatusChangeRequest,
)
from clinic_ops.engagement.service import needs_admin_notification, resolve_actor_type

COORDINATOR = "coordinator@partner.example"


def _change(status, reason=None, **kw):
    return StatusChangeRequest(status=status, changed_by_email=COORDINATOR, change_reason=reason, **kw)


def _email(response=None):
    email = MagicMock()
    email.send_engagement_status_notification = AsyncMock(return_value=response)
    return email


class TestActorRules:
    def test_admin_always_admin(self):
        assert resolve_actor_type(ActorType.PROVIDER, is_admin=True) == ActorType.ADMIN

    def test_non_admin_cannot_claim_admin(self):
        assert resolve_actor_type(ActorType.ADMIN, is_admin=False) == ActorType.PARTNER_USER
        assert resolve_actor_type(None, is_admin=False) == ActorType.PARTNER_USER
        assert resolve_actor_type(ActorType.PROVIDER, is_admin=False) == ActorType.PROVIDER

    def test_notification_only_for_non_admin_leaving_active(self):
        assert needs_admin_notification(EngagementStatus.DISCHARGED, ActorType.PARTNER_USER)
        assert not needs_admin_notification(EngagementStatus.DISCHARGED, ActorType.ADMIN)
        assert not needs_admin_notification(EngagementStatus.ACTIVE, ActorType.PARTNER_USER)


class TestEngagementService:
    @pytest.mark.asyncio
    async def test_default_status_is_active(self, session, clinic):
        current = await EngagementService(session).get_status(clinic.patient.id)
        assert current.status == EngagementStatus.ACTIVE
        assert current.is_default

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, session, clinic):
        service = EngagementService(session)

        result = await service.change_status(clinic.patient.id, _change(EngagementStatus.ACTIVE))

        assert not result.changed
        assert await service.get_history(clinic.patient.id) == []
        assert (await service.get_status(clinic.patient.id)).is_default

    @pytest.mark.asyncio
    async def test_no_op_skips_reason_check(self, session, clinic):
        service = EngagementService(session)
        await service.change_status(clinic.patient.id, _change(EngagementStatus.DISCHARGED, "Completed care"))

        result = await service.change_status(clinic.patient.id, _change(EngagementStatus.DISCHARGED))
        assert not result.changed

    @pytest.mark.parametrize("reason", [None, "   "])
    @pytest.mark.asyncio
    async def test_reason_required_for_non_active(self, session, clinic, reason):
        with pytest.raises(ValidationFailedError) as exc:
            await EngagementService(session).change_status(
                clinic.patient.id, _change(EngagementStatus.UNRESPONSIVE, reason)
            )
        assert exc.value.details == {"field": "change_reason"}

    @pytest.mark.asyncio
    async def test_partner_change_is_flagged_and_recorded(self, session, clinic):
        service = EngagementService(session)

        result = await service.change_status(
            clinic.patient.id, _change(EngagementStatus.TRANSFERRED, "Moved out of state")
        )

        assert result.changed
        assert result.previous_status == EngagementStatus.ACTIVE
        assert result.patient_name == "Pat Lee"
        assert result.needs_admin_notification
        assert not result.notification_sent

        current = await service.get_status(clinic.patient.id)
        assert current.status == EngagementStatus.TRANSFERRED
        assert current.previous_status == EngagementStatus.ACTIVE

        [entry] = await service.get_history(clinic.patient.id)
        assert (entry.old_status, entry.new_status) == ("active", "transferred")
        assert entry.changed_by_type == "partner_user"
        assert entry.needs_notification

    @pytest.mark.asyncio
    async def test_admin_change_needs_no_notification(self, session, clinic):
        email = _email()
        result = await EngagementService(session, email).change_status(
            clinic.patient.id, _change(EngagementStatus.INACTIVE, "No contact"), is_admin=True
        )

        assert not result.needs_admin_notification
        email.send_engagement_status_notification.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notification_sent_marks_history(self, session, clinic):
        email = _email({"id": "msg-1"})
        service = EngagementService(session, email)

        result = await service.change_status(
            clinic.patient.id, _change(EngagementStatus.DISCHARGED, "Treatment complete")
        )

        assert result.notification_sent
        kwargs = email.send_engagement_status_notification.await_args.kwargs
        assert kwargs["new_status"] == "discharged"
        [entry] = await service.get_history(clinic.patient.id)
        assert entry.notification_sent

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_fail_change(self, session, clinic):
        email = MagicMock()
        email.send_engagement_status_notification = AsyncMock(side_effect=UpstreamError("down"))

        result = await EngagementService(session, email).change_status(
            clinic.patient.id, _change(EngagementStatus.DISCHARGED, "Treatment complete")
        )

        assert result.changed
        assert not result.notification_sent

    @pytest.mark.asyncio
    async def test_return_to_active_needs_no_reason(self, session, clinic):
        service = EngagementService(session)
        await service.change_status(clinic.patient.id, _change(EngagementStatus.UNRESPONSIVE, "No reply"))

        result = await service.change_status(clinic.patient.id, _change(EngagementStatus.ACTIVE))

        assert result.changed
        assert not result.needs_admin_notification
        assert len(await service.get_history(clinic.patient.id)) == 2

    @pytest.mark.asyncio
    async def test_activity_summary_refreshed(self, session, clinic):
        await EngagementService(session).change_status(
            clinic.patient.id, _change(EngagementStatus.DISCHARGED, "Treatment complete")
        )

        summary = await session.get(PatientActivitySummary, clinic.patient.id)
        assert summary.engagement_status == "discharged"
        assert summary.total_appointments == 0

    @pytest.mark.asyncio
    async def test_failed_summary_refresh_keeps_change(self, session, clinic, monkeypatch):
        async def broken_refresh(repo, patient_id, today):
            repo.session.add(AuditLog(action=None, resource_type="patient", resource_id=str(patient_id)))
            await repo.session.flush()

        monkeypatch.setattr(EngagementRepository, "refresh_activity_summary", broken_refresh)
        service = EngagementService(session)

        result = await service.change_status(
            clinic.patient.id, _change(EngagementStatus.DISCHARGED, "Treatment complete")
        )
        await session.commit()

        assert result.changed
        assert (await service.get_status(clinic.patient.id)).status == EngagementStatus.DISCHARGED
        assert len(await service.get_history(clinic.patient.id)) == 1
        assert await session.get(PatientActivitySummary, clinic.patient.id) is None

    @pytest.mark.asyncio
    async def test_unknown_patient(self, session, clinic):
        with pytest.raises(NotFoundError):
            await EngagementService(session).get_status(uuid.uuid4())
