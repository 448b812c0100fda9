"""CRUD repositories for the clinic operations models."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.core.models import (
    Appointment,
    AppointmentStatus,
    ArticleDraft,
    AuditLog,
    ContractStatus,
    AvailabilityException,
    DraftReference,
    InsurancePolicy,
    Patient,
    PatientActivitySummary,
    PatientEngagementStatus,
    PatientEngagementStatusHistory,
    Payer,
    Provider,
    ProviderAvailability,
    ProviderPayerNetwork,
    SupervisionRelationship,
)

INACTIVE_APPOINTMENT_STATUSES = (AppointmentStatus.cancelled.value,)


def _apply_updates(obj, values: dict) -> None:
    for k, v in values.items():
        setattr(obj, k, v)


class ProviderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Provider:
        provider = Provider(**kwargs)
        self.session.add(provider)
        await self.session.flush()
        return provider

    async def get_by_id(self, provider_id: uuid.UUID) -> Optional[Provider]:
        return await self.session.get(Provider, provider_id)

    async def list_all(self, active_only: bool = False) -> Sequence[Provider]:
        stmt = select(Provider)
        if active_only:
            stmt = stmt.where(Provider.is_active.is_(True))
        stmt = stmt.order_by(Provider.last_name, Provider.first_name)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def search(self, query: str, limit: int = 50) -> Sequence[Provider]:
        pattern = f"%{query}%"
        stmt = (
            select(Provider)
            .where(or_(Provider.first_name.ilike(pattern), Provider.last_name.ilike(pattern)))
            .order_by(Provider.last_name, Provider.first_name)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update(self, provider_id: uuid.UUID, **kwargs) -> Optional[Provider]:
        provider = await self.get_by_id(provider_id)
        if not provider:
            return None
        _apply_updates(provider, kwargs)
        provider.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return provider

    async def deactivate(self, provider_id: uuid.UUID) -> Optional[Provider]:
        return await self.update(provider_id, is_active=False, is_bookable=False)


class PayerRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Payer:
        payer = Payer(**kwargs)
        self.session.add(payer)
        await self.session.flush()
        return payer

    async def get_by_id(self, payer_id: uuid.UUID) -> Optional[Payer]:
        return await self.session.get(Payer, payer_id)

    async def list_all(self, state: Optional[str] = None) -> Sequence[Payer]:
        stmt = select(Payer)
        if state:
            stmt = stmt.where(Payer.state == state)
        result = await self.session.execute(stmt.order_by(Payer.name))
        return result.scalars().all()

    async def update(self, payer_id: uuid.UUID, **kwargs) -> Optional[Payer]:
        payer = await self.get_by_id(payer_id)
        if not payer:
            return None
        _apply_updates(payer, kwargs)
        payer.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return payer


class ContractRepository:
    """Provider-payer network contracts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> ProviderPayerNetwork:
        contract = ProviderPayerNetwork(**kwargs)
        self.session.add(contract)
        await self.session.flush()
        return contract

    async def get_by_id(self, contract_id: uuid.UUID) -> Optional[ProviderPayerNetwork]:
        return await self.session.get(ProviderPayerNetwork, contract_id)

    async def list(
        self,
        payer_id: Optional[uuid.UUID] = None,
        provider_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> Sequence[ProviderPayerNetwork]:
        stmt = select(ProviderPayerNetwork)
        if payer_id is not None:
            stmt = stmt.where(ProviderPayerNetwork.payer_id == payer_id)
        if provider_id is not None:
            stmt = stmt.where(ProviderPayerNetwork.provider_id == provider_id)
        if status is not None:
            stmt = stmt.where(ProviderPayerNetwork.status == status)
        result = await self.session.execute(stmt.order_by(ProviderPayerNetwork.created_at))
        return result.scalars().all()

    async def list_in_network(
        self,
        payer_id: Optional[uuid.UUID] = None,
        provider_id: Optional[uuid.UUID] = None,
    ) -> Sequence[ProviderPayerNetwork]:
        return await self.list(payer_id=payer_id, provider_id=provider_id, status=ContractStatus.in_network.value)

    async def update(self, contract_id: uuid.UUID, **kwargs) -> Optional[ProviderPayerNetwork]:
        contract = await self.get_by_id(contract_id)
        if not contract:
            return None
        _apply_updates(contract, kwargs)
        contract.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return contract

    async def delete(self, contract_id: uuid.UUID) -> bool:
        contract = await self.get_by_id(contract_id)
        if not contract:
            return False
        await self.session.delete(contract)
        await self.session.flush()
        return True


class SupervisionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> SupervisionRelationship:
        rel = SupervisionRelationship(**kwargs)
        self.session.add(rel)
        await self.session.flush()
        await self.session.refresh(rel, attribute_names=["supervisor", "supervisee"])
        return rel

    async def get_by_id(self, relationship_id: uuid.UUID) -> Optional[SupervisionRelationship]:
        return await self.session.get(SupervisionRelationship, relationship_id)

    async def list_all(
        self, payer_id: Optional[uuid.UUID] = None, active_only: bool = False
    ) -> Sequence[SupervisionRelationship]:
        stmt = select(SupervisionRelationship)
        if payer_id is not None:
            stmt = stmt.where(SupervisionRelationship.payer_id == payer_id)
        if active_only:
            stmt = stmt.where(SupervisionRelationship.is_active.is_(True))
        result = await self.session.execute(stmt.order_by(SupervisionRelationship.created_at.desc()))
        return result.scalars().all()

    async def list_by_payer(
        self, payer_id: uuid.UUID, active_only: bool = True
    ) -> Sequence[SupervisionRelationship]:
        return await self.list_all(payer_id=payer_id, active_only=active_only)

    async def find_existing(
        self, supervisor_id: uuid.UUID, supervisee_id: uuid.UUID, payer_id: uuid.UUID
    ) -> Optional[SupervisionRelationship]:
        stmt = select(SupervisionRelationship).where(
            SupervisionRelationship.supervisor_provider_id == supervisor_id,
            SupervisionRelationship.supervisee_provider_id == supervisee_id,
            SupervisionRelationship.payer_id == payer_id,
            SupervisionRelationship.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update(self, relationship_id: uuid.UUID, **kwargs) -> Optional[SupervisionRelationship]:
        rel = await self.get_by_id(relationship_id)
        if not rel:
            return None
        _apply_updates(rel, kwargs)
        rel.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return rel

    async def deactivate(self, relationship_id: uuid.UUID) -> Optional[SupervisionRelationship]:
        return await self.update(relationship_id, is_active=False)


class AvailabilityRepository:
    """Weekly templates and date exceptions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_weekly(
        self, provider_id: uuid.UUID, recurring_only: bool = False
    ) -> Sequence[ProviderAvailability]:
        stmt = select(ProviderAvailability).where(ProviderAvailability.provider_id == provider_id)
        if recurring_only:
            stmt = stmt.where(ProviderAvailability.is_recurring.is_(True))
        stmt = stmt.order_by(ProviderAvailability.day_of_week, ProviderAvailability.start_time)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def replace_weekly(
        self, provider_id: uuid.UUID, blocks: Iterable[dict]
    ) -> Sequence[ProviderAvailability]:
        await self.session.execute(
            delete(ProviderAvailability).where(ProviderAvailability.provider_id == provider_id)
        )
        for block in blocks:
            self.session.add(ProviderAvailability(provider_id=provider_id, **block))
        await self.session.flush()
        return await self.get_weekly(provider_id)

    async def list_exceptions(
        self, provider_id: uuid.UUID, start: date, end: date
    ) -> Sequence[AvailabilityException]:
        """Exceptions overlapping ``[start, end]``, including multi-day ones."""
        stmt = (
            select(AvailabilityException)
            .where(
                AvailabilityException.provider_id == provider_id,
                AvailabilityException.exception_date <= end,
                or_(
                    and_(AvailabilityException.end_date.is_(None), AvailabilityException.exception_date >= start),
                    AvailabilityException.end_date >= start,
                ),
            )
            .order_by(AvailabilityException.exception_date)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_exception(self, **kwargs) -> AvailabilityException:
        exc = AvailabilityException(**kwargs)
        self.session.add(exc)
        await self.session.flush()
        return exc

    async def get_exception(self, exception_id: uuid.UUID) -> Optional[AvailabilityException]:
        return await self.session.get(AvailabilityException, exception_id)

    async def delete_exception(self, exception_id: uuid.UUID) -> bool:
        exc = await self.get_exception(exception_id)
        if not exc:
            return False
        await self.session.delete(exc)
        await self.session.flush()
        return True


class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Appointment:
        appt = Appointment(**kwargs)
        self.session.add(appt)
        await self.session.flush()
        return appt

    async def get_by_id(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        return await self.session.get(Appointment, appointment_id)

    async def list_by_provider_date_range(
        self, provider_id: uuid.UUID, start: date, end: date, include_cancelled: bool = False
    ) -> Sequence[Appointment]:
        stmt = select(Appointment).where(
            Appointment.provider_id == provider_id,
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end,
        )
        if not include_cancelled:
            stmt = stmt.where(Appointment.status.not_in(INACTIVE_APPOINTMENT_STATUSES))
        stmt = stmt.order_by(Appointment.appointment_date, Appointment.appointment_time)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_patient(self, patient_id: uuid.UUID) -> Sequence[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.patient_id == patient_id)
            .order_by(Appointment.appointment_date, Appointment.appointment_time)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_completed_by_provider(self, start: date, end: date) -> dict[uuid.UUID, int]:
        stmt = (
            select(Appointment.provider_id, func.count(Appointment.id))
            .where(
                Appointment.status == AppointmentStatus.completed.value,
                Appointment.appointment_date >= start,
                Appointment.appointment_date <= end,
            )
            .group_by(Appointment.provider_id)
        )
        result = await self.session.execute(stmt)
        return {provider_id: count for provider_id, count in result.all()}

    async def update(self, appointment_id: uuid.UUID, **kwargs) -> Optional[Appointment]:
        appt = await self.get_by_id(appointment_id)
        if not appt:
            return None
        _apply_updates(appt, kwargs)
        await self.session.flush()
        return appt


class PatientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Patient:
        patient = Patient(**kwargs)
        self.session.add(patient)
        await self.session.flush()
        return patient

    async def get_by_id(self, patient_id: uuid.UUID) -> Optional[Patient]:
        return await self.session.get(Patient, patient_id)


class InsurancePolicyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> InsurancePolicy:
        policy = InsurancePolicy(**kwargs)
        self.session.add(policy)
        await self.session.flush()
        return policy

    async def get_active_policy(
        self, patient_id: uuid.UUID, payer_id: uuid.UUID, on: date
    ) -> Optional[InsurancePolicy]:
        """Active policy for the patient and payer covering *on*."""
        stmt = select(InsurancePolicy).where(
            InsurancePolicy.patient_id == patient_id,
            InsurancePolicy.payer_id == payer_id,
            InsurancePolicy.is_active.is_(True),
            or_(InsurancePolicy.effective_date.is_(None), InsurancePolicy.effective_date <= on),
            or_(InsurancePolicy.termination_date.is_(None), InsurancePolicy.termination_date >= on),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()


class EngagementRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_current(self, patient_id: uuid.UUID) -> Optional[PatientEngagementStatus]:
        stmt = select(PatientEngagementStatus).where(PatientEngagementStatus.patient_id == patient_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, patient_id: uuid.UUID, **kwargs) -> PatientEngagementStatus:
        row = await self.get_current(patient_id)
        if row is None:
            row = PatientEngagementStatus(patient_id=patient_id, **kwargs)
            self.session.add(row)
        else:
            _apply_updates(row, kwargs)
            row.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return row

    async def add_history(self, **kwargs) -> PatientEngagementStatusHistory:
        entry = PatientEngagementStatusHistory(**kwargs)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_history(self, patient_id: uuid.UUID) -> Sequence[PatientEngagementStatusHistory]:
        stmt = (
            select(PatientEngagementStatusHistory)
            .where(PatientEngagementStatusHistory.patient_id == patient_id)
            .order_by(PatientEngagementStatusHistory.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def refresh_activity_summary(self, patient_id: uuid.UUID, today: date) -> PatientActivitySummary:
        """Recompute the roster roll-up for one patient."""
        current = await self.get_current(patient_id)
        appointments = await AppointmentRepository(self.session).list_by_patient(patient_id)
        live = [a for a in appointments if a.status not in INACTIVE_APPOINTMENT_STATUSES]
        past = [a.appointment_date for a in live if a.appointment_date <= today]
        upcoming = [a.appointment_date for a in live if a.appointment_date > today]

        summary = await self.session.get(PatientActivitySummary, patient_id)
        if summary is None:
            summary = PatientActivitySummary(patient_id=patient_id)
            self.session.add(summary)
        summary.engagement_status = current.status if current else "active"
        summary.last_seen_date = max(past) if past else None
        summary.next_appointment_date = min(upcoming) if upcoming else None
        summary.total_appointments = len(live)
        summary.refreshed_at = datetime.now(timezone.utc)
        await self.session.flush()
        return summary


class DraftRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> ArticleDraft:
        kwargs.setdefault("conversation", [])
        draft = ArticleDraft(**kwargs)
        self.session.add(draft)
        await self.session.flush()
        await self.session.refresh(draft, attribute_names=["references"])
        return draft

    async def get_by_id(self, draft_id: uuid.UUID) -> Optional[ArticleDraft]:
        return await self.session.get(ArticleDraft, draft_id)

    async def save(self, draft: ArticleDraft, **kwargs) -> ArticleDraft:
        _apply_updates(draft, kwargs)
        draft.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return draft

    async def replace_references(self, draft: ArticleDraft, references: Iterable[dict]) -> None:
        draft.references.clear()
        await self.session.flush()
        for ref in references:
            draft.references.append(DraftReference(**ref))
        await self.session.flush()


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        performed_by: Optional[str] = None,
        changes: Optional[dict] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            performed_by=performed_by,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_resource(self, resource_type: str, resource_id: str) -> Sequence[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == str(resource_id))
            .order_by(AuditLog.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
