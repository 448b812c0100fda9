"""SQLAlchemy 2.0 async models for the clinic operations schema."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class ExceptionType(str, enum.Enum):
    """Kinds of override applied to a provider's weekly template."""
    unavailable = "unavailable"
    custom_hours = "custom_hours"
    partial_block = "partial_block"
    vacation = "vacation"
    recurring_change = "recurring_change"


class ContractStatus(str, enum.Enum):
    in_network = "in_network"
    out_of_network = "out_of_network"
    pending = "pending"


class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class Base(DeclarativeBase):
    pass


class Provider(Base):
    __tablename__ = "providers"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str | None] = mapped_column(String(50))  # Resident, Attending, Psychiatrist, ...
    title: Mapped[str | None] = mapped_column(String(100))
    npi: Mapped[str | None] = mapped_column(String(10))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_bookable: Mapped[bool] = mapped_column(Boolean, default=True)
    accepts_new_patients: Mapped[bool] = mapped_column(Boolean, default=True)
    telehealth_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    languages: Mapped[list | None] = mapped_column(JSON)
    pay_rate_cents: Mapped[int | None] = mapped_column(Integer)
    intakeq_practitioner_id: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    availability: Mapped[list[ProviderAvailability]] = relationship(back_populates="provider", lazy="selectin")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    __table_args__ = (
        Index("ix_providers_last_name", "last_name"),
        Index("ix_providers_email", "email"),
    )


class Payer(Base):
    __tablename__ = "payers"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    payer_type: Mapped[str | None] = mapped_column(String(50))
    state: Mapped[str | None] = mapped_column(String(2))
    status_code: Mapped[str | None] = mapped_column(String(30))  # approved, pending, denied, ...
    effective_date: Mapped[date | None] = mapped_column(Date)
    requires_attending: Mapped[bool] = mapped_column(Boolean, default=False)
    allows_supervised: Mapped[bool] = mapped_column(Boolean, default=True)
    intakeq_service_id: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_payers_name", "name"),
    )


class ProviderPayerNetwork(Base):
    """Direct credentialing contract between a provider and a payer."""

    __tablename__ = "provider_payer_networks"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    provider_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    payer_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("payers.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ContractStatus.in_network.value)
    effective_date: Mapped[date | None] = mapped_column(Date)
    expiration_date: Mapped[date | None] = mapped_column(Date)
    # Explicit effective range; upper bound is exclusive, None means open-ended.
    effective_range_start: Mapped[date | None] = mapped_column(Date)
    effective_range_end: Mapped[date | None] = mapped_column(Date)
    bookable_from_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    provider: Mapped[Provider] = relationship(lazy="selectin")
    payer: Mapped[Payer] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_ppn_payer_id", "payer_id"),
        Index("ix_ppn_provider_id", "provider_id"),
    )


class SupervisionRelationship(Base):
    __tablename__ = "supervision_relationships"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    supervisor_provider_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    supervisee_provider_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    payer_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("payers.id", ondelete="CASCADE"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    supervisor: Mapped[Provider] = relationship(foreign_keys=[supervisor_provider_id], lazy="selectin")
    supervisee: Mapped[Provider] = relationship(foreign_keys=[supervisee_provider_id], lazy="selectin")

    __table_args__ = (
        CheckConstraint("supervisor_provider_id <> supervisee_provider_id", name="no_self_supervision"),
        Index("ix_supervision_payer_id", "payer_id"),
    )


class ProviderAvailability(Base):
    """One weekly time block. day_of_week follows 0=Sunday..6=Saturday."""

    __tablename__ = "provider_availability"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    provider_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=True)

    provider: Mapped[Provider] = relationship(back_populates="availability")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="valid_day_of_week"),
        Index("ix_provider_availability_provider_day", "provider_id", "day_of_week"),
    )


class AvailabilityException(Base):
    __tablename__ = "availability_exceptions"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    provider_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    exception_type: Mapped[str] = mapped_column(String(30), nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time)
    end_time: Mapped[time | None] = mapped_column(Time)
    note: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_availability_exceptions_provider_date", "provider_id", "exception_date"),
    )


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    intakeq_client_id: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class InsurancePolicy(Base):
    __tablename__ = "insurance_policies"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    payer_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("payers.id", ondelete="CASCADE"), nullable=False)
    member_id: Mapped[str] = mapped_column(String(100), nullable=False)
    group_number: Mapped[str | None] = mapped_column(String(100))
    effective_date: Mapped[date | None] = mapped_column(Date)
    termination_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("ix_insurance_policies_patient_payer", "patient_id", "payer_id"),
    )


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID | None] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="SET NULL"))
    provider_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)
    payer_id: Mapped[uuid.UUID | None] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("payers.id", ondelete="SET NULL"))
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)
    status: Mapped[str] = mapped_column(String(20), default=AppointmentStatus.scheduled.value)
    network_status: Mapped[str | None] = mapped_column(String(20))  # in_network, supervised
    billing_provider_id: Mapped[uuid.UUID | None] = mapped_column(PG_UUID(as_uuid=True))
    rendering_provider_id: Mapped[uuid.UUID | None] = mapped_column(PG_UUID(as_uuid=True))
    location_type: Mapped[str] = mapped_column(String(20), default="telehealth")
    notes: Mapped[str | None] = mapped_column(Text)
    pq_appointment_id: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_appointments_provider_date", "provider_id", "appointment_date"),
        Index("ix_appointments_patient_id", "patient_id"),
    )


class PatientEngagementStatus(Base):
    __tablename__ = "patient_engagement_status"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    changed_by_email: Mapped[str | None] = mapped_column(String(255))
    change_reason: Mapped[str | None] = mapped_column(Text)
    previous_status: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class PatientEngagementStatusHistory(Base):
    __tablename__ = "patient_engagement_status_history"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    engagement_status_id: Mapped[uuid.UUID | None] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patient_engagement_status.id", ondelete="SET NULL"))
    old_status: Mapped[str | None] = mapped_column(String(20))
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    changed_by_email: Mapped[str | None] = mapped_column(String(255))
    changed_by_type: Mapped[str | None] = mapped_column(String(20))  # admin, provider, partner_user, system
    change_reason: Mapped[str | None] = mapped_column(Text)
    needs_notification: Mapped[bool] = mapped_column(Boolean, default=False)
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    notification_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_pesh_patient_created", "patient_id", "created_at"),
    )


class PatientActivitySummary(Base):
    """Per-patient roll-up read by roster list views."""

    __tablename__ = "patient_activity_summary"

    patient_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True)
    engagement_status: Mapped[str] = mapped_column(String(20), default="active")
    last_seen_date: Mapped[date | None] = mapped_column(Date)
    next_appointment_date: Mapped[date | None] = mapped_column(Date)
    total_appointments: Mapped[int] = mapped_column(Integer, default=0)
    refreshed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ArticleDraft(Base):
    __tablename__ = "article_drafts"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    status: Mapped[str] = mapped_column(String(20), default="drafting")  # drafting, ready
    title: Mapped[str | None] = mapped_column(String(300))
    slug: Mapped[str | None] = mapped_column(String(300))
    excerpt: Mapped[str | None] = mapped_column(Text)
    key_takeaway: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text)
    series: Mapped[str | None] = mapped_column(String(50))
    topics: Mapped[list | None] = mapped_column(JSON)
    conversation: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    references: Mapped[list[DraftReference]] = relationship(
        back_populates="draft", lazy="selectin", cascade="all, delete-orphan",
        order_by="DraftReference.citation_key",
    )


class DraftReference(Base):
    __tablename__ = "draft_references"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    draft_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("article_drafts.id", ondelete="CASCADE"), nullable=False)
    citation_key: Mapped[str] = mapped_column(String(100), nullable=False)
    authors: Mapped[str | None] = mapped_column(Text)
    title: Mapped[str | None] = mapped_column(Text)
    journal: Mapped[str | None] = mapped_column(String(300))
    year: Mapped[int | None] = mapped_column(Integer)
    doi: Mapped[str | None] = mapped_column(String(200))
    pmid: Mapped[str | None] = mapped_column(String(20))
    url: Mapped[str | None] = mapped_column(Text)

    draft: Mapped[ArticleDraft] = relationship(back_populates="references")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_by: Mapped[str | None] = mapped_column(String(255))
    changes: Mapped[dict | None] = mapped_column(JSON)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )
