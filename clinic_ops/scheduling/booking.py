"""Patient self-booking against payer bookability and open slots."""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.bookability.models import BookableProvider, BookingPath, NetworkStatus
from clinic_ops.bookability.resolver import BookabilityResolver, resolve_bookable_providers
from clinic_ops.config import Settings, get_settings
from clinic_ops.core.errors import ClinicOpsError, ConflictError, NotFoundError, ValidationFailedError
from clinic_ops.core.models import Appointment, AppointmentStatus, Patient, Payer, Provider
from clinic_ops.core.repository import (
    AppointmentRepository,
    InsurancePolicyRepository,
    PatientRepository,
    ProviderRepository,
)
from clinic_ops.integrations.email import EmailService
from clinic_ops.integrations.practiceq import PracticeQClient
from clinic_ops.scheduling.models import AvailableSlot
from clinic_ops.scheduling.slots import AvailabilityService, format_hhmm

logger = logging.getLogger(__name__)


class BookingRequest(BaseModel):
    payer_id: uuid.UUID
    provider_id: uuid.UUID
    patient_id: uuid.UUID
    start: datetime = Field(description="Local appointment start")
    duration: int = Field(default=60, gt=0, le=240)
    location_type: str = Field(default="telehealth", pattern="^(telehealth|in_person)$")
    notes: Optional[str] = None
    # Accepted but not enforced.
    idempotency_key: Optional[str] = None


class BookingResult(BaseModel):
    appointment_id: uuid.UUID
    provider_id: uuid.UUID
    payer_id: uuid.UUID
    patient_id: uuid.UUID
    appointment_date: date
    appointment_time: str
    duration: int
    network_status: NetworkStatus
    billing_provider_id: uuid.UUID
    rendering_provider_id: uuid.UUID
    supervising_attendings: list[str] = []
    pq_appointment_id: Optional[str] = None


class PayerSlot(AvailableSlot):
    path: BookingPath


def billing_path(candidate: BookableProvider) -> tuple[NetworkStatus, uuid.UUID]:
    """Network status and billing provider for a bookable candidate."""
    if candidate.path == BookingPath.SUPERVISED and candidate.supervising_provider_ids:
        return NetworkStatus.SUPERVISED, candidate.supervising_provider_ids[0]
    return NetworkStatus.IN_NETWORK, candidate.provider_id


class BookingService:
    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        practiceq: Optional[PracticeQClient] = None,
        email: Optional[EmailService] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.practiceq = practiceq
        self.email = email
        self.resolver = BookabilityResolver(session)
        self.availability = AvailabilityService(session, self.settings)
        self.appointments = AppointmentRepository(session)
        self.patients = PatientRepository(session)
        self.policies = InsurancePolicyRepository(session)
        self.providers = ProviderRepository(session)

    async def book(self, request: BookingRequest) -> BookingResult:
        on = request.start.date()
        start_time = request.start.time().replace(second=0, microsecond=0)

        candidate = await self.resolver.find_bookable(request.payer_id, request.provider_id, on)
        if candidate is None:
            raise ConflictError(
                "Provider is not bookable for this payer on the requested date",
                code="NOT_BOOKABLE_FOR_PAYER",
            )
        if not await self.availability.is_slot_open(request.provider_id, on, start_time, request.duration):
            raise ConflictError("Requested time is not an open slot", code="SLOT_UNAVAILABLE")

        patient = await self.patients.get_by_id(request.patient_id)
        if patient is None:
            raise NotFoundError("Patient not found", details={"patient_id": str(request.patient_id)})
        policy = await self.policies.get_active_policy(request.patient_id, request.payer_id, on)
        if policy is None:
            raise ConflictError("Patient has no active policy for this payer", code="NO_ACTIVE_POLICY")

        payer = await self.resolver.payers.get_by_id(request.payer_id)
        if not payer.intakeq_service_id:
            raise ConflictError(
                "Payer is not mapped to a practice-management service",
                code="NO_INTAKE_INSTANCE_FOR_PAYER",
            )

        network_status, billing_id = billing_path(candidate)
        appointment = await self.appointments.create(
            patient_id=patient.id,
            provider_id=request.provider_id,
            payer_id=request.payer_id,
            appointment_date=on,
            appointment_time=start_time,
            duration_minutes=request.duration,
            status=AppointmentStatus.scheduled.value,
            network_status=network_status.value,
            billing_provider_id=billing_id,
            rendering_provider_id=request.provider_id,
            location_type=request.location_type,
            notes=request.notes,
        )
        logger.info(
            "Booked appointment %s: provider %s payer %s on %s %s (%s)",
            appointment.id, request.provider_id, request.payer_id, on,
            format_hhmm(start_time), network_status.value,
        )

        provider = await self.providers.get_by_id(request.provider_id)
        await self._push_to_practiceq(appointment, patient, provider, payer, request.start)
        await self._send_confirmation(appointment, patient, provider)

        return BookingResult(
            appointment_id=appointment.id,
            provider_id=request.provider_id,
            payer_id=request.payer_id,
            patient_id=patient.id,
            appointment_date=on,
            appointment_time=format_hhmm(start_time),
            duration=request.duration,
            network_status=network_status,
            billing_provider_id=billing_id,
            rendering_provider_id=request.provider_id,
            supervising_attendings=candidate.supervising_attendings,
            pq_appointment_id=appointment.pq_appointment_id,
        )

    async def _push_to_practiceq(
        self,
        appointment: Appointment,
        patient: Patient,
        provider: Provider,
        payer: Payer,
        start: datetime,
    ) -> None:
        if self.practiceq is None or not self.settings.has_practiceq_key:
            return
        if not provider.intakeq_practitioner_id:
            logger.warning("Provider %s has no PracticeQ practitioner id; not pushing", provider.id)
            return
        try:
            if not patient.intakeq_client_id:
                patient.intakeq_client_id = await self.practiceq.create_client(
                    patient.first_name, patient.last_name, patient.email, patient.phone,
                    patient.date_of_birth,
                )
            location_id = self.settings.practiceq_location_id
            if not location_id:
                booking_settings = await self.practiceq.get_booking_settings()
                location_id = booking_settings.locations[0].id if booking_settings.locations else ""
            appointment.pq_appointment_id = await self.practiceq.create_appointment(
                client_id=patient.intakeq_client_id,
                practitioner_id=provider.intakeq_practitioner_id,
                service_id=payer.intakeq_service_id,
                location_id=location_id,
                start=start,
            )
            await self.session.flush()
        except ClinicOpsError as e:
            logger.error("PracticeQ push failed for appointment %s: %s", appointment.id, e.message)

    async def _send_confirmation(
        self, appointment: Appointment, patient: Patient, provider: Provider
    ) -> None:
        if self.email is None:
            return
        try:
            await self.email.send_appointment_confirmation(
                patient_email=patient.email,
                patient_name=patient.full_name,
                provider_email=provider.email,
                provider_name=provider.full_name,
                appointment_date=appointment.appointment_date,
                appointment_time=format_hhmm(appointment.appointment_time),
                location_type=appointment.location_type,
            )
        except ClinicOpsError as e:
            logger.warning("Confirmation email failed for appointment %s: %s", appointment.id, e.message)

    async def slots_for_payer(
        self,
        payer_id: uuid.UUID,
        start_date: date,
        end_date: date,
        duration_minutes: Optional[int] = None,
    ) -> list[PayerSlot]:
        """Open slots of every provider bookable for the payer, date by date."""
        if end_date < start_date:
            raise ValidationFailedError("end_date must be on or after start_date")
        snapshot = await self.resolver.load_snapshot(payer_id)

        bookable_days: dict[uuid.UUID, dict[date, BookingPath]] = defaultdict(dict)
        day = start_date
        while day <= end_date:
            for candidate in resolve_bookable_providers(snapshot, day):
                bookable_days[candidate.provider_id][day] = candidate.path
            day += timedelta(days=1)

        slots: list[PayerSlot] = []
        for provider_id, days in bookable_days.items():
            report = await self.availability.get_available_slots(
                provider_id, min(days), max(days), duration_minutes
            )
            for slot in report.slots:
                path = days.get(slot.date)
                if path is not None:
                    slots.append(PayerSlot(**slot.model_dump(), path=path))
        slots.sort(key=lambda s: (s.date, s.time, s.provider_name))
        return slots

