"""Tests for patient self-booking."""

import uuid
from datetime import date, datetime, time
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from clinic_ops.bookability import BookingPath, NetworkStatus
from clinic_ops.core.errors import ConflictError, NotFoundError, UpstreamError, ValidationFailedError
from clinic_ops.core.models import Appointment, AvailabilityException
from clinic_ops.scheduling.booking import BookingRequest, BookingService
from tests.conftest import SERVICE_DATE, make_settings


def _request(clinic, provider=None, at=time(9, 0), **kw):
    values = dict(
        payer_id=clinic.payer.id,
        provider_id=(provider or clinic.resident).id,
        patient_id=clinic.patient.id,
        start=datetime.combine(SERVICE_DATE, at),
    )
    values.update(kw)
    return BookingRequest(**values)


class TestBook:
    @pytest.mark.asyncio
    async def test_supervised_booking_bills_under_attending(self, session, clinic):
        result = await BookingService(session, make_settings()).book(_request(clinic))

        assert result.network_status == NetworkStatus.SUPERVISED
        assert result.billing_provider_id == clinic.attending.id
        assert result.rendering_provider_id == clinic.resident.id
        assert result.supervising_attendings == ["Ada Attending"]
        assert result.appointment_time == "09:00"
        assert result.pq_appointment_id is None

        stored = await session.get(Appointment, result.appointment_id)
        assert stored.status == "scheduled"
        assert stored.network_status == "supervised"

    @pytest.mark.asyncio
    async def test_direct_booking_bills_to_self(self, session, clinic):
        result = await BookingService(session, make_settings()).book(_request(clinic, clinic.attending))
        assert result.network_status == NetworkStatus.IN_NETWORK
        assert result.billing_provider_id == clinic.attending.id

    @pytest.mark.asyncio
    async def test_booked_slot_is_no_longer_offered(self, session, clinic):
        service = BookingService(session, make_settings())
        await service.book(_request(clinic))

        with pytest.raises(ConflictError) as exc:
            await service.book(_request(clinic))
        assert exc.value.code == "SLOT_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_not_bookable_for_payer(self, session, clinic):
        clinic.supervision.is_active = False
        await session.flush()

        with pytest.raises(ConflictError) as exc:
            await BookingService(session, make_settings()).book(_request(clinic))
        assert exc.value.code == "NOT_BOOKABLE_FOR_PAYER"
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_time_outside_template_is_unavailable(self, session, clinic):
        with pytest.raises(ConflictError) as exc:
            await BookingService(session, make_settings()).book(_request(clinic, at=time(9, 30)))
        assert exc.value.code == "SLOT_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_vacation_blocks_booking(self, session, clinic):
        session.add(AvailabilityException(
            provider_id=clinic.resident.id, exception_date=SERVICE_DATE, exception_type="vacation",
        ))
        await session.flush()

        with pytest.raises(ConflictError) as exc:
            await BookingService(session, make_settings()).book(_request(clinic))
        assert exc.value.code == "SLOT_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_unknown_patient(self, session, clinic):
        with pytest.raises(NotFoundError):
            await BookingService(session, make_settings()).book(_request(clinic, patient_id=uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_no_active_policy(self, session, clinic):
        clinic.policy.termination_date = date(2026, 1, 1)
        await session.flush()

        with pytest.raises(ConflictError) as exc:
            await BookingService(session, make_settings()).book(_request(clinic))
        assert exc.value.code == "NO_ACTIVE_POLICY"

    @pytest.mark.asyncio
    async def test_payer_without_service_mapping(self, session, clinic):
        clinic.payer.intakeq_service_id = None
        await session.flush()

        with pytest.raises(ConflictError) as exc:
            await BookingService(session, make_settings()).book(_request(clinic))
        assert exc.value.code == "NO_INTAKE_INSTANCE_FOR_PAYER"

        rows = (await session.execute(select(Appointment))).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_pushes_to_practiceq_when_configured(self, session, clinic):
        practiceq = MagicMock()
        practiceq.create_client = AsyncMock(return_value="client-7")
        practiceq.create_appointment = AsyncMock(return_value="pq-appt-1")
        settings = make_settings(practiceq_api_key="pq-key", practiceq_location_id="loc-1")

        result = await BookingService(session, settings, practiceq=practiceq).book(_request(clinic))

        assert result.pq_appointment_id == "pq-appt-1"
        assert clinic.patient.intakeq_client_id == "client-7"
        kwargs = practiceq.create_appointment.await_args.kwargs
        assert kwargs["practitioner_id"] == "pq-riley"
        assert kwargs["service_id"] == "svc-101"
        assert kwargs["location_id"] == "loc-1"

    @pytest.mark.asyncio
    async def test_practiceq_failure_keeps_local_appointment(self, session, clinic):
        practiceq = MagicMock()
        practiceq.create_client = AsyncMock(side_effect=UpstreamError("down", code="PRACTICEQ_ERROR"))
        settings = make_settings(practiceq_api_key="pq-key")

        result = await BookingService(session, settings, practiceq=practiceq).book(_request(clinic))

        assert result.pq_appointment_id is None
        assert await session.get(Appointment, result.appointment_id) is not None

    @pytest.mark.asyncio
    async def test_sends_confirmation(self, session, clinic):
        email = MagicMock()
        email.send_appointment_confirmation = AsyncMock()

        await BookingService(session, make_settings(), email=email).book(_request(clinic))

        kwargs = email.send_appointment_confirmation.await_args.kwargs
        assert kwargs["patient_email"] == "pat@example.com"
        assert kwargs["provider_name"] == "Riley Resident"
        assert kwargs["appointment_time"] == "09:00"


class TestSlotsForPayer:
    @pytest.mark.asyncio
    async def test_slots_for_every_bookable_provider(self, session, clinic):
        slots = await BookingService(session, make_settings()).slots_for_payer(
            clinic.payer.id, SERVICE_DATE, SERVICE_DATE
        )

        assert {s.provider_id for s in slots} == {clinic.attending.id, clinic.resident.id}
        paths = {s.provider_id: s.path for s in slots}
        assert paths[clinic.resident.id] == BookingPath.SUPERVISED
        assert [s.time for s in slots if s.provider_id == clinic.attending.id] == ["09:00", "10:15", "11:30"]

    @pytest.mark.asyncio
    async def test_days_before_supervision_have_no_supervised_slots(self, session, clinic):
        clinic.supervision.start_date = date(2026, 3, 3)
        await session.flush()

        slots = await BookingService(session, make_settings()).slots_for_payer(
            clinic.payer.id, SERVICE_DATE, SERVICE_DATE
        )
        assert {s.provider_id for s in slots} == {clinic.attending.id}

    @pytest.mark.asyncio
    async def test_reversed_range_rejected(self, session, clinic):
        with pytest.raises(ValidationFailedError):
            await BookingService(session, make_settings()).slots_for_payer(
                clinic.payer.id, SERVICE_DATE, date(2026, 3, 1)
            )
