"""PracticeQ (IntakeQ) practice-management API client."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from clinic_ops.config import Settings, get_settings
from clinic_ops.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class _PQModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class PQLocation(_PQModel):
    id: str = Field(validation_alias="Id")
    name: str = Field(default="", validation_alias="Name")


class PQService(_PQModel):
    id: str = Field(validation_alias="Id")
    name: str = Field(default="", validation_alias="Name")
    duration: Optional[int] = Field(default=None, validation_alias="Duration")


class PQPractitioner(_PQModel):
    id: str = Field(validation_alias="Id")
    first_name: str = Field(default="", validation_alias="FirstName")
    last_name: str = Field(default="", validation_alias="LastName")
    email: Optional[str] = Field(default=None, validation_alias="Email")


class BookingSettings(_PQModel):
    locations: list[PQLocation] = Field(default=[], validation_alias="Locations")
    services: list[PQService] = Field(default=[], validation_alias="Services")
    practitioners: list[PQPractitioner] = Field(default=[], validation_alias="Practitioners")


class PQAppointment(_PQModel):
    id: str = Field(validation_alias="Id")
    practitioner_id: Optional[str] = Field(default=None, validation_alias="PractitionerId")
    client_id: Optional[str] = Field(default=None, validation_alias="ClientId")
    service_id: Optional[str] = Field(default=None, validation_alias="ServiceId")
    status: Optional[str] = Field(default=None, validation_alias="Status")
    start_date: Optional[int] = Field(default=None, validation_alias="StartDate")
    duration: Optional[int] = Field(default=None, validation_alias="Duration")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    return False


def round_to_five_minutes(value: datetime) -> datetime:
    """PracticeQ only accepts start times on five-minute boundaries."""
    value = value.replace(second=0, microsecond=0)
    remainder = value.minute % 5
    if remainder >= 3:
        return value + timedelta(minutes=5 - remainder)
    return value - timedelta(minutes=remainder)


class PracticeQClient:
    """Thin async wrapper around the IntakeQ REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._max_attempts = max(self.settings.max_retries, 1)
        self._client = httpx.AsyncClient(
            base_url=self.settings.practiceq_base_url,
            headers={
                "Content-Type": "application/json",
                "X-Auth-Key": self.settings.practiceq_api_key,
            },
            timeout=httpx.Timeout(self.settings.practiceq_timeout, connect=10.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PracticeQClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self.settings.has_practiceq_key:
            raise UpstreamError("PracticeQ API key not configured", code="PRACTICEQ_NOT_CONFIGURED")
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.request(method, path, **kwargs)
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("PracticeQ %s %s failed: %s", method, path, e.response.status_code)
            raise UpstreamError(
                f"PracticeQ request failed with status {e.response.status_code}",
                code="PRACTICEQ_ERROR",
                details={"path": path, "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.error("PracticeQ %s %s failed: %s", method, path, e)
            raise UpstreamError(f"PracticeQ request failed: {e}", code="PRACTICEQ_ERROR") from e

        if not response.content:
            return None
        return response.json()

    async def get_booking_settings(self) -> BookingSettings:
        data = await self._request("GET", "/appointments/settings")
        return BookingSettings.model_validate(data or {})

    async def list_practitioners(self) -> list[PQPractitioner]:
        data = await self._request("GET", "/practitioners")
        return [PQPractitioner.model_validate(p) for p in data or []]

    async def get_appointments(
        self, practitioner_id: Optional[str], start: date, end: date
    ) -> list[PQAppointment]:
        params = {"startDate": start.isoformat(), "endDate": end.isoformat()}
        if practitioner_id:
            params["practitionerId"] = practitioner_id
        data = await self._request("GET", "/appointments", params=params)
        return [PQAppointment.model_validate(a) for a in data or []]

    async def create_client(
        self,
        first_name: str,
        last_name: str,
        email: Optional[str],
        phone: Optional[str] = None,
        date_of_birth: Optional[date] = None,
    ) -> str:
        payload = {
            "FirstName": first_name,
            "LastName": last_name,
            "Email": email,
            "Phone": phone,
            "DateOfBirth": date_of_birth.isoformat() if date_of_birth else None,
        }
        data = await self._request("POST", "/clients", json=payload)
        return str(data["ClientId"])

    async def create_appointment(
        self,
        *,
        client_id: str,
        practitioner_id: str,
        service_id: str,
        location_id: str,
        start: datetime,
        status: str = "Confirmed",
        send_email_notification: bool = True,
    ) -> str:
        """Create an appointment and return its PracticeQ id."""
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        start = round_to_five_minutes(start)
        payload = {
            "PractitionerId": practitioner_id,
            "ClientId": client_id,
            "ServiceId": service_id,
            "LocationId": location_id,
            "Status": status,
            "UtcDateTime": int(start.timestamp() * 1000),
            "SendClientEmailNotification": send_email_notification,
        }
        data = await self._request("POST", "/appointments", json=payload)
        appointment_id = str(data["Id"])
        logger.info("PracticeQ appointment created: %s", appointment_id)
        return appointment_id

    async def test_connection(self) -> bool:
        try:
            await self._request("GET", "/practitioners")
            return True
        except UpstreamError as e:
            logger.warning("PracticeQ connection test failed: %s", e.message)
            return False
