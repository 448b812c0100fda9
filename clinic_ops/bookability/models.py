"""Pydantic models for bookability resolution and payer sanity checks."""

import uuid
from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class BookingPath(str, Enum):
    """How a provider is bookable under a payer."""

    DIRECT = "direct"
    SUPERVISED = "supervised"


class NetworkStatus(str, Enum):
    IN_NETWORK = "in_network"
    SUPERVISED = "supervised"


class BookableProvider(BaseModel):
    """A provider that can be booked for a payer on a service date."""

    provider_id: uuid.UUID
    first_name: str
    last_name: str
    role: Optional[str] = None
    path: BookingPath
    supervising_attendings: list[str] = []
    supervising_provider_ids: list[uuid.UUID] = []

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class BookableRelationship(BaseModel):
    """One provider/payer pair with its legal billing path."""

    provider_id: uuid.UUID
    provider_name: str
    payer_id: uuid.UUID
    payer_name: str
    network_status: NetworkStatus
    billing_provider_id: Optional[uuid.UUID] = None
    rendering_provider_id: Optional[uuid.UUID] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    bookable_from_date: Optional[date] = None


class ValidationLevel(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationResult(BaseModel):
    level: ValidationLevel
    category: str
    message: str
    details: Optional[Any] = None


class SupervisorIssue(BaseModel):
    provider_id: uuid.UUID
    supervisor_name: str


class ResidentIssue(BaseModel):
    provider_id: uuid.UUID
    resident_name: str


class BlockedProvider(BaseModel):
    provider_id: uuid.UUID
    provider_name: str
    is_active: bool
    is_bookable: bool
    accepts_new_patients: bool
    blocking_reason: str


class PendingContract(BaseModel):
    provider_id: uuid.UUID
    provider_name: str
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    bookable_from_date: Optional[date] = None
    ppn_status: str


class SanityCheckResults(BaseModel):
    payer_id: uuid.UUID
    check_date: date
    validations: list[ValidationResult] = []
    bookable_providers: list[BookableProvider] = []
    supervisor_issues: list[SupervisorIssue] = []
    resident_issues: list[ResidentIssue] = []
    blocked_providers: list[BlockedProvider] = []
    pending_effective_dates: list[PendingContract] = []
    has_errors: bool = False
    has_warnings: bool = False


class PayerBookabilityConfig(BaseModel):
    """The payer fields that drive supervision rules."""

    payer_id: uuid.UUID
    requires_attending: bool = False
    allows_supervised: bool = True

    @property
    def supervised_path_open(self) -> bool:
        return self.requires_attending and self.allows_supervised


