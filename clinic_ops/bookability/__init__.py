"""Provider/payer bookability rules, resolution and diagnostics."""

from clinic_ops.bookability.models import (
    BookableProvider,
    BookableRelationship,
    BookingPath,
    NetworkStatus,
    SanityCheckResults,
    ValidationLevel,
    ValidationResult,
)
from clinic_ops.bookability.resolver import (
    BookabilityResolver,
    BookabilitySnapshot,
    project_relationships,
    resolve_bookable_providers,
)
from clinic_ops.bookability.sanity import PayerSanityCheckService

__all__ = [
    "BookabilityResolver",
    "BookabilitySnapshot",
    "BookableProvider",
    "BookableRelationship",
    "BookingPath",
    "NetworkStatus",
    "PayerSanityCheckService",
    "SanityCheckResults",
    "ValidationLevel",
    "ValidationResult",
    "project_relationships",
    "resolve_bookable_providers",
]
