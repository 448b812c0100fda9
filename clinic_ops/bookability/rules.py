"""Date-window and flag predicates behind provider/payer bookability.

Every predicate takes plain attributes (ORM rows or any object exposing the
same names), so they can be unit-tested without a database.
"""

from datetime import date
from typing import Any, Optional

from clinic_ops.core.models import ContractStatus

IN_NETWORK = ContractStatus.in_network.value

# Roles that can only be booked through a supervising attending.
SUPERVISED_ROLES = frozenset({"resident", "fellow", "intern"})

# Pending-contract classifications, in precedence order.
BLOCKED_BY_BOOKABLE_FROM = "blocked_by_bookable_from_date"
OUTSIDE_EFFECTIVE_RANGE = "outside_effective_range"
FUTURE_EFFECTIVE_DATE = "future_effective_date"
CONTRACT_OK = "ok"


def has_effective_range(contract: Any) -> bool:
    return contract.effective_range_start is not None or contract.effective_range_end is not None


def in_effective_range(contract: Any, on: date) -> bool:
    """Half-open ``[start, end)`` membership; a missing bound is unbounded."""
    start = contract.effective_range_start
    end = contract.effective_range_end
    if start is not None and on < start:
        return False
    if end is not None and on >= end:
        return False
    return True


def in_effective_window(contract: Any, on: date) -> bool:
    """True when *on* falls inside the contract's effective window.

    An explicit range wins. Otherwise ``effective_date`` is required and
    both it and ``expiration_date`` are inclusive.
    """
    if has_effective_range(contract):
        return in_effective_range(contract, on)
    if contract.effective_date is None or contract.effective_date > on:
        return False
    return contract.expiration_date is None or contract.expiration_date >= on


def bookable_from_reached(contract: Any, on: date) -> bool:
    return contract.bookable_from_date is None or contract.bookable_from_date <= on


def contract_is_effective(contract: Any, on: date) -> bool:
    """In-network, inside the effective window, and past ``bookable_from_date``."""
    return (
        contract.status == IN_NETWORK
        and in_effective_window(contract, on)
        and bookable_from_reached(contract, on)
    )


def supervision_is_active(relationship: Any, on: date) -> bool:
    """Active flag set and *on* inside the inclusive start/end window."""
    if not relationship.is_active:
        return False
    if relationship.start_date is None or relationship.start_date > on:
        return False
    return relationship.end_date is None or relationship.end_date >= on


def provider_flags_ok(provider: Any) -> bool:
    return bool(provider.is_active and provider.is_bookable and provider.accepts_new_patients)


def blocking_reason(provider: Any) -> Optional[str]:
    """First failing provider flag as a human-readable reason, or None."""
    if not provider.is_active:
        return "Provider is inactive"
    if not provider.is_bookable:
        return "Provider is not bookable"
    if not provider.accepts_new_patients:
        return "Provider not accepting new patients"
    return None


def is_supervised_role(provider: Any) -> bool:
    return (provider.role or "").strip().lower() in SUPERVISED_ROLES


def contract_pending_status(contract: Any, on: date) -> str:
    """Why an in-network contract is not yet usable on *on*, or ``"ok"``."""
    if contract.bookable_from_date is not None and contract.bookable_from_date > on:
        return BLOCKED_BY_BOOKABLE_FROM
    if has_effective_range(contract):
        if not in_effective_range(contract, on):
            return OUTSIDE_EFFECTIVE_RANGE
    elif contract.effective_date is None or contract.effective_date > on:
        return FUTURE_EFFECTIVE_DATE
    return CONTRACT_OK
