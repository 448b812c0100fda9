"""Tests for the bookability window and flag predicates."""

from datetime import date
from types import SimpleNamespace

import pytest

from clinic_ops.bookability.rules import (
    BLOCKED_BY_BOOKABLE_FROM,
    CONTRACT_OK,
    FUTURE_EFFECTIVE_DATE,
    OUTSIDE_EFFECTIVE_RANGE,
    blocking_reason,
    contract_is_effective,
    contract_pending_status,
    in_effective_window,
    is_supervised_role,
    provider_flags_ok,
    supervision_is_active,
)

D = date(2025, 6, 1)


def _contract(**kw):
    values = dict(
        status="in_network",
        effective_date=None,
        expiration_date=None,
        effective_range_start=None,
        effective_range_end=None,
        bookable_from_date=None,
    )
    values.update(kw)
    return SimpleNamespace(**values)


def _provider(**kw):
    values = dict(is_active=True, is_bookable=True, accepts_new_patients=True, role="Attending")
    values.update(kw)
    return SimpleNamespace(**values)


class TestEffectiveWindow:
    def test_effective_date_is_inclusive(self):
        c = _contract(effective_date=D)
        assert contract_is_effective(c, D)
        assert not contract_is_effective(c, date(2025, 5, 31))

    def test_expiration_date_is_inclusive(self):
        c = _contract(effective_date=date(2025, 1, 1), expiration_date=D)
        assert contract_is_effective(c, D)
        assert not contract_is_effective(c, date(2025, 6, 2))

    def test_missing_effective_date_is_not_effective(self):
        assert not in_effective_window(_contract(), D)

    def test_explicit_range_takes_precedence(self):
        c = _contract(
            effective_date=date(2020, 1, 1),
            effective_range_start=date(2025, 1, 1),
            effective_range_end=D,
        )
        assert in_effective_window(c, date(2025, 5, 31))
        # Upper bound is exclusive.
        assert not in_effective_window(c, D)
        assert not in_effective_window(c, date(2024, 12, 31))

    def test_open_ended_range(self):
        c = _contract(effective_range_start=date(2025, 1, 1))
        assert in_effective_window(c, date(2099, 1, 1))

    def test_bookable_from_gates_effective_contract(self):
        c = _contract(effective_date=date(2025, 1, 1), bookable_from_date=date(2025, 6, 2))
        assert not contract_is_effective(c, D)
        assert contract_is_effective(c, date(2025, 6, 2))

    @pytest.mark.parametrize("status", ["out_of_network", "pending"])
    def test_only_in_network_counts(self, status):
        assert not contract_is_effective(_contract(status=status, effective_date=date(2025, 1, 1)), D)


class TestSupervisionActive:
    def test_window_is_inclusive(self):
        rel = SimpleNamespace(is_active=True, start_date=D, end_date=D)
        assert supervision_is_active(rel, D)
        assert not supervision_is_active(rel, date(2025, 5, 31))
        assert not supervision_is_active(rel, date(2025, 6, 2))

    def test_inactive_flag_wins(self):
        rel = SimpleNamespace(is_active=False, start_date=date(2025, 1, 1), end_date=None)
        assert not supervision_is_active(rel, D)


class TestProviderFlags:
    def test_all_flags_required(self):
        assert provider_flags_ok(_provider())
        assert not provider_flags_ok(_provider(accepts_new_patients=False))

    def test_blocking_reason_reports_first_failing_flag(self):
        assert blocking_reason(_provider()) is None
        assert blocking_reason(_provider(is_active=False, is_bookable=False)) == "Provider is inactive"
        assert blocking_reason(_provider(is_bookable=False)) == "Provider is not bookable"
        assert blocking_reason(_provider(accepts_new_patients=False)) == "Provider not accepting new patients"

    def test_supervised_role_is_case_insensitive(self):
        assert is_supervised_role(_provider(role=" Resident "))
        assert not is_supervised_role(_provider(role=None))


class TestPendingStatus:
    def test_bookable_from_has_highest_precedence(self):
        c = _contract(effective_date=date(2025, 7, 1), bookable_from_date=date(2025, 7, 1))
        assert contract_pending_status(c, D) == BLOCKED_BY_BOOKABLE_FROM

    def test_outside_range(self):
        c = _contract(effective_range_start=date(2025, 7, 1))
        assert contract_pending_status(c, D) == OUTSIDE_EFFECTIVE_RANGE

    def test_future_effective_date(self):
        assert contract_pending_status(_contract(effective_date=date(2025, 7, 1)), D) == FUTURE_EFFECTIVE_DATE
        assert contract_pending_status(_contract(), D) == FUTURE_EFFECTIVE_DATE

    def test_ok(self):
        assert contract_pending_status(_contract(effective_date=date(2025, 1, 1)), D) == CONTRACT_OK
