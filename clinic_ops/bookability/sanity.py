"""Read-only diagnostic battery for one payer's credentialing setup.

Every check is independent and advisory. A failing check is logged and
contributes an empty result so the rest of the report still renders.
"""

import logging
import uuid
from datetime import date
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.bookability.models import (
    BlockedProvider,
    BookableProvider,
    PendingContract,
    ResidentIssue,
    SanityCheckResults,
    SupervisorIssue,
    ValidationLevel,
    ValidationResult,
)
from clinic_ops.bookability.resolver import BookabilityResolver
from clinic_ops.bookability.rules import (
    CONTRACT_OK,
    blocking_reason,
    contract_is_effective,
    contract_pending_status,
    is_supervised_role,
    provider_flags_ok,
    supervision_is_active,
)
from clinic_ops.core.errors import NotFoundError
from clinic_ops.core.repository import (
    ContractRepository,
    PayerRepository,
    ProviderRepository,
    SupervisionRepository,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LEVEL_ICONS = {
    ValidationLevel.ERROR: "[ERROR]",
    ValidationLevel.WARNING: "[WARN]",
    ValidationLevel.INFO: "[INFO]",
}


def _full_name(provider: Any) -> str:
    return f"{provider.first_name} {provider.last_name}"


class PayerSanityCheckService:
    """Runs the payer contract sanity checks against the database."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.payers = PayerRepository(session)
        self.providers = ProviderRepository(session)
        self.contracts = ContractRepository(session)
        self.supervisions = SupervisionRepository(session)

    async def _guarded(self, name: str, check: Callable[[], Awaitable[list[T]]]) -> list[T]:
        try:
            async with self.session.begin_nested():
                return await check()
        except Exception as e:
            logger.error("Sanity check %s failed: %s", name, e)
            return []

    async def run_all_checks(
        self, payer_id: uuid.UUID, check_date: Optional[date] = None
    ) -> SanityCheckResults:
        check_date = check_date or date.today()
        payer = await self.payers.get_by_id(payer_id)
        if payer is None:
            raise NotFoundError("Payer not found", details={"payer_id": str(payer_id)})

        logger.info("Running sanity checks for payer %s as of %s", payer_id, check_date)
        validations: list[ValidationResult] = []

        bookable = await self._guarded(
            "bookable_providers", lambda: self.check_bookable_providers(payer_id, check_date)
        )
        if not bookable:
            validations.append(ValidationResult(
                level=ValidationLevel.WARNING,
                category="Bookability",
                message="No providers are currently bookable for this payer",
                details={"count": 0},
            ))
        else:
            validations.append(ValidationResult(
                level=ValidationLevel.INFO,
                category="Bookability",
                message=f"{len(bookable)} provider(s) are bookable for this payer",
                details={"count": len(bookable), "providers": [b.model_dump(mode="json") for b in bookable]},
            ))

        supervisor_issues = await self._guarded(
            "supervisors_without_contracts",
            lambda: self.check_supervisors_without_contracts(payer_id, check_date),
        )
        if supervisor_issues:
            validations.append(ValidationResult(
                level=ValidationLevel.ERROR,
                category="Supervision",
                message=(
                    f"{len(supervisor_issues)} supervisor(s) lack in-network contracts "
                    "but have supervision relationships"
                ),
                details=[i.model_dump(mode="json") for i in supervisor_issues],
            ))

        resident_issues = await self._guarded(
            "residents_missing_supervision",
            lambda: self.check_residents_missing_supervision(payer_id, check_date),
        )
        if resident_issues:
            validations.append(ValidationResult(
                level=ValidationLevel.WARNING,
                category="Supervision",
                message=f"{len(resident_issues)} active resident(s) are missing supervision relationships",
                details=[i.model_dump(mode="json") for i in resident_issues],
            ))

        blocked = await self._guarded(
            "providers_blocked_by_flags",
            lambda: self.check_providers_blocked_by_flags(payer_id, check_date),
        )
        if blocked:
            validations.append(ValidationResult(
                level=ValidationLevel.INFO,
                category="Provider Flags",
                message=f"{len(blocked)} provider(s) have contracts but are blocked by their flags",
                details=[b.model_dump(mode="json") for b in blocked],
            ))

        pending = await self._guarded(
            "pending_effective_dates",
            lambda: self.check_pending_effective_dates(payer_id, check_date),
        )
        if pending:
            validations.append(ValidationResult(
                level=ValidationLevel.INFO,
                category="Effective Dates",
                message=f"{len(pending)} contract(s) are not yet effective",
                details=[p.model_dump(mode="json") for p in pending],
            ))

        validations.extend(self.check_payer_configuration(payer))

        return SanityCheckResults(
            payer_id=payer_id,
            check_date=check_date,
            validations=validations,
            bookable_providers=bookable,
            supervisor_issues=supervisor_issues,
            resident_issues=resident_issues,
            blocked_providers=blocked,
            pending_effective_dates=pending,
            has_errors=any(v.level == ValidationLevel.ERROR for v in validations),
            has_warnings=any(v.level == ValidationLevel.WARNING for v in validations),
        )

    async def check_bookable_providers(self, payer_id: uuid.UUID, on: date) -> list[BookableProvider]:
        return await BookabilityResolver(self.session).bookable_providers(payer_id, on)

    async def check_supervisors_without_contracts(
        self, payer_id: uuid.UUID, on: date
    ) -> list[SupervisorIssue]:
        """Supervisors with live supervisees but no effective in-network contract."""
        contracts = await self.contracts.list_in_network(payer_id=payer_id)
        covered = {c.provider_id for c in contracts if contract_is_effective(c, on)}
        supervisions = await self.supervisions.list_by_payer(payer_id, active_only=True)
        providers = {p.id: p for p in await self.providers.list_all()}

        issues: dict[uuid.UUID, SupervisorIssue] = {}
        for s in supervisions:
            sid = s.supervisor_provider_id
            if not supervision_is_active(s, on) or sid in covered or sid not in providers:
                continue
            issues[sid] = SupervisorIssue(provider_id=sid, supervisor_name=_full_name(providers[sid]))
        return sorted(issues.values(), key=lambda i: i.supervisor_name)

    async def check_residents_missing_supervision(
        self, payer_id: uuid.UUID, on: date
    ) -> list[ResidentIssue]:
        supervisions = await self.supervisions.list_by_payer(payer_id, active_only=True)
        supervised = {s.supervisee_provider_id for s in supervisions if supervision_is_active(s, on)}
        residents = [
            p for p in await self.providers.list_all()
            if provider_flags_ok(p) and is_supervised_role(p) and p.id not in supervised
        ]
        issues = [ResidentIssue(provider_id=p.id, resident_name=_full_name(p)) for p in residents]
        return sorted(issues, key=lambda i: i.resident_name)

    async def check_providers_blocked_by_flags(
        self, payer_id: uuid.UUID, on: date
    ) -> list[BlockedProvider]:
        """Providers with an effective contract whose own flags keep them off the books."""
        contracts = await self.contracts.list_in_network(payer_id=payer_id)
        covered = {c.provider_id for c in contracts if contract_is_effective(c, on)}
        blocked = []
        for p in await self.providers.list_all():
            if p.id not in covered:
                continue
            reason = blocking_reason(p)
            if reason is None:
                continue
            blocked.append(BlockedProvider(
                provider_id=p.id,
                provider_name=_full_name(p),
                is_active=bool(p.is_active),
                is_bookable=bool(p.is_bookable),
                accepts_new_patients=bool(p.accepts_new_patients),
                blocking_reason=reason,
            ))
        return sorted(blocked, key=lambda b: b.provider_name)

    async def check_pending_effective_dates(
        self, payer_id: uuid.UUID, on: date
    ) -> list[PendingContract]:
        contracts = await self.contracts.list_in_network(payer_id=payer_id)
        providers = {p.id: p for p in await self.providers.list_all()}
        pending = []
        for c in contracts:
            status = contract_pending_status(c, on)
            if status == CONTRACT_OK or c.provider_id not in providers:
                continue
            pending.append(PendingContract(
                provider_id=c.provider_id,
                provider_name=_full_name(providers[c.provider_id]),
                effective_date=c.effective_date or c.effective_range_start,
                expiration_date=c.expiration_date,
                bookable_from_date=c.bookable_from_date,
                ppn_status=status,
            ))
        return sorted(pending, key=lambda p: p.provider_name)

    @staticmethod
    def check_payer_configuration(payer: Any) -> list[ValidationResult]:
        validations = []
        if payer.requires_attending and not payer.allows_supervised:
            validations.append(ValidationResult(
                level=ValidationLevel.WARNING,
                category="Payer Configuration",
                message=(
                    "Payer requires attending but does not allow supervised care "
                    "- this may prevent resident bookings"
                ),
            ))
        if not payer.effective_date:
            validations.append(ValidationResult(
                level=ValidationLevel.WARNING,
                category="Payer Configuration",
                message="Payer has no effective date set",
            ))
        if payer.status_code != "approved":
            validations.append(ValidationResult(
                level=ValidationLevel.INFO,
                category="Payer Configuration",
                message=(
                    f'Payer status is "{payer.status_code or "not set"}" '
                    "- providers may not be bookable until approved"
                ),
            ))
        return validations

    @staticmethod
    def generate_summary_report(results: SanityCheckResults) -> str:
        """Plain-text rendering of a sanity check run."""
        lines = ["=== Payer Contract Sanity Check Report ===", ""]
        if results.has_errors:
            lines.append("ERRORS FOUND - Please review before proceeding")
        elif results.has_warnings:
            lines.append("WARNINGS FOUND - Review recommended")
        else:
            lines.append("ALL CHECKS PASSED")
        lines += [
            "",
            f"Payer: {results.payer_id}",
            f"As of: {results.check_date.isoformat()}",
            "",
            "Summary:",
            f"- Bookable Providers: {len(results.bookable_providers)}",
            f"- Supervisor Issues: {len(results.supervisor_issues)}",
            f"- Resident Issues: {len(results.resident_issues)}",
            f"- Blocked Providers: {len(results.blocked_providers)}",
            f"- Pending Contracts: {len(results.pending_effective_dates)}",
            "",
            "Detailed Findings:",
        ]
        for v in results.validations:
            lines.append(f"{_LEVEL_ICONS[v.level]} [{v.category}] {v.message}")
        return "\n".join(lines)
