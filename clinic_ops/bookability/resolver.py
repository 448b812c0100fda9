"""Provider/payer bookability resolution.

A provider is bookable for a payer on a service date either directly (an
effective in-network contract) or as a supervisee of an attending who holds
one, when the payer requires an attending and allows supervised care.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.bookability.models import (
    BookableProvider,
    BookableRelationship,
    BookingPath,
    NetworkStatus,
    PayerBookabilityConfig,
)
from clinic_ops.bookability.rules import (
    contract_is_effective,
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


@dataclass
class BookabilitySnapshot:
    """Rows needed to evaluate bookability for one payer."""

    payer: PayerBookabilityConfig
    providers: dict[uuid.UUID, Any] = field(default_factory=dict)
    contracts: list[Any] = field(default_factory=list)
    supervisions: list[Any] = field(default_factory=list)


def _sort_key(provider: BookableProvider) -> tuple[str, str]:
    return (provider.last_name.lower(), provider.first_name.lower())


def resolve_bookable_providers(snapshot: BookabilitySnapshot, on: date) -> list[BookableProvider]:
    """Union of direct and supervised candidates, one entry per provider."""
    payer = snapshot.payer
    providers = snapshot.providers

    contracted = {
        c.provider_id for c in snapshot.contracts
        if c.payer_id == payer.payer_id and contract_is_effective(c, on)
    }
    supervisions = [
        s for s in snapshot.supervisions
        if s.payer_id == payer.payer_id and supervision_is_active(s, on)
    ]
    supervisors = {s.supervisor_provider_id for s in supervisions}
    eligible = {pid: p for pid, p in providers.items() if provider_flags_ok(p)}

    resolved: dict[uuid.UUID, BookableProvider] = {}

    for pid in contracted:
        provider = eligible.get(pid)
        if provider is None:
            continue
        # Attending-only payers still admit a contracted provider who supervises someone.
        if payer.requires_attending and pid not in supervisors:
            continue
        resolved[pid] = BookableProvider(
            provider_id=pid,
            first_name=provider.first_name,
            last_name=provider.last_name,
            role=provider.role,
            path=BookingPath.DIRECT,
        )

    if payer.supervised_path_open:
        attendings: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)
        for s in supervisions:
            if s.supervisee_provider_id in eligible and s.supervisor_provider_id in contracted:
                attendings[s.supervisee_provider_id].add(s.supervisor_provider_id)

        for pid, supervisor_ids in attendings.items():
            if pid in resolved:
                continue
            provider = eligible[pid]
            named = sorted(
                ((providers[sid].first_name + " " + providers[sid].last_name, sid)
                 for sid in supervisor_ids if sid in providers),
            )
            resolved[pid] = BookableProvider(
                provider_id=pid,
                first_name=provider.first_name,
                last_name=provider.last_name,
                role=provider.role,
                path=BookingPath.SUPERVISED,
                supervising_attendings=[name for name, _ in named],
                supervising_provider_ids=[sid for _, sid in named],
            )

    return sorted(resolved.values(), key=_sort_key)


def project_relationships(
    payers: Iterable[Any],
    providers: dict[uuid.UUID, Any],
    contracts: Iterable[Any],
    supervisions: Iterable[Any],
    on: date,
) -> list[BookableRelationship]:
    """Every legal provider/payer billing path effective on *on*.

    Provider flags are not applied here; the projection answers "under what
    contract could this provider bill", not "can they be booked today".
    """
    payer_names = {p.id: p.name for p in payers}
    contracts = [c for c in contracts if c.payer_id in payer_names]
    effective = {(c.provider_id, c.payer_id): c for c in contracts if contract_is_effective(c, on)}

    rows: list[BookableRelationship] = []

    def _name(pid: uuid.UUID) -> str:
        p = providers.get(pid)
        return f"{p.first_name} {p.last_name}" if p else "Unknown Provider"

    for (provider_id, payer_id), c in effective.items():
        rows.append(BookableRelationship(
            provider_id=provider_id,
            provider_name=_name(provider_id),
            payer_id=payer_id,
            payer_name=payer_names[payer_id],
            network_status=NetworkStatus.IN_NETWORK,
            effective_date=c.effective_date or c.effective_range_start,
            expiration_date=c.expiration_date,
            bookable_from_date=c.bookable_from_date or c.effective_date,
        ))

    for s in supervisions:
        if s.payer_id not in payer_names or not supervision_is_active(s, on):
            continue
        if (s.supervisor_provider_id, s.payer_id) not in effective:
            continue
        rows.append(BookableRelationship(
            provider_id=s.supervisee_provider_id,
            provider_name=_name(s.supervisee_provider_id),
            payer_id=s.payer_id,
            payer_name=payer_names[s.payer_id],
            network_status=NetworkStatus.SUPERVISED,
            billing_provider_id=s.supervisor_provider_id,
            rendering_provider_id=s.supervisee_provider_id,
            effective_date=s.start_date,
            expiration_date=s.end_date,
            bookable_from_date=s.start_date,
        ))

    rows.sort(key=lambda r: (r.payer_name.lower(), r.provider_name.lower(), r.network_status.value))
    return rows


class BookabilityResolver:
    """Loads bookability rows from the database and evaluates them."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.payers = PayerRepository(session)
        self.providers = ProviderRepository(session)
        self.contracts = ContractRepository(session)
        self.supervisions = SupervisionRepository(session)

    async def load_snapshot(self, payer_id: uuid.UUID) -> BookabilitySnapshot:
        payer = await self.payers.get_by_id(payer_id)
        if payer is None:
            raise NotFoundError("Payer not found", details={"payer_id": str(payer_id)})

        contracts = await self.contracts.list_in_network(payer_id=payer_id)
        supervisions = await self.supervisions.list_by_payer(payer_id, active_only=True)
        providers = await self.providers.list_all()

        return BookabilitySnapshot(
            payer=PayerBookabilityConfig(
                payer_id=payer.id,
                requires_attending=bool(payer.requires_attending),
                allows_supervised=bool(payer.allows_supervised),
            ),
            providers={p.id: p for p in providers},
            contracts=list(contracts),
            supervisions=list(supervisions),
        )

    async def bookable_providers(self, payer_id: uuid.UUID, on: date) -> list[BookableProvider]:
        snapshot = await self.load_snapshot(payer_id)
        result = resolve_bookable_providers(snapshot, on)
        logger.info("Payer %s: %d bookable provider(s) on %s", payer_id, len(result), on)
        return result

    async def find_bookable(
        self, payer_id: uuid.UUID, provider_id: uuid.UUID, on: date
    ) -> Optional[BookableProvider]:
        """Return the provider's bookability entry for the payer, or None."""
        for candidate in await self.bookable_providers(payer_id, on):
            if candidate.provider_id == provider_id:
                return candidate
        return None

    async def list_relationships(
        self, on: date, payer_id: Optional[uuid.UUID] = None
    ) -> list[BookableRelationship]:
        if payer_id is not None:
            payer = await self.payers.get_by_id(payer_id)
            if payer is None:
                raise NotFoundError("Payer not found", details={"payer_id": str(payer_id)})
            payers = [payer]
        else:
            payers = list(await self.payers.list_all())

        providers = {p.id: p for p in await self.providers.list_all()}
        contracts = await self.contracts.list_in_network(payer_id=payer_id)
        supervisions = await self.supervisions.list_all(payer_id=payer_id, active_only=True)
        return project_relationships(payers, providers, contracts, supervisions, on)
