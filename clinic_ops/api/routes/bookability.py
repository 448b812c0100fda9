"""Bookability endpoints: bookable providers, relationships and sanity checks."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import get_current_user, require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.bookability import (
    BookabilityResolver,
    BookableProvider,
    BookableRelationship,
    PayerSanityCheckService,
    SanityCheckResults,
)
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.repository import ProviderRepository
from clinic_ops.export.csv_export import bookability_csv

router = APIRouter()


@router.get(
    "/payers/{payer_id}/bookable-providers",
    response_model=ApiSuccess[list[BookableProvider]],
)
async def list_bookable_providers(
    payer_id: uuid.UUID,
    service_date: Optional[date] = Query(None, alias="date"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Providers bookable for the payer on the service date (default today)."""
    providers = await BookabilityResolver(db).bookable_providers(payer_id, service_date or date.today())
    return ApiSuccess(data=providers)


@router.get(
    "/admin/bookability/relationships",
    response_model=ApiSuccess[list[BookableRelationship]],
)
async def list_bookable_relationships(
    service_date: Optional[date] = Query(None, alias="date"),
    payer_id: Optional[uuid.UUID] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    relationships = await BookabilityResolver(db).list_relationships(service_date or date.today(), payer_id)
    return ApiSuccess(data=relationships)


@router.get("/admin/bookability/export.csv")
async def export_bookability_csv(
    service_date: Optional[date] = Query(None, alias="date"),
    payer_id: Optional[uuid.UUID] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Response:
    on = service_date or date.today()
    relationships = await BookabilityResolver(db).list_relationships(on, payer_id)
    names = {p.id: p.full_name for p in await ProviderRepository(db).list_all()}
    return Response(
        content=bookability_csv(relationships, names),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="bookability-{on.isoformat()}.csv"'},
    )


@router.get(
    "/admin/payers/{payer_id}/sanity-check",
    response_model=ApiSuccess[SanityCheckResults],
)
async def run_sanity_check(
    payer_id: uuid.UUID,
    check_date: Optional[date] = Query(None, alias="date"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Run the payer contract sanity checks."""
    results = await PayerSanityCheckService(db).run_all_checks(payer_id, check_date)
    return ApiSuccess(data=results)


@router.get("/admin/payers/{payer_id}/sanity-check/report", response_class=PlainTextResponse)
async def sanity_check_report(
    payer_id: uuid.UUID,
    check_date: Optional[date] = Query(None, alias="date"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Plain-text rendering of the sanity check results."""
    results = await PayerSanityCheckService(db).run_all_checks(payer_id, check_date)
    return PayerSanityCheckService.generate_summary_report(results)
