"""Finance exports (admin only)."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import require_admin
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.export.csv_export import pay_period_csv, pay_period_summary

router = APIRouter()


@router.get("/pay-period.csv")
async def export_pay_period(
    start: date = Query(...),
    end: date = Query(...),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Completed appointments per rendering provider times their pay rate."""
    rows = await pay_period_summary(db, start, end)
    return Response(
        content=pay_period_csv(rows),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="pay-period-{start.isoformat()}-{end.isoformat()}.csv"'
        },
    )
