"""Admin mutation audit trail.

Writes an ``AuditLog`` row in a savepoint on the request's session. A failed
write rolls back only that savepoint and is logged; the request proceeds.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import client_ip
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.repository import AuditRepository

logger = logging.getLogger(__name__)


async def record_admin_action(
    db: AsyncSession,
    request: Request,
    user: CurrentUser,
    action: str,
    resource_type: str,
    resource_id: Any,
    changes: Optional[dict] = None,
) -> None:
    """Append an audit entry for an admin mutation."""
    try:
        async with db.begin_nested():
            await AuditRepository(db).log_action(
                action=action,
                resource_type=resource_type,
                resource_id=str(resource_id),
                performed_by=user.email or user.id,
                changes=changes,
                ip_address=client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
    except Exception:
        logger.exception(f"Failed to write audit entry for {action} {resource_type}/{resource_id}")
