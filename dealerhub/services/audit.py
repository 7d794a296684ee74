from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncSession
from dealerhub.models.audit_log import AuditLog

async def audit(
    db: AsyncSession,
    *,
    actor_id: str | None,
    action: str,
    dealership_id: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    detail: dict | None = None,
) -> None:
    db.add(AuditLog(
        dealership_id=dealership_id,
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail=detail or {},
    ))
