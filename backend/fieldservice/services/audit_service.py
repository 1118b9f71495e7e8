from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.audit import AuditEvent


async def log_action(
    db: AsyncSession,
    tenant_id: str,
    user_id: str | None,
    action: str,
    resource: str,
    resource_id: str | None = None,
    details: dict[str, Any] | None = None,
    correlation_id: str | None = None,
):
    entry = AuditEvent(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        details=details,
        correlation_id=correlation_id,
    )
    db.add(entry)
    await db.commit()
