from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError, ForbiddenError
from ..models.visit import Visit

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER)


@dataclass(frozen=True)
class AuthContext:
    """Caller identity, already authenticated and tenant-scoped upstream."""

    tenant_id: str
    user_id: str
    role: str


async def _load_visit(db: AsyncSession, tenant_id: str, visit_id: str) -> Visit:
    result = await db.execute(select(Visit).where(Visit.tenant_id == tenant_id, Visit.id == visit_id))
    visit = result.scalar_one_or_none()
    if not visit:
        raise NotFoundError("Visit not found")
    return visit


def _check_assignment(visit: Visit, auth: AuthContext, message: str):
    # Owners and admins see every visit in the tenant.
    if auth.role == ROLE_MEMBER and visit.assigned_user_id != auth.user_id:
        raise ForbiddenError(message)


async def require_visit_access(
    db: AsyncSession,
    auth: AuthContext,
    visit_id: str,
    action: str,
    member_action: str = "manage photos on",
) -> Visit:
    """Load a visit the caller may modify photos on.

    ``action`` completes the editability error, e.g. "add photos to";
    ``member_action`` completes the assignment error for members.
    """
    visit = await _load_visit(db, auth.tenant_id, visit_id)
    if not visit.is_editable:
        raise ValidationError(f'Cannot {action} a visit with status "{visit.status}"')
    _check_assignment(visit, auth, f"Members can only {member_action} their own assigned visits")
    return visit


async def require_visit_read_access(db: AsyncSession, auth: AuthContext, visit_id: str) -> Visit:
    visit = await _load_visit(db, auth.tenant_id, visit_id)
    _check_assignment(visit, auth, "Members can only view photos on their own assigned visits")
    return visit
