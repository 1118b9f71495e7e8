from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from ..config import settings
from ..exceptions import UnauthorizedError
from ..services.visit_guard import AuthContext, ROLES

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AuthContext:
    """Tenant, user and role from the bearer token issued by the identity provider."""
    if credentials is None:
        raise UnauthorizedError("Missing or malformed Authorization header")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid or expired token")

    user_id = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    role = payload.get("role")
    if not user_id or not tenant_id or role not in ROLES:
        raise UnauthorizedError("Invalid token payload")

    return AuthContext(tenant_id=str(tenant_id), user_id=str(user_id), role=role)


def get_correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)
