"""Bearer-token dependencies for protected routes."""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.schemas import UserRole
from services.auth import AuthenticationError, TokenClaims
from services.container import ServiceContainer, build_default_container

_bearer = HTTPBearer(auto_error=False)


def get_container() -> ServiceContainer:
    return build_default_container()


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    container: ServiceContainer = Depends(get_container),
) -> TokenClaims:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return container.auth.verify_token(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_role(*roles: UserRole) -> Callable[[TokenClaims], TokenClaims]:
    allowed = set(roles)

    def dependency(claims: TokenClaims = Depends(require_user)) -> TokenClaims:
        if claims.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions.",
            )
        return claims

    return dependency
