"""FastAPI dependencies: pool handle, settings and auth checks."""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, Header, Request

from drydock.config import Settings
from drydock.errors import ForbiddenError, UnauthorizedError
from drydock.services.pool.manager import PoolManager


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pool_manager(request: Request) -> PoolManager:
    return request.app.state.pool


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _same(token: str, expected: str) -> bool:
    return secrets.compare_digest(token.encode(), expected.encode())


def _matches_any(token: str, candidates: list[str]) -> bool:
    return any(_same(token, candidate) for candidate in candidates)


async def require_admin(
    settings: Annotated[Settings, Depends(get_app_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Admin API key check.

    - no or unknown key -> 401
    - known non-admin key -> 403
    """
    token = _bearer_token(authorization)
    if token is None:
        raise UnauthorizedError("Missing API key")

    if _matches_any(token, settings.security.admin_api_keys):
        return token
    if _matches_any(token, settings.security.api_keys):
        raise ForbiddenError("Admin access required")
    raise UnauthorizedError("Invalid API key")


async def require_internal_secret(
    settings: Annotated[Settings, Depends(get_app_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Shared-secret check for scheduler/internal callers.

    An unset secret rejects every call.
    """
    secret = settings.security.internal_secret
    token = _bearer_token(authorization)
    if not secret or token is None or not _same(token, secret):
        raise UnauthorizedError("Unauthorized")


PoolDep = Annotated[PoolManager, Depends(get_pool_manager)]
