"""JWT validation and user authentication dependencies.

This module provides:
- JWT validation against Supabase JWKS
- User authentication and auto-creation
- Role claims read from the verified token's app_metadata
- RLS-aware database session dependency
"""

import logging
import time
import uuid as uuid_pkg
from collections.abc import AsyncGenerator
from typing import Annotated, Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.backends import ECKey
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.rls import set_rls_claims_context, set_rls_user_context
from app.domain.user_operations import user_ops
from app.models.user import User
from app.roles.claims import RoleClaims

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cache for JWKS with TTL to handle key rotation
_jwks_cache: dict[str, Any] = {}
_jwks_cache_timestamp: float = 0.0
_JWKS_CACHE_TTL_SECONDS: float = 3600.0  # 1 hour


async def _fetch_jwks() -> dict[str, Any]:
    """Fetch JWKS from Supabase and update the cache."""
    global _jwks_cache_timestamp
    async with httpx.AsyncClient(timeout=settings.identity_timeout_seconds) as client:
        response = await client.get(settings.supabase_jwks_url)
        response.raise_for_status()
        jwks = response.json()
        _jwks_cache.clear()
        _jwks_cache.update(jwks)
        _jwks_cache_timestamp = time.monotonic()
        return jwks


async def get_jwks(force_refresh: bool = False) -> dict[str, Any]:
    """Fetch and cache JWKS from Supabase with a 1-hour TTL."""
    cache_age = time.monotonic() - _jwks_cache_timestamp
    if _jwks_cache and not force_refresh and cache_age < _JWKS_CACHE_TTL_SECONDS:
        return _jwks_cache

    return await _fetch_jwks()


def get_signing_key(jwks: dict[str, Any], token: str) -> ECKey:
    """Get the signing key from JWKS that matches the token's kid."""
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return ECKey(key, algorithm="ES256")

    raise ValueError("Unable to find matching key in JWKS")


async def _decode(token: str, force_refresh: bool = False) -> dict[str, Any]:
    jwks = await get_jwks(force_refresh=force_refresh)
    signing_key = get_signing_key(jwks, token)
    payload: dict[str, Any] = jwt.decode(
        token,
        signing_key,
        algorithms=["ES256"],
        audience="authenticated",
    )
    if not payload.get("sub"):
        raise ValueError("Token has no subject")
    uuid_pkg.UUID(payload["sub"])
    return payload


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict[str, Any]:
    """
    Validate the Supabase JWT and return its verified payload.

    Everything downstream (user id, role claims) is read from this payload,
    never from the request body.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    token = credentials.credentials

    try:
        return await _decode(token)
    except (JWTError, ValueError) as first_error:
        # Key rotation may have occurred: force a JWKS refresh and retry once
        try:
            logger.info("JWT validation failed with cached JWKS, forcing refresh")
            return await _decode(token, force_refresh=True)
        except (JWTError, ValueError, httpx.HTTPError):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            ) from first_error
    except httpx.HTTPError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None


TokenPayload = Annotated[dict[str, Any], Depends(get_token_payload)]


async def get_current_user(
    payload: TokenPayload,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Return the user for the verified token.

    Creates user record on first API call if not exists.
    """
    user_id = uuid_pkg.UUID(payload["sub"])
    return await user_ops.get_or_create(db, user_id, email=payload.get("email"))


async def get_role_claims(payload: TokenPayload) -> RoleClaims | None:
    """
    Role claims from the verified token's app_metadata.

    Returns None when the token carries no (or malformed) role claims; policy
    checks then deny.
    """
    app_metadata = payload.get("app_metadata") or {}
    return RoleClaims.from_claims(app_metadata)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentClaims = Annotated[RoleClaims | None, Depends(get_role_claims)]


async def get_db_with_rls(
    db: DbSession,
    current_user: CurrentUser,
    claims: CurrentClaims,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Database session with RLS user and claims context automatically set.

    The RLS context is transaction-scoped and automatically cleared when the
    transaction ends. This works correctly with connection poolers like
    PgBouncer.

    Note: Use regular get_db for public endpoints or admin operations
    that should bypass RLS (when using service role connection).
    """
    await set_rls_user_context(db, current_user.id)
    await set_rls_claims_context(db, claims)
    yield db
