"""API dependencies - re-exports from submodules."""

from .auth import (
    CurrentClaims,
    CurrentUser,
    DbSession,
    TokenPayload,
    get_current_user,
    get_db_with_rls,
    get_jwks,
    get_role_claims,
    get_signing_key,
    get_token_payload,
    security,
)
from .organization import PolicyGate, get_organization

__all__ = [
    # Auth
    "security",
    "get_jwks",
    "get_signing_key",
    "get_token_payload",
    "get_current_user",
    "get_role_claims",
    "get_db_with_rls",
    "DbSession",
    "CurrentUser",
    "CurrentClaims",
    "TokenPayload",
    # Organization
    "get_organization",
    "PolicyGate",
]
