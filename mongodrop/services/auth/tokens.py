from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import jwt

from mongodrop.core.errors import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    AuthorizationDeniedError,
)


logger = logging.getLogger(__name__)

PRIVILEGED_ROLES: frozenset[str] = frozenset({"ADMIN", "SYSADMIN"})


def decode_key(raw: str) -> bytes:
    # Accept hex or base64 encoded keys to align with operator tooling.
    cleaned = raw.strip()
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        return base64.b64decode(cleaned)


def parse_bearer_token(header_value: str | None) -> str:
    # Enforce Bearer token format; absence and malformation are distinct failures.
    if not header_value or not header_value.strip():
        raise AuthenticationMissingError("Missing bearer token")
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationInvalidError("Missing or invalid bearer token")
    return parts[1]


def verify_token(
    token: str,
    *,
    secret: str | None,
    algorithm: str = "HS256",
    leeway_seconds: int = 0,
) -> dict[str, Any]:
    # Verify signature and registered claims (exp/nbf) against the shared key.
    if not secret:
        logger.warning("auth_token_key_missing")
        raise AuthenticationInvalidError("Token verification key is not configured")
    try:
        key = decode_key(secret)
    except (ValueError, binascii.Error) as exc:
        logger.warning("auth_token_key_invalid")
        raise AuthenticationInvalidError("Token verification key is invalid") from exc
    try:
        claims = jwt.decode(token, key, algorithms=[algorithm], leeway=leeway_seconds)
    except jwt.InvalidTokenError as exc:
        logger.info("auth_token_rejected reason=%s", type(exc).__name__)
        raise AuthenticationInvalidError("Invalid or expired token") from exc
    return claims


def require_privileged_role(claims: dict[str, Any], *, role_claim: str = "role") -> str:
    # Only ADMIN and SYSADMIN may trigger or inspect backups.
    role = claims.get(role_claim)
    normalized = role.strip().upper() if isinstance(role, str) else None
    if normalized not in PRIVILEGED_ROLES:
        raise AuthorizationDeniedError("Insufficient role for this operation")
    return normalized
