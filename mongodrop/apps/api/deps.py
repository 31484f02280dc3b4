from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from pydantic import BaseModel

from mongodrop.core.config import get_settings
from mongodrop.core.errors import AuthorizationDeniedError, MongodropError, ServiceUnavailableError
from mongodrop.services.auth.tokens import (
    parse_bearer_token,
    require_privileged_role,
    verify_token,
)
from mongodrop.services.coordinator import BackupCoordinator


logger = logging.getLogger(__name__)


class Principal(BaseModel):
    # Capture the verified caller; identity itself is owned by the token issuer.
    subject_id: str | None = None
    role: str
    claims: dict[str, Any]


async def require_operator(request: Request) -> Principal:
    # Verify the bearer token and allow only privileged roles through.
    settings = get_settings()
    try:
        token = parse_bearer_token(request.headers.get("Authorization"))
        claims = verify_token(
            token,
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            leeway_seconds=settings.jwt_leeway_seconds,
        )
        role = require_privileged_role(claims, role_claim=settings.jwt_role_claim)
    except AuthorizationDeniedError:
        logger.info("auth_forbidden path=%s method=%s", request.url.path, request.method)
        raise
    except MongodropError as exc:
        logger.info("auth_unauthorized code=%s path=%s", exc.code, request.url.path)
        raise

    subject = claims.get("sub")
    principal = Principal(
        subject_id=str(subject) if subject is not None else None,
        role=role,
        claims=claims,
    )
    request.state.principal = principal
    return principal


def get_coordinator(request: Request) -> BackupCoordinator:
    # The coordinator is wired at startup; absence means the app was not initialized.
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise ServiceUnavailableError("Backup coordinator is not initialized")
    return coordinator
