# app/auth.py
"""
Shared authentication dependencies.

Identity comes from an upstream identity provider: regular users arrive
with an X-User-Id header, operators with the admin API key, which grants
the superadmin capability.
"""

import os
import secrets
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from app.errors import Forbidden


@dataclass(frozen=True)
class Principal:
    subject: str
    is_superadmin: bool = False

    @property
    def actor(self) -> str:
        """Value written to lifecycle events as initiated_by."""
        return f"operator:{self.subject}" if self.is_superadmin else f"user:{self.subject}"


def _check_admin_key(x_api_key: str) -> None:
    expected_key = os.getenv("ADMIN_API_KEY")

    if not expected_key:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: admin authentication not configured",
        )

    if not secrets.compare_digest(x_api_key, expected_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
        )


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Validate admin API key. Fails closed if ADMIN_API_KEY is not set."""
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    _check_admin_key(x_api_key)


def get_principal(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> Principal:
    """Resolve the caller. An API key, when sent, must be valid."""
    if x_api_key:
        _check_admin_key(x_api_key)
        return Principal(subject=x_user_id or "admin", is_superadmin=True)

    if x_user_id and x_user_id.strip():
        return Principal(subject=x_user_id.strip())

    raise HTTPException(status_code=401, detail="Authentication required")


def authorize_reclamation(principal: Principal) -> None:
    """Only superadmins may trigger reclamation by hand."""
    if not principal.is_superadmin:
        raise Forbidden("Superadmin capability required to run reclamation")


def require_superadmin(principal: Principal = Depends(get_principal)) -> Principal:
    authorize_reclamation(principal)
    return principal
