"""Shared dependencies and response helpers for the preference routers."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi import Header, HTTPException, Request

from services.api.onboarding.sessions import OnboardingSessions
from services.api.preferences.local_first import LocalFirstPreferences
from services.api.preferences.store import PreferenceStore


def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str | None:
    """
    The authenticated user's id from the gateway header, or None.

    Missing identity is not an error here: every endpoint answers a
    no-op (data: null) instead of 401.
    """
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def envelope(request: Request, data: Any) -> dict:
    return {"success": True, "data": data, "requestId": request_id(request)}


def _state_attr(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail={
                "success": False,
                "error": {"code": "SERVICE_UNAVAILABLE", "message": f"{name} not initialized."},
            },
        )
    return value


def get_accessor(request: Request) -> LocalFirstPreferences:
    return _state_attr(request, "preferences")


def get_store(request: Request) -> PreferenceStore:
    return _state_attr(request, "preference_store")


def get_sessions(request: Request) -> OnboardingSessions:
    return _state_attr(request, "onboarding")
