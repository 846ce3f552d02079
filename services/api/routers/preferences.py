"""
Preference endpoints.

Endpoints:
  GET    /preferences            -- local-first read (snapshot now, reconcile in background)
  PATCH  /preferences            -- optimistic save; remote failure keeps the local write
  DELETE /preferences            -- right to erasure: remote record, cache and snapshot
  POST   /preferences/merge      -- profile + session overrides -> effective + provenance
  POST   /preferences/request    -- lay effective preferences into a generation request

Auth: X-User-Id header (set by the gateway). Without it every endpoint
answers success with data: null and touches nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from services.api.config import settings
from services.api.preferences.local_first import LocalFirstPreferences
from services.api.preferences.merge import (
    RequestDefaults,
    build_metadata,
    merge_into_request,
    merge_preferences,
    tracking_to_dict,
)
from services.api.preferences.normalize import normalize_preferences
from services.api.preferences.store import PreferenceStore
from services.api.preferences.types import UserPreferences
from services.api.routers._deps import envelope, get_accessor, get_store, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preferences", tags=["preferences"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class MergeBody(BaseModel):
    profile: Optional[dict[str, Any]] = None
    """Explicit profile; when omitted the caller's stored preferences are used."""
    overrides: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class GenerationRequestBody(BaseModel):
    request: dict[str, Any] = Field(default_factory=dict)
    overrides: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _resolve_profile(
    body_profile: Optional[dict[str, Any]],
    user_id: str | None,
    accessor: LocalFirstPreferences,
) -> UserPreferences | None:
    if body_profile is not None:
        return normalize_preferences(body_profile, user_id=user_id)
    if not user_id:
        return None
    result = await accessor.load(user_id)
    return result.preferences


def _request_defaults() -> RequestDefaults:
    return RequestDefaults(
        budget=settings.default_budget,
        budget_type=settings.default_budget_type,
        pace=settings.default_pace,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("")
async def get_preferences(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    if not user_id:
        return envelope(request, None)
    result = await accessor.load(user_id)
    return envelope(request, result.to_dict())


@router.patch("")
async def update_preferences(
    request: Request,
    partial: dict[str, Any] = Body(...),
    wait: bool = Query(default=True, description="Wait for the remote write before answering."),
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    if not user_id:
        return envelope(request, None)
    result = await accessor.save(user_id, partial, wait=wait)
    logger.info(
        "preferences_saved user=%s fields=%d source=%s error=%s",
        user_id,
        len(partial),
        result.source,
        bool(result.error),
    )
    return envelope(request, result.to_dict())


@router.delete("")
async def delete_preferences(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    store: PreferenceStore = Depends(get_store),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    if not user_id:
        return envelope(request, None)
    deleted = await store.delete(user_id)
    if not deleted:
        raise HTTPException(
            status_code=503,
            detail={
                "success": False,
                "error": {
                    "code": "STORE_UNAVAILABLE",
                    "message": "Preferences could not be deleted. Try again later.",
                },
            },
        )
    await accessor.forget(user_id)
    logger.info("preferences_deleted user=%s", user_id)
    return envelope(request, {"deleted": True})


@router.post("/merge")
async def merge(
    request: Request,
    body: MergeBody,
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    profile = await _resolve_profile(body.profile, user_id, accessor)
    result = merge_preferences(profile, body.overrides, enabled=body.enabled)
    metadata = build_metadata(result.tracking)
    return envelope(
        request,
        {
            "effective": result.effective.to_dict() if result.effective else None,
            "tracking": tracking_to_dict(result.tracking),
            "metadata": metadata.to_dict(),
        },
    )


@router.post("/request")
async def merge_generation_request(
    request: Request,
    body: GenerationRequestBody,
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    profile = await _resolve_profile(None, user_id, accessor)
    stage_one = merge_preferences(profile, body.overrides, enabled=body.enabled)
    merged, metadata = merge_into_request(
        body.request,
        stage_one.effective,
        stage_one.tracking,
        defaults=_request_defaults(),
    )
    return envelope(request, {"request": merged, "metadata": metadata.to_dict()})
