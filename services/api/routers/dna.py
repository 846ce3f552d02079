"""
Travel DNA endpoints.

Endpoints:
  GET   /dna                  -- scores, archetype, completeness and stats for the caller
  POST  /dna/score            -- the same profile for an arbitrary preference body (pure)
  POST  /dna/refresh          -- recompute DNA fields and save them to the caller's profile
  GET   /dna/recommendations  -- rule-based destination suggestions
  GET   /dna/archetypes       -- static archetype definitions

Auth: X-User-Id header. /dna/score and /dna/archetypes need no identity.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from services.api.dna.archetypes import ARCHETYPE_DEFINITIONS
from services.api.dna.recommendations import recommend_destinations
from services.api.dna.scoring import build_profile, update_dna
from services.api.preferences.local_first import LocalFirstPreferences
from services.api.routers._deps import envelope, get_accessor, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dna", tags=["dna"])

_DNA_FIELDS = (
    "dna_scores",
    "travel_archetype",
    "dna_completeness",
    "dna_created_at",
    "dna_updated_at",
)


@router.get("")
async def get_dna(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    if not user_id:
        return envelope(request, None)
    result = await accessor.load(user_id)
    if result.preferences is None:
        return envelope(request, None)
    return envelope(request, build_profile(result.preferences))


@router.post("/score")
async def score_preferences(
    request: Request,
    preferences: dict[str, Any] = Body(...),
) -> dict:
    return envelope(request, build_profile(preferences))


@router.post("/refresh")
async def refresh_dna(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    if not user_id:
        return envelope(request, None)
    loaded = await accessor.load(user_id)
    if loaded.preferences is None:
        return envelope(request, None)

    refreshed = update_dna(loaded.preferences)
    dna = {name: getattr(refreshed, name) for name in _DNA_FIELDS}
    saved = await accessor.save(user_id, dna)
    logger.info(
        "dna_refreshed user=%s archetype=%s completeness=%s",
        user_id,
        refreshed.travel_archetype,
        refreshed.dna_completeness,
    )
    return envelope(
        request,
        {"profile": build_profile(refreshed), "save": saved.to_dict()},
    )


@router.get("/recommendations")
async def get_recommendations(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    accessor: LocalFirstPreferences = Depends(get_accessor),
) -> dict:
    if not user_id:
        return envelope(request, None)
    result = await accessor.load(user_id)
    recs = recommend_destinations(result.preferences)
    return envelope(request, [r.to_dict() for r in recs])


@router.get("/archetypes")
async def list_archetypes(request: Request) -> dict:
    return envelope(
        request,
        {archetype.value: definition.to_dict() for archetype, definition in ARCHETYPE_DEFINITIONS.items()},
    )
