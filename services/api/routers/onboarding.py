"""
Onboarding flow endpoints.

Endpoints:
  GET   /onboarding              -- current state, gate decision, scan status
  POST  /onboarding/path         -- choose gmail | manual | skip at welcome
  POST  /onboarding/next         -- advance one step (path shortcuts apply)
  POST  /onboarding/previous     -- go back one step (manual gaps -> welcome)
  POST  /onboarding/step         -- jump to a named step
  POST  /onboarding/scan         -- start the inbox scan (moves gmail-connect -> scanning)
  POST  /onboarding/preferences  -- record manual answers (partial preferences)
  POST  /onboarding/complete     -- save the preference draft, mark done
  POST  /onboarding/skip         -- mark skipped
  POST  /onboarding/reset        -- clear the marker, start over
  POST  /onboarding/gmail        -- clear the marker, start at gmail-connect

Auth: X-User-Id header. Without it every endpoint answers data: null.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import BaseModel

from services.api.onboarding.gate import needs_onboarding
from services.api.onboarding.sessions import OnboardingSession, OnboardingSessions
from services.api.onboarding.state import OnboardingPath, OnboardingStep
from services.api.routers._deps import envelope, get_sessions, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class PathBody(BaseModel):
    path: OnboardingPath


class StepBody(BaseModel):
    step: OnboardingStep


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _view(sessions: OnboardingSessions, session: OnboardingSession) -> dict:
    machine = session.machine
    return {
        "state": machine.state.to_dict(),
        "needsOnboarding": needs_onboarding(machine.user_id, sessions.completion, machine.state),
        "marker": sessions.completion.value,
        "scanning": bool(session.runner and session.runner.running),
        "scanMessage": session.scan_message,
    }


async def _respond(
    request: Request,
    sessions: OnboardingSessions,
    session: OnboardingSession,
    **extra: Any,
) -> dict:
    """Envelope the session view, then drop the session if its flow has finished."""
    data = _view(sessions, session)
    data.update(extra)
    await sessions.release_if_finished(session.machine.user_id)
    return envelope(request, data)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("")
async def get_onboarding(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    return envelope(request, _view(sessions, sessions.get_or_create(user_id)))


@router.post("/path")
async def select_path(
    request: Request,
    body: PathBody,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    await session.machine.select_path(body.path)
    return await _respond(request, sessions, session)


@router.post("/next")
async def next_step(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    session.machine.next_step()
    return await _respond(request, sessions, session)


@router.post("/previous")
async def previous_step(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    session.machine.previous_step()
    return await _respond(request, sessions, session)


@router.post("/step")
async def go_to_step(
    request: Request,
    body: StepBody,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    session.machine.go_to_step(body.step)
    return await _respond(request, sessions, session)


@router.post("/scan")
async def start_scan(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    machine = session.machine
    if machine.current_step is OnboardingStep.GMAIL_CONNECT:
        machine.next_step()
    if machine.current_step is not OnboardingStep.SCANNING:
        raise HTTPException(
            status_code=409,
            detail={
                "success": False,
                "error": {
                    "code": "INVALID_STEP",
                    "message": f"Cannot scan from step '{machine.current_step.value}'.",
                },
            },
        )
    session = await sessions.start_scan(user_id)
    logger.info("onboarding_scan_started user=%s", user_id)
    return await _respond(request, sessions, session)


@router.post("/preferences")
async def update_temporary_preferences(
    request: Request,
    prefs: dict[str, Any] = Body(...),
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    session.machine.update_temporary_preferences(prefs)
    return await _respond(request, sessions, session)


@router.post("/complete")
async def complete_onboarding(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    await session.stop_scan()
    saved = await session.machine.complete_onboarding()
    return await _respond(request, sessions, session, save=saved.to_dict() if saved else None)


@router.post("/skip")
async def skip_onboarding(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    await session.stop_scan()
    await session.machine.skip_onboarding()
    return await _respond(request, sessions, session)


@router.post("/reset")
async def reset_onboarding(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    await session.stop_scan()
    await session.machine.reset_onboarding()
    return await _respond(request, sessions, session)


@router.post("/gmail")
async def start_with_gmail(
    request: Request,
    user_id: str | None = Depends(get_user_id),
    sessions: OnboardingSessions = Depends(get_sessions),
) -> dict:
    if not user_id:
        return envelope(request, None)
    session = sessions.get_or_create(user_id)
    await session.stop_scan()
    await session.machine.start_with_gmail()
    return await _respond(request, sessions, session)
