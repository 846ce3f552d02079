"""
services.api.onboarding — guided setup flow.

Usage:
    from services.api.onboarding import OnboardingSessions, needs_onboarding

    session = sessions.get_or_create(user_id)
    await session.machine.select_path("gmail")
"""

from __future__ import annotations

from services.api.onboarding.gate import needs_onboarding
from services.api.onboarding.marker import MARKER_COMPLETE, MARKER_SKIPPED, OnboardingCompletion
from services.api.onboarding.scan import (
    InstantScanDriver,
    ScanDriver,
    ScanEvent,
    ScanRunner,
    SimulatedScanDriver,
)
from services.api.onboarding.sessions import OnboardingSession, OnboardingSessions
from services.api.onboarding.state import (
    OnboardingPath,
    OnboardingState,
    OnboardingStateMachine,
    OnboardingStep,
    ScannedData,
)

__all__ = [
    "needs_onboarding",
    "MARKER_COMPLETE",
    "MARKER_SKIPPED",
    "OnboardingCompletion",
    "InstantScanDriver",
    "ScanDriver",
    "ScanEvent",
    "ScanRunner",
    "SimulatedScanDriver",
    "OnboardingSession",
    "OnboardingSessions",
    "OnboardingPath",
    "OnboardingState",
    "OnboardingStateMachine",
    "OnboardingStep",
    "ScannedData",
]
