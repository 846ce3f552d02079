"""
Onboarding state machine.

Steps (canonical order):
  welcome -> gmail-connect -> scanning -> results -> gaps -> success

Paths chosen at welcome:
  gmail   walk the canonical order
  manual  jump straight to gaps; previous_step() from gaps returns to welcome
  skip    jump straight to success and persist the "skipped" marker

All transitions mutate OnboardingState in place and are synchronous,
except the ones that touch the persisted completion marker
(select_path, complete_onboarding, skip_onboarding, reset_onboarding,
start_with_gmail), which are coroutines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from services.api.onboarding.marker import OnboardingCompletion
from services.api.preferences.local_first import LocalFirstPreferences, PreferenceResult
from services.api.preferences.normalize import canonical_keys

logger = logging.getLogger(__name__)


class OnboardingStep(str, Enum):
    WELCOME = "welcome"
    GMAIL_CONNECT = "gmail-connect"
    SCANNING = "scanning"
    RESULTS = "results"
    GAPS = "gaps"
    SUCCESS = "success"


class OnboardingPath(str, Enum):
    GMAIL = "gmail"
    MANUAL = "manual"
    SKIP = "skip"


STEP_ORDER: tuple[OnboardingStep, ...] = tuple(OnboardingStep)


@dataclass
class ScannedData:
    hotels: int = 0
    flights: int = 0
    restaurants: int = 0
    activities: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hotels": self.hotels,
            "flights": self.flights,
            "restaurants": self.restaurants,
            "activities": self.activities,
        }


@dataclass
class OnboardingState:
    current_step: OnboardingStep = OnboardingStep.WELCOME
    selected_path: OnboardingPath | None = None
    is_complete: bool = False
    scanned_data: ScannedData = field(default_factory=ScannedData)
    detected_preferences: dict[str, Any] | None = None
    temporary_preferences: dict[str, Any] = field(default_factory=dict)
    is_scanning: bool = False
    scan_progress: float = 0.0
    """Always within [0, 100]."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStep": self.current_step.value,
            "selectedPath": self.selected_path.value if self.selected_path else None,
            "isComplete": self.is_complete,
            "scannedData": self.scanned_data.to_dict(),
            "detectedPreferences": self.detected_preferences,
            "temporaryPreferences": dict(self.temporary_preferences),
            "isScanning": self.is_scanning,
            "scanProgress": self.scan_progress,
        }


class OnboardingStateMachine:
    """
    One user's onboarding flow.

    Usage:
        machine = OnboardingStateMachine(user_id, completion, accessor)
        await machine.select_path("manual")      # -> gaps
        machine.update_temporary_preferences({"budgetType": "luxury"})
        await machine.complete_onboarding()      # saves the draft, -> success
    """

    def __init__(
        self,
        user_id: str,
        completion: OnboardingCompletion,
        accessor: LocalFirstPreferences | None = None,
    ) -> None:
        self.user_id = user_id
        self._completion = completion
        self._accessor = accessor
        self.state = OnboardingState(is_complete=completion.is_complete)

    @property
    def current_step(self) -> OnboardingStep:
        return self.state.current_step

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next_step(self) -> OnboardingStep:
        state = self.state
        if state.selected_path is OnboardingPath.MANUAL and state.current_step is OnboardingStep.WELCOME:
            state.current_step = OnboardingStep.GAPS
        elif state.selected_path is OnboardingPath.SKIP:
            state.current_step = OnboardingStep.SUCCESS
            state.is_complete = True
        else:
            index = STEP_ORDER.index(state.current_step)
            if index + 1 < len(STEP_ORDER):
                state.current_step = STEP_ORDER[index + 1]
        logger.debug("onboarding next: user=%s step=%s", self.user_id, state.current_step.value)
        return state.current_step

    def previous_step(self) -> OnboardingStep:
        state = self.state
        index = STEP_ORDER.index(state.current_step)
        if index > 0:
            if state.selected_path is OnboardingPath.MANUAL and state.current_step is OnboardingStep.GAPS:
                state.current_step = OnboardingStep.WELCOME
            else:
                state.current_step = STEP_ORDER[index - 1]
        logger.debug("onboarding previous: user=%s step=%s", self.user_id, state.current_step.value)
        return state.current_step

    def go_to_step(self, step: OnboardingStep | str) -> OnboardingStep:
        self.state.current_step = OnboardingStep(step)
        return self.state.current_step

    async def select_path(self, path: OnboardingPath | str) -> OnboardingStep:
        path = OnboardingPath(path)
        self.state.selected_path = path
        logger.info("onboarding path selected: user=%s path=%s", self.user_id, path.value)
        if path is OnboardingPath.GMAIL:
            return self.next_step()
        if path is OnboardingPath.MANUAL:
            return self.go_to_step(OnboardingStep.GAPS)
        await self.skip_onboarding()
        return self.state.current_step

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def update_temporary_preferences(self, prefs: Mapping[str, Any]) -> None:
        self.state.temporary_preferences.update(canonical_keys(prefs))

    def set_detected_preferences(self, prefs: Mapping[str, Any] | None) -> None:
        self.state.detected_preferences = canonical_keys(prefs) if prefs is not None else None

    def update_scanned_data(self, counts: Mapping[str, int]) -> None:
        for key, value in counts.items():
            if key in ScannedData.__dataclass_fields__:
                setattr(self.state.scanned_data, key, int(value))

    def preference_draft(self) -> dict[str, Any]:
        """Detected preferences with the user's manual answers laid over them."""
        draft = dict(self.state.detected_preferences or {})
        draft.update(self.state.temporary_preferences)
        return draft

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def start_scanning(self) -> None:
        self.state.is_scanning = True
        self.state.scan_progress = 0.0

    def stop_scanning(self) -> None:
        self.state.is_scanning = False
        self.state.scan_progress = 100.0

    def update_scan_progress(self, progress: float) -> float:
        self.state.scan_progress = float(min(100.0, max(0.0, progress)))
        return self.state.scan_progress

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def complete_onboarding(self) -> PreferenceResult | None:
        """
        Persist the preference draft (if an accessor is attached), write the
        "done" marker and finish. A failed save is reported on the returned
        result and does not stop completion.
        """
        result = None
        draft = self.preference_draft()
        if self._accessor is not None and draft:
            result = await self._accessor.save(self.user_id, draft)
            if result.error:
                logger.warning(
                    "onboarding: draft saved locally only user=%s error=%s",
                    self.user_id,
                    result.error,
                )
        await self._completion.mark_complete()
        self.state.is_complete = True
        self.state.current_step = OnboardingStep.SUCCESS
        logger.info("onboarding complete: user=%s", self.user_id)
        return result

    async def skip_onboarding(self) -> None:
        await self._completion.mark_skipped()
        self.state.is_complete = True
        self.state.current_step = OnboardingStep.SUCCESS
        logger.info("onboarding skipped: user=%s", self.user_id)

    async def reset_onboarding(self) -> None:
        await self._completion.clear()
        self.state = OnboardingState()
        logger.info("onboarding reset: user=%s", self.user_id)

    async def start_with_gmail(self) -> None:
        await self._completion.clear()
        self.state = OnboardingState(
            current_step=OnboardingStep.GMAIL_CONNECT,
            selected_path=OnboardingPath.GMAIL,
        )
        logger.info("onboarding restarted with gmail: user=%s", self.user_id)
