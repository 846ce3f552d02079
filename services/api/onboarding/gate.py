"""Onboarding gate: should this request see the onboarding flow instead of the app?"""

from __future__ import annotations

from services.api.onboarding.marker import OnboardingCompletion
from services.api.onboarding.state import OnboardingState, OnboardingStep


def needs_onboarding(
    user_id: str | None,
    completion: OnboardingCompletion,
    state: OnboardingState | None,
) -> bool:
    if not user_id or completion.is_complete:
        return False
    if state is None:
        return True
    return not state.is_complete and state.current_step is not OnboardingStep.SUCCESS
