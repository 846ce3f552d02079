"""Onboarding gate and the per-user session registry."""

import pytest

from services.api.onboarding.gate import needs_onboarding
from services.api.onboarding.scan import InstantScanDriver, SimulatedScanDriver
from services.api.onboarding.sessions import OnboardingSessions
from services.api.onboarding.state import OnboardingState, OnboardingStep
from services.api.tests.conftest import FakeClock


class TestNeedsOnboarding:
    def test_anonymous_never_gated(self, completion):
        assert needs_onboarding(None, completion, None) is False

    def test_new_user_gated(self, completion):
        assert needs_onboarding("u1", completion, None) is True

    @pytest.mark.asyncio
    async def test_marker_lets_everyone_through(self, completion):
        await completion.mark_skipped()
        assert needs_onboarding("u1", completion, OnboardingState()) is False

    def test_in_progress_gated(self, completion):
        state = OnboardingState(current_step=OnboardingStep.GAPS)
        assert needs_onboarding("u1", completion, state) is True

    def test_finished_session_not_gated(self, completion):
        state = OnboardingState(current_step=OnboardingStep.SUCCESS)
        assert needs_onboarding("u1", completion, state) is False


class TestOnboardingSessions:
    def test_get_or_create_reuses_session(self, sessions):
        first = sessions.get_or_create("u1")
        assert sessions.get_or_create("u1") is first
        assert sessions.get("u2") is None
        assert len(sessions) == 1

    @pytest.mark.asyncio
    async def test_start_scan_runs_to_results(self, sessions):
        session = sessions.get_or_create("u1")
        session.machine.go_to_step(OnboardingStep.SCANNING)
        await sessions.start_scan("u1")
        await session.runner.wait()
        assert session.machine.current_step is OnboardingStep.RESULTS
        assert session.scan_message is not None

    @pytest.mark.asyncio
    async def test_restart_replaces_runner(self, sessions):
        session = sessions.get_or_create("u1")
        session.machine.go_to_step(OnboardingStep.SCANNING)
        await sessions.start_scan("u1")
        first = session.runner
        await sessions.start_scan("u1")
        assert session.runner is not first
        await session.runner.wait()

    @pytest.mark.asyncio
    async def test_discard(self, sessions):
        session = sessions.get_or_create("u1")
        session.machine.go_to_step(OnboardingStep.SCANNING)
        await sessions.start_scan("u1")
        await sessions.discard("u1")
        assert sessions.get("u1") is None
        assert session.runner is None

    @pytest.mark.asyncio
    async def test_sessions_share_completion(self, sessions, completion):
        assert sessions.completion is completion
        await sessions.get_or_create("u1").machine.select_path("skip")
        assert sessions.get_or_create("u2").machine.state.is_complete is True


class TestSessionLifecycle:
    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def registry(self, completion, clock) -> OnboardingSessions:
        return OnboardingSessions(
            completion,
            driver_factory=InstantScanDriver,
            finish_delay_s=0,
            idle_ttl_s=60,
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_finished_session_released(self, registry):
        session = registry.get_or_create("u1")
        assert await registry.release_if_finished("u1") is False

        await session.machine.skip_onboarding()
        assert await registry.release_if_finished("u1") is True
        assert registry.get("u1") is None
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_returning_user_gets_fresh_machine(self, registry):
        await registry.get_or_create("u1").machine.complete_onboarding()
        await registry.release_if_finished("u1")
        state = registry.get_or_create("u1").machine.state
        assert state.is_complete is True
        assert state.current_step is OnboardingStep.WELCOME

    def test_idle_sessions_expire(self, registry, clock):
        for user in ("u1", "u2", "u3"):
            registry.get_or_create(user)
        clock.advance(30)
        registry.get_or_create("u1")
        clock.advance(45)

        registry.get_or_create("u4")
        assert registry.get("u1") is not None
        assert registry.get("u2") is None
        assert registry.get("u3") is None
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_scanning_session_not_expired(self, clock, completion):
        slow = OnboardingSessions(
            completion,
            driver_factory=lambda: SimulatedScanDriver(interval_s=60),
            idle_ttl_s=60,
            clock=clock,
        )
        session = slow.get_or_create("u1")
        session.machine.go_to_step(OnboardingStep.SCANNING)
        await slow.start_scan("u1")
        clock.advance(120)

        slow.get_or_create("u2")
        assert slow.get("u1") is session
        await slow.aclose()
