"""
Scan drivers and the runner that applies them to a state machine.

SimulatedScanDriver runs with a seeded RNG and a no-op sleep so the
random walk is deterministic and instant.
"""

import asyncio
import random

import pytest

from services.api.onboarding.scan import (
    FOUND_ITEM_TYPES,
    SCAN_MESSAGES,
    InstantScanDriver,
    ScanEvent,
    ScanRunner,
    SimulatedScanDriver,
)
from services.api.onboarding.state import OnboardingStateMachine, OnboardingStep


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def machine(completion) -> OnboardingStateMachine:
    machine = OnboardingStateMachine("u1", completion)
    machine.go_to_step(OnboardingStep.SCANNING)
    return machine


def _seeded_driver(seed: int = 7) -> SimulatedScanDriver:
    return SimulatedScanDriver(interval_s=0, rng=random.Random(seed), sleep=_no_sleep)


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------

class TestSimulatedScanDriver:
    @pytest.mark.asyncio
    async def test_event_stream_shape(self):
        events = [event async for event in _seeded_driver().events()]

        first, last = events[0], events[-1]
        assert first.progress == 0.0
        assert first.message == SCAN_MESSAGES[0]
        assert last.done is True
        assert last.progress == 100.0
        assert last.detected_preferences["budget_type"] == "mid_range"
        assert sum(1 for e in events if e.done) == 1

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_bounded(self):
        events = [event async for event in _seeded_driver(11).events()]
        progress = [event.progress for event in events]
        assert progress == sorted(progress)
        assert all(0 <= p <= 100 for p in progress)

    @pytest.mark.asyncio
    async def test_messages_and_found_items_from_known_sets(self):
        events = [event async for event in _seeded_driver(3).events()]
        assert all(e.message in SCAN_MESSAGES for e in events if e.message)
        assert all(e.found in FOUND_ITEM_TYPES for e in events if e.found)

    @pytest.mark.asyncio
    async def test_messages_advance_in_order(self):
        events = [event async for event in _seeded_driver(5).events()]
        indexes = [SCAN_MESSAGES.index(e.message) for e in events if e.message]
        assert indexes == sorted(indexes)


class TestInstantScanDriver:
    @pytest.mark.asyncio
    async def test_found_events_then_done(self):
        events = [event async for event in InstantScanDriver(counts={"hotels": 2}).events()]
        assert [e.found for e in events[:-1]] == ["hotels", "hotels"]
        assert events[-1].done is True
        assert events[-1].message == SCAN_MESSAGES[-1]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class TestScanRunner:
    @pytest.mark.asyncio
    async def test_instant_scan_advances_to_results(self, machine):
        runner = ScanRunner(machine, InstantScanDriver(), finish_delay_s=0)
        runner.start()
        assert machine.state.is_scanning is True
        await runner.wait()

        state = machine.state
        assert state.current_step is OnboardingStep.RESULTS
        assert state.is_scanning is False
        assert state.scan_progress == 100.0
        assert state.scanned_data.to_dict() == {"hotels": 5, "flights": 4, "restaurants": 10, "activities": 3}
        assert state.detected_preferences["pace_preference"] == "moderate"
        assert runner.message == SCAN_MESSAGES[-1]
        assert runner.running is False

    @pytest.mark.asyncio
    async def test_simulated_scan_completes(self, machine):
        runner = ScanRunner(machine, _seeded_driver(), finish_delay_s=0, sleep=_no_sleep)
        runner.start()
        await runner.wait()
        assert machine.current_step is OnboardingStep.RESULTS
        assert machine.state.detected_preferences is not None

    @pytest.mark.asyncio
    async def test_abandoned_when_step_changes(self, machine):
        runner = ScanRunner(machine, InstantScanDriver(), finish_delay_s=0)
        runner.start()
        machine.go_to_step(OnboardingStep.WELCOME)
        await runner.wait()
        assert machine.current_step is OnboardingStep.WELCOME
        assert machine.state.is_scanning is False
        assert machine.state.detected_preferences is None

    @pytest.mark.asyncio
    async def test_no_advance_if_user_moved_during_finish_delay(self, machine):
        moved = []

        async def _move_on(_seconds):
            machine.go_to_step(OnboardingStep.GAPS)
            moved.append(True)

        runner = ScanRunner(machine, InstantScanDriver(), finish_delay_s=1.0, sleep=_move_on)
        runner.start()
        await runner.wait()
        assert moved == [True]
        assert machine.current_step is OnboardingStep.GAPS

    @pytest.mark.asyncio
    async def test_stop_cancels(self, machine):
        runner = ScanRunner(machine, SimulatedScanDriver(interval_s=60), finish_delay_s=0)
        runner.start()
        await asyncio.sleep(0)
        assert runner.running is True
        await runner.stop()
        assert runner.running is False
        assert machine.state.is_scanning is False
        assert machine.current_step is OnboardingStep.SCANNING

    @pytest.mark.asyncio
    async def test_start_is_idempotent_while_running(self, machine):
        runner = ScanRunner(machine, SimulatedScanDriver(interval_s=60), finish_delay_s=0)
        runner.start()
        task = runner._task
        runner.start()
        assert runner._task is task
        await runner.stop()


class _BrokenDriver:
    async def events(self):
        yield ScanEvent(progress=10.0, found="hotels")
        raise RuntimeError("mailbox went away")


class _OddItemDriver:
    async def events(self):
        yield ScanEvent(progress=10.0, found="cruises")
        yield ScanEvent(progress=20.0, found="flights")
        yield ScanEvent(progress=100.0, detected_preferences={}, done=True)


class TestScanRunnerFailures:
    @pytest.mark.asyncio
    async def test_driver_error_clears_scanning_flag(self, machine, caplog):
        runner = ScanRunner(machine, _BrokenDriver(), finish_delay_s=0)
        runner.start()
        with pytest.raises(RuntimeError):
            await runner.wait()
        await asyncio.sleep(0)

        assert runner.running is False
        assert machine.state.is_scanning is False
        assert machine.state.scanned_data.to_dict()["hotels"] == 1
        assert "scan failed" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_item_type_skipped(self, machine):
        runner = ScanRunner(machine, _OddItemDriver(), finish_delay_s=0)
        runner.start()
        await runner.wait()

        assert machine.current_step is OnboardingStep.RESULTS
        assert machine.state.scanned_data.to_dict() == {"hotels": 0, "flights": 1, "restaurants": 0, "activities": 0}
