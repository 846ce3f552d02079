"""
Inbox scan progress drivers.

A ScanDriver is an async iterator of ScanEvents: progress updates, status
messages, found-item ticks and, last, the detected preferences. The
ScanRunner applies those events to an OnboardingStateMachine from a
background task and advances to the next step once the scan finishes.

SimulatedScanDriver stands in for a real mailbox integration: every tick
adds a random 0-15 points of progress, has a 30% chance of "finding" a
booking, and moves the status message on every 12.5%. InstantScanDriver
jumps straight to 100% with fixed counts for tests.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from services.api.onboarding.state import OnboardingStateMachine, OnboardingStep

logger = logging.getLogger(__name__)

SCAN_MESSAGES: tuple[str, ...] = (
    "Connecting to Gmail...",
    "Searching for travel bookings...",
    "Found Airbnb confirmations...",
    "Analyzing flight reservations...",
    "Checking restaurant bookings...",
    "Processing hotel stays...",
    "Building your travel profile...",
    "Almost done...",
)

MESSAGE_STEP = 12.5

FOUND_ITEM_TYPES: tuple[str, ...] = ("hotels", "flights", "restaurants", "activities")


def mock_detected_preferences(now: str | None = None) -> dict[str, Any]:
    """Preferences the simulated scan "detects"."""
    now = now or datetime.now(timezone.utc).isoformat()
    return {
        "budget_type": "mid_range",
        "accommodation_style": [
            {"style": "hotel", "confidence": 0.9, "last_seen": now, "count": 5},
            {"style": "airbnb", "confidence": 0.7, "last_seen": now, "count": 3},
        ],
        "preferred_cuisines": [
            {"cuisine": "Italian", "confidence": 0.8, "sample_size": 10},
            {"cuisine": "Japanese", "confidence": 0.7, "sample_size": 8},
            {"cuisine": "Mexican", "confidence": 0.6, "sample_size": 6},
        ],
        "frequent_destinations": [
            {"city": "New York", "count": 4, "last_visit": now},
            {"city": "San Francisco", "count": 3, "last_visit": now},
            {"city": "London", "count": 2, "last_visit": now},
        ],
        "pace_preference": "moderate",
    }


@dataclass
class ScanEvent:
    progress: float
    message: str | None = None
    found: str | None = None
    """One of FOUND_ITEM_TYPES when this tick found a booking."""
    detected_preferences: dict[str, Any] | None = None
    done: bool = False


class ScanDriver(Protocol):
    def events(self) -> AsyncIterator[ScanEvent]: ...


class SimulatedScanDriver:
    def __init__(
        self,
        interval_s: float = 0.5,
        max_increment: float = 15.0,
        found_probability: float = 0.3,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._interval = interval_s
        self._max_increment = max_increment
        self._found_probability = found_probability
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def events(self) -> AsyncIterator[ScanEvent]:
        progress = 0.0
        message_index = 0
        yield ScanEvent(progress=0.0, message=SCAN_MESSAGES[0])

        while True:
            await self._sleep(self._interval)
            progress += self._rng.random() * self._max_increment

            if progress > 100:
                yield ScanEvent(
                    progress=100.0,
                    detected_preferences=mock_detected_preferences(),
                    done=True,
                )
                return

            message = None
            if progress > (message_index + 1) * MESSAGE_STEP:
                message_index = min(message_index + 1, len(SCAN_MESSAGES) - 1)
                message = SCAN_MESSAGES[message_index]

            found = None
            if self._rng.random() < self._found_probability:
                found = self._rng.choice(FOUND_ITEM_TYPES)

            yield ScanEvent(progress=progress, message=message, found=found)


@dataclass
class InstantScanDriver:
    counts: dict[str, int] = field(
        default_factory=lambda: {"hotels": 5, "flights": 4, "restaurants": 10, "activities": 3}
    )
    detected_preferences: dict[str, Any] = field(default_factory=mock_detected_preferences)

    async def events(self) -> AsyncIterator[ScanEvent]:
        for item_type, count in self.counts.items():
            for _ in range(count):
                yield ScanEvent(progress=0.0, found=item_type)
        yield ScanEvent(
            progress=100.0,
            message=SCAN_MESSAGES[-1],
            detected_preferences=copy.deepcopy(self.detected_preferences),
            done=True,
        )


class ScanRunner:
    """
    Drives one scan against one state machine.

    Stops on its own when the scan finishes or when the machine leaves the
    scanning step; stop() cancels it at any point.

    Usage:
        runner = ScanRunner(machine, SimulatedScanDriver())
        runner.start()
        ...
        await runner.stop()
    """

    def __init__(
        self,
        machine: OnboardingStateMachine,
        driver: ScanDriver,
        finish_delay_s: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._machine = machine
        self._driver = driver
        self._finish_delay = finish_delay_s
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.message: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._machine.start_scanning()
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._on_done)

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._machine.state.is_scanning = False
        logger.info("scan stopped: user=%s", self._machine.user_id)

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._machine.state.is_scanning = False
            logger.error("scan failed: user=%s", self._machine.user_id, exc_info=exc)

    async def _run(self) -> None:
        machine = self._machine
        counts = machine.state.scanned_data.to_dict()
        async for event in self._driver.events():
            if machine.state.current_step is not OnboardingStep.SCANNING:
                logger.info("scan abandoned: user=%s step=%s", machine.user_id, machine.current_step.value)
                machine.state.is_scanning = False
                return

            if event.message:
                self.message = event.message
            if event.found and event.found not in counts:
                logger.warning("scan: ignoring unknown item type %r user=%s", event.found, machine.user_id)
            elif event.found:
                counts[event.found] += 1
                machine.update_scanned_data({event.found: counts[event.found]})

            if event.done:
                machine.set_detected_preferences(event.detected_preferences or {})
                machine.stop_scanning()
                logger.info("scan finished: user=%s found=%s", machine.user_id, counts)
                await self._sleep(self._finish_delay)
                if machine.state.current_step is OnboardingStep.SCANNING:
                    machine.next_step()
                return

            machine.update_scan_progress(event.progress)
