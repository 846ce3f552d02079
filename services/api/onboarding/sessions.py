"""
Per-user onboarding sessions held in process memory.

One OnboardingStateMachine (and at most one running scan) per user,
created lazily on first access. Sessions are not persisted; only the
completion marker survives a restart.

A session is dropped once its flow reaches success, or after sitting idle
for idle_ttl_s with no scan running. A dropped user who comes back gets a
fresh machine initialized from the marker.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from services.api.onboarding.marker import OnboardingCompletion
from services.api.onboarding.scan import ScanDriver, ScanRunner, SimulatedScanDriver
from services.api.onboarding.state import OnboardingStateMachine, OnboardingStep
from services.api.preferences.local_first import LocalFirstPreferences

logger = logging.getLogger(__name__)


@dataclass
class OnboardingSession:
    machine: OnboardingStateMachine
    runner: ScanRunner | None = None
    last_seen: float = 0.0

    @property
    def scan_message(self) -> str | None:
        return self.runner.message if self.runner else None

    async def stop_scan(self) -> None:
        if self.runner is not None:
            await self.runner.stop()
            self.runner = None


class OnboardingSessions:
    """
    Usage:
        sessions = OnboardingSessions(completion, accessor)
        session = sessions.get_or_create(user_id)
        await sessions.start_scan(user_id)
        await sessions.aclose()
    """

    def __init__(
        self,
        completion: OnboardingCompletion,
        accessor: LocalFirstPreferences | None = None,
        driver_factory: Callable[[], ScanDriver] = SimulatedScanDriver,
        finish_delay_s: float = 1.0,
        idle_ttl_s: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._completion = completion
        self._accessor = accessor
        self._driver_factory = driver_factory
        self._finish_delay = finish_delay_s
        self._idle_ttl = idle_ttl_s
        self._clock = clock
        self._sessions: dict[str, OnboardingSession] = {}

    @property
    def completion(self) -> OnboardingCompletion:
        return self._completion

    def get(self, user_id: str) -> OnboardingSession | None:
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str) -> OnboardingSession:
        now = self._clock()
        self._evict_idle(now)
        session = self._sessions.get(user_id)
        if session is None:
            machine = OnboardingStateMachine(user_id, self._completion, self._accessor)
            session = self._sessions[user_id] = OnboardingSession(machine=machine)
            logger.debug("onboarding session created: user=%s", user_id)
        session.last_seen = now
        return session

    async def release_if_finished(self, user_id: str) -> bool:
        session = self._sessions.get(user_id)
        if session is None or session.machine.current_step is not OnboardingStep.SUCCESS:
            return False
        await self.discard(user_id)
        logger.debug("onboarding session released: user=%s", user_id)
        return True

    async def start_scan(self, user_id: str) -> OnboardingSession:
        session = self.get_or_create(user_id)
        await session.stop_scan()
        session.runner = ScanRunner(
            session.machine,
            self._driver_factory(),
            finish_delay_s=self._finish_delay,
        )
        session.runner.start()
        return session

    async def discard(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        if session is not None:
            await session.stop_scan()

    async def aclose(self) -> None:
        for user_id in list(self._sessions):
            await self.discard(user_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_idle(self, now: float) -> None:
        for user_id, session in list(self._sessions.items()):
            if session.runner is not None and session.runner.running:
                continue
            if now - session.last_seen > self._idle_ttl:
                del self._sessions[user_id]
                logger.debug("onboarding session expired: user=%s", user_id)
