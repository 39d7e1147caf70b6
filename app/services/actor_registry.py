# app/services/actor_registry.py
from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
import weakref
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.exceptions import SchedulerError
from app.db.session import AsyncSessionLocal
from app.services.durable_store import DurableStore, list_due_alarms
from app.services.inactivity_monitor import AlarmOutcome, Clock, utcnow
from app.services.meeting_scheduler import MeetingScheduler

logger = logging.getLogger(__name__)


class ActorRegistry:
    """
    Deterministic name -> actor instance mapping for this process.

    While anyone holds an actor (a request in flight, an alarm running, a
    caller waiting on its lock), the same name yields that same
    MeetingScheduler and therefore the same lock, which is what gives each
    session its single-writer guarantee.

    Notes
    -----
    - Instances are held weakly. Once the last caller lets go, the instance
      is dropped; all session state lives in the DurableStore, so the next
      request simply builds a fresh one. Lookups of unknown codes therefore
      leave nothing behind.
    - Actors for different names share nothing but the database engine.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock = utcnow,
        settings: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory or AsyncSessionLocal
        self._clock = clock
        self._settings = settings or get_settings()
        self._actors: "weakref.WeakValueDictionary[str, MeetingScheduler]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, name: str) -> MeetingScheduler:
        if not name:
            raise ValueError("actor name is required")

        actor = self._actors.get(name)
        if actor is None:
            actor = MeetingScheduler(
                name=name,
                store=DurableStore(name, session_factory=self._session_factory),
                clock=self._clock,
                settings=self._settings,
            )
            self._actors[name] = actor
        return actor

    @staticmethod
    def actor_id(name: str) -> str:
        """
        Stable opaque identifier for the actor addressed by `name`.
        """
        return hashlib.sha256(name.encode("utf-8")).hexdigest()

    def __len__(self) -> int:
        return len(self._actors)

    async def run_due_alarms(self, now: Optional[datetime] = None) -> List[Tuple[str, AlarmOutcome]]:
        """
        Fire every alarm that is due at `now`.

        Each alarm runs under its actor's lock. A failing actor is logged and
        skipped; its alarm row stays for the next scan.
        """
        now = now or self._clock()
        results: List[Tuple[str, AlarmOutcome]] = []

        for name in await list_due_alarms(now, session_factory=self._session_factory):
            actor = self.get(name)
            try:
                outcome = await actor.run_alarm_if_due(now)
            except SchedulerError as exc:
                logger.error("Alarm for actor %s failed: %s", name, exc.message)
                continue
            except Exception:
                logger.exception("Alarm for actor %s failed unexpectedly", name)
                continue

            results.append((name, outcome))

        return results


class AlarmDispatcher:
    """
    Background task that periodically fires due actor alarms.
    """

    def __init__(self, registry: ActorRegistry, poll_seconds: float) -> None:
        self._registry = registry
        self._poll_seconds = poll_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="alarm-dispatcher")
        logger.info("Alarm dispatcher started (every %.0fs)", self._poll_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Alarm dispatcher stopped")

    async def _run(self) -> None:
        while True:
            try:
                fired = await self._registry.run_due_alarms()
                if fired:
                    logger.debug("Processed %d alarm(s)", len(fired))
            except SchedulerError as exc:
                logger.error("Alarm scan failed: %s", exc.message)
            except Exception:
                logger.exception("Alarm scan failed unexpectedly")
            await asyncio.sleep(self._poll_seconds)
