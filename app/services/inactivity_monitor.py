# app/services/inactivity_monitor.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from app.schemas.session import SchedulingSession
from app.services.durable_store import SESSION_KEY, DurableStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class AlarmOutcome(str, Enum):
    """
    What happened when an alarm was processed.
    """

    NO_SESSION = "no_session"
    DELETED = "deleted"
    RESCHEDULED = "rescheduled"
    NOT_DUE = "not_due"


class InactivityMonitor:
    """
    Couples session activity tracking with the actor's single alarm.

    Rules
    -----
    1) `touch` moves `last_activity_at` to now, persists the session, then
       sets the alarm to fire one full inactivity period later. The previous
       alarm is simply overwritten.
    2) When the alarm fires:
        - no session stored                  => nothing to do
        - idle for >= the inactivity period   => delete the session for good
        - otherwise                           => re-arm for the time remaining
    """

    def __init__(
        self,
        store: DurableStore,
        inactivity_period: timedelta,
        clock: Clock = utcnow,
    ) -> None:
        if inactivity_period <= timedelta(0):
            raise ValueError("inactivity_period must be positive")

        self._store = store
        self._period = inactivity_period
        self._clock = clock

    @property
    def inactivity_period(self) -> timedelta:
        return self._period

    async def schedule(self, delay: timedelta | None = None) -> datetime:
        """
        Arm the alarm `delay` from now (a full inactivity period by default).
        """
        fire_at = self._clock() + (self._period if delay is None else delay)
        await self._store.set_alarm(fire_at)
        return fire_at

    async def touch(self, session: SchedulingSession) -> SchedulingSession:
        """
        Record activity on `session`, persist it and push the alarm out.
        """
        now = self._clock()
        # Never move backwards, even if the clock does.
        session.last_activity_at = max(now, session.last_activity_at)
        await self._store.put(SESSION_KEY, session.model_dump(mode="json", by_alias=True))
        await self.schedule()
        return session

    async def on_alarm_fired(self) -> AlarmOutcome:
        """
        Decide whether the session has expired and act on it.
        """
        raw = await self._store.get(SESSION_KEY)
        if raw is None:
            return AlarmOutcome.NO_SESSION

        session = SchedulingSession.model_validate(raw)
        now = self._clock()
        idle = now - session.last_activity_at

        if idle >= self._period:
            await self._store.delete(SESSION_KEY)
            await self._store.delete_alarm()
            logger.info(
                "Deleted inactive session %s (last activity %.1f days ago)",
                session.session_code,
                idle.total_seconds() / 86400,
            )
            return AlarmOutcome.DELETED

        remaining = self._period - idle
        fire_at = await self.schedule(remaining)
        logger.debug(
            "Session %s still active; next inactivity check at %s",
            session.session_code,
            fire_at.isoformat(),
        )
        return AlarmOutcome.RESCHEDULED
