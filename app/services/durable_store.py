# app/services/durable_store.py
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import DurableStoreError
from app.db.session import AsyncSessionLocal
from app.models.actor_storage import ActorAlarm, ActorRecord

# Key under which an actor keeps its whole SchedulingSession document.
SESSION_KEY = "session"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DurableStore:
    """
    Key/value storage plus a single alarm slot, scoped to one actor name.

    Responsibilities
    ----------------
    - Persist JSON-serializable values under string keys.
    - Keep at most one pending alarm timestamp per actor; `set_alarm`
      overwrites whatever was pending.
    - Translate database failures into `DurableStoreError` so the rest of the
      codebase never sees SQLAlchemy exceptions.

    Notes
    -----
    - Every call opens and commits its own DB session, so a successful write
      is visible to the next read (read-after-write within one actor).
    - The store does not serialize callers itself; the owning actor does.
    """

    def __init__(
        self,
        actor_name: str,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        if not actor_name:
            raise ValueError("actor_name is required")

        self._actor_name = actor_name
        self._session_factory = session_factory or AsyncSessionLocal

    @property
    def actor_name(self) -> str:
        return self._actor_name

    async def get(self, key: str) -> Optional[Any]:
        """
        Return the decoded value stored under `key`, or None if absent.
        """
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ActorRecord.value).where(
                        ActorRecord.actor_name == self._actor_name,
                        ActorRecord.key == key,
                    )
                )
                raw = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"Failed to read '{key}': {exc}") from exc

        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, key: str, value: Any) -> None:
        """
        Insert or replace the value stored under `key`.
        """
        encoded = json.dumps(value)
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ActorRecord).where(
                        ActorRecord.actor_name == self._actor_name,
                        ActorRecord.key == key,
                    )
                )
                record = result.scalar_one_or_none()

                if record is None:
                    record = ActorRecord(actor_name=self._actor_name, key=key, value=encoded)
                    db.add(record)
                else:
                    record.value = encoded

                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"Failed to write '{key}': {exc}") from exc

    async def delete(self, key: str) -> bool:
        """
        Remove `key`. Returns True if something was deleted.
        """
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(ActorRecord).where(
                        ActorRecord.actor_name == self._actor_name,
                        ActorRecord.key == key,
                    )
                )
                deleted = bool(result.rowcount)
                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"Failed to delete '{key}': {exc}") from exc

        return deleted

    # ------------------------------------------------------------------
    # Alarm slot
    # ------------------------------------------------------------------

    async def get_alarm(self) -> Optional[datetime]:
        """
        Return the pending alarm time (UTC), or None if no alarm is set.
        """
        try:
            async with self._session_factory() as db:
                alarm = await db.get(ActorAlarm, self._actor_name)
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"Failed to read alarm: {exc}") from exc

        if alarm is None:
            return None
        return _as_utc(alarm.scheduled_at)

    async def set_alarm(self, scheduled_at: datetime) -> None:
        """
        Schedule the alarm, replacing any alarm that was already pending.
        """
        scheduled_at = _as_utc(scheduled_at)
        try:
            async with self._session_factory() as db:
                alarm = await db.get(ActorAlarm, self._actor_name)
                if alarm is None:
                    db.add(ActorAlarm(actor_name=self._actor_name, scheduled_at=scheduled_at))
                else:
                    alarm.scheduled_at = scheduled_at
                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"Failed to set alarm: {exc}") from exc

    async def delete_alarm(self) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(
                    delete(ActorAlarm).where(ActorAlarm.actor_name == self._actor_name)
                )
                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"Failed to delete alarm: {exc}") from exc


async def list_due_alarms(
    now: datetime,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> List[str]:
    """
    Return the names of actors whose alarm is due at `now`, earliest first.
    """
    factory = session_factory or AsyncSessionLocal
    try:
        async with factory() as db:
            result = await db.execute(
                select(ActorAlarm.actor_name)
                .where(ActorAlarm.scheduled_at <= _as_utc(now))
                .order_by(ActorAlarm.scheduled_at.asc())
            )
            return list(result.scalars().all())
    except SQLAlchemyError as exc:
        raise DurableStoreError(f"Failed to list due alarms: {exc}") from exc
