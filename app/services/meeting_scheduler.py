# app/services/meeting_scheduler.py
from __future__ import annotations

import asyncio
import logging
import re
import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    InvalidTransitionError,
    ParticipantNotFoundError,
    ProposalNotFoundError,
    SessionAlreadyExistsError,
    SessionNotFoundError,
)
from app.schemas.session import (
    Message,
    MessageRole,
    Participant,
    ProposalDraft,
    SchedulingSession,
    SessionStatus,
    TimeProposal,
)
from app.services.durable_store import SESSION_KEY, DurableStore
from app.services.inactivity_monitor import AlarmOutcome, Clock, InactivityMonitor, utcnow
from app.services.request_router import ActorRequest, ActorResponse, route

logger = logging.getLogger(__name__)

SESSION_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_session_code(length: int = 6) -> str:
    """
    Random code of uppercase letters and digits, e.g. ``K7Q2ZD``.
    """
    return "".join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(length))


def is_valid_session_code(code: str, length: int = 6) -> bool:
    return bool(re.fullmatch(rf"[A-Z0-9]{{{length}}}", code or ""))


class MeetingScheduler:
    """
    Single-writer actor owning the SchedulingSession of one session code.

    Responsibilities
    ----------------
    - Hold the session aggregate in its DurableStore under one key.
    - Apply the session operations (create, join, messages, proposals,
      finalize) with their lifecycle rules.
    - Serialize every request and alarm through one asyncio.Lock, so a
      read-modify-write of the session never interleaves with another.

    Notes
    -----
    - Operation methods assume the caller already holds the lock; `fetch`,
      `alarm` and `run_alarm_if_due` are the locked entry points.
    - Every state change goes through `InactivityMonitor.touch`, which persists
      the session and re-arms the cleanup alarm together.
    """

    def __init__(
        self,
        name: str,
        store: DurableStore | None = None,
        clock: Clock = utcnow,
        settings: Settings | None = None,
    ) -> None:
        if not name:
            raise ValueError("actor name is required")

        self._settings = settings or get_settings()
        self._name = name
        self._store = store or DurableStore(name)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._monitor = InactivityMonitor(
            store=self._store,
            inactivity_period=timedelta(days=self._settings.INACTIVITY_DAYS),
            clock=clock,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def store(self) -> DurableStore:
        return self._store

    @property
    def monitor(self) -> InactivityMonitor:
        return self._monitor

    # ------------------------------------------------------------------
    # Locked entry points
    # ------------------------------------------------------------------

    async def fetch(self, request: ActorRequest) -> ActorResponse:
        """
        Handle one request against this actor, exclusively.
        """
        async with self._lock:
            return await route(self, request)

    async def alarm(self) -> AlarmOutcome:
        """
        Alarm handler: consume the pending alarm and run the inactivity check.
        """
        async with self._lock:
            return await self._fire_alarm()

    async def run_alarm_if_due(self, now: datetime | None = None) -> AlarmOutcome:
        """
        Fire the alarm only if it is still pending and due at `now`.

        A request handled between the dispatcher's scan and this call may have
        pushed the alarm into the future; in that case nothing happens.
        """
        async with self._lock:
            now = now or self._clock()
            scheduled_at = await self._store.get_alarm()
            if scheduled_at is None or scheduled_at > now:
                return AlarmOutcome.NOT_DUE
            return await self._fire_alarm()

    async def _fire_alarm(self) -> AlarmOutcome:
        # The alarm row stays until the monitor has decided, so a failed
        # check is picked up again by the next scan.
        outcome = await self._monitor.on_alarm_fired()
        if outcome == AlarmOutcome.NO_SESSION:
            await self._store.delete_alarm()
        logger.info("Alarm for actor %s processed: %s", self._name, outcome.value)
        return outcome

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    async def _load(self) -> Optional[SchedulingSession]:
        raw = await self._store.get(SESSION_KEY)
        if raw is None:
            return None
        return SchedulingSession.model_validate(raw)

    async def _require_session(self) -> SchedulingSession:
        session = await self._load()
        if session is None:
            raise SessionNotFoundError()
        return session

    @staticmethod
    def _require_participant(session: SchedulingSession, user_id: str) -> Participant:
        participant = session.participants.get(user_id)
        if participant is None:
            raise ParticipantNotFoundError()
        return participant

    @staticmethod
    def _advance(session: SchedulingSession, target: SessionStatus) -> None:
        if target.rank < session.status.rank:
            raise InvalidTransitionError(
                f"Cannot move session from '{session.status.value}' to '{target.value}'"
            )
        session.status = target

    # ------------------------------------------------------------------
    # Session management
    # ------------------------------------------------------------------

    async def create_session(
        self,
        title: str,
        created_by: str,
        description: str | None = None,
    ) -> SchedulingSession:
        if await self._load() is not None:
            raise SessionAlreadyExistsError()

        length = self._settings.SESSION_CODE_LENGTH
        code = self._name if is_valid_session_code(self._name, length) else generate_session_code(length)

        now = self._clock()
        session = SchedulingSession(
            session_code=code,
            title=title,
            description=description,
            created_by=created_by,
            created_at=now,
            last_activity_at=now,
            status=SessionStatus.COLLECTING,
        )

        await self._monitor.touch(session)
        logger.info("Created session %s (%r) by %s", code, title, created_by)
        return session

    async def get_session(self) -> SchedulingSession:
        return await self._require_session()

    async def join_session(
        self,
        user_id: str,
        name: str,
        email: str | None = None,
    ) -> Participant:
        """
        Add the participant if absent. Re-joining returns the stored record
        untouched, history included.
        """
        session = await self._require_session()

        if user_id not in session.participants:
            now = self._clock()
            session.participants[user_id] = Participant(
                user_id=user_id,
                name=name,
                email=email,
                joined_at=now,
                last_active=now,
            )
            await self._monitor.touch(session)
            logger.info("Participant %s joined session %s", user_id, session.session_code)

        return session.participants[user_id]

    async def list_participants(self) -> List[Participant]:
        session = await self._require_session()
        return list(session.participants.values())

    # ------------------------------------------------------------------
    # Participant conversations
    # ------------------------------------------------------------------

    async def append_message(self, user_id: str, role: MessageRole, content: str) -> Message:
        session = await self._require_session()
        participant = self._require_participant(session, user_id)

        now = self._clock()
        message = Message(role=role, content=content, timestamp=now)

        history = participant.conversation_history
        history.append(message)
        limit = self._settings.HISTORY_LIMIT
        if len(history) > limit:
            participant.conversation_history = history[-limit:]
        participant.last_active = now

        await self._monitor.touch(session)
        return message

    async def get_history(self, user_id: str) -> List[Message]:
        session = await self._require_session()
        return self._require_participant(session, user_id).conversation_history

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    async def record_proposals(
        self,
        proposals: List[ProposalDraft],
        availability: Dict[str, str] | None = None,
    ) -> SchedulingSession:
        """
        Replace the proposal list wholesale and move the session to analyzing.

        Proposals without an id get a fresh one. Availability summaries are
        stored only for participants that are part of the session.
        """
        session = await self._require_session()
        self._advance(session, SessionStatus.ANALYZING)

        session.proposed_times = [
            TimeProposal(
                **draft.model_dump(exclude={"id"}),
                id=draft.id or uuid.uuid4().hex[:8],
            )
            for draft in proposals
        ]

        for user_id, summary in (availability or {}).items():
            participant = session.participants.get(user_id)
            if participant is not None:
                participant.availability = summary

        await self._monitor.touch(session)
        logger.info(
            "Recorded %d proposal(s) for session %s",
            len(session.proposed_times),
            session.session_code,
        )
        return session

    async def list_proposals(self) -> List[TimeProposal]:
        session = await self._require_session()
        return session.proposed_times

    async def finalize(self, proposal_id: str) -> SchedulingSession:
        """
        Pick one of the current proposals as the meeting time.

        Finalizing also counts as activity and re-arms the cleanup alarm.
        """
        session = await self._require_session()

        if session.status == SessionStatus.FINALIZED:
            raise InvalidTransitionError("Session is already finalized")

        proposal = next((p for p in session.proposed_times if p.id == proposal_id), None)
        if proposal is None:
            raise ProposalNotFoundError()

        session.finalized_time = proposal.model_copy(deep=True)
        self._advance(session, SessionStatus.FINALIZED)

        await self._monitor.touch(session)
        logger.info("Session %s finalized with proposal %s", session.session_code, proposal_id)
        return session
