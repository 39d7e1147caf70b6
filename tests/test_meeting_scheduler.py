# tests/test_meeting_scheduler.py
from datetime import datetime, timedelta, timezone

import pytest

from app.core.config import get_settings
from app.core.exceptions import (
    InvalidTransitionError,
    ParticipantNotFoundError,
    ProposalNotFoundError,
    SessionAlreadyExistsError,
    SessionNotFoundError,
)
from app.schemas.session import MessageRole, ProposalDraft, SessionStatus
from app.services.meeting_scheduler import (
    MeetingScheduler,
    generate_session_code,
    is_valid_session_code,
)


def _draft(proposal_id=None, hour=14, score=100.0) -> ProposalDraft:
    return ProposalDraft(
        id=proposal_id,
        date_time=datetime(2025, 10, 25, hour, 0, tzinfo=timezone.utc),
        duration=60,
        score=score,
        available_participants=["bob"],
        reasoning="Everyone is free",
    )


@pytest.fixture
def actor(clock) -> MeetingScheduler:
    return MeetingScheduler("K7Q2ZD", clock=clock)


def test_generate_session_code_shape():
    for _ in range(20):
        code = generate_session_code(6)
        assert len(code) == 6
        assert is_valid_session_code(code)


def test_is_valid_session_code_rejects_lowercase_and_wrong_length():
    assert not is_valid_session_code("k7q2zd")
    assert not is_valid_session_code("K7Q2Z")
    assert not is_valid_session_code("")


@pytest.mark.asyncio
async def test_full_scheduling_flow(actor, clock):
    """
    create -> join -> chat -> analyze -> finalize, checking state at each step.
    """
    session = await actor.create_session(title="Sync", created_by="alice")
    assert session.session_code == "K7Q2ZD"
    assert session.status == SessionStatus.COLLECTING
    assert session.participants == {}

    clock.advance(minutes=1)
    participant = await actor.join_session(user_id="bob", name="Bob")
    assert participant.user_id == "bob"
    assert participant.conversation_history == []

    clock.advance(minutes=1)
    await actor.append_message("bob", MessageRole.USER, "Tue 2-4pm")
    history = await actor.get_history("bob")
    assert [m.content for m in history] == ["Tue 2-4pm"]
    assert history[0].timestamp == clock.now

    session = await actor.record_proposals([_draft("p1")], {"bob": "Tue 2-4pm"})
    assert session.status == SessionStatus.ANALYZING
    assert [p.id for p in session.proposed_times] == ["p1"]
    assert session.participants["bob"].availability == "Tue 2-4pm"

    session = await actor.finalize("p1")
    assert session.status == SessionStatus.FINALIZED
    assert session.finalized_time.id == "p1"
    assert session.finalized_time == session.proposed_times[0]


@pytest.mark.asyncio
async def test_create_twice_is_rejected(actor):
    await actor.create_session(title="Sync", created_by="alice")

    with pytest.raises(SessionAlreadyExistsError):
        await actor.create_session(title="Other", created_by="carol")

    assert (await actor.get_session()).title == "Sync"


@pytest.mark.asyncio
async def test_actor_with_non_code_name_generates_a_code(clock):
    actor = MeetingScheduler("not-a-code", clock=clock)

    session = await actor.create_session(title="Sync", created_by="alice")

    assert is_valid_session_code(session.session_code)


@pytest.mark.asyncio
async def test_operations_on_missing_session_raise_not_found(actor):
    with pytest.raises(SessionNotFoundError):
        await actor.get_session()
    with pytest.raises(SessionNotFoundError):
        await actor.join_session(user_id="bob", name="Bob")
    with pytest.raises(SessionNotFoundError):
        await actor.list_proposals()
    with pytest.raises(SessionNotFoundError):
        await actor.finalize("p1")


@pytest.mark.asyncio
async def test_join_is_idempotent_and_keeps_history(actor, clock):
    await actor.create_session(title="Sync", created_by="alice")
    await actor.join_session(user_id="bob", name="Bob")
    await actor.append_message("bob", MessageRole.USER, "hello")
    activity_before = (await actor.get_session()).last_activity_at
    alarm_before = await actor.store.get_alarm()

    clock.advance(hours=1)
    again = await actor.join_session(user_id="bob", name="Robert", email="r@example.com")

    # A repeated join is not activity.
    assert (await actor.get_session()).last_activity_at == activity_before
    assert await actor.store.get_alarm() == alarm_before

    assert again.name == "Bob"
    assert again.email is None
    assert [m.content for m in again.conversation_history] == ["hello"]
    assert len(await actor.list_participants()) == 1


@pytest.mark.asyncio
async def test_message_for_unknown_participant_is_rejected(actor):
    await actor.create_session(title="Sync", created_by="alice")

    with pytest.raises(ParticipantNotFoundError):
        await actor.append_message("ghost", MessageRole.USER, "hi")
    with pytest.raises(ParticipantNotFoundError):
        await actor.get_history("ghost")


@pytest.mark.asyncio
async def test_history_keeps_only_the_most_recent_messages(actor, clock):
    limit = get_settings().HISTORY_LIMIT
    await actor.create_session(title="Sync", created_by="alice")
    await actor.join_session(user_id="bob", name="Bob")

    for i in range(limit + 10):
        clock.advance(seconds=1)
        await actor.append_message("bob", MessageRole.USER, f"m{i}")

    history = await actor.get_history("bob")
    assert len(history) == limit
    assert history[0].content == "m10"
    assert history[-1].content == f"m{limit + 9}"


@pytest.mark.asyncio
async def test_last_activity_is_monotonic_across_operations(actor, clock):
    await actor.create_session(title="Sync", created_by="alice")
    seen = [(await actor.get_session()).last_activity_at]

    clock.advance(minutes=5)
    await actor.join_session(user_id="bob", name="Bob")
    seen.append((await actor.get_session()).last_activity_at)

    # Clock skew backwards must not rewind activity.
    clock.advance(minutes=-10)
    await actor.append_message("bob", MessageRole.USER, "hi")
    seen.append((await actor.get_session()).last_activity_at)

    assert seen == sorted(seen)
    assert seen[-1] == seen[-2]


@pytest.mark.asyncio
async def test_record_proposals_assigns_missing_ids_and_replaces_list(actor):
    await actor.create_session(title="Sync", created_by="alice")
    await actor.record_proposals([_draft("p1"), _draft("p2", hour=15)])

    session = await actor.record_proposals([_draft(None, hour=16, score=50)])

    assert len(session.proposed_times) == 1
    assert session.proposed_times[0].id
    assert session.proposed_times[0].score == 50


@pytest.mark.asyncio
async def test_availability_for_unknown_users_is_ignored(actor):
    await actor.create_session(title="Sync", created_by="alice")
    await actor.join_session(user_id="bob", name="Bob")

    session = await actor.record_proposals(
        [_draft("p1")], {"bob": "mornings", "mallory": "never"}
    )

    assert session.participants["bob"].availability == "mornings"
    assert "mallory" not in session.participants


@pytest.mark.asyncio
async def test_finalize_unknown_proposal_leaves_session_unchanged(actor):
    await actor.create_session(title="Sync", created_by="alice")
    await actor.record_proposals([_draft("p1")])

    with pytest.raises(ProposalNotFoundError):
        await actor.finalize("nope")

    session = await actor.get_session()
    assert session.status == SessionStatus.ANALYZING
    assert session.finalized_time is None


@pytest.mark.asyncio
async def test_status_never_moves_backwards_after_finalize(actor):
    await actor.create_session(title="Sync", created_by="alice")
    await actor.record_proposals([_draft("p1")])
    await actor.finalize("p1")

    with pytest.raises(InvalidTransitionError):
        await actor.record_proposals([_draft("p2")])
    with pytest.raises(InvalidTransitionError):
        await actor.finalize("p1")

    session = await actor.get_session()
    assert session.status == SessionStatus.FINALIZED
    assert [p.id for p in session.proposed_times] == ["p1"]


@pytest.mark.asyncio
async def test_finalize_rearms_alarm(actor, clock):
    await actor.create_session(title="Sync", created_by="alice")
    await actor.record_proposals([_draft("p1")])

    clock.advance(days=3)
    await actor.finalize("p1")

    assert await actor.store.get_alarm() == clock.now + timedelta(days=30)


@pytest.mark.asyncio
async def test_state_survives_a_new_actor_instance(actor, clock):
    """
    Everything lives in durable storage; a fresh instance sees the same session.
    """
    await actor.create_session(title="Sync", created_by="alice")
    await actor.join_session(user_id="bob", name="Bob")

    reloaded = MeetingScheduler("K7Q2ZD", clock=clock)

    session = await reloaded.get_session()
    assert session.title == "Sync"
    assert list(session.participants) == ["bob"]
