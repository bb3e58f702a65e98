import asyncio
import random
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import AuthRequired, InvalidState, NotFound, OperationInProgress, PersistenceError
from app.models.workout_session import WorkoutSession
from app.services.lifecycle import SessionLifecycleManager
from app.services.templates import ExerciseSnapshot


async def _active_ids(store, owner):
    return sorted(s.id for s in await store.active_sessions(owner))


@pytest.mark.asyncio
async def test_start_creates_active_session_with_ordered_exercises(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench", "Press", "Dips"))

    session = await store.get(u1, sid)
    assert session.status == "active"
    assert session.started_at == clock.now()
    assert session.paused_at is None
    assert session.ended_at is None

    exercises = await store.list_exercises(sid)
    assert [e.order_index for e in exercises] == [0, 1, 2]
    assert [e.name for e in exercises] == ["Bench", "Press", "Dips"]
    assert not any(e.completed for e in exercises)


@pytest.mark.asyncio
async def test_start_pauses_the_previous_session(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    first = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(600)
    second = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))

    old = await store.get(u1, first)
    assert old.status == "paused"
    assert old.paused_at == clock.now()
    assert (await store.get(u1, second)).status == "active"
    assert await _active_ids(store, u1) == [second]


@pytest.mark.asyncio
async def test_resume_pauses_the_other_session(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    s = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)
    s2 = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))
    clock.advance(60)

    assert await lifecycle.resume(u1, s) == s

    resumed = await store.get(u1, s)
    assert resumed.status == "active"
    assert resumed.paused_at is None
    assert (await store.get(u1, s2)).status == "paused"
    assert await _active_ids(store, u1) == [s]


@pytest.mark.asyncio
async def test_complete_records_completion_by_order(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench", "Press", "Dips"))
    clock.advance(minutes=45)

    session = await lifecycle.complete(u1, sid, {0, 2})

    assert session.status == "completed"
    assert session.ended_at == clock.now()
    exercises = await store.list_exercises(sid)
    assert {e.order_index: e.completed for e in exercises} == {0: True, 1: False, 2: True}

    with pytest.raises(InvalidState):
        await lifecycle.pause(u1, sid)
    with pytest.raises(InvalidState):
        await lifecycle.resume(u1, sid)
    with pytest.raises(InvalidState):
        await lifecycle.complete(u1, sid, {1})


@pytest.mark.asyncio
async def test_complete_from_paused_and_ignores_unknown_orders(lifecycle, store, users, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "C", "Workout C", make_snapshots("Squat", "Lunge"))
    await lifecycle.pause(u1, sid)

    session = await lifecycle.complete(u1, sid, [1, 7])

    assert session.status == "completed"
    assert session.paused_at is None
    exercises = await store.list_exercises(sid)
    assert [e.completed for e in exercises] == [False, True]


@pytest.mark.asyncio
async def test_pause_twice_is_idempotent(lifecycle, store, users, clock, sink, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(30)
    first = await lifecycle.pause(u1, sid)
    clock.advance(300)
    second = await lifecycle.pause(u1, sid)

    assert first.status == second.status == "paused"
    assert first.paused_at == second.paused_at
    assert sink.names().count("paused") == 1


@pytest.mark.asyncio
async def test_at_most_one_active_session_after_any_sequence(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    rng = random.Random(7)
    ids = []

    for _ in range(40):
        clock.advance(rng.randint(1, 120))
        op = rng.choice(["start", "resume", "pause"]) if ids else "start"
        if op == "start":
            ids.append(await lifecycle.start(u1, rng.choice("ABC"), "w", make_snapshots("x")))
        elif op == "resume":
            await lifecycle.resume(u1, rng.choice(ids))
        else:
            await lifecycle.pause(u1, rng.choice(ids))

        assert len(await _active_ids(store, u1)) <= 1


@pytest.mark.asyncio
async def test_missing_owner_is_rejected_before_any_write(lifecycle, store, users, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))

    with pytest.raises(AuthRequired):
        await lifecycle.start(None, "B", "Workout B", make_snapshots("Rows"))
    with pytest.raises(AuthRequired):
        await lifecycle.pause(None, sid)
    with pytest.raises(AuthRequired):
        await lifecycle.find_resumable(None)

    assert await _active_ids(store, u1) == [sid]


@pytest.mark.asyncio
async def test_other_users_session_is_not_found(lifecycle, users, make_snapshots):
    u1, u2 = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))

    with pytest.raises(NotFound):
        await lifecycle.resume(u2, sid)
    with pytest.raises(NotFound):
        await lifecycle.pause(u2, sid)
    with pytest.raises(NotFound):
        await lifecycle.complete(u2, sid, set())


@pytest.mark.asyncio
async def test_resume_of_completed_session_leaves_others_untouched(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    done = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    await lifecycle.complete(u1, done, {0})
    clock.advance(60)
    current = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))

    with pytest.raises(InvalidState):
        await lifecycle.resume(u1, done)

    assert await _active_ids(store, u1) == [current]


@pytest.mark.asyncio
async def test_failed_exercise_batch_leaves_no_session_behind(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    existing = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)

    broken = [ExerciseSnapshot(name="Rows"), ExerciseSnapshot(name=None)]
    with pytest.raises(PersistenceError):
        await lifecycle.start(u1, "B", "Workout B", broken)

    # The defensive pause committed on its own; the new session did not.
    assert (await store.get(u1, existing)).status == "paused"
    assert await store.get(u1, existing + 1) is None
    assert await _active_ids(store, u1) == []


@pytest.mark.asyncio
async def test_failed_activation_keeps_other_sessions_paused(lifecycle, store, users, clock, monkeypatch, make_snapshots):
    u1, _ = users
    s = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)
    s2 = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))

    async def broken_activate(*args, **kwargs):
        raise OperationalError("UPDATE workout_sessions", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store, "activate", broken_activate)

    with pytest.raises(PersistenceError):
        await lifecycle.resume(u1, s)

    assert (await store.get(u1, s)).status == "paused"
    assert (await store.get(u1, s2)).status == "paused"


@pytest.mark.asyncio
async def test_find_resumable_prefers_most_recently_paused(lifecycle, users, clock, make_snapshots):
    u1, _ = users
    s = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)
    s2 = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))
    clock.advance(60)
    await lifecycle.pause(u1, s2)

    found = await lifecycle.find_resumable(u1)
    assert found.id == s2


@pytest.mark.asyncio
async def test_find_resumable_pauses_orphaned_active_session(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(5)

    found = await lifecycle.find_resumable(u1)

    assert found.id == sid
    assert found.status == "paused"
    assert found.paused_at == clock.now()
    assert await _active_ids(store, u1) == []


@pytest.mark.asyncio
async def test_find_resumable_honours_grace_period(store, users, clock, sink, make_snapshots):
    u1, _ = users
    lifecycle = SessionLifecycleManager(store, clock=clock, notifier=sink, orphan_grace=timedelta(seconds=90))
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))

    clock.advance(60)
    await lifecycle.heartbeat(u1, sid)
    clock.advance(60)
    assert await lifecycle.find_resumable(u1) is None
    assert (await store.get(u1, sid)).status == "active"

    clock.advance(60)
    found = await lifecycle.find_resumable(u1)
    assert found.id == sid
    assert found.status == "paused"


@pytest.mark.asyncio
async def test_find_resumable_with_nothing_open(lifecycle, users, make_snapshots):
    u1, u2 = users
    sid = await lifecycle.start(u2, "A", "Workout A", make_snapshots("Bench"))
    await lifecycle.complete(u2, sid, set())

    assert await lifecycle.find_resumable(u1) is None
    assert await lifecycle.find_resumable(u2) is None


@pytest.mark.asyncio
async def test_notifications_follow_transitions(lifecycle, users, sink, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    await lifecycle.pause(u1, sid)
    await lifecycle.resume(u1, sid)
    await lifecycle.complete(u1, sid, {0})

    assert sink.names() == ["started", "paused", "resumed", "completed"]
    assert all(payload["session_id"] == sid for _, payload in sink.events)


@pytest.mark.asyncio
async def test_failing_sink_does_not_block_transition(store, users, clock, make_snapshots):
    class ExplodingSink:
        def notify(self, event, payload):
            raise RuntimeError("no audio device")

    u1, _ = users
    lifecycle = SessionLifecycleManager(store, clock=clock, notifier=ExplodingSink())
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))

    assert (await store.get(u1, sid)).status == "active"


@pytest.mark.asyncio
async def test_second_operation_on_same_session_is_rejected_while_busy(lifecycle, store, users, monkeypatch, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))

    reached = asyncio.Event()
    gate = asyncio.Event()
    original = store.mark_paused

    async def slow_pause(*args, **kwargs):
        reached.set()
        await gate.wait()
        return await original(*args, **kwargs)

    monkeypatch.setattr(store, "mark_paused", slow_pause)

    first = asyncio.create_task(lifecycle.pause(u1, sid))
    await reached.wait()
    with pytest.raises(OperationInProgress):
        await lifecycle.complete(u1, sid, set())
    gate.set()

    assert (await first).status == "paused"


@pytest.mark.asyncio
async def test_update_exercise_weight(lifecycle, store, users, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench", "Press"))

    await lifecycle.update_exercise_weight(u1, sid, 1, "45")
    exercises = await store.list_exercises(sid)
    assert [e.weight for e in exercises] == ["40", "45"]

    with pytest.raises(NotFound):
        await lifecycle.update_exercise_weight(u1, sid, 5, "50")

    await lifecycle.complete(u1, sid, {0, 1})
    with pytest.raises(InvalidState):
        await lifecycle.update_exercise_weight(u1, sid, 0, "50")


@pytest.mark.asyncio
async def test_history_and_average_duration(lifecycle, users, clock, make_snapshots):
    u1, _ = users
    for minutes, kind in [(40, "A"), (50, "A"), (70, "B")]:
        sid = await lifecycle.start(u1, kind, f"Workout {kind}", make_snapshots("x"))
        clock.advance(minutes=minutes)
        await lifecycle.complete(u1, sid, {0})
        clock.advance(hours=20)
    await lifecycle.start(u1, "C", "Workout C", make_snapshots("x"))

    history = await lifecycle.history(u1)
    assert [s.workout_type for s in history] == ["B", "A", "A"]

    assert await lifecycle.average_duration(u1, "A") == 45
    assert await lifecycle.average_duration(u1, "B") == 70
    assert await lifecycle.average_duration(u1, "C") is None


@pytest.mark.asyncio
async def test_trash_round_trip(lifecycle, store, users, clock, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))

    await lifecycle.soft_delete(u1, sid)
    assert await lifecycle.find_resumable(u1) is None
    assert [s.id for s in await lifecycle.list_deleted(u1)] == [sid]
    with pytest.raises(NotFound):
        await lifecycle.resume(u1, sid)

    clock.advance(60)
    other = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))

    restored = await lifecycle.restore(u1, sid)
    assert restored.deleted_at is None
    assert restored.status == "paused"
    assert await _active_ids(store, u1) == [other]

    await lifecycle.soft_delete(u1, sid)
    await lifecycle.purge(u1, sid)
    assert await store.get(u1, sid, include_deleted=True) is None
    assert await store.list_exercises(sid) == []
    with pytest.raises(NotFound):
        await lifecycle.purge(u1, sid)


@pytest.mark.asyncio
async def test_concurrent_resumes_for_one_owner_cannot_both_activate(lifecycle, store, users, clock, monkeypatch, make_snapshots):
    u1, _ = users
    s1 = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)
    s2 = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))
    await lifecycle.pause(u1, s2)

    reached = asyncio.Event()
    gate = asyncio.Event()
    original = store.activate

    async def slow_activate(*args, **kwargs):
        reached.set()
        await gate.wait()
        return await original(*args, **kwargs)

    monkeypatch.setattr(store, "activate", slow_activate)

    first = asyncio.create_task(lifecycle.resume(u1, s1))
    await reached.wait()
    with pytest.raises(OperationInProgress):
        await lifecycle.resume(u1, s2)
    gate.set()

    assert await first == s1
    assert await _active_ids(store, u1) == [s1]


@pytest.mark.asyncio
async def test_resume_is_rejected_while_start_is_in_flight(lifecycle, store, users, clock, monkeypatch, make_snapshots):
    u1, _ = users
    s1 = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    await lifecycle.pause(u1, s1)

    reached = asyncio.Event()
    gate = asyncio.Event()
    original = store.create

    async def slow_create(*args, **kwargs):
        reached.set()
        await gate.wait()
        return await original(*args, **kwargs)

    monkeypatch.setattr(store, "create", slow_create)

    starting = asyncio.create_task(lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows")))
    await reached.wait()
    with pytest.raises(OperationInProgress):
        await lifecycle.resume(u1, s1)
    gate.set()

    s2 = await starting
    assert await _active_ids(store, u1) == [s2]


@pytest.mark.asyncio
async def test_activating_writes_refuse_a_second_active_session(lifecycle, store, users, clock, make_snapshots):
    u1, u2 = users
    s1 = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)
    s2 = await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))

    assert not await store.activate(u1, s1, clock.now())
    assert await store.create(u1, "C", "Workout C", clock.now(), make_snapshots("Squat")) is None
    assert await _active_ids(store, u1) == [s2]
    assert len(await store.list_exercises(s2 + 1)) == 0

    # Another owner's Active session does not block
    assert await store.create(u2, "A", "Workout A", clock.now(), make_snapshots("Bench")) is not None


@pytest.mark.asyncio
async def test_start_loses_to_activation_from_another_process(lifecycle, store, users, clock, monkeypatch, make_snapshots):
    u1, _ = users
    s1 = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    clock.advance(60)
    original = store.create

    async def racing_create(*args, **kwargs):
        # Another worker resumes s1 between our pause and our insert
        assert await store.activate(u1, s1, clock.now())
        return await original(*args, **kwargs)

    monkeypatch.setattr(store, "create", racing_create)

    with pytest.raises(InvalidState):
        await lifecycle.start(u1, "B", "Workout B", make_snapshots("Rows"))

    assert await _active_ids(store, u1) == [s1]
    assert await store.get(u1, s1 + 1) is None


@pytest.mark.asyncio
async def test_pause_of_session_completed_meanwhile_is_invalid(lifecycle, store, users, clock, sink, monkeypatch, make_snapshots):
    u1, _ = users
    sid = await lifecycle.start(u1, "A", "Workout A", make_snapshots("Bench"))
    original = store.mark_paused

    async def completed_elsewhere(*args, **kwargs):
        await store.complete(u1, sid, clock.now(), set())
        return await original(*args, **kwargs)

    monkeypatch.setattr(store, "mark_paused", completed_elsewhere)

    with pytest.raises(InvalidState):
        await lifecycle.pause(u1, sid)

    assert (await store.get(u1, sid)).status == "completed"
    assert "paused" not in sink.names()


@pytest.mark.asyncio
async def test_find_resumable_pauses_every_stray_active_session(lifecycle, store, sessionmaker, users, clock):
    u1, _ = users
    async with sessionmaker() as db:
        rows = [
            WorkoutSession(
                user_id=u1,
                workout_type="A",
                title="Workout A",
                status="active",
                started_at=clock.now() - timedelta(minutes=minutes),
                last_seen_at=clock.now() - timedelta(minutes=minutes),
            )
            for minutes in (30, 10)
        ]
        db.add_all(rows)
        await db.commit()
        older, newer = rows[0].id, rows[1].id

    found = await lifecycle.find_resumable(u1)

    assert found.id == newer
    assert found.status == "paused"
    assert (await store.get(u1, older)).status == "paused"
    assert await _active_ids(store, u1) == []


@pytest.mark.asyncio
async def test_unknown_workout_type_is_invalid_state(lifecycle, store, users, make_snapshots):
    u1, _ = users

    with pytest.raises(InvalidState):
        await lifecycle.start(u1, "Z", "Workout Z", make_snapshots("Bench"))
    with pytest.raises(InvalidState):
        await lifecycle.average_duration(u1, "Z")

    assert await _active_ids(store, u1) == []


def test_session_table_holds_only_lifecycle_columns():
    assert set(WorkoutSession.__table__.c.keys()) == {
        "id", "user_id", "workout_type", "title", "status",
        "started_at", "paused_at", "ended_at", "deleted_at", "last_seen_at",
        "created_at", "updated_at",
    }
