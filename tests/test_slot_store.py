"""Slot store: bookable predicate and the hold / confirm / release transitions."""

import threading
from datetime import datetime, timedelta

import pytest

from models import db
from models.slot import TimeSlot
from slots import store
from slots.errors import Conflict, Expired, InvalidToken, NotFound
from tests.factories import make_arena, make_court, make_slot, make_user

T0 = datetime(2024, 5, 31, 12, 0, 0)
HOLD = timedelta(minutes=10)


@pytest.fixture()
def slot(ctx):
    owner = make_user("owner@example.com", role="OWNER")
    arena = make_arena(owner, "Court House", id=1)
    court = make_court(arena, "Court 5", 1200, sports=["Futsal"], id=5)
    return make_slot(court, "2024-06-01", "10:00", "11:00")


def _fresh(slot_id):
    return db.session.get(TimeSlot, slot_id, populate_existing=True)


# ── bookable predicate ────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "fields, expected",
    [
        ({}, True),
        ({"is_available": False}, False),
        ({"is_blocked_by_owner": True}, False),
        ({"is_holiday": True}, False),
        ({"locked_until": T0 + timedelta(minutes=1)}, False),
        ({"locked_until": T0}, False),
        ({"locked_until": T0 - timedelta(seconds=1)}, True),
    ],
)
def test_is_bookable_matches_sql_clause(slot, fields, expected):
    for name, value in fields.items():
        setattr(slot, name, value)
    db.session.commit()

    assert store.is_bookable(slot, now=T0) is expected
    matched = TimeSlot.query.filter(TimeSlot.id == slot.id, store.bookable_clause(T0)).count()
    assert matched == (1 if expected else 0)


def test_get_slot_by_window(slot):
    found = store.get_slot(1, 5, slot.date, slot.start_time, slot.end_time)
    assert found.id == slot.id

    with pytest.raises(NotFound):
        store.get_slot(1, 5, slot.date, slot.end_time, slot.end_time)


# ── hold ──────────────────────────────────────────────────────────────────


def test_try_lock_sets_expiry_and_token(slot):
    token = store.try_lock(slot.id, HOLD, user_id=7, now=T0)

    fresh = _fresh(slot.id)
    assert token and fresh.lock_token == token
    assert fresh.locked_until == T0 + HOLD
    assert fresh.locked_by_user_id == 7
    assert store.slot_state(fresh, T0) == store.HELD


def test_second_lock_conflicts_while_held(slot):
    store.try_lock(slot.id, HOLD, now=T0)

    with pytest.raises(Conflict) as exc:
        store.try_lock(slot.id, HOLD, now=T0 + timedelta(minutes=5))
    assert exc.value.extra["reason"] == "Currently held by another player"


def test_try_lock_unknown_slot_is_not_found(ctx):
    with pytest.raises(NotFound):
        store.try_lock(999, HOLD, now=T0)


@pytest.mark.parametrize("flag", ["is_blocked_by_owner", "is_holiday"])
def test_owner_flags_refuse_holds(slot, flag):
    setattr(slot, flag, True)
    db.session.commit()

    with pytest.raises(Conflict):
        store.try_lock(slot.id, HOLD, now=T0)


def test_concurrent_holds_have_a_single_winner(app, slot):
    slot_id = slot.id
    workers = 5
    barrier = threading.Barrier(workers)
    outcomes = []

    def attempt():
        with app.app_context():
            barrier.wait()
            try:
                outcomes.append(("ok", store.try_lock(slot_id, HOLD)))
            except Conflict:
                outcomes.append(("conflict", None))
            finally:
                db.session.remove()

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [token for kind, token in outcomes if kind == "ok"]
    assert len(outcomes) == workers
    assert len(winners) == 1
    assert _fresh(slot_id).lock_token == winners[0]


# ── confirm ───────────────────────────────────────────────────────────────


def test_confirm_is_idempotent_for_same_token(slot):
    token = store.try_lock(slot.id, HOLD, now=T0)

    store.confirm(slot.id, token, now=T0 + timedelta(minutes=2))
    store.confirm(slot.id, token, now=T0 + timedelta(minutes=3))

    fresh = _fresh(slot.id)
    assert fresh.is_available is False
    assert store.slot_state(fresh, T0) == store.CONFIRMED


def test_confirm_with_foreign_token_is_invalid(slot):
    store.try_lock(slot.id, HOLD, now=T0)

    with pytest.raises(InvalidToken):
        store.confirm(slot.id, "not-the-token", now=T0)
    assert _fresh(slot.id).is_available is True


def test_confirm_after_expiry_then_slot_is_lockable(slot):
    token = store.try_lock(slot.id, HOLD, now=T0)
    later = T0 + HOLD + timedelta(seconds=1)

    with pytest.raises(Expired):
        store.confirm(slot.id, token, now=later)

    other = store.try_lock(slot.id, HOLD, now=later)
    assert other != token


def test_owner_block_during_hold_fails_confirm(slot):
    token = store.try_lock(slot.id, HOLD, now=T0)

    store.set_owner_block(slot.id, True)

    with pytest.raises(Conflict):
        store.confirm(slot.id, token, now=T0 + timedelta(minutes=1))
    assert _fresh(slot.id).is_available is True


def test_holiday_during_hold_fails_confirm(slot):
    token = store.try_lock(slot.id, HOLD, now=T0)
    store.set_holiday(slot.id, True)

    with pytest.raises(Conflict):
        store.confirm(slot.id, token, now=T0 + timedelta(minutes=1))


# ── release / cancellation ────────────────────────────────────────────────


def test_release_returns_slot_to_pool_immediately(slot):
    token = store.try_lock(slot.id, HOLD, user_id=1, now=T0)

    store.release(slot.id, token)

    fresh = _fresh(slot.id)
    assert fresh.locked_until is None and fresh.lock_token is None
    assert store.try_lock(slot.id, HOLD, user_id=2, now=T0 + timedelta(seconds=1))


def test_release_with_wrong_token_is_invalid(slot):
    store.try_lock(slot.id, HOLD, now=T0)

    with pytest.raises(InvalidToken):
        store.release(slot.id, "nope")


def test_release_after_confirm_is_invalid(slot):
    token = store.try_lock(slot.id, HOLD, now=T0)
    store.confirm(slot.id, token, now=T0)

    with pytest.raises(InvalidToken):
        store.release(slot.id, token)


def test_set_available_reopens_confirmed_slot(slot):
    token = store.try_lock(slot.id, HOLD, now=T0)
    store.confirm(slot.id, token, now=T0)

    store.set_available(slot.id, True)

    fresh = _fresh(slot.id)
    assert store.is_bookable(fresh, T0)
    assert fresh.lock_token is None


def test_owner_overrides_on_unknown_slot(ctx):
    with pytest.raises(NotFound):
        store.set_owner_block(42, True)
    with pytest.raises(NotFound):
        store.set_holiday(42, True)


def test_set_day_flags_only_touches_that_date(ctx):
    owner = make_user("o2@example.com", role="OWNER")
    arena = make_arena(owner, "Day Arena")
    court = make_court(arena, "A", 500)
    a = make_slot(court, "2024-06-01", "08:00", "09:00")
    b = make_slot(court, "2024-06-01", "09:00", "10:00")
    c = make_slot(court, "2024-06-02", "08:00", "09:00")

    assert store.set_day_flags(arena.id, a.date, holiday=True) == 2

    assert _fresh(a.id).is_holiday and _fresh(b.id).is_holiday
    assert not _fresh(c.id).is_holiday
    assert store.set_day_flags(arena.id, a.date) == 0


# ── end-to-end scenario ───────────────────────────────────────────────────


def test_hold_confirm_scenario(slot):
    """Arena 1 / court 5 / 2024-06-01 10:00-11:00 walked through two callers."""
    token_a = store.try_lock(slot.id, HOLD, user_id=100, now=T0)

    with pytest.raises(Conflict):
        store.try_lock(slot.id, HOLD, user_id=200, now=T0 + timedelta(seconds=5))

    store.confirm(slot.id, token_a, now=T0 + timedelta(minutes=1))
    assert _fresh(slot.id).is_available is False

    with pytest.raises(Conflict) as exc:
        store.try_lock(slot.id, HOLD, user_id=200, now=T0 + timedelta(minutes=2))
    assert exc.value.extra["reason"] == "Already booked"
