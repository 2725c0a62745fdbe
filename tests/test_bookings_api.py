from datetime import datetime, timedelta

import pytest

from models import db
from models.booking import Booking
from models.slot import TimeSlot
from tests.factories import future_day, make_arena, make_court, make_slot, make_user


@pytest.fixture()
def setup(app):
    with app.app_context():
        owner = make_user("owner@example.com", role="OWNER")
        make_user("alice@example.com")
        make_user("bob@example.com")
        arena = make_arena(owner, "Lakeside Arena", city="Pokhara")
        court = make_court(arena, "Main", 1500, sports=["Futsal"])
        day = future_day()
        early = make_slot(court, day, "07:00", "08:00")
        late = make_slot(court, day, "08:00", "09:00")
        soon_day = (datetime.utcnow() + timedelta(hours=3)).date()
        soon_start = (datetime.utcnow() + timedelta(hours=3)).replace(minute=0, second=0, microsecond=0)
        soon = None
        # a slot starting inside the cancellation window, when the clock allows one today or tomorrow
        if soon_start.hour < 23:
            soon = make_slot(
                court, soon_day,
                soon_start.strftime("%H:%M"),
                (soon_start + timedelta(hours=1)).strftime("%H:%M"),
            )
        return {
            "arena_id": arena.id,
            "court_id": court.id,
            "day": day.isoformat(),
            "early": early.id,
            "late": late.id,
            "soon": soon.id if soon else None,
        }


def _hold(client, headers, *slot_ids):
    return client.post("/bookings/hold", json={"slot_ids": list(slot_ids)}, headers=headers)


def test_hold_requires_login(client, setup):
    resp = _hold(client, {}, setup["early"])
    assert resp.status_code == 401


def test_owner_cannot_hold(client, login, setup):
    resp = _hold(client, login("owner@example.com"), setup["early"])
    assert resp.status_code == 403


def test_hold_and_confirm_flow(app, client, login, setup):
    alice = login("alice@example.com")

    resp = _hold(client, alice, setup["early"], setup["late"])
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["lock_token"]
    assert [b["status"] for b in body["bookings"]] == ["PENDING", "PENDING"]

    booking_id = body["bookings"][0]["id"]
    resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "CONFIRMED"

    # retry after a lost response is still a success
    resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)
    assert resp.status_code == 200

    with app.app_context():
        slot = db.session.get(TimeSlot, setup["early"])
        assert slot.is_available is False


def test_second_player_gets_conflict_with_suggestions(client, login, setup):
    _hold(client, login("alice@example.com"), setup["early"])

    resp = _hold(client, login("bob@example.com"), setup["early"])
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["slot_id"] == setup["early"]
    assert body["reason"] == "Currently held by another player"
    assert setup["late"] in [s["id"] for s in body["suggestions"]]


def test_hold_validation_errors(client, login, setup):
    alice = login("alice@example.com")

    assert _hold(client, alice).status_code == 400
    assert _hold(client, alice, 9999).status_code == 404
    resp = client.post("/bookings/hold", json={"slot_ids": ["x"]}, headers=alice)
    assert resp.status_code == 400
    resp = client.post("/bookings/hold", json={"slot_id": setup["early"], "slot_ids": 5}, headers=alice)
    assert resp.status_code == 400


def test_blocked_arena_refuses_holds(app, client, login, setup):
    with app.app_context():
        from models.arena import Arena

        db.session.get(Arena, setup["arena_id"]).is_blocked = True
        db.session.commit()

    resp = _hold(client, login("alice@example.com"), setup["early"])
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Arena is blocked"


def test_confirm_after_hold_lapsed_is_gone(app, client, login, setup):
    alice = login("alice@example.com")
    booking_id = _hold(client, alice, setup["early"]).get_json()["bookings"][0]["id"]

    with app.app_context():
        past = datetime.utcnow() - timedelta(minutes=1)
        db.session.get(TimeSlot, setup["early"]).locked_until = past
        db.session.get(Booking, booking_id).lock_expires_at = past
        db.session.commit()

    resp = client.post(f"/bookings/{booking_id}/confirm", headers=alice)
    assert resp.status_code == 410

    resp = client.get(f"/bookings/{booking_id}", headers=alice)
    assert resp.get_json()["booking"]["status"] == "EXPIRED"


def test_other_players_booking_is_hidden(client, login, setup):
    booking_id = _hold(client, login("alice@example.com"), setup["early"]).get_json()["bookings"][0]["id"]
    bob = login("bob@example.com")

    assert client.get(f"/bookings/{booking_id}", headers=bob).status_code == 404
    assert client.post(f"/bookings/{booking_id}/confirm", headers=bob).status_code == 404
    assert client.post(f"/bookings/{booking_id}/cancel", headers=bob).status_code == 404


def test_cancel_pending_releases_the_slot(client, login, setup):
    alice = login("alice@example.com")
    booking_id = _hold(client, alice, setup["early"]).get_json()["bookings"][0]["id"]

    resp = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "changed plans"}, headers=alice)
    assert resp.status_code == 200

    resp = _hold(client, login("bob@example.com"), setup["early"])
    assert resp.status_code == 201


def test_cancel_confirmed_outside_cutoff(client, login, setup):
    alice = login("alice@example.com")
    booking_id = _hold(client, alice, setup["early"]).get_json()["bookings"][0]["id"]
    client.post(f"/bookings/{booking_id}/confirm", headers=alice)

    resp = client.post(f"/bookings/{booking_id}/cancel", headers=alice)
    assert resp.status_code == 200

    resp = client.get("/bookings/me?status=cancelled", headers=alice)
    assert [b["id"] for b in resp.get_json()["bookings"]] == [booking_id]


def test_cancel_confirmed_inside_cutoff_is_refused(client, login, setup):
    if setup["soon"] is None:
        pytest.skip("no slot fits inside the cutoff window at this hour")
    alice = login("alice@example.com")
    booking_id = _hold(client, alice, setup["soon"]).get_json()["bookings"][0]["id"]
    client.post(f"/bookings/{booking_id}/confirm", headers=alice)

    resp = client.post(f"/bookings/{booking_id}/cancel", headers=alice)
    assert resp.status_code == 403


def test_my_bookings_lists_newest_first(client, login, setup):
    alice = login("alice@example.com")
    _hold(client, alice, setup["early"])
    _hold(client, alice, setup["late"])

    resp = client.get("/bookings/me", headers=alice)
    slots = [b["slot"]["slot_id"] for b in resp.get_json()["bookings"]]
    assert slots == [setup["late"], setup["early"]]
