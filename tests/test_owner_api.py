import pytest

from models import db
from models.slot import TimeSlot
from tests.factories import future_day, make_user


@pytest.fixture()
def people(app):
    with app.app_context():
        make_user("owner@example.com", role="OWNER")
        make_user("rival@example.com", role="OWNER")
        make_user("alice@example.com")
        make_user("admin@example.com", role="ADMIN")


@pytest.fixture()
def arena(client, login, people):
    owner = login("owner@example.com")
    resp = client.post("/owner/arenas", json={"name": "Hilltop Arena", "city": "Kathmandu"}, headers=owner)
    assert resp.status_code == 201
    arena_id = resp.get_json()["arena"]["id"]

    resp = client.post(
        f"/owner/arenas/{arena_id}/courts",
        json={"name": "Court A", "price_per_hour": 1200, "sports": ["Futsal"]},
        headers=owner,
    )
    assert resp.status_code == 201
    return {"id": arena_id, "court_id": resp.get_json()["court"]["id"], "owner": owner}


def _generate(client, arena, day, headers=None):
    return client.post(
        f"/owner/arenas/{arena['id']}/courts/{arena['court_id']}/slots/generate",
        json={"date": day, "opening_time": "06:00", "closing_time": "09:00", "slot_duration": 60},
        headers=headers or arena["owner"],
    )


def test_player_cannot_create_arena(client, login, people):
    resp = client.post("/owner/arenas", json={"name": "Nope"}, headers=login("alice@example.com"))
    assert resp.status_code == 403


def test_court_validation(client, arena):
    url = f"/owner/arenas/{arena['id']}/courts"
    assert client.post(url, json={"name": "B"}, headers=arena["owner"]).status_code == 400
    assert client.post(url, json={"name": "B", "price_per_hour": 900, "sports": ["Polo"]},
                       headers=arena["owner"]).status_code == 400
    assert client.post(url, json={"name": "Court A", "price_per_hour": 900},
                       headers=arena["owner"]).status_code == 409


def test_generate_slots_is_repeatable(client, arena):
    day = future_day().isoformat()

    resp = _generate(client, arena, day)
    assert resp.status_code == 201
    slots = resp.get_json()["slots"]
    assert [(s["start_time"], s["end_time"]) for s in slots] == [("06:00", "07:00"), ("07:00", "08:00"), ("08:00", "09:00")]
    assert {s["price_per_hour"] for s in slots} == {1200}
    assert {s["state"] for s in slots} == {"FREE"}

    assert _generate(client, arena, day).get_json()["slots"] == []


def test_other_owner_gets_not_found(client, login, arena):
    rival = login("rival@example.com")
    day = future_day().isoformat()

    assert _generate(client, arena, day, headers=rival).status_code == 404
    resp = client.put(f"/owner/arenas/{arena['id']}/slots", json={"date": day, "is_holiday": True}, headers=rival)
    assert resp.status_code == 404


def test_manage_slots_upserts_listed_slots(app, client, arena):
    day = future_day().isoformat()
    url = f"/owner/arenas/{arena['id']}/slots"

    resp = client.put(url, json={
        "date": day,
        "court_id": arena["court_id"],
        "slots": [{"start_time": "18:00", "end_time": "19:00", "price": 2000}],
    }, headers=arena["owner"])
    assert resp.status_code == 200
    [slot] = resp.get_json()["slots"]
    assert slot["price_per_hour"] == 2000

    resp = client.put(url, json={
        "date": day,
        "court_id": arena["court_id"],
        "slots": [{"start_time": "18:00", "end_time": "19:00", "price": 1800}],
        "is_blocked": True,
    }, headers=arena["owner"])
    [again] = resp.get_json()["slots"]
    assert again["id"] == slot["id"]
    assert again["price_per_hour"] == 1800
    assert again["state"] == "BLOCKED"

    with app.app_context():
        assert TimeSlot.query.count() == 1


def test_manage_slots_rejects_bad_windows(client, arena):
    resp = client.put(f"/owner/arenas/{arena['id']}/slots", json={
        "date": future_day().isoformat(),
        "court_id": arena["court_id"],
        "slots": [{"start_time": "19:00", "end_time": "18:00"}],
    }, headers=arena["owner"])
    assert resp.status_code == 400

    resp = client.put(f"/owner/arenas/{arena['id']}/slots",
                      json={"date": future_day().isoformat()}, headers=arena["owner"])
    assert resp.status_code == 400


def test_day_flags_apply_to_whole_date(client, arena):
    day = future_day().isoformat()
    _generate(client, arena, day)

    resp = client.put(f"/owner/arenas/{arena['id']}/slots",
                      json={"date": day, "is_holiday": True}, headers=arena["owner"])
    assert resp.get_json()["updated"] == 3

    resp = client.get(f"/arenas/{arena['id']}/slots?date={day}")
    assert {s["state"] for s in resp.get_json()["slots"]} == {"BLOCKED"}


def test_block_slot_stops_holds(client, login, arena):
    day = future_day().isoformat()
    slot_id = _generate(client, arena, day).get_json()["slots"][0]["id"]

    resp = client.post(f"/owner/slots/{slot_id}/block", json={"blocked": True}, headers=arena["owner"])
    assert resp.status_code == 200
    assert resp.get_json()["slot"]["is_blocked_by_owner"] is True

    alice = login("alice@example.com")
    resp = client.post("/bookings/hold", json={"slot_id": slot_id}, headers=alice)
    assert resp.status_code == 409
    assert resp.get_json()["reason"] == "Blocked by owner"

    client.post(f"/owner/slots/{slot_id}/block", json={"blocked": False}, headers=arena["owner"])
    resp = client.post("/bookings/hold", json={"slot_id": slot_id}, headers=alice)
    assert resp.status_code == 201


def test_manager_can_run_the_schedule(client, login, arena):
    resp = client.put(f"/owner/arenas/{arena['id']}/manager",
                      json={"email": "alice@example.com"}, headers=arena["owner"])
    assert resp.status_code == 200

    alice = login("alice@example.com")
    resp = _generate(client, arena, future_day().isoformat(), headers=alice)
    assert resp.status_code == 201

    resp = client.get("/owner/arenas", headers=alice)
    assert [a["id"] for a in resp.get_json()["arenas"]] == [arena["id"]]


def test_owner_sees_and_completes_bookings(client, login, arena):
    slot_id = _generate(client, arena, future_day().isoformat()).get_json()["slots"][0]["id"]
    alice = login("alice@example.com")
    booking_id = client.post("/bookings/hold", json={"slot_id": slot_id}, headers=alice).get_json()["bookings"][0]["id"]

    resp = client.post(f"/owner/bookings/{booking_id}/complete", headers=arena["owner"])
    assert resp.status_code == 400

    client.post(f"/bookings/{booking_id}/confirm", headers=alice)
    resp = client.get("/owner/bookings?status=confirmed", headers=arena["owner"])
    assert [b["id"] for b in resp.get_json()["bookings"]] == [booking_id]

    resp = client.post(f"/owner/bookings/{booking_id}/complete", headers=arena["owner"])
    assert resp.get_json()["booking"]["status"] == "COMPLETED"


def test_owner_cancel_reopens_slot(app, client, login, arena):
    slot_id = _generate(client, arena, future_day().isoformat()).get_json()["slots"][0]["id"]
    alice = login("alice@example.com")
    booking_id = client.post("/bookings/hold", json={"slot_id": slot_id}, headers=alice).get_json()["bookings"][0]["id"]
    client.post(f"/bookings/{booking_id}/confirm", headers=alice)

    resp = client.post(f"/owner/bookings/{booking_id}/cancel", json={"reason": "Flooded"}, headers=arena["owner"])
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["cancelled_by"] == "owner"

    with app.app_context():
        slot = db.session.get(TimeSlot, slot_id)
        assert slot.is_available is True and slot.lock_token is None


def test_admin_block_hides_arena(client, login, arena):
    admin = login("admin@example.com")

    resp = client.put(f"/admin/arenas/{arena['id']}/block", json={"blocked": True}, headers=admin)
    assert resp.get_json()["is_blocked"] is True

    assert client.get(f"/arenas/{arena['id']}").status_code == 404
    assert client.get("/search/arenas").get_json()["pagination"]["total"] == 0

    resp = client.get("/admin/arenas?blocked=true", headers=admin)
    assert [a["id"] for a in resp.get_json()["arenas"]] == [arena["id"]]


def test_admin_routes_need_admin(client, arena):
    resp = client.put(f"/admin/arenas/{arena['id']}/block", json={"blocked": True}, headers=arena["owner"])
    assert resp.status_code == 403


def test_admin_reads_booking_trail(client, login, arena):
    slot_id = _generate(client, arena, future_day().isoformat()).get_json()["slots"][0]["id"]
    alice = login("alice@example.com")
    booking_id = client.post("/bookings/hold", json={"slot_id": slot_id}, headers=alice).get_json()["bookings"][0]["id"]
    client.post(f"/bookings/{booking_id}/confirm", headers=alice)

    resp = client.get(f"/admin/audit-logs?entity=booking&entity_id={booking_id}", headers=login("admin@example.com"))
    logs = resp.get_json()["logs"]
    assert [row["action"] for row in logs] == ["BOOKING_CONFIRM", "HOLD_CREATE"]
    assert logs[0]["metadata"] == {"slot_id": slot_id}


def test_flags_must_be_json_booleans(client, login, arena):
    day = future_day().isoformat()
    slot_id = _generate(client, arena, day).get_json()["slots"][0]["id"]

    resp = client.put(f"/owner/arenas/{arena['id']}/slots",
                      json={"date": day, "is_blocked": "false"}, headers=arena["owner"])
    assert resp.status_code == 400
    resp = client.post(f"/owner/slots/{slot_id}/holiday", json={"holiday": "no"}, headers=arena["owner"])
    assert resp.status_code == 400
    resp = client.put(f"/admin/arenas/{arena['id']}/block", json={"blocked": "false"},
                      headers=login("admin@example.com"))
    assert resp.status_code == 400

    slots = client.get(f"/arenas/{arena['id']}/slots?date={day}").get_json()["slots"]
    assert {s["state"] for s in slots} == {"FREE"}
