"""Tests for RSVPs, attendee listing, user activity and attendance records."""
from event_manager.models.rsvp import RSVP, RSVPStatus
from event_manager.services import event_service
from tests.conftest import auth_header, create_account, create_test_event


def _setup(client):
    """Create an organizer with one event, plus a guest."""
    organizer, token = create_account(client, "Organizer")
    guest, guest_token = create_account(client, "Guest")
    event = create_test_event(client, token).json()["event"]
    return (organizer, token), (guest, guest_token), event


class TestRSVP:

    def test_rsvp_defaults_to_pending(self, client):
        _, (guest, guest_token), event = _setup(client)
        resp = client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))
        assert resp.status_code == 200
        rsvp = resp.json()["rsvp"]
        assert rsvp["status"] == "pending"
        assert rsvp["user_id"] == guest["user_id"]
        assert rsvp["event_id"] == event["event_id"]

    def test_rsvp_with_status(self, client):
        _, (_, guest_token), event = _setup(client)
        resp = client.post(
            f"/api/v1/event/{event['event_id']}/rsvp",
            json={"status": "accepted"},
            headers=auth_header(guest_token),
        )
        assert resp.status_code == 200
        assert resp.json()["rsvp"]["status"] == "accepted"

    def test_rsvp_invalid_status(self, client):
        _, (_, guest_token), event = _setup(client)
        resp = client.post(
            f"/api/v1/event/{event['event_id']}/rsvp",
            json={"status": "Maybe"},
            headers=auth_header(guest_token),
        )
        assert resp.status_code == 400

    def test_repeat_rsvp_updates_existing(self, client, db):
        _, (guest, guest_token), event = _setup(client)
        first = client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token)).json()
        second = client.post(
            f"/api/v1/event/{event['event_id']}/rsvp",
            json={"status": "declined"},
            headers=auth_header(guest_token),
        ).json()

        assert second["rsvp"]["rsvp_id"] == first["rsvp"]["rsvp_id"]
        assert second["rsvp"]["status"] == "declined"
        count = db.query(RSVP).filter(
            RSVP.event_id == event["event_id"], RSVP.user_id == guest["user_id"],
        ).count()
        assert count == 1

    def test_concurrent_first_rsvp_becomes_update(self, client, db, monkeypatch):
        _, (guest, _), event = _setup(client)
        real_find = event_service._find_rsvp
        lookups = []

        def racing_find(session, event_id, user_id):
            lookups.append(user_id)
            if len(lookups) == 1:
                # Another request commits the first RSVP right after this lookup
                session.add(RSVP(event_id=event_id, user_id=user_id, status=RSVPStatus.pending))
                session.commit()
                return None
            return real_find(session, event_id, user_id)

        monkeypatch.setattr(event_service, "_find_rsvp", racing_find)
        rsvp = event_service.rsvp_to_event(db, event["event_id"], guest["user_id"], RSVPStatus.accepted)

        assert rsvp.status == RSVPStatus.accepted
        assert len(lookups) == 2
        count = db.query(RSVP).filter(
            RSVP.event_id == event["event_id"], RSVP.user_id == guest["user_id"],
        ).count()
        assert count == 1

    def test_rsvp_missing_event(self, client):
        _, guest_token = create_account(client, "Guest")
        resp = client.post(
            "/api/v1/event/00000000-0000-0000-0000-000000000000/rsvp",
            headers=auth_header(guest_token),
        )
        assert resp.status_code == 404

    def test_rsvp_requires_authentication(self, client):
        _, _, event = _setup(client)
        resp = client.post(f"/api/v1/event/{event['event_id']}/rsvp")
        assert resp.status_code == 401


class TestAttendees:

    def test_attendees_lists_rsvpd_users(self, client):
        (_, token), (guest, guest_token), event = _setup(client)
        second, second_token = create_account(client, "Second Guest")
        client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))
        client.post(
            f"/api/v1/event/{event['event_id']}/rsvp",
            json={"status": "accepted"},
            headers=auth_header(second_token),
        )

        resp = client.get(f"/api/v1/event/{event['event_id']}/attendees", headers=auth_header(token))
        assert resp.status_code == 200
        ids = {a["user_id"] for a in resp.json()["attendees"]}
        assert ids == {guest["user_id"], second["user_id"]}
        for attendee in resp.json()["attendees"]:
            assert "password_hash" not in attendee

    def test_attendees_empty(self, client):
        (_, token), _, event = _setup(client)
        resp = client.get(f"/api/v1/event/{event['event_id']}/attendees", headers=auth_header(token))
        assert resp.json()["attendees"] == []

    def test_attendees_missing_event(self, client):
        _, token = create_account(client, "Organizer")
        resp = client.get(
            "/api/v1/event/00000000-0000-0000-0000-000000000000/attendees",
            headers=auth_header(token),
        )
        assert resp.status_code == 404


class TestUserActivity:

    def test_activity_includes_event_details(self, client):
        (_, token), (guest, guest_token), event = _setup(client)
        other = create_test_event(client, token, title="Second Meetup").json()["event"]
        client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))
        client.post(f"/api/v1/event/{other['event_id']}/rsvp", headers=auth_header(guest_token))

        resp = client.get(f"/api/v1/event/users/{guest['user_id']}/activity", headers=auth_header(guest_token))
        assert resp.status_code == 200
        activity = resp.json()["activity"]
        assert len(activity) == 2
        titles = {a["event"]["title"] for a in activity}
        assert titles == {"Team Meetup", "Second Meetup"}
        assert all(a["user_id"] == guest["user_id"] for a in activity)

    def test_activity_empty(self, client):
        user, token = create_account(client, "Loner")
        resp = client.get(f"/api/v1/event/users/{user['user_id']}/activity", headers=auth_header(token))
        assert resp.status_code == 200
        assert resp.json()["activity"] == []


class TestAttendance:

    def test_record_attendance(self, client):
        (_, token), (guest, guest_token), event = _setup(client)
        client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))

        resp = client.post(
            f"/api/v1/event/{event['event_id']}/attendance",
            json={"user_id": guest["user_id"], "status": "attended"},
            headers=auth_header(token),
        )
        assert resp.status_code == 200
        assert resp.json()["attendance"]["status"] == "attended"

        listed = client.get(f"/api/v1/event/{event['event_id']}/attendance", headers=auth_header(token))
        assert [a["user_id"] for a in listed.json()["attendance"]] == [guest["user_id"]]

    def test_attendance_is_upserted(self, client):
        (_, token), (guest, guest_token), event = _setup(client)
        client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))
        url = f"/api/v1/event/{event['event_id']}/attendance"
        client.post(url, json={"user_id": guest["user_id"], "status": "attended"}, headers=auth_header(token))
        client.post(url, json={"user_id": guest["user_id"], "status": "absent"}, headers=auth_header(token))

        records = client.get(url, headers=auth_header(token)).json()["attendance"]
        assert len(records) == 1
        assert records[0]["status"] == "absent"

    def test_attendance_requires_rsvp(self, client):
        (_, token), (guest, _), event = _setup(client)
        resp = client.post(
            f"/api/v1/event/{event['event_id']}/attendance",
            json={"user_id": guest["user_id"], "status": "attended"},
            headers=auth_header(token),
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "User has not RSVP'd to this event"

    def test_attendance_owner_only(self, client):
        _, (guest, guest_token), event = _setup(client)
        client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))
        resp = client.post(
            f"/api/v1/event/{event['event_id']}/attendance",
            json={"user_id": guest["user_id"], "status": "attended"},
            headers=auth_header(guest_token),
        )
        assert resp.status_code == 403

    def test_attendance_rejects_rsvp_vocabulary(self, client):
        (_, token), (guest, guest_token), event = _setup(client)
        client.post(f"/api/v1/event/{event['event_id']}/rsvp", headers=auth_header(guest_token))
        resp = client.post(
            f"/api/v1/event/{event['event_id']}/attendance",
            json={"user_id": guest["user_id"], "status": "accepted"},
            headers=auth_header(token),
        )
        assert resp.status_code == 400
