"""Full flow across the user and event APIs."""
from tests.conftest import DEFAULT_PASSWORD, auth_header, create_test_event


class TestEventLifecycle:

    def test_signup_to_delete(self, client):
        # A signs up and signs in
        resp = client.post("/api/v1/user/signup", json={
            "name": "Alice", "email": "alice@acme.org", "password": DEFAULT_PASSWORD,
        })
        assert resp.status_code == 201
        resp = client.post("/api/v1/user/signin", json={"email": "alice@acme.org", "password": DEFAULT_PASSWORD})
        assert resp.status_code == 200
        alice_token = resp.json()["token"]
        alice_id = resp.json()["user"]["user_id"]

        # A creates event E
        resp = create_test_event(client, alice_token, title="Launch Party")
        assert resp.status_code == 201
        event_id = resp.json()["event"]["event_id"]
        assert resp.json()["event"]["created_by"] == alice_id

        # B RSVPs
        client.post("/api/v1/user/signup", json={
            "name": "Bob", "email": "bob@acme.org", "password": DEFAULT_PASSWORD,
        })
        bob = client.post("/api/v1/user/signin", json={"email": "bob@acme.org", "password": DEFAULT_PASSWORD}).json()
        resp = client.post(
            f"/api/v1/event/{event_id}/rsvp",
            json={"status": "accepted"},
            headers=auth_header(bob["token"]),
        )
        assert resp.status_code == 200

        # Attendees include B
        resp = client.get(f"/api/v1/event/{event_id}/attendees", headers=auth_header(alice_token))
        assert bob["user"]["user_id"] in [a["user_id"] for a in resp.json()["attendees"]]

        # A deletes E, which is then gone
        resp = client.delete(f"/api/v1/event/{event_id}", headers=auth_header(alice_token))
        assert resp.status_code == 200
        resp = client.get(f"/api/v1/event/{event_id}")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Event not found"}


class TestErrorEnvelope:

    def test_unknown_route(self, client):
        resp = client.get("/api/v1/nothing-here")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_health(self, client):
        assert client.get("/api/v1/health").json() == {"success": True, "status": "ok"}
