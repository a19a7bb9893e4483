import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from catalog_svc.auth import AuthConfig, JWTConfig, issue_test_token
from catalog_svc.config import Config
from catalog_svc.ids import new_id
from catalog_svc.main import create_app

SECRET = "catalog-service-test-secret-0123456789"


def make_config(**realtime) -> Config:
    config = Config(
        auth=AuthConfig(
            enabled=True,
            jwt=JWTConfig(enabled=True, issuer="test", test_secret=SECRET),
        ),
    )
    for key, value in realtime.items():
        setattr(config.realtime, key, value)
    return config


def auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_test_token(SECRET, user_id)}"}


def ws_url(user_id: str) -> str:
    return f"/ws?token={issue_test_token(SECRET, user_id)}"


@pytest.fixture
def client(users, entries, notifier):
    app = create_app(make_config(max_message_bytes=512), users=users, entries=entries, notifier=notifier)
    with TestClient(app) as client:
        yield client


def create_catalog(client, user_id, name="Birds", **extra):
    response = client.post("/catalogs", json={"name": name, **extra}, headers=auth(user_id))
    assert response.status_code == 201, response.text
    return response.json()["data"]["catalog"]


def share_catalog(client, owner, catalog_id, invitee, role="editor"):
    response = client.post(
        f"/catalogs/{catalog_id}/collaborators",
        json={"inviteeId": invitee, "role": role},
        headers=auth(owner),
    )
    assert response.status_code == 201, response.text
    share_id = response.json()["data"]["invitation"]["id"]
    response = client.post(
        f"/catalog-shares/{share_id}/respond", json={"action": "accept"}, headers=auth(invitee)
    )
    assert response.status_code == 200, response.text
    return share_id


def join(ws, catalog_id, request_id="j1"):
    ws.send_json({"event": "catalog:join", "id": request_id, "catalogId": catalog_id})
    return ws.receive_json()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["realtime"] is True


def test_requests_require_bearer_token(client, alice):
    response = client.get("/catalogs")
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
    assert response.headers["WWW-Authenticate"].startswith("Bearer")

    expired = issue_test_token(SECRET, alice, expires_in=-60)
    response = client.get("/catalogs", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401

    forged = issue_test_token("some-other-secret-entirely-0123456789", alice)
    response = client.get("/catalogs", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


def test_catalog_crud(client, alice):
    catalog = create_catalog(client, alice, "  Birds  ", description="Spring")
    assert catalog["name"] == "Birds"
    assert catalog["owner"] == alice

    listed = client.get("/catalogs", headers=auth(alice)).json()["data"]["catalogs"]
    assert [c["id"] for c in listed] == [catalog["id"]]

    response = client.patch(
        f"/catalogs/{catalog['id']}", json={"description": None}, headers=auth(alice)
    )
    assert response.status_code == 200
    assert response.json()["data"]["catalog"]["description"] is None

    fetched = client.get(f"/catalogs/{catalog['id']}", headers=auth(alice)).json()["data"]
    assert fetched["access"] == "owner"
    assert fetched["entries"] == []

    response = client.delete(f"/catalogs/{catalog['id']}", headers=auth(alice))
    assert response.json() == {"message": "Catalog deleted successfully"}
    assert client.get(f"/catalogs/{catalog['id']}", headers=auth(alice)).status_code == 404


def test_error_mapping(client, alice, bob):
    catalog = create_catalog(client, alice)

    response = client.post("/catalogs", json={"name": "Birds"}, headers=auth(alice))
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"

    assert client.post("/catalogs", json={"name": ""}, headers=auth(alice)).status_code == 400
    assert client.post("/catalogs", json={"name": "x" * 101}, headers=auth(alice)).status_code == 400
    assert client.patch(f"/catalogs/{catalog['id']}", json={"owner": bob}, headers=auth(alice)).status_code == 400
    assert client.patch(f"/catalogs/{catalog['id']}", json={}, headers=auth(alice)).status_code == 400
    assert client.get("/catalogs/not-an-id", headers=auth(alice)).status_code == 400
    assert client.get(f"/catalogs/{new_id()}", headers=auth(alice)).status_code == 404

    response = client.get(f"/catalogs/{catalog['id']}", headers=auth(bob))
    assert response.status_code == 403
    assert response.json() == {"error": "forbidden", "detail": "You do not have access to this catalog"}


def test_link_and_unlink(client, entries, alice):
    catalog = create_catalog(client, alice)
    entry_id = entries.add_entry(alice, species="Heron", imageUrl="uploads/heron.jpg")
    url = f"/catalogs/{catalog['id']}/entries/{entry_id}"

    response = client.post(url, headers=auth(alice))
    assert response.status_code == 200
    [item] = response.json()["data"]["entries"]
    assert item["entry"]["imageUrl"] == "http://testserver/uploads/heron.jpg"
    assert item["addedBy"] == alice

    assert client.post(url, headers=auth(alice)).status_code == 409

    response = client.delete(url, headers=auth(alice))
    assert response.status_code == 200
    assert response.json()["data"]["entries"] == []
    # Unlinking again is a no-op
    assert client.delete(url, headers=auth(alice)).status_code == 200


def test_invitation_flow(client, alice, bob):
    catalog = create_catalog(client, alice)
    url = f"/catalogs/{catalog['id']}/collaborators"

    response = client.post(url, json={"inviteeId": bob}, headers=auth(alice))
    assert response.status_code == 201
    invitation = response.json()["data"]["invitation"]
    assert (invitation["status"], invitation["role"]) == ("pending", "viewer")

    response = client.post(url, json={"inviteeId": bob, "role": "editor"}, headers=auth(alice))
    assert response.status_code == 409
    assert response.json()["data"]["invitation"]["id"] == invitation["id"]

    pending = client.get("/catalog-shares/pending", headers=auth(bob)).json()["data"]["invitations"]
    assert [p["id"] for p in pending] == [invitation["id"]]

    respond = f"/catalog-shares/{invitation['id']}/respond"
    response = client.post(respond, json={"action": "accept"}, headers=auth(bob))
    assert response.json()["message"] == "Invitation accepted successfully"
    response = client.post(respond, json={"action": "decline"}, headers=auth(bob))
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_state"

    shared = client.get("/catalog-shares/shared-with-me", headers=auth(bob)).json()["data"]["shares"]
    assert [s["catalog"]["id"] for s in shared] == [catalog["id"]]

    response = client.patch(f"{url}/{invitation['id']}", json={"action": "revoke"}, headers=auth(alice))
    assert response.json()["data"]["invitation"]["status"] == "revoked"
    assert client.get(url, headers=auth(alice)).json()["data"]["collaborators"] == []

    response = client.post(url, json={"inviteeId": bob, "role": "editor"}, headers=auth(alice))
    assert response.status_code == 200
    restored = response.json()["data"]["invitation"]
    assert restored["id"] == invitation["id"]
    assert (restored["status"], restored["role"]) == ("pending", "editor")
    assert len(client.get(url, headers=auth(alice)).json()["data"]["collaborators"]) == 1


def test_invite_rejections(client, alice, bob):
    catalog = create_catalog(client, alice)
    url = f"/catalogs/{catalog['id']}/collaborators"

    assert client.post(url, json={"inviteeId": alice}, headers=auth(alice)).status_code == 400
    assert client.post(url, json={"inviteeId": new_id()}, headers=auth(alice)).status_code == 404
    assert client.post(url, json={"inviteeId": bob, "role": "admin"}, headers=auth(alice)).status_code == 400
    assert client.post(url, json={"inviteeId": alice}, headers=auth(bob)).status_code == 403
    assert client.get(url, headers=auth(bob)).status_code == 403


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------

def test_socket_rejects_missing_or_bad_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws"):
            pass
    assert exc_info.value.code == 1008

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage"):
            pass


def test_socket_accepts_bearer_header(client, alice):
    catalog = create_catalog(client, alice)
    with client.websocket_connect("/ws", headers=auth(alice)) as ws:
        assert join(ws, catalog["id"])["ok"] is True


def test_socket_reports_bad_frames_without_disconnecting(client, alice):
    catalog = create_catalog(client, alice)
    with client.websocket_connect(ws_url(alice)) as ws:
        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "error": "Invalid JSON"}

        ws.send_text("x" * 600)
        assert ws.receive_json() == {"type": "error", "error": "Message too large"}

        ws.send_json({"event": "catalog:dance"})
        assert ws.receive_json()["error"] == "Unknown event: catalog:dance"

        assert join(ws, "bogus") == {
            "type": "ack", "event": "catalog:join", "id": "j1", "ok": False, "error": "Invalid catalog ID",
        }
        assert join(ws, catalog["id"], request_id=7) == {
            "type": "ack", "event": "catalog:join", "id": 7, "ok": True,
        }


def test_realtime_convergence(client, entries, alice, bob, carol):
    catalog = create_catalog(client, alice)
    share_catalog(client, alice, catalog["id"], bob, role="editor")
    private = create_catalog(client, carol, "Private")

    with client.websocket_connect(ws_url(alice)) as ws_a, client.websocket_connect(ws_url(bob)) as ws_b:
        assert join(ws_a, catalog["id"])["ok"] is True
        assert join(ws_b, catalog["id"])["ok"] is True

        entry_id = entries.add_entry(alice, species="Heron")
        response = client.post(f"/catalogs/{catalog['id']}/entries/{entry_id}", headers=auth(alice))
        assert response.status_code == 200

        for ws in (ws_a, ws_b):
            frame = ws.receive_json()
            assert frame["event"] == "catalog:entries-updated"
            assert frame["data"]["triggeredBy"] == alice
            assert [e["entry"]["id"] for e in frame["data"]["entries"]] == [entry_id]

        denied = join(ws_b, private["id"], request_id="j2")
        assert denied == {
            "type": "ack", "event": "catalog:join", "id": "j2", "ok": False, "error": "Access denied",
        }
        # Still connected and still subscribed
        assert join(ws_b, catalog["id"], request_id="j3")["ok"] is True

        client.patch(f"/catalogs/{catalog['id']}", json={"name": "Herons"}, headers=auth(alice))
        frame = ws_b.receive_json()
        assert frame["event"] == "catalog:metadata-updated"
        assert frame["data"]["catalog"]["name"] == "Herons"


def test_leave_stops_delivery(client, entries, alice):
    catalog = create_catalog(client, alice)
    with client.websocket_connect(ws_url(alice)) as ws:
        assert join(ws, catalog["id"])["ok"] is True
        ws.send_json({"event": "catalog:leave", "catalogId": catalog["id"]})
        # Frames are handled in order: once this ack arrives the leave is done
        assert join(ws, "", request_id="sync")["ok"] is False

        entry_id = entries.add_entry(alice)
        client.post(f"/catalogs/{catalog['id']}/entries/{entry_id}", headers=auth(alice))

        # The next frame is the ack, not an entries update
        assert join(ws, "", request_id="probe")["error"] == "Catalog ID is required"


def test_deletion_cascade_over_socket(client, entries, alice, bob):
    catalog = create_catalog(client, alice)
    share_id = share_catalog(client, alice, catalog["id"], bob, role="editor")
    for owner in (alice, bob):
        entry_id = entries.add_entry(owner)
        client.post(f"/catalogs/{catalog['id']}/entries/{entry_id}", headers=auth(owner))

    with client.websocket_connect(ws_url(alice)) as ws_a, client.websocket_connect(ws_url(bob)) as ws_b:
        join(ws_a, catalog["id"])
        join(ws_b, catalog["id"])

        assert client.delete(f"/catalogs/{catalog['id']}", headers=auth(alice)).status_code == 200

        for ws in (ws_a, ws_b):
            frame = ws.receive_json()
            assert frame["event"] == "catalog:deleted"
            assert frame["data"]["catalogId"] == catalog["id"]
            assert frame["data"]["triggeredBy"] == alice
            # Exactly one deleted event: the next frame is the join ack
            ack = join(ws, catalog["id"], request_id="again")
            assert (ack["ok"], ack["error"]) == (False, "Catalog not found")

    shared = client.get("/catalog-shares/shared-with-me", headers=auth(bob)).json()["data"]["shares"]
    assert shared == []
    response = client.post(
        f"/catalog-shares/{share_id}/respond", json={"action": "decline"}, headers=auth(bob)
    )
    assert response.status_code == 404
