"""미팅 REST API 테스트.

사용법:
    cd backend
    uv run pytest test/test_meetings_api.py
"""

import pytest
from fastapi.testclient import TestClient

from app import create_app
from modules.meeting import MeetingSettings, RoomRegistry


@pytest.fixture
def client():
    with TestClient(create_app()) as client:
        yield client


def create_meeting(client, user_id="host-user", user_name="Host"):
    response = client.post("/api/meetings", json={"userId": user_id, "userName": user_name})
    assert response.status_code == 201
    return response.json()["meeting"]


def test_create_meeting(client):
    response = client.post("/api/meetings", json={"userId": "host-user", "userName": "Host"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    meeting = body["meeting"]
    assert len(meeting["code"]) == 9
    assert meeting["formattedCode"] == "-".join([meeting["code"][:3], meeting["code"][3:6], meeting["code"][6:]])
    assert meeting["hostId"] == "host-user"
    assert meeting["hostName"] == "Host"
    assert meeting["active"] is True
    assert meeting["participantCount"] == 0
    assert meeting["settings"]["allowScreenShare"] is True


def test_create_meeting_validation(client):
    response = client.post("/api/meetings", json={"userId": "host-user"})
    assert response.status_code == 422


def test_get_meeting_accepts_display_code(client):
    meeting = create_meeting(client)

    response = client.get(f"/api/meetings/{meeting['formattedCode'].lower()}")

    assert response.status_code == 200
    assert response.json()["meeting"]["meetingId"] == meeting["meetingId"]


def test_unknown_and_invalid_codes(client):
    response = client.get("/api/meetings/ZZZ-999-ZZZ")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Meeting not found", "error": "meeting-not-found"}

    response = client.get("/api/meetings/abc")
    assert response.status_code == 400
    assert response.json()["error"] == "invalid-code"


def test_join_and_participants(client):
    meeting = create_meeting(client)
    code = meeting["code"]

    first = client.post(f"/api/meetings/{code}/join", json={
        "memberId": "conn-1", "userName": "Host", "userId": "host-user", "isHost": True,
    })
    second = client.post(f"/api/meetings/{code}/join", json={"memberId": "conn-2", "userName": "Guest"})

    assert first.status_code == 200
    assert first.json()["existingMembers"] == []
    existing = second.json()["existingMembers"]
    assert [(m["id"], m["name"], m["isHost"]) for m in existing] == [("conn-1", "Host", True)]

    participants = client.get(f"/api/meetings/{code}/participants").json()
    assert participants["participantCount"] == 2
    assert [p["id"] for p in participants["participants"]] == ["conn-1", "conn-2"]
    assert client.get(f"/api/meetings/{code}").json()["meeting"]["participantCount"] == 2


def test_rest_join_never_creates(client):
    response = client.post("/api/meetings/ZZZ-999-ZZZ/join", json={"memberId": "conn-1", "userName": "Guest"})
    assert response.status_code == 404


def test_leave(client):
    code = create_meeting(client)["code"]
    client.post(f"/api/meetings/{code}/join", json={"memberId": "conn-1", "userName": "Guest"})

    first = client.post(f"/api/meetings/{code}/leave", json={"memberId": "conn-1"})
    second = client.post(f"/api/meetings/{code}/leave", json={"memberId": "conn-1"})

    assert first.json() == {"success": True, "message": "Left meeting successfully"}
    assert second.json() == {"success": True, "message": "Not in meeting"}
    assert client.get(f"/api/meetings/{code}/participants").json()["participantCount"] == 0


def test_end_meeting(client):
    code = create_meeting(client)["code"]
    client.post(f"/api/meetings/{code}/join", json={
        "memberId": "conn-1", "userName": "Host", "userId": "host-user", "isHost": True,
    })
    client.post(f"/api/meetings/{code}/join", json={"memberId": "conn-2", "userName": "Guest"})

    denied = client.post(f"/api/meetings/{code}/end", json={"userId": "conn-2"})
    assert denied.status_code == 403
    assert denied.json()["error"] == "not-host"

    ended = client.post(f"/api/meetings/{code}/end", json={"userId": "host-user"})
    assert ended.status_code == 200
    assert ended.json()["message"] == "Meeting ended successfully"

    meeting = client.get(f"/api/meetings/{code}").json()["meeting"]
    assert meeting["active"] is False
    assert meeting["endedAt"] is not None
    assert meeting["participantCount"] == 0

    rejoin = client.post(f"/api/meetings/{code}/join", json={"memberId": "conn-3", "userName": "Late"})
    assert rejoin.status_code == 400
    assert rejoin.json()["error"] == "meeting-ended"


def test_room_full():
    registry = RoomRegistry(settings=MeetingSettings(MEETING_MAX_PARTICIPANTS=2))
    with TestClient(create_app(registry)) as client:
        code = create_meeting(client)["code"]
        for i in range(2):
            client.post(f"/api/meetings/{code}/join", json={"memberId": f"conn-{i}", "userName": f"User {i}"})

        response = client.post(f"/api/meetings/{code}/join", json={"memberId": "conn-x", "userName": "Extra"})

    assert response.status_code == 409
    assert response.json()["error"] == "meeting-full"


def test_health_and_stats(client):
    code = create_meeting(client)["code"]
    client.post(f"/api/meetings/{code}/join", json={"memberId": "conn-1", "userName": "Guest"})

    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["activeConnections"] == 0
    assert health["uptime"] >= 0

    stats = client.get("/api/stats").json()
    assert stats == {"meetings": 1, "activeMeetings": 1, "activeParticipants": 1, "socketConnections": 0}


def test_root_and_ice_servers(client):
    assert client.get("/").json()["status"] == "ok"

    servers = client.get("/api/turn-credentials").json()
    assert {"urls": "stun:stun.l.google.com:19302"} in servers
    assert all("urls" in server for server in servers)
