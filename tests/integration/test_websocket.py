"""Integration tests for the recording status WebSocket."""

import asyncio

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from meetnotes.core.exceptions import TranscriptionError

OWNER = {"X-User-Id": "user-1"}


def _upload(client: TestClient) -> dict:
    resp = client.post(
        "/api/v1/recordings",
        files={"file": ("standup.mp3", b"ID3-fake-mp3", "audio/mpeg")},
        headers=OWNER,
    )
    assert resp.status_code == 201
    return resp.json()


def _drain(ws) -> list[dict]:
    """Receive messages until the server closes the socket, skipping progress ticks."""
    messages = []
    while True:
        try:
            message = ws.receive_json()
        except WebSocketDisconnect:
            return messages
        if message["type"] != "progress":
            messages.append(message)


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


def test_missing_owner_gets_error_and_close(test_client: TestClient):
    with test_client.websocket_connect("/ws/recordings/1") as ws:
        msg = ws.receive_json()
        assert msg["type"] == "error"
        assert msg["data"]["code"] == "AUTHENTICATION_REQUIRED"
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
    assert exc_info.value.code == 1008


def test_unknown_recording(test_client: TestClient):
    with test_client.websocket_connect("/ws/recordings/999?user_id=user-1") as ws:
        msg = ws.receive_json()
        assert msg["type"] == "error"
        assert msg["data"]["code"] == "RECORDING_NOT_FOUND"


def test_other_owners_recording_is_hidden(test_client: TestClient):
    rec = _upload(test_client)
    with test_client.websocket_connect(f"/ws/recordings/{rec['id']}?user_id=mallory") as ws:
        assert ws.receive_json()["data"]["code"] == "RECORDING_NOT_FOUND"


# ---------------------------------------------------------------------------
# Status streaming
# ---------------------------------------------------------------------------


def test_terminal_recording_sends_snapshot_and_closes(test_client: TestClient):
    rec = _upload(test_client)
    test_client.post(f"/api/v1/recordings/{rec['id']}/transcribe", headers=OWNER)

    with test_client.websocket_connect(f"/ws/recordings/{rec['id']}", headers=OWNER) as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert snapshot["data"]["status"] == "completed"
        assert snapshot["data"]["transcript"]["content"] == "Alice: we ship on Friday. Bob: agreed."
        assert _drain(ws) == []


def test_streams_changes_until_completed(test_client: TestClient):
    rec = _upload(test_client)

    with test_client.websocket_connect(f"/ws/recordings/{rec['id']}?user_id=user-1") as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert snapshot["data"]["status"] == "processing"
        assert snapshot["data"]["transcript"] is None

        resp = test_client.post(f"/api/v1/recordings/{rec['id']}/transcribe", headers=OWNER)
        assert resp.status_code == 200

        messages = _drain(ws)

    statuses = [m["data"]["status"] for m in messages if m["type"] == "status"]
    transcripts = [m for m in messages if m["type"] == "transcript"]
    assert statuses[-1] == "completed"
    assert statuses in (["transcribing", "completed"], ["completed"])
    assert len(transcripts) == 1
    assert transcripts[0]["data"]["content"] == "Alice: we ship on Friday. Bob: agreed."
    assert messages[-1]["type"] == "status"


def test_failure_is_streamed(test_client: TestClient, mock_stt):
    mock_stt.transcribe.side_effect = TranscriptionError("Deepgram failed after 3 attempts: unreachable")
    rec = _upload(test_client)

    with test_client.websocket_connect(f"/ws/recordings/{rec['id']}", headers=OWNER) as ws:
        ws.receive_json()
        test_client.post(f"/api/v1/recordings/{rec['id']}/transcribe", headers=OWNER)
        messages = _drain(ws)

    final = messages[-1]
    assert final["type"] == "status"
    assert final["data"]["status"] == "failed"
    assert "unreachable" in final["data"]["error_message"]
    assert not [m for m in messages if m["type"] == "transcript"]


def test_client_disconnect_releases_subscription(test_client: TestClient, ws_services):
    rec = _upload(test_client)

    with test_client.websocket_connect(f"/ws/recordings/{rec['id']}", headers=OWNER) as ws:
        ws.receive_json()
        assert ws_services.hub.subscriber_count(rec["id"]) == 1

    # Server-side cleanup runs on the app loop after the close frame.
    for _ in range(50):
        if test_client.portal.call(_subscriber_count, ws_services.hub, rec["id"]) == 0:
            break
    assert ws_services.hub.subscriber_count(rec["id"]) == 0


async def _subscriber_count(hub, recording_id: int) -> int:
    await asyncio.sleep(0.01)
    return hub.subscriber_count(recording_id)
