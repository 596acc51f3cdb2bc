"""
HTTP-level tests for the message endpoints, run against a real app and a
temporary SQLite store.
"""
import asyncio
import json
from datetime import timedelta

from vault.core.message_logic import utcnow
from vault.services.subscriber_registry import Subscriber

FILE_BODY = {
    "type": "file",
    "content": "report.pdf",
    "name": "report.pdf",
    "url": "data:application/pdf;base64,JVBERi0xLjQ=",
    "userId": "alice",
}


def test_create_text_message(client):
    response = client.post("/messages", json={"type": "text", "content": "hi", "userId": "alice"},
                           headers={"User-Agent": "pytest-agent"})

    assert response.status_code == 201
    body = response.json()
    assert body["id"]
    assert body["uploadedAt"]
    assert body["content"] == "hi"
    assert "url" not in body
    assert body["deviceInfo"] == {"userAgent": "pytest-agent", "ip": "testclient"}
    assert body["seenBy"] == []


def test_open_stream_receives_created_message(client, app):
    # A subscriber bound to a loop the test drives itself stands in for a second tab
    loop = asyncio.new_event_loop()
    try:
        subscriber = Subscriber(loop)
        app.state.registry.register(subscriber)

        created = client.post("/messages", json={"type": "text", "content": "hi", "userId": "alice"}).json()

        frame = loop.run_until_complete(asyncio.wait_for(subscriber.next_frame(), timeout=1))
        event = json.loads(frame[len("data: "):])
        assert event["action"] == "add"
        assert event["message"]["content"] == "hi"
        assert event["message"]["id"] == created["id"]
    finally:
        app.state.registry.unregister(subscriber)
        loop.close()


def test_create_rejects_missing_fields(client, app_recorder):
    response = client.post("/messages", json={"type": "text", "content": "", "userId": "alice"})
    assert response.status_code == 400

    response = client.post("/messages", json={"type": "file", "name": "a", "userId": "alice"})
    assert response.status_code == 400

    response = client.post("/messages", json={"type": "video", "content": "x", "userId": "alice"})
    assert response.status_code == 422

    response = client.post("/messages", json={"type": "text", "content": "hi"})
    assert response.status_code == 422

    assert app_recorder.frames == []
    assert client.get("/messages").json() == []


def test_list_never_contains_payload(client):
    created = client.post("/messages", json=FILE_BODY).json()

    listed = client.get("/messages").json()
    assert [m["id"] for m in listed] == [created["id"]]
    assert "url" not in listed[0]

    single = client.get(f"/messages/{created['id']}").json()
    assert single["url"] == FILE_BODY["url"]


def test_list_filters_by_user(client):
    client.post("/messages", json={"type": "text", "content": "a", "userId": "alice"})
    client.post("/messages", json={"type": "text", "content": "b", "userId": "bob"})

    response = client.get("/messages", params={"userId": "bob"})

    assert [m["content"] for m in response.json()] == ["b"]


def test_shared_download_consumes_file(client, app_recorder):
    created = client.post("/messages", json=FILE_BODY).json()
    assert created["shareableUrl"] == f"http://testserver/shared/{created['id']}"

    assert client.get(f"/messages/{created['id']}").json()["url"] == FILE_BODY["url"]

    download = client.get(f"/shared/{created['id']}")
    assert download.status_code == 200
    assert download.json()["url"] == FILE_BODY["url"]

    assert client.get(f"/messages/{created['id']}").status_code == 404
    assert client.get(f"/shared/{created['id']}").status_code == 404
    assert app_recorder.events[-1] == {"action": "delete", "id": created["id"]}


def test_download_alias(client):
    created = client.post("/messages", json=FILE_BODY).json()

    assert client.get(f"/messages/{created['id']}/download").status_code == 200
    assert client.get(f"/messages/{created['id']}/download").status_code == 404


def test_delete_twice(client, app_recorder):
    created = client.post("/messages", json={"type": "text", "content": "hi", "userId": "alice"}).json()

    assert client.delete(f"/messages/{created['id']}").status_code == 200
    assert client.delete(f"/messages/{created['id']}").status_code == 404
    assert client.get(f"/messages/{created['id']}").status_code == 404
    deletes = [e for e in app_recorder.events if e["action"] == "delete"]
    assert deletes == [{"action": "delete", "id": created["id"]}]


def test_mark_seen_uses_forwarded_address(client, app_recorder):
    created = client.post("/messages", json={"type": "text", "content": "hi", "userId": "alice"}).json()

    headers = {"X-Forwarded-For": "::ffff:192.168.1.20, 10.0.0.1"}
    assert client.post(f"/messages/{created['id']}/seen", headers=headers).status_code == 200
    assert client.post(f"/messages/{created['id']}/seen", headers=headers).status_code == 200

    assert client.get(f"/messages/{created['id']}").json()["seenBy"] == ["192.168.1.20"]
    seen = [e for e in app_recorder.events if e["action"] == "seen"]
    assert len(seen) == 1
    assert seen[0]["viewerId"] == "192.168.1.20"


def test_mark_seen_missing(client):
    assert client.post("/messages/missing/seen").status_code == 404


def test_mark_seen_expired_is_not_found(client, app, app_recorder):
    old = app.state.store.append_message({
        "type": "text", "content": "old", "userId": "alice",
        "uploadedAt": utcnow() - timedelta(hours=2),
    })

    assert client.post(f"/messages/{old['id']}/seen").status_code == 404
    assert app.state.store.count_messages() == 0
    assert app_recorder.events == [{"action": "delete", "id": old["id"]}]


def test_create_rejects_oversized_file(client, app_recorder, monkeypatch):
    monkeypatch.setattr("vault.core.message.MAX_FILE_URL_LENGTH", 16)

    response = client.post("/messages", json={
        "type": "file", "name": "big.bin", "userId": "alice",
        "url": "data:;base64," + "A" * 16,
    })

    assert response.status_code == 400
    assert app_recorder.frames == []


def test_expired_message_is_swept_from_list(client, app, app_recorder):
    old = app.state.store.append_message({
        "type": "text", "content": "old", "userId": "alice",
        "uploadedAt": utcnow() - timedelta(hours=2),
    })

    assert client.get("/messages").json() == []
    assert client.get(f"/messages/{old['id']}").status_code == 404
    assert app_recorder.events == [{"action": "delete", "id": old["id"]}]


def test_health_and_stats(client, app):
    assert client.get("/health").json() == {"status": "ok"}

    client.post("/messages", json={"type": "text", "content": "hi", "userId": "alice"})
    stats = client.get("/admin/stats").json()

    assert stats == {"users": 0, "messages": 1, "subscribers": 0}
