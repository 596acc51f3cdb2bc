# vault/clients/vault_client.py

import base64
import json
import mimetypes
import os
from typing import Iterator, Optional

import requests

# =========================
# CONFIGURATION
# =========================

SERVER_URL = os.getenv("VAULT_SERVER_URL", "http://127.0.0.1:8000")
REQUEST_TIMEOUT = 10  # seconds; not applied to the event stream read

# =========================
# PAYLOAD ENCODING
# =========================

def encode_data_url(data: bytes, mime_type: str = "application/octet-stream") -> str:
    """Files travel as base64 data URLs in the message `url` field"""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"


def decode_data_url(url: str) -> bytes:
    header, _, encoded = url.partition(",")
    if not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URL")
    return base64.b64decode(encoded)


def parse_event_lines(lines) -> Iterator[dict]:
    """
    Turn event-stream lines into event dicts. Comments (":"), retry hints
    and blank separators are skipped; multi-line data fields are joined.
    """
    buffer = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8")

        if line == "":
            if buffer:
                yield json.loads("\n".join(buffer))
                buffer = []
            continue
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip(" "))

    if buffer:
        yield json.loads("\n".join(buffer))

# =========================
# CLIENT
# =========================

class VaultClient:
    def __init__(self, user_id: str, server_url: str = SERVER_URL,
                 session: Optional[requests.Session] = None):
        self.user_id = user_id
        self.server_url = server_url.rstrip("/")
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.server_url}{path}"

    def _request(self, method: str, path: str, **kwargs):
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)
        resp = self.session.request(method, self._url(path), **kwargs)
        resp.raise_for_status()
        return resp.json()

    # ---------- users ----------

    def signup(self, password: str):
        return self._request("POST", "/users/signup",
                             json={"username": self.user_id, "password": password})

    def login(self, password: str):
        return self._request("POST", "/users/login",
                             json={"username": self.user_id, "password": password})

    # ---------- messages ----------

    def send_text(self, content: str):
        return self._request("POST", "/messages",
                             json={"type": "text", "content": content, "userId": self.user_id})

    def send_file(self, path: str):
        """Upload a local file; the response carries its one-time shareableUrl"""
        name = os.path.basename(path)
        mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            data = f.read()

        return self._request("POST", "/messages", json={
            "type": "file",
            "content": name,
            "name": name,
            "url": encode_data_url(data, mime_type),
            "userId": self.user_id,
        })

    def list_messages(self, mine_only: bool = False):
        params = {"userId": self.user_id} if mine_only else None
        return self._request("GET", "/messages", params=params)

    def get_message(self, message_id: str):
        return self._request("GET", f"/messages/{message_id}")

    def download(self, message_id: str) -> bytes:
        """Fetch a shared file's bytes. The server deletes it, so this works once."""
        message = self._request("GET", f"/shared/{message_id}")
        return decode_data_url(message["url"])

    def delete_message(self, message_id: str):
        return self._request("DELETE", f"/messages/{message_id}")

    def mark_seen(self, message_id: str):
        return self._request("POST", f"/messages/{message_id}/seen")

    # ---------- live events ----------

    def listen(self) -> Iterator[dict]:
        """
        Yield events from the server as they arrive. Ends when the server
        closes the stream; callers reconnect and re-list to resync.
        """
        with self.session.get(self._url("/events"), stream=True,
                              headers={"Accept": "text/event-stream"},
                              timeout=(REQUEST_TIMEOUT, None)) as resp:
            resp.raise_for_status()
            yield from parse_event_lines(resp.iter_lines(decode_unicode=True))


# =========================
# DEMO USAGE
# =========================

if __name__ == "__main__":
    import sys

    client = VaultClient(sys.argv[1] if len(sys.argv) > 1 else "alice")
    print(f"Listening on {client.server_url}/events as {client.user_id} (Ctrl+C to stop)")

    for message in client.list_messages():
        print(f"  [{message['type']}] {message['userId']}: {message['content']}")

    try:
        for event in client.listen():
            print(f"→ {event['action']}: {json.dumps(event)}")
    except KeyboardInterrupt:
        pass
