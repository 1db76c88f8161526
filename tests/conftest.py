import os

# app.py reads its configuration at import time
os.environ.setdefault("EVENTSUB_SECRET", "test-eventsub-secret")
os.environ.setdefault("CHANNEL_CONFIG_FILE", os.path.join(os.path.dirname(__file__), "missing-config.json"))
os.environ.setdefault("DEBUG_PAYLOADS", "0")

import pytest

from channels import ChannelStore, parse_channels
from twitch import compute_signature

SECRET = os.environ["EVENTSUB_SECRET"]

BROADCASTER_ID = "1337"

CHANNEL_JSON = """
[
  {
    "channel": "1337",
    "events": [
      {"event": "channel.unban_request.create", "webhook": "https://discord.test/api/webhooks/1/a"},
      {"event": "channel.unban_request.create", "webhook": "https://discord.test/api/webhooks/2/b",
       "threadId": "42", "hideBroadcaster": true},
      {"event": "channel.unban_request.resolve", "webhook": "https://discord.test/api/webhooks/3/c"}
    ]
  },
  {
    "channel": "9001",
    "events": [
      {"event": "channel.unban_request.resolve", "webhook": "https://discord.test/api/webhooks/4/d"}
    ]
  }
]
"""


class RecordingDeliver:
    """Stands in for discord_embeds.execute_webhook and records each call."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def __call__(self, payload, webhook_url, thread_id=None):
        self.calls.append((payload, webhook_url, thread_id))
        if webhook_url in self.fail_on:
            return None
        return object()


def sign(body: bytes, message_id="msg-1", timestamp="2024-01-01T00:00:00Z", secret=SECRET) -> str:
    return compute_signature(secret, message_id, timestamp, body)


@pytest.fixture
def store() -> ChannelStore:
    return parse_channels(CHANNEL_JSON)


@pytest.fixture
def deliver() -> RecordingDeliver:
    return RecordingDeliver()


@pytest.fixture
def create_event():
    return {
        "id": "60af3e5c-0000-4e68-b3fa-4ea1d9f9c7a1",
        "broadcaster_user_id": BROADCASTER_ID,
        "broadcaster_user_login": "streamer",
        "broadcaster_user_name": "Streamer",
        "user_id": "555",
        "user_login": "banned_person",
        "user_name": "Banned_Person",
        "text": "please unban me",
        "created_at": "2023-11-16T10:11:12.634234626Z",
    }


@pytest.fixture
def resolve_event():
    return {
        "id": "60af3e5c-0000-4e68-b3fa-4ea1d9f9c7a1",
        "broadcaster_user_id": BROADCASTER_ID,
        "broadcaster_user_login": "streamer",
        "broadcaster_user_name": "Streamer",
        "moderator_user_id": "777",
        "moderator_user_login": "a_mod",
        "moderator_user_name": "A_Mod",
        "user_id": "555",
        "user_login": "banned_person",
        "user_name": "Banned_Person",
        "resolution_text": "welcome back",
        "status": "approved",
    }
