"""Tests for message-type / subscription-type dispatch."""

import discord_embeds
import eventsub
from eventsub import MessageType, SubscriptionType

from conftest import BROADCASTER_ID, RecordingDeliver


def _notification(sub_type, event):
    return {
        "subscription": {"id": "sub-1", "type": sub_type, "status": "enabled", "condition": {}},
        "event": event,
    }


def test_parse_known_and_unknown_types():
    assert MessageType.parse("notification") is MessageType.NOTIFICATION
    assert MessageType.parse("webhook_callback_verification") is MessageType.VERIFICATION
    assert MessageType.parse("nope") is None
    assert MessageType.parse(None) is None
    assert SubscriptionType.parse("channel.unban_request.resolve") is SubscriptionType.UNBAN_REQUEST_RESOLVE
    assert SubscriptionType.parse("channel.follow") is None


def test_parse_body():
    assert eventsub.parse_body(b'{"a": 1}') == {"a": 1}
    assert eventsub.parse_body(b"[1, 2]") is None
    assert eventsub.parse_body(b"{not json") is None


def test_verification_echoes_challenge(store, deliver):
    resp = eventsub.dispatch("webhook_callback_verification", {"challenge": "abc123"}, store, deliver)
    assert resp.status_code == 200
    assert resp.body == b"abc123"
    assert resp.headers["content-type"].startswith("text/plain")
    assert deliver.calls == []


def test_revocation_logs_and_returns_204(store, deliver, caplog):
    notification = {
        "subscription": {
            "type": "channel.unban_request.create",
            "status": "authorization_revoked",
            "condition": {"broadcaster_user_id": BROADCASTER_ID},
        }
    }
    resp = eventsub.dispatch("revocation", notification, store, deliver)
    assert resp.status_code == 204
    assert resp.body == b""
    assert "authorization_revoked" in caplog.text
    assert deliver.calls == []


def test_unknown_message_type_is_204(store, deliver, caplog):
    resp = eventsub.dispatch("something_else", {}, store, deliver)
    assert resp.status_code == 204
    assert "Unknown message type: something_else" in caplog.text


def test_notification_without_subscription_type(store, deliver):
    resp = eventsub.dispatch("notification", {"event": {}}, store, deliver)
    assert resp.status_code == 200
    assert resp.body.decode() == eventsub.NO_SUBSCRIPTION_TYPE_TEXT
    assert deliver.calls == []


def test_unhandled_subscription_type_logs_event(store, deliver, caplog):
    notification = _notification("channel.follow", {"user_login": "someone"})
    resp = eventsub.dispatch("notification", notification, store, deliver)
    assert resp.status_code == 204
    assert "channel.follow" in caplog.text
    assert "someone" in caplog.text
    assert deliver.calls == []


def test_create_for_unconfigured_channel(store, deliver, create_event):
    create_event["broadcaster_user_id"] = "404"
    resp = eventsub.dispatch(
        "notification", _notification("channel.unban_request.create", create_event), store, deliver
    )
    assert resp.status_code == 200
    assert resp.body.decode() == eventsub.NOT_CONFIGURED_TEXT
    assert len(deliver.calls) == 0


def test_create_without_matching_rule(store, deliver, create_event):
    create_event["broadcaster_user_id"] = "9001"
    resp = eventsub.dispatch(
        "notification", _notification("channel.unban_request.create", create_event), store, deliver
    )
    assert resp.status_code == 200
    assert resp.body.decode() == eventsub.NOT_CONFIGURED_TEXT
    assert deliver.calls == []


def test_create_delivers_once_per_rule(store, deliver, create_event):
    resp = eventsub.dispatch(
        "notification", _notification("channel.unban_request.create", create_event), store, deliver
    )
    assert resp.status_code == 204
    assert [(url, thread) for _, url, thread in deliver.calls] == [
        ("https://discord.test/api/webhooks/1/a", None),
        ("https://discord.test/api/webhooks/2/b", "42"),
    ]
    first, second = (payload["embeds"][0] for payload, _, _ in deliver.calls)
    assert [f["name"] for f in first["fields"]] == ["Broadcaster", "User", "Created at"]
    assert [f["name"] for f in second["fields"]] == ["User", "Created at"]


def test_failed_delivery_does_not_stop_the_rest(store, create_event):
    deliver = RecordingDeliver(fail_on={"https://discord.test/api/webhooks/1/a"})
    resp = eventsub.dispatch(
        "notification", _notification("channel.unban_request.create", create_event), store, deliver
    )
    assert resp.status_code == 204
    assert len(deliver.calls) == 2


def test_resolve_colors_by_status(store, resolve_event):
    expected = {
        "approved": discord_embeds.COLOR_GREEN,
        "denied": discord_embeds.COLOR_RED,
        "canceled": discord_embeds.COLOR_GRAY,
        "mystery": discord_embeds.COLOR_GRAY,
    }
    for status, color in expected.items():
        deliver = RecordingDeliver()
        resolve_event["status"] = status
        resp = eventsub.dispatch(
            "notification", _notification("channel.unban_request.resolve", resolve_event), store, deliver
        )
        assert resp.status_code == 204
        (payload, url, _), = deliver.calls
        assert url == "https://discord.test/api/webhooks/3/c"
        assert payload["embeds"][0]["color"] == color


def test_resolve_without_status_is_204_and_silent(store, deliver, resolve_event):
    del resolve_event["status"]
    resp = eventsub.dispatch(
        "notification", _notification("channel.unban_request.resolve", resolve_event), store, deliver
    )
    assert resp.status_code == 204
    assert deliver.calls == []


def test_resolve_for_unconfigured_channel(store, deliver, resolve_event):
    resolve_event["broadcaster_user_id"] = "404"
    resp = eventsub.dispatch(
        "notification", _notification("channel.unban_request.resolve", resolve_event), store, deliver
    )
    assert resp.status_code == 200
    assert resp.body.decode() == eventsub.NOT_CONFIGURED_TEXT
    assert deliver.calls == []
