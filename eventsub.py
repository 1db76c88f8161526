# eventsub.py
"""
EventSub message dispatch.

Takes an already *verified* notification and decides what happens:
echo the challenge, log a revocation, or format + deliver Discord
embeds for the subscription types we know about.

Every path returns a response; nothing is raised to the caller.
"""

# =====================================================================
# IMPORTS
# =====================================================================
import json
import logging
from enum import Enum

from fastapi.responses import PlainTextResponse, Response

import discord_embeds
from channels import ChannelStore

log = logging.getLogger("unbanrelay.eventsub")

# =====================================================================
# MESSAGE / SUBSCRIPTION TYPES
# =====================================================================

class MessageType(str, Enum):
    VERIFICATION = "webhook_callback_verification"
    NOTIFICATION = "notification"
    REVOCATION = "revocation"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return None


class SubscriptionType(str, Enum):
    UNBAN_REQUEST_CREATE = "channel.unban_request.create"
    UNBAN_REQUEST_RESOLVE = "channel.unban_request.resolve"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return None


NOT_CONFIGURED_TEXT = "Event not configured to be sent to discord. Skipping event."
NO_SUBSCRIPTION_TYPE_TEXT = (
    "This seems like an invalid payload. There is no subscription type for check for."
)
INVALID_BODY_TEXT = "This seems like an invalid payload. The body is not a JSON object."
INVALID_EVENT_TEXT = "This seems like an invalid payload. The event is not a JSON object."

# =====================================================================
# DESCRIPTOR FUNCTIONS
# =====================================================================

def parse_body(raw_body: bytes):
    """Decode a verified request body. Returns None unless it is a JSON object."""
    try:
        data = json.loads(raw_body)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def no_content() -> Response:
    return Response(status_code=204)


def _pretty(value) -> str:
    return json.dumps(value, indent=4, ensure_ascii=False)

# =====================================================================
# NOTIFICATION HANDLERS
# =====================================================================

def _forward(subscription_type, event, channels, deliver, formatter) -> Response:
    rules = channels.find_rules(event.get("broadcaster_user_id"), subscription_type.value)
    if not rules:
        log.info(
            "%s for channel %s is not configured",
            subscription_type.value,
            event.get("broadcaster_user_id"),
        )
        return PlainTextResponse(NOT_CONFIGURED_TEXT)

    for rule in rules:
        deliver(formatter(event, rule), rule.webhook_url, rule.thread_id)
    return no_content()


def handle_unban_request_create(event, channels, deliver) -> Response:
    return _forward(
        SubscriptionType.UNBAN_REQUEST_CREATE,
        event,
        channels,
        deliver,
        discord_embeds.format_unban_request_create,
    )


def handle_unban_request_resolve(event, channels, deliver) -> Response:
    # Nothing to report until Twitch tells us how it was resolved
    if not event.get("status"):
        return no_content()
    return _forward(
        SubscriptionType.UNBAN_REQUEST_RESOLVE,
        event,
        channels,
        deliver,
        discord_embeds.format_unban_request_resolve,
    )


NOTIFICATION_HANDLERS = {
    SubscriptionType.UNBAN_REQUEST_CREATE: handle_unban_request_create,
    SubscriptionType.UNBAN_REQUEST_RESOLVE: handle_unban_request_resolve,
}

# =====================================================================
# DISPATCH
# =====================================================================

def handle_notification(notification: dict, channels: ChannelStore, deliver) -> Response:
    subscription = notification.get("subscription") or {}
    raw_type = subscription.get("type") if isinstance(subscription, dict) else None
    if not raw_type:
        log.warning("subscription type not available: %s", _pretty(notification))
        return PlainTextResponse(NO_SUBSCRIPTION_TYPE_TEXT)

    event = notification.get("event") or {}
    handler = NOTIFICATION_HANDLERS.get(SubscriptionType.parse(raw_type))
    if handler is None:
        log.warning("Unhandled event type: %s\n%s", raw_type, _pretty(event))
        return no_content()

    if not isinstance(event, dict):
        log.warning("%s event is not an object: %s", raw_type, _pretty(event))
        return PlainTextResponse(INVALID_EVENT_TEXT)

    return handler(event, channels, deliver)


def handle_revocation(notification: dict) -> Response:
    subscription = notification.get("subscription") or {}
    if not isinstance(subscription, dict):
        subscription = {}
    log.warning("%s notifications revoked!", subscription.get("type"))
    log.warning("reason: %s", subscription.get("status"))
    log.warning("condition: %s", _pretty(subscription.get("condition")))
    return no_content()


def dispatch(
    message_type,
    notification: dict,
    channels: ChannelStore,
    deliver=discord_embeds.execute_webhook,
) -> Response:
    """
    Route one verified EventSub message.

    deliver(payload, webhook_url, thread_id) is called once per matching
    rule, sequentially, before the response is returned.
    """
    kind = MessageType.parse(message_type)

    if kind is MessageType.VERIFICATION:
        challenge = notification.get("challenge")
        return Response(
            content="" if challenge is None else str(challenge),
            status_code=200,
            media_type="text/plain",
        )

    if kind is MessageType.NOTIFICATION:
        return handle_notification(notification, channels, deliver)

    if kind is MessageType.REVOCATION:
        return handle_revocation(notification)

    log.warning("Unknown message type: %s", message_type)
    return no_content()
