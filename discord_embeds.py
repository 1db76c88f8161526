# discord_embeds.py
"""
Discord side of twitch-unban-relay.

- Descriptor functions turn an EventSub event + EventRule into an embed payload.
- Action functions post that payload to a Discord webhook.
"""

# =====================================================================
# IMPORTS
# =====================================================================
import logging
import re
import urllib.parse
from datetime import datetime, timezone

import requests

from channels import EventRule

log = logging.getLogger("unbanrelay.discord")

# =====================================================================
# CONFIG / CONSTANTS
# =====================================================================
COLOR_RED = 0xCC3333
COLOR_GREEN = 0xAAFF00
COLOR_GRAY = 0x808080

TWITCH_CHANNEL_URL = "https://www.twitch.tv/"

DEFAULT_TIMEOUT = 20

# Twitch sends up to nanosecond precision; fromisoformat wants exactly 6 digits
_FRACTION_RE = re.compile(r"\.(\d+)")

# =====================================================================
# DESCRIPTOR FUNCTIONS
# (Pure logic: event dict in, payload dict out)
# =====================================================================

def user_link(name, login, user_id) -> str:
    """Markdown link to a Twitch channel showing name, login and id."""
    return f"[`{name}` (`{login}` - `{user_id}`)](<{TWITCH_CHANNEL_URL}{login}>)"


def discord_timestamp(value) -> str:
    """
    Render an RFC3339 timestamp as a Discord full date/time token (<t:N:F>).
    Values that cannot be parsed are shown as-is.
    """
    if not value:
        return "`unknown`"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), str(value))
    text = text.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return f"`{value}`"
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return f"<t:{int(parsed.timestamp())}:F>"


def code_block(text) -> str:
    return f"```{'' if text is None else text}```"


def _field(name: str, value: str) -> dict:
    return {"name": name, "value": value, "inline": False}


def _broadcaster_field(event: dict) -> dict:
    return _field(
        "Broadcaster",
        user_link(
            event.get("broadcaster_user_name"),
            event.get("broadcaster_user_login"),
            event.get("broadcaster_user_id"),
        ),
    )


def _user_field(event: dict) -> dict:
    return _field(
        "User",
        user_link(event.get("user_name"), event.get("user_login"), event.get("user_id")),
    )


def resolve_color(status) -> int:
    if status == "approved":
        return COLOR_GREEN
    if status == "denied":
        return COLOR_RED
    # canceled and anything Twitch adds later
    return COLOR_GRAY


def format_unban_request_create(event: dict, rule: EventRule) -> dict:
    """Embed payload for channel.unban_request.create."""
    fields = []
    if not rule.hide_broadcaster:
        fields.append(_broadcaster_field(event))
    fields.append(_user_field(event))
    fields.append(_field("Created at", discord_timestamp(event.get("created_at"))))

    request_id = event.get("id")
    title = (
        f"New Unban Request ({request_id}) created"
        if request_id
        else "New Unban Request created"
    )
    return {
        "embeds": [
            {
                "color": COLOR_RED,
                "title": title,
                "fields": fields,
                "description": code_block(event.get("text")),
            }
        ]
    }


def format_unban_request_resolve(event: dict, rule: EventRule) -> dict:
    """Embed payload for channel.unban_request.resolve."""
    status = event.get("status")

    fields = []
    if not rule.hide_broadcaster:
        fields.append(_broadcaster_field(event))
    fields.append(
        _field(
            "Moderator",
            user_link(
                event.get("moderator_user_name"),
                event.get("moderator_user_login"),
                event.get("moderator_user_id"),
            ),
        )
    )
    fields.append(_user_field(event))

    request_id = event.get("id")
    title = (
        f"Unban Request {request_id} {status}"
        if request_id
        else f"Unban Request {status}"
    )
    description = (
        f"**Status: `{status}`**\n"
        f"**Resolution Text:**\n"
        f"{code_block(event.get('resolution_text'))}"
    )
    return {
        "embeds": [
            {
                "color": resolve_color(status),
                "title": title,
                "fields": fields,
                "description": description,
            }
        ]
    }


def build_webhook_url(webhook_url: str, thread_id: str | None = None) -> str:
    """Add wait=true (and thread_id when posting into a forum thread)."""
    params = {"wait": "true"}
    if thread_id:
        params["thread_id"] = thread_id
    separator = "&" if urllib.parse.urlsplit(webhook_url).query else "?"
    return f"{webhook_url}{separator}{urllib.parse.urlencode(params)}"

# =====================================================================
# ACTION FUNCTIONS
# (Side effects: HTTP POST to Discord)
# =====================================================================

def execute_webhook(
    payload: dict,
    webhook_url: str,
    thread_id: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> requests.Response | None:
    """
    Post one payload to a Discord webhook. No retry.

    Failures are logged and swallowed so one bad webhook never blocks
    the others.

    Returns:
        the Discord response, or None if the request never completed
    """
    url = build_webhook_url(webhook_url, thread_id)
    try:
        r = requests.post(url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        log.error("Discord webhook request failed: %s", e)
        return None

    if r.ok:
        log.info("Discord response (%s): %s", r.status_code, r.text)
    else:
        log.error("Discord webhook returned %s: %s", r.status_code, r.text)
    return r
