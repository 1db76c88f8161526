# app.py
"""
twitch-unban-relay

Receives Twitch EventSub webhooks for unban requests, verifies them,
and forwards them as embeds to Discord webhooks. Also hosts a small
OAuth flow to grab tokens for the bot account.

Sections: imports → config → helpers → startup → routes
"""

# =====================================================================
# IMPORTS
# =====================================================================
import functools
import json
import logging
import os

import requests
import uvicorn
from colorlog import ColoredFormatter
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

import channels
import discord_embeds
import eventsub
import twitch  # local module (twitch.py)

# =====================================================================
# CONFIG / CONSTANTS
# =====================================================================
# Load environment variables from .env (must happen before reading os.environ / os.getenv)
load_dotenv()

# ---------- Logging ----------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

handler = logging.StreamHandler()
handler.setFormatter(
    ColoredFormatter(
        "%(log_color)s%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        log_colors={
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        },
    )
)

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO), handlers=[handler])
log = logging.getLogger("unbanrelay")

# ---------- Twitch ----------
TWITCH_CLIENT_ID = os.getenv("TWITCH_CLIENT_ID")
TWITCH_CLIENT_SECRET = os.getenv("TWITCH_CLIENT_SECRET")
TWITCH_REDIRECT_URI = os.getenv("TWITCH_REDIRECT_URI", "http://localhost:3000/auth-callback")
TWITCH_SCOPES = os.getenv("TWITCH_SCOPES", "moderator:read:unban_requests").split()
EVENTSUB_SECRET = os.getenv("EVENTSUB_SECRET")

# ---------- Server / outbound HTTP ----------
PORT = int(os.getenv("PORT", "3000"))
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "20"))
CHANNEL_CONFIG_FILE = os.getenv("CHANNEL_CONFIG_FILE", "config.json")

# ---------- Debug Flags ----------
DEBUG_PAYLOADS = os.getenv("DEBUG_PAYLOADS", "0") == "1"
JSON_DIR = os.getenv("JSON_DIR", "json")
DISABLE_DOCS = os.getenv("DISABLE_DOCS", "0") == "1"

# ---------- Local Files ----------
TOKEN_FILE = os.getenv("TOKEN_FILE", "token.json")
LAST_NOTIFICATION_FILE = os.getenv("LAST_NOTIFICATION_FILE", "last_notification.json")

# =====================================================================
# ACTION HELPERS
# (Side effects: file IO, logging)
# =====================================================================

def save_json(data: dict, filename: str) -> None:
    """
    Save JSON into JSON_DIR/filename.
    filename should be a simple name like "token.json".
    """
    os.makedirs(JSON_DIR, exist_ok=True)
    path = os.path.join(JSON_DIR, filename)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

# =====================================================================
# STARTUP LOGIC (RUNS ONCE)
# =====================================================================
if not EVENTSUB_SECRET:
    log.error("EVENTSUB_SECRET is not set; every notification will be rejected")

if not (TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET):
    log.warning("TWITCH_CLIENT_ID and/or TWITCH_CLIENT_SECRET not set; /auth is disabled")

CHANNELS = channels.load_channels(CHANNEL_CONFIG_FILE)

# =====================================================================
# DEPENDENCIES
# (Overridable in tests via app.dependency_overrides)
# =====================================================================

def get_channels() -> channels.ChannelStore:
    return CHANNELS


def get_eventsub_secret() -> str | None:
    return EVENTSUB_SECRET


def get_deliver():
    return functools.partial(discord_embeds.execute_webhook, timeout=HTTP_TIMEOUT)


async def raw_body(request: Request) -> bytes:
    # Signature covers the exact bytes Twitch sent
    return await request.body()

# =====================================================================
# FASTAPI APP SETUP
# =====================================================================
app = FastAPI(
    docs_url=None if DISABLE_DOCS else "/docs",
    redoc_url=None if DISABLE_DOCS else "/redoc",
    openapi_url=None if DISABLE_DOCS else "/openapi.json",
)

# =====================================================================
# ROUTES — STATUS
# =====================================================================

@app.get("/", response_class=PlainTextResponse)
def root():
    return "Twitch Unban Requests EventSub Webhook Endpoint"

# =====================================================================
# ROUTES — OAUTH FLOW
# =====================================================================

@app.get("/auth")
def auth():
    if not (TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET):
        return PlainTextResponse("TWITCH_CLIENT_ID and/or TWITCH_CLIENT_SECRET not set!")

    auth_url = twitch.build_auth_url(TWITCH_CLIENT_ID, TWITCH_REDIRECT_URI, TWITCH_SCOPES)
    return RedirectResponse(auth_url, status_code=302)


@app.get("/auth-callback", response_class=PlainTextResponse)
def auth_callback(
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    if code:
        try:
            token = twitch.exchange_code_for_token(
                TWITCH_CLIENT_ID,
                TWITCH_CLIENT_SECRET,
                TWITCH_REDIRECT_URI,
                code,
                timeout=HTTP_TIMEOUT,
            )
        except requests.HTTPError as e:
            log.error("Token exchange failed: %s", e)
            return e.response.text
        except requests.RequestException as e:
            log.error("Token exchange failed: %s", e)
            return "Token exchange failed. See logs."

        if not isinstance(token, dict):
            log.error("Token endpoint returned a non-object body: %r", token)
            return "Token exchange returned an unexpected response. See logs."

        try:
            save_json(token, TOKEN_FILE)
        except OSError as e:
            log.error("Could not save tokens to %s: %s", os.path.join(JSON_DIR, TOKEN_FILE), e)

        try:
            user = twitch.get_user(
                TWITCH_CLIENT_ID, token.get("access_token"), timeout=HTTP_TIMEOUT
            )
        except requests.RequestException as e:
            log.error("Fetching token owner failed: %s", e)
            return "Got Tokens, but looking up the user failed. See logs."

        if not user:
            return "Got Tokens, but Twitch returned no user for them."
        log.info("Got tokens for %s", user.get("login"))
        return twitch.describe_token_owner(user)

    if error:
        if error_description:
            return f"The following error occured:\n{error}\n{error_description}"
        return f"The following error occured:\n{error}"

    return (
        "This endpoint is intended to be redirected from Twitch's auth flow. "
        "It is not meant to be called directly"
    )

# =====================================================================
# ROUTES — EVENTSUB INGEST
# =====================================================================

@app.post("/")
def eventsub_webhook(
    body: bytes = Depends(raw_body),
    message_id: str | None = Header(None, alias=twitch.MESSAGE_ID_HEADER),
    message_timestamp: str | None = Header(None, alias=twitch.MESSAGE_TIMESTAMP_HEADER),
    message_signature: str | None = Header(None, alias=twitch.MESSAGE_SIGNATURE_HEADER),
    message_type: str | None = Header(None, alias=twitch.MESSAGE_TYPE_HEADER),
    secret: str | None = Depends(get_eventsub_secret),
    store: channels.ChannelStore = Depends(get_channels),
    deliver=Depends(get_deliver),
):
    if not twitch.verify_signature(secret, message_id, message_timestamp, body, message_signature):
        log.warning("403 - Signatures didn't match.")
        return PlainTextResponse("Forbidden", status_code=403)

    notification = eventsub.parse_body(body)
    if notification is None:
        log.warning("Verified message %s has no JSON object body", message_id)
        return PlainTextResponse(eventsub.INVALID_BODY_TEXT)

    if DEBUG_PAYLOADS:
        save_json(notification, LAST_NOTIFICATION_FILE)

    return eventsub.dispatch(message_type, notification, store, deliver)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
