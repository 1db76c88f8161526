# twitch.py
"""
Twitch platform integration for twitch-unban-relay.

Split into:
- Descriptor functions (pure logic: signatures, URLs, text)
- Action functions (network calls to Twitch OAuth / Helix)
"""

# =====================================================================
# IMPORTS
# =====================================================================
import hashlib
import hmac
import urllib.parse

import requests

# =====================================================================
# CONFIG / CONSTANTS
# =====================================================================
OAUTH_HOST = "https://id.twitch.tv"
API_HOST = "https://api.twitch.tv"

# EventSub notification request headers (HTTP headers are case-insensitive)
MESSAGE_ID_HEADER = "Twitch-Eventsub-Message-Id"
MESSAGE_TIMESTAMP_HEADER = "Twitch-Eventsub-Message-Timestamp"
MESSAGE_SIGNATURE_HEADER = "Twitch-Eventsub-Message-Signature"
MESSAGE_TYPE_HEADER = "Twitch-Eventsub-Message-Type"

# Prepended to the hex HMAC that Twitch sends
HMAC_PREFIX = "sha256="

DEFAULT_TIMEOUT = 20

# =====================================================================
# DESCRIPTOR FUNCTIONS
# (Pure logic: build, compare, describe — no side effects)
# =====================================================================

def _as_bytes(value: str | bytes | None) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(secret: str | bytes, message_id, timestamp, raw_body) -> str:
    """Return "sha256=<hex>" over message_id + timestamp + raw_body."""
    message = _as_bytes(message_id) + _as_bytes(timestamp) + _as_bytes(raw_body)
    digest = hmac.new(_as_bytes(secret), message, hashlib.sha256).hexdigest()
    return HMAC_PREFIX + digest


def verify_signature(secret, message_id, timestamp, raw_body, signature) -> bool:
    """
    Check an EventSub signature header in constant time.

    Inputs are used exactly as received. A missing signature or secret
    never verifies.
    """
    if not secret or not signature:
        return False
    expected = compute_signature(secret, message_id, timestamp, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), _as_bytes(signature))


def build_auth_url(client_id: str, redirect_uri: str, scopes) -> str:
    """
    Construct the Twitch OAuth authorization URL (authorization code flow).
    Scopes are space-joined and percent-encoded.
    """
    q = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes or ()),
    }
    return f"{OAUTH_HOST}/oauth2/authorize?{urllib.parse.urlencode(q, quote_via=urllib.parse.quote)}"


def describe_token_owner(user: dict) -> str:
    display_name = user.get("display_name") or ""
    login = user.get("login") or ""
    if display_name.lower() == login.lower():
        return f"Got Tokens for {display_name}"
    return f"Got Tokens for {display_name} ({login})"

# =====================================================================
# ACTION FUNCTIONS
# (Side effects: HTTP requests to Twitch)
# =====================================================================

def exchange_code_for_token(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    code: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict:
    """
    Exchange an OAuth authorization code for an access token.

    Raises:
        requests.HTTPError on a non-2xx answer
    """
    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri,
    }

    r = requests.post(
        f"{OAUTH_HOST}/oauth2/token",
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=timeout,
    )
    r.raise_for_status()
    return r.json()


def get_user(
    client_id: str,
    access_token: str,
    user_id: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict | None:
    """
    Fetch a Helix user. Without user_id, returns the owner of access_token.

    Returns:
        the first user object, or None if Twitch returned no users
    """
    params = {"id": user_id} if user_id else None
    r = requests.get(
        f"{API_HOST}/helix/users",
        params=params,
        headers={
            "Client-ID": client_id,
            "Authorization": f"Bearer {access_token}",
        },
        timeout=timeout,
    )
    r.raise_for_status()
    body = r.json()
    users = body.get("data") if isinstance(body, dict) else None
    if not isinstance(users, list) or not users or not isinstance(users[0], dict):
        return None
    return users[0]
