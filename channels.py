# channels.py
"""
Per-channel routing config for twitch-unban-relay.

A channel config maps a broadcaster id to one or more event rules:
which EventSub subscription type goes to which Discord webhook.

The file is read once at startup and never mutated afterwards.
"""

# =====================================================================
# IMPORTS
# =====================================================================
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

log = logging.getLogger("unbanrelay.channels")

# =====================================================================
# MODELS
# =====================================================================

class EventRule(BaseModel):
    """One (subscription type -> webhook) mapping for a channel."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_type: str = Field(alias="event")
    webhook_url: str = Field(alias="webhook")
    thread_id: str | None = Field(default=None, alias="threadId")
    hide_broadcaster: bool = Field(default=False, alias="hideBroadcaster")


class ChannelConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    channel_id: str = Field(alias="channel")
    events: tuple[EventRule, ...] = ()


_CHANNEL_LIST = TypeAdapter(list[ChannelConfig])

# =====================================================================
# STORE
# =====================================================================

class ChannelStore:
    """Read-only lookup over the configured channels (first match wins)."""

    def __init__(self, channels=()):
        self._channels: tuple[ChannelConfig, ...] = tuple(channels)

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self):
        return iter(self._channels)

    def find_channel(self, channel_id: str | None) -> ChannelConfig | None:
        if not channel_id:
            return None
        for cfg in self._channels:
            if cfg.channel_id == channel_id:
                return cfg
        return None

    def find_rules(self, channel_id: str | None, event_type: str) -> tuple[EventRule, ...]:
        """Return every rule of the channel matching event_type, in config order."""
        cfg = self.find_channel(channel_id)
        if cfg is None:
            return ()
        return tuple(rule for rule in cfg.events if rule.event_type == event_type)

# =====================================================================
# LOADING
# =====================================================================

def parse_channels(raw: str | bytes) -> ChannelStore:
    """
    Parse the JSON channel list.

    Raises:
        pydantic.ValidationError if the document does not match the format
    """
    return ChannelStore(_CHANNEL_LIST.validate_json(raw))


def load_channels(path: str | Path) -> ChannelStore:
    """Load the channel list from disk. A missing file means nothing is configured."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        log.warning("Channel config %s not found; no events will be forwarded", path)
        return ChannelStore()

    store = parse_channels(raw)
    log.info("Loaded %d channel config(s) from %s", len(store), path)
    return store
