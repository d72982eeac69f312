"""
Wirefly Config
Settings for one synchronizing peer, read from the environment or a .env file
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from wirefly.core.channel import OverflowPolicy
from wirefly.core.display import DISPLAY_BUFFER_SIZE
from wirefly.core.engine import BUMP_FACTOR, SUBTICKS_PER_CYCLE, TickSettings
from wirefly.core.hub import DEFAULT_MEMBER_BUFFER
from wirefly.core.relay import SUBSCRIPTION_BUFFER_SIZE

DEFAULT_TOPIC = "tick-primary"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


class Config:
    """Manages all configuration settings for a wirefly peer"""

    def __init__(self, topic: Optional[str] = None, peer_name: Optional[str] = None,
                 hub_url: Optional[str] = None, host: Optional[str] = None,
                 port: Optional[int] = None, load_env: bool = True):
        if load_env:
            # Pick up a .env file if there is one; real environment wins
            load_dotenv()

        # Topic all peers sync on
        self.TOPIC = topic or os.getenv("WIREFLY_TOPIC") or DEFAULT_TOPIC

        # Descriptive name for this peer, generated from the peer id when empty
        self.PEER_NAME = peer_name or os.getenv("WIREFLY_PEER_NAME", "")

        # Remote hub to join; empty means this node's own in-process hub
        self.HUB_URL = hub_url or os.getenv("WIREFLY_HUB_URL", "")

        # HTTP surface
        self.HOST = host or os.getenv("WIREFLY_HOST", "0.0.0.0")
        self.PORT = port if port is not None else _env_int("WIREFLY_PORT", 8000)

        # Tick cycle
        self.SUBTICKS_PER_CYCLE = _env_int("WIREFLY_SUBTICKS_PER_CYCLE", SUBTICKS_PER_CYCLE)
        self.SUBTICK_MS = _env_float("WIREFLY_SUBTICK_MS", 10.0)
        self.BUMP_FACTOR = _env_float("WIREFLY_BUMP_FACTOR", BUMP_FACTOR)

        # Buffers
        self.SUBSCRIPTION_BUFFER_SIZE = _env_int("WIREFLY_SUBSCRIPTION_BUFFER", SUBSCRIPTION_BUFFER_SIZE)
        self.DISPLAY_BUFFER_SIZE = _env_int("WIREFLY_DISPLAY_BUFFER", DISPLAY_BUFFER_SIZE)
        self.DISPLAY_OVERFLOW = os.getenv("WIREFLY_DISPLAY_OVERFLOW", OverflowPolicy.BLOCK.value).lower()
        self.DISPLAY_HISTORY = _env_int("WIREFLY_DISPLAY_HISTORY", 100)
        self.HUB_BUFFER_SIZE = _env_int("WIREFLY_HUB_BUFFER", DEFAULT_MEMBER_BUFFER)

        self.LOG_LEVEL = os.getenv("WIREFLY_LOG_LEVEL", "INFO").upper()

        self.validate()

    def validate(self):
        """Raise ValueError on settings the node cannot run with"""
        if self.HUB_URL and not self.HUB_URL.startswith(("ws://", "wss://")):
            raise ValueError(f"WIREFLY_HUB_URL must be a ws:// or wss:// URL, got {self.HUB_URL!r}")
        if not 0 < self.PORT < 65536:
            raise ValueError(f"WIREFLY_PORT out of range: {self.PORT}")
        for name in ("SUBSCRIPTION_BUFFER_SIZE", "DISPLAY_BUFFER_SIZE", "DISPLAY_HISTORY", "HUB_BUFFER_SIZE"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        try:
            OverflowPolicy(self.DISPLAY_OVERFLOW)
        except ValueError:
            choices = ", ".join(p.value for p in OverflowPolicy)
            raise ValueError(f"WIREFLY_DISPLAY_OVERFLOW must be one of {choices}, got {self.DISPLAY_OVERFLOW!r}")
        if not isinstance(logging.getLevelName(self.LOG_LEVEL), int):
            raise ValueError(f"Unknown WIREFLY_LOG_LEVEL: {self.LOG_LEVEL!r}")
        # TickSettings checks the cycle shape
        self.tick_settings()

    def tick_settings(self) -> TickSettings:
        return TickSettings(
            subticks_per_cycle=self.SUBTICKS_PER_CYCLE,
            subtick_seconds=self.SUBTICK_MS / 1000.0,
            bump_factor=self.BUMP_FACTOR
        )

    @property
    def display_overflow(self) -> OverflowPolicy:
        return OverflowPolicy(self.DISPLAY_OVERFLOW)
