"""
Wirefly synchronization core.

Relay, tick engine and display stream, plus the transports they run over.
Nothing in here knows about HTTP or configuration files.
"""

from wirefly.core.channel import BoundedChannel, OverflowPolicy, Receive, ReceiveStatus
from wirefly.core.display import DisplayEventStream
from wirefly.core.engine import EngineState, StepResult, TickEngine, TickSettings, advance_phase
from wirefly.core.errors import (
    ChannelClosed,
    DecodeError,
    EngineHalted,
    PublishError,
    TransportClosed,
    TransportError,
    WireflyError,
)
from wirefly.core.hub import HubSubscription, LocalTransport, TopicHub
from wirefly.core.messages import DisplayEvent, DisplayKind, TickMessage, decode_tick, encode_tick
from wirefly.core.relay import MessageRelay
from wirefly.core.transport import Subscription, Transport, TransportMessage

__all__ = [
    "BoundedChannel",
    "OverflowPolicy",
    "Receive",
    "ReceiveStatus",
    "DisplayEventStream",
    "EngineState",
    "StepResult",
    "TickEngine",
    "TickSettings",
    "advance_phase",
    "ChannelClosed",
    "DecodeError",
    "EngineHalted",
    "PublishError",
    "TransportClosed",
    "TransportError",
    "WireflyError",
    "HubSubscription",
    "LocalTransport",
    "TopicHub",
    "DisplayEvent",
    "DisplayKind",
    "TickMessage",
    "decode_tick",
    "encode_tick",
    "MessageRelay",
    "Subscription",
    "Transport",
    "TransportMessage",
]
