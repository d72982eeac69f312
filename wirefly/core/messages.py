"""
Wirefly Messages
Wire record exchanged between peers and the local display record
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any

from wirefly.core.errors import DecodeError


# Wire field name -> names accepted on decode. The capitalised names are what
# the first generation of wirefly peers put on the wire.
WIRE_FIELDS = {
    'content': ('content', 'Message'),
    'senderID': ('senderID', 'SenderID'),
    'senderPeerName': ('senderPeerName', 'SenderPeerName'),
}


@dataclass(frozen=True)
class TickMessage:
    """A tick broadcast by one peer to every member of the topic"""

    content: str
    sender_id: str
    sender_peer_name: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to the wire representation"""
        return {
            'content': self.content,
            'senderID': self.sender_id,
            'senderPeerName': self.sender_peer_name
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TickMessage':
        """Build from a decoded wire object, ignoring unknown fields"""
        if not isinstance(data, dict):
            raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

        values = {}
        for wire_name, aliases in WIRE_FIELDS.items():
            value = ''
            for alias in aliases:
                if alias in data:
                    value = data[alias]
                    break
            if not isinstance(value, str):
                raise DecodeError(f"Field '{wire_name}' must be a string")
            values[wire_name] = value

        return cls(
            content=values['content'],
            sender_id=values['senderID'],
            sender_peer_name=values['senderPeerName']
        )


def encode_tick(message: TickMessage) -> bytes:
    """Serialize a tick for broadcast"""
    return json.dumps(message.to_dict(), separators=(',', ':')).encode('utf-8')


def decode_tick(payload: bytes) -> TickMessage:
    """Parse a broadcast payload, raising DecodeError if it is not a tick"""
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, ValueError, TypeError) as e:
        raise DecodeError(f"Malformed tick payload: {e}") from e
    return TickMessage.from_dict(data)


class DisplayKind(Enum):
    """What a display event reports"""
    SELF_TICK = "self_tick"
    EXTERNAL_TICK = "external_tick"


@dataclass(frozen=True)
class DisplayEvent:
    """Event handed to the presentation layer"""

    kind: DisplayKind
    content: str
    sender_id: str
    sender_peer_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def external(cls, message: TickMessage) -> 'DisplayEvent':
        """Event for a tick heard from another peer"""
        return cls(
            DisplayKind.EXTERNAL_TICK,
            message.content,
            message.sender_id,
            message.sender_peer_name
        )

    @classmethod
    def own_tick(cls, content: str, sender_id: str, sender_peer_name: str) -> 'DisplayEvent':
        """Event for a tick this peer just broadcast"""
        return cls(DisplayKind.SELF_TICK, content, sender_id, sender_peer_name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert display event to dictionary"""
        return {
            'kind': self.kind.value,
            'content': self.content,
            'sender_id': self.sender_id,
            'sender_peer_name': self.sender_peer_name,
            'timestamp': self.timestamp.isoformat()
        }
