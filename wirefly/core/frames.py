"""
Wirefly Hub Frames
JSON text frames exchanged between a hub endpoint and its websocket peers
"""

import base64
import json
from enum import Enum
from typing import Dict, Any, Iterable

from wirefly.core.errors import DecodeError


class FrameType(Enum):
    """Kinds of hub frame"""
    PUBLISH = "publish"   # peer -> hub
    MESSAGE = "message"   # hub -> peer
    PEERS = "peers"       # hub -> peer


def _dump(frame: Dict[str, Any]) -> str:
    return json.dumps(frame, separators=(',', ':'))


def publish_frame(data: bytes) -> str:
    return _dump({'type': FrameType.PUBLISH.value, 'data': base64.b64encode(data).decode('ascii')})


def message_frame(received_from: str, data: bytes) -> str:
    return _dump({
        'type': FrameType.MESSAGE.value,
        'from': received_from,
        'data': base64.b64encode(data).decode('ascii')
    })


def peers_frame(peers: Iterable[str]) -> str:
    return _dump({'type': FrameType.PEERS.value, 'peers': sorted(peers)})


def parse_frame(text) -> Dict[str, Any]:
    """
    Parse and validate a hub frame.

    Returns a dict with 'type' as a FrameType and, depending on the type,
    'data' (bytes), 'from' (str) or 'peers' (list of str).
    """
    try:
        frame = json.loads(text)
    except (UnicodeDecodeError, ValueError, TypeError) as e:
        raise DecodeError(f"Malformed hub frame: {e}") from e
    if not isinstance(frame, dict):
        raise DecodeError("Hub frame must be a JSON object")

    try:
        frame_type = FrameType(frame.get('type'))
    except ValueError:
        raise DecodeError(f"Unknown hub frame type: {frame.get('type')!r}")

    parsed = {'type': frame_type}
    if frame_type in (FrameType.PUBLISH, FrameType.MESSAGE):
        try:
            parsed['data'] = base64.b64decode(frame['data'], validate=True)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Hub frame has no valid data: {e}") from e
    if frame_type is FrameType.MESSAGE:
        sender = frame.get('from')
        if not isinstance(sender, str):
            raise DecodeError("Message frame has no sender")
        parsed['from'] = sender
    if frame_type is FrameType.PEERS:
        peers = frame.get('peers')
        if not isinstance(peers, list) or not all(isinstance(p, str) for p in peers):
            raise DecodeError("Peers frame must carry a list of peer ids")
        parsed['peers'] = peers
    return parsed
