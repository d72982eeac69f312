"""
Wirefly Identity
Peer ids and human-readable peer names
"""

import os
import uuid


def new_peer_id() -> str:
    """Random identity for this process"""
    return uuid.uuid4().hex


def short_id(peer_id: str) -> str:
    """Last 8 characters of a peer id"""
    return peer_id[-8:]


def default_peer_name(peer_id: str) -> str:
    """Name built from $USER and the short peer id"""
    user = os.getenv("USER") or os.getenv("USERNAME") or "peer"
    return f"{user}-{short_id(peer_id)}"
