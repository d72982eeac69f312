"""Unit tests for the websocket transport, against a scripted connection."""

import pytest
from websockets.exceptions import ConnectionClosedOK

from wirefly.core.errors import TransportClosed, TransportError
from wirefly.core.frames import message_frame, parse_frame, peers_frame
from wirefly.core.relay import MessageRelay
from wirefly.core.ws_transport import WebSocketSubscription, WebSocketTransport


class ScriptedConnection:
    """Replays frames, then behaves like a closed socket"""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent = []
        self.closed = False

    async def recv(self):
        if self.closed or not self.frames:
            raise ConnectionClosedOK(None, None)
        return self.frames.pop(0)

    async def send(self, text):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(text)

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_next_message_absorbs_peer_lists_and_junk():
    connection = ScriptedConnection([
        peers_frame(["self-peer", "peer-b"]),
        "garbage",
        message_frame("peer-b", b"tick"),
    ])
    subscription = WebSocketSubscription(connection, "tick-primary", "self-peer")

    message = await subscription.next_message()
    assert message.received_from == "peer-b"
    assert message.data == b"tick"
    assert subscription.list_peers() == {"peer-b"}
    assert subscription.metrics["frames_skipped"] == 1

    with pytest.raises(TransportClosed):
        await subscription.next_message()


@pytest.mark.asyncio
async def test_relay_survives_non_ascii_frame_data(settle):
    connection = ScriptedConnection([
        '{"type":"message","from":"peer-b","data":"\u00e9"}',
        message_frame("peer-b", b'{"content":"tick","senderID":"peer-b"}'),
    ])
    subscription = WebSocketSubscription(connection, "tick-primary", "self-peer")
    relay = MessageRelay(subscription, "self-peer", "me", "tick-primary")
    relay.start()
    await settle()

    assert subscription.metrics["frames_skipped"] == 1
    result = relay.inbound.try_receive()
    assert result.received
    assert result.item.sender_id == "peer-b"
    await relay.close()


@pytest.mark.asyncio
async def test_publish_sends_frame():
    connection = ScriptedConnection()
    subscription = WebSocketSubscription(connection, "tick-primary", "self-peer")
    await subscription.publish(b"tick")

    assert parse_frame(connection.sent[0])["data"] == b"tick"

    await subscription.cancel()
    with pytest.raises(TransportClosed):
        await subscription.publish(b"tick")


@pytest.mark.asyncio
async def test_relay_over_websocket_closes_inbound_when_socket_drops(settle):
    connection = ScriptedConnection([message_frame("peer-b", b'{"content":"tick","senderID":"peer-b"}')])
    subscription = WebSocketSubscription(connection, "tick-primary", "self-peer")
    relay = MessageRelay(subscription, "self-peer", "me", "tick-primary")
    relay.start()
    await settle()

    assert relay.inbound.try_receive().item.sender_id == "peer-b"
    assert relay.inbound.try_receive().closed
    await relay.close()


def test_topic_url_is_quoted():
    transport = WebSocketTransport("ws://hub.local:8000/hub/", "peer 1")
    assert transport.topic_url("tick primary") == "ws://hub.local:8000/hub/tick%20primary?peer=peer%201"


@pytest.mark.asyncio
async def test_join_unreachable_hub_raises_transport_error():
    transport = WebSocketTransport("ws://127.0.0.1:1/hub", "self-peer", open_timeout=2.0)
    with pytest.raises(TransportError):
        await transport.join("tick-primary")
