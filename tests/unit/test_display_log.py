"""Unit tests for the display log."""

import asyncio
import logging

import pytest

from wirefly.core.display import DisplayEventStream
from wirefly.core.messages import DisplayEvent, TickMessage
from wirefly.display_log import DisplayLog, render_event


def test_render_event():
    own = DisplayEvent.own_tick("tick", "0123456789abcdef", "ada-89abcdef")
    external = DisplayEvent.external(TickMessage("tick", "fedcba9876543210", "bob"))
    assert render_event(own) == "Tick (self) ada-89abcdef"
    assert render_event(external) == "tick (external) from bob [76543210]"


@pytest.mark.asyncio
async def test_consumes_until_stream_closes(caplog):
    stream = DisplayEventStream()
    log = DisplayLog(stream, history=2)
    await log.start()

    await stream.send(DisplayEvent.own_tick("tick", "self-peer", "me"))
    for name in ("bob", "carol"):
        await stream.send(DisplayEvent.external(TickMessage("tick", f"peer-{name}", name)))
    with caplog.at_level(logging.INFO, logger="wirefly.display_log"):
        stream.close()
        await asyncio.wait_for(log.task, timeout=1.0)

    assert log.metrics == {"self_ticks": 1, "external_ticks": 2}
    recent = log.recent()
    assert [event["sender_peer_name"] for event in recent] == ["bob", "carol"]
    assert log.recent(1)[0]["kind"] == "external_tick"
    assert log.recent(0) == []
    assert "Display stream closed" in caplog.text


@pytest.mark.asyncio
async def test_stop_cancels_consumer():
    log = DisplayLog(DisplayEventStream())
    await log.start()
    await log.stop()
    assert log.task.done()
