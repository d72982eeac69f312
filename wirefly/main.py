# wirefly/main.py
import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Any, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect

from wirefly import __version__
from wirefly.config import Config
from wirefly.core.errors import DecodeError, TransportClosed, TransportError
from wirefly.core.frames import FrameType, message_frame, parse_frame, peers_frame
from wirefly.core.hub import HubSubscription, TopicHub
from wirefly.node import WireflyNode
from wirefly.simulation import simulate

logger = logging.getLogger("wirefly")


# --- Logging Configuration ---
def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - [%(levelname)s] - %(message)s'
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# --- Hub Bridging ---
async def _forward_messages(subscription: HubSubscription, websocket: WebSocket):
    """Copy everything the hub delivers to this member onto its socket"""
    while True:
        try:
            message = await subscription.next_message()
        except TransportClosed:
            return
        await websocket.send_text(message_frame(message.received_from, message.data))


async def _forward_peers(subscription: HubSubscription, websocket: WebSocket):
    """Announce the topic's membership whenever it changes"""
    while subscription.active:
        await subscription.peers_changed.wait()
        subscription.peers_changed.clear()
        await websocket.send_text(peers_frame(subscription.list_peers()))


# --- FastAPI Application ---
def create_app(config: Optional[Config] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        node_config = config or Config()
        setup_logging(node_config.LOG_LEVEL)

        hub = TopicHub(node_config.HUB_BUFFER_SIZE)
        node = WireflyNode(node_config, hub=hub)
        app.state.config = node_config
        app.state.hub = hub
        app.state.node = node

        try:
            await node.start()
        except TransportError as e:
            logging.critical(f"Could not join topic '{node_config.TOPIC}': {e}")
            await hub.close()
            raise

        yield

        logging.info("Shutting down wirefly node...")
        await node.stop()
        await hub.close()

    app = FastAPI(title="wirefly", version=__version__, lifespan=lifespan)

    @app.get("/")
    def root():
        """Root endpoint for browser and uptime checks."""
        return {"status": "ok", "service": "wirefly"}

    @app.get("/status")
    def status():
        """Node, relay and engine status."""
        node: WireflyNode = app.state.node
        return {
            "status": node.health(),
            "service": "wirefly",
            "version": __version__,
            "node": node.get_status(),
            "hub": app.state.hub.get_status()
        }

    @app.get("/peers")
    def peers():
        """Peers currently visible on our topic."""
        node: WireflyNode = app.state.node
        return {
            "topic": node.config.TOPIC,
            "self": {"peer_id": node.peer_id, "peer_name": node.peer_name},
            "peers": sorted(node.relay.list_peers()) if node.relay else []
        }

    @app.get("/events")
    def events(limit: int = Query(20, ge=1, le=1000)):
        """Most recent display events, newest last."""
        node: WireflyNode = app.state.node
        return {"events": node.display_log.recent(limit) if node.display_log else []}

    @app.websocket("/hub/{topic}")
    async def hub_endpoint(websocket: WebSocket, topic: str, peer: str = Query(..., min_length=1)):
        """Bridges a remote peer into this node's topic hub."""
        hub: TopicHub = app.state.hub
        await websocket.accept()
        if peer == app.state.node.peer_id or peer in hub.members(topic):
            logging.warning(f"Rejecting hub member {peer}: id already joined to '{topic}'")
            await websocket.close(code=1008)
            return
        try:
            subscription = hub.subscribe(topic, peer)
        except TransportError as e:
            logging.warning(f"Rejecting hub member {peer}: {e}")
            await websocket.close(code=1011)
            return

        forwarders = [
            asyncio.create_task(_forward_messages(subscription, websocket)),
            asyncio.create_task(_forward_peers(subscription, websocket))
        ]
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    frame = parse_frame(text)
                except DecodeError as e:
                    logging.debug(f"Ignoring frame from {peer}: {e}")
                    continue
                if frame['type'] is FrameType.PUBLISH:
                    await subscription.publish(frame['data'])
        except WebSocketDisconnect:
            logging.info(f"Hub member {peer} disconnected from '{topic}'")
        except TransportClosed:
            logging.info(f"Hub closed under member {peer}")
        finally:
            for task in forwarders:
                task.cancel()
            await asyncio.gather(*forwarders, return_exceptions=True)
            await subscription.cancel()

    return app


app = create_app()


# --- Command Line ---
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wirefly", description="Pulse-coupled tick synchronization")
    parser.add_argument("--pname", default="", help="descriptive name for this peer. will be generated if empty")
    parser.add_argument("--topic", default=None, help="name of topic to sync on")
    parser.add_argument("--hub-url", default=None, help="ws:// base URL of a remote hub, e.g. ws://host:8000/hub")
    parser.add_argument("--host", default=None, help="address for the HTTP and hub endpoints")
    parser.add_argument("--port", type=int, default=None, help="port for the HTTP and hub endpoints")

    subparsers = parser.add_subparsers(dest="command")
    sim = subparsers.add_parser("simulate", help="run a lockstep phase simulation and report offsets")
    sim.add_argument("--offsets", type=int, nargs="+", default=[0, 40], help="initial subtick of each peer")
    sim.add_argument("--cycles", type=int, default=6, help="nominal cycles to run")

    check = subparsers.add_parser("status", help="check a running node over HTTP")
    check.add_argument("--url", default="http://127.0.0.1:8000", help="base URL of the node to check")
    return parser


def run_simulation(offsets, cycles: int):
    simulation = asyncio.run(simulate(offsets, cycles))
    for record in simulation.fires:
        logger.info(f"step {record.step:6d}: peer {record.peer_index} fired, phases {record.phases}")
    if len(offsets) == 2:
        leader = 0 if offsets[0] % simulation.cycle > offsets[1] % simulation.cycle else 1
        logger.info(f"Offsets at peer {leader} fires: {simulation.offsets_at_fires(leader)}")


async def check_node(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[Dict[str, Any]]:
    """Fetch a node's status and peers; None when it is offline or unreachable"""
    base = url.rstrip("/")
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        try:
            response = await client.get(f"{base}/status")
            if response.status_code != 200 or response.json().get("status") != "ok":
                logging.warning("Node at %s is OFFLINE (Status: %d)", base, response.status_code)
                return None
            status = response.json()
            peers = await client.get(f"{base}/peers")
            peers.raise_for_status()
        except httpx.HTTPError as e:
            logging.error("Node at %s is UNREACHABLE (%s)", base, e.__class__.__name__)
            return None

    node = status["node"]
    visible = peers.json()["peers"]
    logging.info("Node %s is ONLINE on '%s' with %d peer(s)", node["peer_name"], node["topic"], len(visible))
    for peer in visible:
        logging.info("  peer %s", peer)
    return {"status": status, "peers": visible}


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.command == "simulate":
        setup_logging("INFO")
        run_simulation(args.offsets, args.cycles)
        return

    if args.command == "status":
        setup_logging("INFO")
        if asyncio.run(check_node(args.url)) is None:
            raise SystemExit(1)
        return

    config = Config(
        topic=args.topic,
        peer_name=args.pname or None,
        hub_url=args.hub_url,
        host=args.host,
        port=args.port
    )
    setup_logging(config.LOG_LEVEL)
    uvicorn.run(create_app(config), host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
