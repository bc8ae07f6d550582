"""WebSocket front end: every message is a query, every reply its result."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .store import Store

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_DB = "docstore.db"


async def handle_connection(store: Store, websocket: Any) -> int:
    """Answer each incoming query on ``websocket`` until it closes.

    Text messages get text replies and binary messages binary replies.
    Returns the number of queries answered.
    """
    answered = 0
    try:
        async for message in websocket:
            binary = isinstance(message, (bytes, bytearray))
            text = bytes(message).decode("utf-8", errors="replace") if binary else message
            reply = await asyncio.to_thread(store.handle_query, text)
            await websocket.send(reply.encode("utf-8") if binary else reply)
            answered += 1
    except ConnectionClosed as exc:
        log.info("connection closed: %s", exc)
    return answered


async def serve(store: Store, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Accept WebSocket clients on ``host``:``port`` until cancelled."""

    async def handler(websocket: Any, *_: Any) -> None:
        await handle_connection(store, websocket)

    async with websockets.serve(handler, host, port):
        log.info("listening on %s:%d", host, port)
        await asyncio.Future()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve a document store over WebSocket.")
    parser.add_argument("--db", default=DEFAULT_DB, help="database file")
    parser.add_argument("--host", default=DEFAULT_HOST, help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Open the database and serve it until interrupted."""
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    with Store(args.db) as store:
        try:
            asyncio.run(serve(store, args.host, args.port))
        except KeyboardInterrupt:
            log.info("interrupted")
    return 0