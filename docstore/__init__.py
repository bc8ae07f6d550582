"""Embedded JSON document store on SQLite, with a JSON query language, aggregation and a WebSocket server."""

__version__ = "0.1.0"