"""Simulated asyncio RPC network, protobuf wire-format codec and linearizability checker."""

__version__ = "0.1.0"