"""Peer-to-peer recipe store: SQLite storage, membership, HTTP service and replication of uploads."""

__version__ = "0.1.0"