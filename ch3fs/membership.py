"""Cluster membership: the node list and peer discovery."""

from __future__ import annotations

import logging
import socket
import threading
import time
from dataclasses import dataclass

from .retry import backoff_with_jitter

log = logging.getLogger(__name__)

DEFAULT_PORT = 7946
SERVICE_NAME = "ch3f"


class MembershipError(Exception):
    """Raised when the cluster membership cannot be set up or read."""


@dataclass(frozen=True)
class Node:
    name: str
    addr: str
    port: int = DEFAULT_PORT

    def address(self):
        """Return the node's "host:port" address."""
        host = f"[{self.addr}]" if ":" in self.addr else self.addr
        return f"{host}:{self.port}"


class Memberlist:
    """Thread-safe list of the known nodes, the local one included."""

    def __init__(self, local_node):
        self.local_node = local_node
        self._lock = threading.Lock()
        self._nodes = {local_node.name: local_node}

    def members(self):
        with self._lock:
            return list(self._nodes.values())

    def add(self, node):
        with self._lock:
            self._nodes[node.name] = node

    def remove(self, name):
        with self._lock:
            return self._nodes.pop(name, None) is not None

    def join(self, hosts):
        """Join the given hosts and return how many were reached."""
        joined = 0
        with self._lock:
            for host in filter(None, hosts):
                if all(node.addr != host for node in self._nodes.values()):
                    self._nodes[host] = Node(host, host, self.local_node.port)
                joined += 1
        if not joined:
            raise MembershipError("failed to join any nodes")
        return joined


def _resolve_host(name):
    return list(dict.fromkeys(str(info[4][0]) for info in socket.getaddrinfo(name, None)))


def discover_and_join_peers(memberlist, service_name=SERVICE_NAME, resolve=None, sleep=time.sleep, rng=None):
    """Look up peers by DNS name and join them, retrying with backoff."""
    backoff = 50.0
    while True:
        try:
            peer_ips = (resolve or _resolve_host)(service_name)
        except OSError as exc:
            raise MembershipError(f"look up of host {service_name!r} failed: {exc}") from exc
        if peer_ips:
            try:
                log.info("Successfully joined %d nodes", memberlist.join(peer_ips))
                return memberlist
            except MembershipError:
                pass
        backoff = backoff_with_jitter(backoff, rng)
        sleep(backoff / 1000.0)


def fetch_system_members(memberlist, hostname=None):
    """Return all members except the one named after this host."""
    host = socket.gethostname() if hostname is None else hostname
    members = memberlist.members()
    if not members:
        raise MembershipError("memberlist is empty")
    return [member for member in members if member.name != host]