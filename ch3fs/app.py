"""Command-line entry point that runs one node of the cluster."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import random
import socket
import threading

from .client import (DummyTestRequest, RpcError, construct_recipe_upload_request,
                     send_dummy_request, send_recipe_upload_request)
from .membership import DEFAULT_PORT, SERVICE_NAME, MembershipError, Memberlist, Node, discover_and_join_peers
from .peer import Peer
from .server import GRPC_PORT, FileServer
from .storage import StorageError, Store

log = logging.getLogger(__name__)

MEMBER_LOG_INTERVAL = 20.0
TEST_INTERVAL = 5.0


def pick_target(memberlist, rng=None, port=GRPC_PORT):
    """Choose a random member other than this node and return its service address."""
    local = memberlist.local_node.address()
    candidates = [node for node in memberlist.members() if node.address() != local]
    if not candidates:
        raise MembershipError("no other members to send to")
    return dataclasses.replace((rng or random.Random()).choice(candidates), port=port).address()


def _run_loop(memberlist, stop_event, interval, send):
    sent = 0
    while not stop_event.wait(interval):
        try:
            send(pick_target(memberlist))
        except (MembershipError, RpcError) as exc:
            log.warning("%s", exc)
            continue
        sent += 1
    return sent


def dummy_loop(memberlist, stop_event, interval=TEST_INTERVAL):
    """Send test messages to random peers until stopped; return how many got through."""
    request = DummyTestRequest(msg=f"Hello from {memberlist.local_node.name}")
    return _run_loop(memberlist, stop_event, interval, lambda target: send_dummy_request(target, request))


def upload_loop(memberlist, stop_event, interval=TEST_INTERVAL):
    """Upload sample recipes to random peers until stopped; return how many got through."""
    return _run_loop(memberlist, stop_event, interval,
                     lambda target: send_recipe_upload_request(target, construct_recipe_upload_request()))


def _log_members(memberlist, stop_event, interval):
    while True:
        log.info("Current Memberlist: %s", memberlist.members())
        if stop_event.wait(interval):
            return


def _local_address(name):
    try:
        return socket.gethostbyname(name)
    except OSError:
        return "127.0.0.1"


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="ch3fs", description="Run a replicated recipe store node.")
    parser.add_argument("--name", default=socket.gethostname())
    parser.add_argument("--addr", default=None)
    parser.add_argument("--db", default="ch3fs.db")
    parser.add_argument("--grpc-port", type=int, default=GRPC_PORT)
    parser.add_argument("--memberlist-port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--service", default=SERVICE_NAME)
    parser.add_argument("--member-log-interval", type=float, default=MEMBER_LOG_INTERVAL)
    parser.add_argument("--test-dummy", action="store_true")
    parser.add_argument("--test-upload", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    """Join the cluster and serve until interrupted."""
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    memberlist = Memberlist(Node(args.name, args.addr or _local_address(args.name), args.memberlist_port))
    try:
        discover_and_join_peers(memberlist, args.service)
        store = Store(args.db)
    except (MembershipError, StorageError) as exc:
        log.error("Setting up the node failed with Error: %s", exc)
        return 1

    stop_event = threading.Event()
    with store:
        peer = Peer(memberlist, FileServer(store, memberlist), args.grpc_port)
        background = [(_log_members, (memberlist, stop_event, args.member_log_interval))]
        if args.test_dummy:
            background.append((dummy_loop, (memberlist, stop_event)))
        if args.test_upload:
            background.append((upload_loop, (memberlist, stop_event)))
        for target, params in background:
            threading.Thread(target=target, args=params, daemon=True).start()
        try:
            peer.serve_forever()
        except OSError as exc:
            log.error("Serving failed: %s", exc)
            return 1
        except KeyboardInterrupt:
            pass
        finally:
            stop_event.set()
            peer.stop()
    return 0