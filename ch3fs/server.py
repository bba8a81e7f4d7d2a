"""The file-system service: storing uploaded recipes and replicating them."""

from __future__ import annotations

import dataclasses
import logging
import random
import socket
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor

from .client import DummyTestResponse, RpcError, UploadResponse, send_recipe_upload_request, send_update_recipe
from .retry import backoff_with_jitter
from .storage import Recipe, StorageError

log = logging.getLogger(__name__)

GRPC_PORT = 8080
MAX_REPLICAS = 3


class UploadError(Exception):
    """Raised when an upload is refused or its replication fails."""

    def __init__(self, message, seen=None):
        super().__init__(message)
        self.seen = list(seen or [])


def filter_peers(peers, *args):
    """Return the peers whose names are not among ``args``."""
    return [node for node in peers if node.name not in args]


def _target(node):
    return dataclasses.replace(node, port=GRPC_PORT).address()


def _parse_id(value):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise UploadError(f"invalid recipe ID: {exc}") from exc


def _recipe(recipe_id, request, seen):
    return Recipe(recipe_id, request.filename, request.content.decode("utf-8", errors="replace"), seen)


class FileServer:
    """Handles the service calls of one node."""

    def __init__(self, store, peers, sender=None, updater=None, rng=None):
        self.store = store
        self.peers = peers
        self._send = sender or send_recipe_upload_request
        self._update = updater or send_update_recipe
        self._rng = rng or random.Random()

    def dummy_test(self, request):
        return DummyTestResponse(msg=f"{request.msg} and I am Server: {socket.gethostname()}, ")

    def upload_recipe(self, request):
        """Store a recipe and start replicating it when it is new to the cluster."""
        if request is None:
            raise UploadError("request cannot be None")
        if not request.filename:
            raise UploadError("filename cannot be empty")
        recipe_id = _parse_id(request.id)
        if len(request.seen) >= MAX_REPLICAS:
            raise UploadError("maximum replicas reached", request.seen)
        existing = self._lookup(recipe_id)
        if existing is not None:
            raise UploadError(f"recipe with uuid: {recipe_id} already exists", existing.seen)
        seen = sorted([*request.seen, self.peers.local_node.name])
        self.store.store_recipe(_recipe(recipe_id, request, seen))
        if len(seen) < 2:
            threading.Thread(target=self._broadcast_in_background, args=(request, seen), daemon=True).start()
        return UploadResponse(success=True, seen=seen)

    def update_recipe(self, recipe_id, seen):
        """Replace the seen list of a stored recipe and return it."""
        parsed = _parse_id(recipe_id)
        existing = self._lookup(parsed)
        if existing is None:
            raise UploadError(f"recipe with uuid: {parsed} does not exist")
        updated = dataclasses.replace(existing, seen=sorted(seen))
        self.store.update_recipe(updated)
        return updated

    def download_recipe(self, request):
        return self._lookup(_parse_id(request))

    def broadcast_upload(self, request, seen, timeout=30.0):
        """Replicate an upload to two further peers and record them locally."""
        deadline = time.monotonic() + timeout
        recipe_id = _parse_id(request.id)
        seen = list(seen)
        while True:
            if time.monotonic() >= deadline:
                raise UploadError("broadcast timeout")
            peers = filter_peers(self.peers.members(), *seen)
            if len(peers) < 2:
                raise UploadError("insufficient amount of peers in the cluster")
            replica2 = self._rng.choice(peers)
            replica3 = self._rng.choice(filter_peers(peers, replica2.name))
            with ThreadPoolExecutor(max_workers=2) as pool:
                first = pool.submit(self._replicate, replica2, request, [*seen, replica3.name], deadline)
                second = pool.submit(self._replicate, replica3, request, [*seen, replica2.name], deadline)
                ok2, ok3 = first.result(), second.result()
            if ok2 and ok3:
                self.store.update_recipe(_recipe(recipe_id, request, sorted([*seen, replica2.name, replica3.name])))
                return
            if ok2 or ok3:
                good = replica2 if ok2 else replica3
                self._recover(recipe_id, request, good, [*seen, good.name], deadline)
                return

    def _recover(self, recipe_id, request, successful, seen, deadline):
        while True:
            if time.monotonic() >= deadline:
                raise UploadError("broadcast timeout during recovery")
            peers = filter_peers(self.peers.members(), *seen)
            if not peers:
                raise UploadError("no available peers for r2 replacement")
            replacement = self._rng.choice(peers)
            if self._replicate(replacement, request, seen, deadline):
                final = sorted([*seen, replacement.name])
                try:
                    self._update(_target(successful), recipe_id, final)
                except RpcError as exc:
                    raise UploadError(f"failed to update seen list on successful node: {exc}") from exc
                self.store.update_recipe(_recipe(recipe_id, request, final))
                return

    def _replicate(self, node, request, seen, deadline):
        outgoing = dataclasses.replace(request, seen=list(seen))
        backoff = 50.0
        while True:
            try:
                response = self._send(_target(node), outgoing)
            except RpcError:
                if node not in self.peers.members() or time.monotonic() >= deadline:
                    return False
                backoff = backoff_with_jitter(backoff, self._rng)
                time.sleep(backoff / 1000.0)
                continue
            return response is not None and response.success

    def _broadcast_in_background(self, request, seen):
        try:
            self.broadcast_upload(request, seen)
        except (UploadError, StorageError) as exc:
            log.error("Broadcast Upload: %s failed with error: %s", request.id, exc)

    def _lookup(self, recipe_id):
        try:
            return self.store.get_recipe(recipe_id)
        except StorageError:
            return None