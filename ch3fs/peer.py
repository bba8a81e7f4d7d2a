"""A cluster node serving the file-system service over HTTP."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from .client import SERVICE_PREFIX, DummyTestRequest, RecipeUploadRequest, RpcError
from .server import GRPC_PORT, UploadError
from .storage import StorageError

log = logging.getLogger(__name__)


def _download(service, payload):
    recipe = service.download_recipe(payload.get("id", ""))
    if recipe is None:
        return {}
    return {"id": str(recipe.recipe_id), "filename": recipe.filename,
            "content": recipe.content, "seen": list(recipe.seen)}


_METHODS = {
    "DummyTest": lambda s, p: asdict(s.dummy_test(DummyTestRequest(msg=str(p.get("msg", ""))))),
    "UploadRecipe": lambda s, p: s.upload_recipe(RecipeUploadRequest.from_dict(p)).to_dict(),
    "UpdateRecipe": lambda s, p: s.update_recipe(p["id"], list(p.get("seen") or [])) and {},
    "DownloadRecipe": _download,
}


def _make_handler(service):
    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            call = _METHODS.get(self.path[len(SERVICE_PREFIX):]) if self.path.startswith(SERVICE_PREFIX) else None
            body = self.rfile.read(int(self.headers.get("Content-Length") or 0))
            if call is None:
                return self._reply(404, {"error": f"unknown method: {self.path}"})
            try:
                payload = json.loads(body) if body else {}
                if not isinstance(payload, dict):
                    raise ValueError("request body must be an object")
            except ValueError as exc:
                return self._reply(400, {"error": f"malformed request: {exc}"})
            try:
                reply = call(service, payload)
            except (UploadError, StorageError, RpcError, KeyError, TypeError, ValueError) as exc:
                return self._reply(500, {"error": str(exc)})
            self._reply(200, reply)

        def _reply(self, status, payload):
            data = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, format, *args):
            log.debug("%s %s", self.address_string(), format % args)

    return Handler


def list_contains(memberlist, node):
    """Tell whether the node is a current member."""
    return node in memberlist.members()


class Peer:
    """A node of the cluster together with its service endpoint."""

    def __init__(self, memberlist, service, grpc_port=GRPC_PORT):
        self.node = memberlist.local_node
        self.peers = memberlist
        self.service = service
        self.host = self.node.addr
        self.grpc_port = grpc_port
        self.memberlist_port = self.node.port
        self._lock = threading.Lock()
        self._server = None
        self._serving = False
        self._thread = None

    @property
    def address(self):
        """The bound (host, port), or None while not listening."""
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def _bind(self):
        if self._server is None:
            self._server = ThreadingHTTPServer((self.host, self.grpc_port), _make_handler(self.service))
        return self._server

    def start(self):
        """Serve in a background thread; return the bound address."""
        with self._lock:
            server = self._bind()
            if not self._serving:
                self._serving = True
                self._thread = threading.Thread(target=server.serve_forever, daemon=True)
                self._thread.start()
            return self.address

    def serve_forever(self):
        """Serve in the calling thread until stopped."""
        with self._lock:
            server = self._bind()
            self._serving = True
        server.serve_forever()

    def stop(self):
        """Stop serving and release the listening socket."""
        with self._lock:
            server, serving, thread = self._server, self._serving, self._thread
            self._server, self._serving, self._thread = None, False, None
        if server is None:
            return
        if serving:
            server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join()