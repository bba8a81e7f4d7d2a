import json
import socket
import threading
import uuid
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from ch3fs.client import (
    SERVICE_PREFIX,
    DummyTestRequest,
    RecipeUploadRequest,
    RpcError,
    UploadResponse,
    construct_recipe_upload_request,
    send_dummy_request,
    send_recipe_upload_request,
    send_update_recipe,
)


@pytest.fixture
def server():
    routes = {}
    received = []

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            payload = json.loads(self.rfile.read(length))
            received.append((self.path, payload))
            handler = routes.get(self.path)
            status, body = handler(payload) if handler else (404, {"error": "unknown method"})
            data = json.dumps(body).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, *args):
            pass

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    target = f"127.0.0.1:{httpd.server_address[1]}"
    yield target, routes, received
    httpd.shutdown()
    httpd.server_close()


def closed_port_target():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"127.0.0.1:{port}"


def test_upload_request_round_trip():
    request = RecipeUploadRequest(str(uuid.uuid4()), "recipe1", b"\x00\xffdata", ["a", "b"])
    assert RecipeUploadRequest.from_dict(request.to_dict()) == request


def test_upload_request_content_is_base64():
    assert RecipeUploadRequest(content=b"hi").to_dict()["content"] == "aGk="


def test_upload_request_bad_content():
    with pytest.raises(RpcError):
        RecipeUploadRequest.from_dict({"content": "!!!"})


def test_upload_response_round_trip():
    response = UploadResponse(True, ["a", "b"])
    assert UploadResponse.from_dict(response.to_dict()) == response


def test_construct_request():
    request = construct_recipe_upload_request()
    assert request.filename == "recipe1"
    assert request.content.decode("utf-8") == "This is the recipe1´s description"
    assert uuid.UUID(request.id).version == 4
    assert request.seen == []


def test_send_dummy_request(server):
    target, routes, received = server
    routes[SERVICE_PREFIX + "DummyTest"] = lambda p: (200, {"msg": p["msg"] + " back"})
    response = send_dummy_request(target, DummyTestRequest("hello"))
    assert response.msg == "hello back"
    assert received == [(SERVICE_PREFIX + "DummyTest", {"msg": "hello"})]


def test_send_upload_success(server):
    target, routes, received = server
    routes[SERVICE_PREFIX + "UploadRecipe"] = lambda p: (200, {"success": True, "seen": p["seen"] + ["x"]})
    request = RecipeUploadRequest(str(uuid.uuid4()), "f", b"c", ["a"])
    response = send_recipe_upload_request(target, request)
    assert response == UploadResponse(True, ["a", "x"])
    assert RecipeUploadRequest.from_dict(received[0][1]) == request


def test_send_upload_not_stored_returns_none(server):
    target, routes, _ = server
    routes[SERVICE_PREFIX + "UploadRecipe"] = lambda p: (200, {"success": False, "seen": []})
    assert send_recipe_upload_request(target, RecipeUploadRequest(filename="f")) is None


def test_send_upload_server_error(server):
    target, routes, _ = server
    routes[SERVICE_PREFIX + "UploadRecipe"] = lambda p: (500, {"error": "maximum replicas reached"})
    with pytest.raises(RpcError, match="maximum replicas reached"):
        send_recipe_upload_request(target, RecipeUploadRequest(filename="f"))


def test_send_update_recipe(server):
    target, routes, received = server
    routes[SERVICE_PREFIX + "UpdateRecipe"] = lambda p: (200, {})
    rid = uuid.uuid4()
    send_update_recipe(target, rid, ["a", "b"])
    assert received == [(SERVICE_PREFIX + "UpdateRecipe", {"id": str(rid), "seen": ["a", "b"]})]


def test_unknown_method_raises(server):
    target, _, _ = server
    with pytest.raises(RpcError, match="unknown method"):
        send_dummy_request(target, DummyTestRequest("x"))


def test_connection_refused():
    with pytest.raises(RpcError):
        send_dummy_request(closed_port_target(), DummyTestRequest("x"), timeout=1.0)


def test_invalid_target():
    with pytest.raises(RpcError, match="invalid target"):
        send_update_recipe("no-port", uuid.uuid4(), [])