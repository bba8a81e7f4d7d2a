"""Service messages and a JSON-over-HTTP client."""

from __future__ import annotations

import base64
import http.client
import json
import uuid
from dataclasses import asdict, dataclass, field

SERVICE_PREFIX = "/ch3fs.FileSystem/"
DEFAULT_TIMEOUT = 5.0


class RpcError(Exception):
    """Raised when a remote call fails or the server reports an error."""


@dataclass
class DummyTestRequest:
    msg: str = ""


@dataclass
class DummyTestResponse:
    msg: str = ""


@dataclass
class RecipeUploadRequest:
    id: str = ""
    filename: str = ""
    content: bytes = b""
    seen: list = field(default_factory=list)

    def to_dict(self):
        """Return the JSON-ready form, with content base64-encoded."""
        return {"id": self.id, "filename": self.filename,
                "content": base64.b64encode(self.content).decode("ascii"), "seen": list(self.seen)}

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(str(data.get("id", "")), str(data.get("filename", "")),
                       base64.b64decode(data.get("content", ""), validate=True), list(data.get("seen") or []))
        except (ValueError, TypeError, AttributeError) as exc:
            raise RpcError(f"malformed upload request: {exc}") from exc


@dataclass
class UploadResponse:
    success: bool = False
    seen: list = field(default_factory=list)

    def to_dict(self):
        return {"success": self.success, "seen": list(self.seen)}

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(bool(data.get("success", False)), list(data.get("seen") or []))
        except (TypeError, AttributeError) as exc:
            raise RpcError(f"malformed upload response: {exc}") from exc


def _call(target, method, payload, timeout):
    host, _, port = target.rpartition(":")
    if not host or not port.isdigit():
        raise RpcError(f"invalid target: {target!r}")
    conn = http.client.HTTPConnection(host.strip("[]"), int(port), timeout=timeout)
    try:
        conn.request("POST", SERVICE_PREFIX + method, body=json.dumps(payload).encode(),
                     headers={"Content-Type": "application/json"})
        response = conn.getresponse()
        decoded = json.loads(response.read() or b"{}")
    except (OSError, http.client.HTTPException, ValueError) as exc:
        raise RpcError(f"{method} to {target} failed: {exc}") from exc
    finally:
        conn.close()
    if not isinstance(decoded, dict):
        raise RpcError(f"{method} to {target} returned an unexpected body")
    if response.status != 200:
        raise RpcError(decoded.get("error") or f"{method} to {target} failed with status {response.status}")
    return decoded


def send_dummy_request(target, request, timeout=DEFAULT_TIMEOUT):
    """Send a test message and return the server's reply."""
    return DummyTestResponse(str(_call(target, "DummyTest", asdict(request), timeout).get("msg", "")))


def send_recipe_upload_request(target, request, timeout=DEFAULT_TIMEOUT):
    """Upload a recipe; return the reply, or None if the server did not store it."""
    response = UploadResponse.from_dict(_call(target, "UploadRecipe", request.to_dict(), timeout))
    return response if response.success else None


def send_update_recipe(target, recipe_id, seen, timeout=DEFAULT_TIMEOUT):
    """Ask a replica to replace the seen list of a stored recipe."""
    _call(target, "UpdateRecipe", {"id": str(recipe_id), "seen": list(seen)}, timeout)


def construct_recipe_upload_request():
    """Build a sample recipe upload request."""
    return RecipeUploadRequest(id=str(uuid.uuid4()), filename="recipe1",
                               content="This is the recipe1´s description".encode("utf-8"))