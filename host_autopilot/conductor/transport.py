"""
Conductor Transport — request/response client over a conductor websocket.

Behavioral Contract:
- Connects once per run. Connection refusal is expected right after host boot,
  so connecting is retried with exponential backoff until it succeeds (or the
  configured attempt budget runs out)
- Every request is a blocking exchange, correlated by request id. Requests
  from several threads are serialized: one exchange on the socket at a time
- Frames that are not the awaited response (e.g. signals) are skipped
- Error frames from the conductor raise RemoteError; channel failures raise
  TransportError; undecodable frames raise DecodeError

Wire format: msgpack, outer frame {"type": "request", "id": n, "data": bytes}
where data is the msgpack-encoded inner request {"type": ..., "data": ...}.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import msgpack
from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from host_autopilot.errors import DecodeError, RemoteError, TransportError

logger = logging.getLogger(__name__)


def pack(value: Any) -> bytes:
    return msgpack.packb(value, use_bin_type=True)


def unpack(data: bytes) -> Any:
    try:
        return msgpack.unpackb(data, raw=False)
    except (msgpack.ExtraData, msgpack.FormatError, msgpack.StackError, ValueError) as exc:
        raise DecodeError(f"malformed msgpack frame: {exc}") from exc


class ConductorConnection:
    """One websocket to one conductor interface."""

    def __init__(
        self,
        url: str,
        max_attempts: Optional[int] = None,
        backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 10.0,
        timeout_seconds: float = 60.0,
        connector: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = url
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.timeout_seconds = timeout_seconds
        self._connector = connector or ws_connect
        self._sleep = sleep
        self._ws = None
        self._next_id = 0
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def connect(self) -> "ConductorConnection":
        """Open the websocket, retrying with backoff."""
        if self._ws is not None:
            return self

        attempt = 0
        delay = self.backoff_seconds
        while True:
            attempt += 1
            try:
                self._ws = self._connector(self.url)
                logger.info("connected to conductor at %s", self.url)
                return self
            except (OSError, WebSocketException) as exc:
                if self.max_attempts is not None and attempt >= self.max_attempts:
                    raise TransportError(
                        f"could not connect to {self.url} after {attempt} attempts"
                    ) from exc
                logger.warning(
                    "conductor at %s not reachable (attempt %d): %s; retrying in %.1fs",
                    self.url, attempt, exc, delay,
                )
                self._sleep(delay)
                delay = min(delay * 2, self.max_backoff_seconds)

    def close(self) -> None:
        if self._ws is not None:
            try:
                self._ws.close()
            finally:
                self._ws = None

    def __enter__(self) -> "ConductorConnection":
        return self.connect()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(self, request_type: str, data: Any = None) -> Dict[str, Any]:
        """
        Send one inner request and wait for its response.
        Returns the decoded inner response {"type": ..., "data": ...}.
        """
        if self._ws is None:
            raise TransportError(f"not connected to {self.url}")

        with self._lock:
            reply = self._exchange(request_type, data)

        response = unpack(reply.get("data") or b"")
        if not isinstance(response, dict) or "type" not in response:
            raise DecodeError(f"unexpected response to {request_type}: {response!r}")
        if response["type"] == "error":
            raise RemoteError(
                f"conductor rejected {request_type}: {response.get('data')!r}",
                payload=response.get("data"),
            )
        logger.debug("%s -> %s", request_type, response["type"])
        return response

    def _exchange(self, request_type: str, data: Any) -> Dict[str, Any]:
        """Send one frame and read until its response. Caller holds the lock."""
        self._next_id += 1
        request_id = self._next_id
        frame = {
            "type": "request",
            "id": request_id,
            "data": pack({"type": request_type, "data": data}),
        }

        try:
            self._ws.send(pack(frame))
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"failed to send {request_type}: {exc}") from exc

        while True:
            try:
                raw = self._ws.recv(timeout=self.timeout_seconds)
            except (OSError, WebSocketException) as exc:
                raise TransportError(
                    f"no response to {request_type} from {self.url}: {exc}"
                ) from exc

            if isinstance(raw, str):
                raw = raw.encode("utf-8")
            reply = unpack(raw)
            if not isinstance(reply, dict):
                raise DecodeError(f"unexpected frame for {request_type}: {reply!r}")
            if reply.get("type") != "response" or reply.get("id") != request_id:
                logger.debug("skipping frame %s/%s", reply.get("type"), reply.get("id"))
                continue
            return reply
