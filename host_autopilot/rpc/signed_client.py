"""
Signed-RPC Client — builds and signs zome calls against the registry DNA.

Behavioral Contract:
- Every call carries a fresh 256-bit random nonce and expires five minutes
  after construction. Nonces are never reused; replay rejection is the peer's job
- The signature covers the BLAKE2b-256 digest of the call's canonical msgpack
  encoding and is produced by the external Signer
- SigningError if the signer is unavailable or refuses, TransportError if the
  channel fails, RemoteError for peer error frames, DecodeError when the
  response does not decode to the expected type
"""

import hashlib
import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from host_autopilot.conductor.interfaces import AppInterface
from host_autopilot.conductor.transport import pack, unpack
from host_autopilot.errors import DecodeError, RemoteError, SigningError
from host_autopilot.rpc.signer import Signer

logger = logging.getLogger(__name__)

NONCE_BYTES = 32
NONCE_EXPIRY_MICROS = 5 * 60 * 1_000_000

CORE_APP_ROLE = "core-app"
HOLOFUEL_ROLE = "holofuel"

DEFAULT_ZOMES = {
    CORE_APP_ROLE: "hha",
    HOLOFUEL_ROLE: "transactor",
}


def now_micros() -> int:
    return time.time_ns() // 1000


def fresh_nonce(now_us: Optional[int] = None) -> Tuple[bytes, int]:
    """A new random nonce and its expiry (now + 5 minutes, in microseconds)."""
    issued_at = now_micros() if now_us is None else now_us
    return secrets.token_bytes(NONCE_BYTES), issued_at + NONCE_EXPIRY_MICROS


def bytes_to_sign(unsigned_call: Dict[str, Any]) -> bytes:
    return hashlib.blake2b(pack(unsigned_call), digest_size=32).digest()


def _provisioned_cell_id(entries: Any) -> Optional[Tuple[bytes, bytes]]:
    """Pick the first provisioned cell out of a role's cell-info list."""
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        for tag, cell in entry.items():
            if tag.lower() != "provisioned" or not isinstance(cell, dict):
                continue
            cell_id = cell.get("cell_id")
            if isinstance(cell_id, (list, tuple)) and len(cell_id) == 2:
                return bytes(cell_id[0]), bytes(cell_id[1])
    return None


class SignedRpcClient:
    """Signs and sends zome calls to cells of the core app."""

    def __init__(
        self,
        app: AppInterface,
        signer: Signer,
        core_app_id: str,
        zomes: Optional[Dict[str, str]] = None,
        clock: Callable[[], int] = now_micros,
    ):
        self.app = app
        self.signer = signer
        self.core_app_id = core_app_id
        self.zomes = dict(DEFAULT_ZOMES, **(zomes or {}))
        self._clock = clock
        self._cells: Optional[Dict[str, Tuple[bytes, bytes]]] = None

    @property
    def cells(self) -> Dict[str, Tuple[bytes, bytes]]:
        """Role name -> (dna hash, agent key), resolved once from AppInfo."""
        if self._cells is None:
            info = self.app.app_info(self.core_app_id)
            if not info:
                raise RemoteError(f"{self.core_app_id} is not installed")
            cell_info = info.get("cell_info") if isinstance(info, dict) else None
            if not isinstance(cell_info, dict):
                raise DecodeError(f"app info for {self.core_app_id} has no cell_info")

            cells = {}
            for role, entries in cell_info.items():
                cell_id = _provisioned_cell_id(entries)
                if cell_id is not None:
                    cells[role] = cell_id
            logger.debug("resolved cells for %s: %s", self.core_app_id, sorted(cells))
            self._cells = cells
        return self._cells

    def cell_for(self, role: str) -> Tuple[bytes, bytes]:
        try:
            return self.cells[role]
        except KeyError:
            raise RemoteError(
                f"role {role!r} has no provisioned cell in {self.core_app_id}"
            ) from None

    @property
    def agent_pubkey(self) -> bytes:
        """The host agent key, as provisioned in the core app."""
        return self.cell_for(CORE_APP_ROLE)[1]

    def build_call(
        self,
        role: str,
        function: str,
        payload: Any = None,
        zome: Optional[str] = None,
    ) -> Dict[str, Any]:
        """The unsigned call body."""
        dna_hash, agent_key = self.cell_for(role)
        nonce, expires_at = fresh_nonce(self._clock())
        return {
            "provenance": agent_key,
            "cell_id": [dna_hash, agent_key],
            "zome_name": zome or self.zomes.get(role, role),
            "fn_name": function,
            "cap_secret": None,
            "payload": pack(payload),
            "nonce": nonce,
            "expires_at": expires_at,
        }

    def _sign(self, agent_key: bytes, data: bytes) -> bytes:
        try:
            return self.signer.sign(agent_key, data)
        except SigningError:
            raise
        except Exception as exc:
            raise SigningError(f"keystore failed to sign: {exc}") from exc

    def sign_raw(self, data: bytes) -> bytes:
        """Sign arbitrary bytes with the host agent key."""
        return self._sign(self.agent_pubkey, data)

    def call(
        self,
        role: str,
        function: str,
        payload: Any = None,
        zome: Optional[str] = None,
    ) -> Any:
        """Sign, send and decode one zome call."""
        unsigned = self.build_call(role, function, payload, zome)
        signature = self._sign(unsigned["provenance"], bytes_to_sign(unsigned))
        signed = dict(unsigned, signature=signature)

        logger.debug("zome call %s/%s.%s", role, unsigned["zome_name"], function)
        raw = self.app.call_zome(signed)
        return unpack(raw)

    def call_typed(
        self,
        response_type: Any,
        role: str,
        function: str,
        payload: Any = None,
        zome: Optional[str] = None,
    ) -> Any:
        """Like call(), validating the result as `response_type`."""
        result = self.call(role, function, payload, zome)
        try:
            return TypeAdapter(response_type).validate_python(result)
        except ValidationError as exc:
            raise DecodeError(
                f"{function} returned an unexpected shape: {exc}"
            ) from exc
