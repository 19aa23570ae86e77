"""
Signing collaborators.

The keystore is an external process; the reconciler only needs something that
turns (agent key, bytes) into an Ed25519 signature. LocalKeySigner holds the
host seed in-process and is what the CLI wires up by default.
"""

import binascii
import logging
from pathlib import Path
from typing import Protocol

from nacl.exceptions import CryptoError
from nacl.signing import SigningKey

from host_autopilot.errors import SigningError
from host_autopilot.rpc import holo_hash

logger = logging.getLogger(__name__)


class Signer(Protocol):
    """Protocol for the keystore."""

    @property
    def agent_key(self) -> bytes: ...

    def sign(self, agent_key: bytes, data: bytes) -> bytes: ...


class LocalKeySigner:
    """Ed25519 signer backed by a 32-byte seed."""

    def __init__(self, seed: bytes):
        try:
            self._key = SigningKey(seed)
        except (CryptoError, TypeError, ValueError) as exc:
            raise SigningError(f"invalid signing seed: {exc}") from exc
        self._agent_key = holo_hash.agent_key_from_public_key(
            bytes(self._key.verify_key)
        )

    @classmethod
    def from_seed_file(cls, path: str) -> "LocalKeySigner":
        """Load a seed stored either raw (32 bytes) or hex-encoded."""
        seed_path = Path(path)
        try:
            data = seed_path.read_bytes()
        except OSError as exc:
            raise SigningError(f"keystore seed unavailable at {seed_path}") from exc

        if len(data) != 32:
            try:
                data = binascii.unhexlify(data.strip())
            except (binascii.Error, ValueError) as exc:
                raise SigningError(f"unreadable keystore seed at {seed_path}") from exc
        return cls(data)

    @property
    def agent_key(self) -> bytes:
        return self._agent_key

    def sign(self, agent_key: bytes, data: bytes) -> bytes:
        if agent_key != self._agent_key:
            raise SigningError(
                f"no key held for agent {holo_hash.encode(agent_key)}"
            )
        signature = self._key.sign(data).signature
        logger.debug("signed %d bytes", len(data))
        return bytes(signature)
