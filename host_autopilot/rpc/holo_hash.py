"""
Holo hash encoding.

A holo hash is 39 bytes: a 3-byte type prefix, a 32-byte core, and a 4-byte
DHT location derived from the core. Its string form is "u" followed by the
unpadded base64url encoding, 53 characters in total. The prefix is what makes
app ids start with "uhCkk" and agent keys with "uhCAk".
"""

import base64
import hashlib

AGENT_PREFIX = bytes([0x84, 0x20, 0x24])
ENTRY_PREFIX = bytes([0x84, 0x21, 0x24])
ACTION_PREFIX = bytes([0x84, 0x29, 0x24])
DNA_PREFIX = bytes([0x84, 0x2D, 0x24])

CORE_LENGTH = 32
HASH_LENGTH = 39
ENCODED_LENGTH = 53

# String prefix shared by every hosted app id (an ActionHash).
HOSTED_APP_PREFIX = "uhCkk"


def dht_location(core: bytes) -> bytes:
    """Fold a 16-byte BLAKE2b digest of the core into 4 bytes."""
    digest = hashlib.blake2b(core, digest_size=16).digest()
    loc = bytearray(digest[:4])
    for i in range(4, len(digest)):
        loc[i % 4] ^= digest[i]
    return bytes(loc)


def from_core(prefix: bytes, core: bytes) -> bytes:
    if len(core) != CORE_LENGTH:
        raise ValueError(f"hash core must be {CORE_LENGTH} bytes, got {len(core)}")
    return prefix + core + dht_location(core)


def encode(raw: bytes) -> str:
    if len(raw) != HASH_LENGTH:
        raise ValueError(f"holo hash must be {HASH_LENGTH} bytes, got {len(raw)}")
    return "u" + base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode(text: str) -> bytes:
    """Parse the string form, checking length and location bytes."""
    if not text.startswith("u") or len(text) != ENCODED_LENGTH:
        raise ValueError(f"not a holo hash: {text!r}")
    body = text[1:]
    raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    if dht_location(raw[3:35]) != raw[35:]:
        raise ValueError(f"holo hash location mismatch: {text!r}")
    return raw


def agent_key_from_public_key(public_key: bytes) -> bytes:
    """Wrap a raw Ed25519 public key as an AgentPubKey."""
    return from_core(AGENT_PREFIX, public_key)


def public_key_from_agent_key(agent_key: bytes) -> bytes:
    if agent_key[:3] != AGENT_PREFIX:
        raise ValueError("not an agent key")
    return agent_key[3:35]


def is_hosted_app_id(text: str) -> bool:
    """True when the string has the shape of a hosted app id."""
    return text.startswith(HOSTED_APP_PREFIX)
