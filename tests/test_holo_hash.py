"""Tests for holo hash encoding."""

import pytest

from host_autopilot.rpc import holo_hash


class TestHoloHash:
    def test_prefixes_give_known_string_prefixes(self):
        core = b"\x07" * 32
        assert holo_hash.encode(holo_hash.from_core(holo_hash.ACTION_PREFIX, core)).startswith("uhCkk")
        assert holo_hash.encode(holo_hash.from_core(holo_hash.AGENT_PREFIX, core)).startswith("uhCAk")
        assert holo_hash.encode(holo_hash.from_core(holo_hash.DNA_PREFIX, core)).startswith("uhC0k")
        assert holo_hash.encode(holo_hash.from_core(holo_hash.ENTRY_PREFIX, core)).startswith("uhCEk")

    def test_encoded_length(self):
        raw = holo_hash.from_core(holo_hash.ACTION_PREFIX, bytes(range(32)))
        assert len(raw) == 39
        assert len(holo_hash.encode(raw)) == 53

    def test_decode_inverts_encode(self):
        raw = holo_hash.from_core(holo_hash.AGENT_PREFIX, bytes(range(32)))
        assert holo_hash.decode(holo_hash.encode(raw)) == raw

    def test_decode_rejects_bad_location(self):
        raw = bytearray(holo_hash.from_core(holo_hash.AGENT_PREFIX, bytes(range(32))))
        raw[-1] ^= 0xFF
        with pytest.raises(ValueError):
            holo_hash.decode(holo_hash.encode(bytes(raw)))

    def test_decode_rejects_non_hash(self):
        with pytest.raises(ValueError):
            holo_hash.decode("core-app")

    def test_from_core_checks_length(self):
        with pytest.raises(ValueError):
            holo_hash.from_core(holo_hash.AGENT_PREFIX, b"short")

    def test_agent_key_round_trip(self):
        public_key = bytes(range(32))
        agent = holo_hash.agent_key_from_public_key(public_key)
        assert holo_hash.public_key_from_agent_key(agent) == public_key

    def test_is_hosted_app_id(self):
        assert holo_hash.is_hosted_app_id("uhCkkXYZ")
        assert not holo_hash.is_hosted_app_id("core-app:0_2_1")
