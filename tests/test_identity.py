"""Tests for the Identity/Auth Gateway."""

import base64
import logging

import requests
from nacl.signing import VerifyKey

from host_autopilot.conductor.transport import pack
from host_autopilot.identity.gateway import IdentityGateway
from host_autopilot.models.host import HostCredentials, KycLevel
from host_autopilot.rpc import holo_hash
from host_autopilot.rpc.signed_client import SignedRpcClient

from fakes import FakeAppInterface, FakeResponse, FakeSession, make_signer

BILLING = "https://billing.example.org"
CREDENTIALS = {"kyc": "holo_kyc_2", "jurisdiction": "DE", "accessToken": "tok", "id": "h1"}


def _make_gateway(responses, email="op@example.org", billing_url=BILLING):
    signer = make_signer()
    rpc = SignedRpcClient(FakeAppInterface(signer.agent_key), signer, "core-app")
    session = FakeSession(responses)
    gateway = IdentityGateway(billing_url, email, rpc, session=session, clock=lambda: 1700000000.5)
    return gateway, session


class TestGetHostCredentials:
    def test_success(self):
        gateway, session = _make_gateway([FakeResponse(200, CREDENTIALS)])
        credentials = gateway.get_host_credentials()

        assert credentials.kyc == KycLevel.LEVEL_2
        assert credentials.jurisdiction == "DE"
        assert credentials.access_token == "tok"
        assert session.posts[0]["url"] == f"{BILLING}/auth/api/v1/holo-client"

    def test_signed_payload(self):
        gateway, session = _make_gateway([FakeResponse(200, CREDENTIALS)])
        gateway.get_host_credentials()

        post = session.posts[0]
        assert post["json"]["email"] == "op@example.org"
        assert post["json"]["timestamp"] == 1700000000500
        assert post["json"]["pubKey"].startswith("uhCAk")

        signature = base64.b64decode(post["headers"]["X-Signature"])
        public_key = holo_hash.public_key_from_agent_key(holo_hash.decode(post["json"]["pubKey"]))
        VerifyKey(public_key).verify(pack(post["json"]), signature)

    def test_504_retried_once(self):
        gateway, session = _make_gateway([
            FakeResponse(504, text="error code: 504"),
            FakeResponse(200, CREDENTIALS),
        ])
        assert gateway.get_host_credentials().kyc == KycLevel.LEVEL_2
        assert len(session.posts) == 2

    def test_504_body_marker_retried(self):
        gateway, session = _make_gateway([
            FakeResponse(200, text="<html>error code: 504</html>"),
            FakeResponse(200, CREDENTIALS),
        ])
        assert gateway.get_host_credentials().jurisdiction == "DE"
        assert len(session.posts) == 2

    def test_second_504_gives_default(self):
        gateway, session = _make_gateway([
            FakeResponse(504, text="error code: 504"),
            FakeResponse(504, text="error code: 504"),
        ])
        assert gateway.get_host_credentials() == HostCredentials()
        assert len(session.posts) == 2

    def test_other_http_error_not_retried(self):
        gateway, session = _make_gateway([FakeResponse(500, text="oops")])
        assert gateway.get_host_credentials() == HostCredentials()
        assert len(session.posts) == 1

    def test_connection_failure_gives_default(self, caplog):
        gateway, _ = _make_gateway([requests.ConnectionError("down")])
        with caplog.at_level(logging.WARNING):
            credentials = gateway.get_host_credentials()
        assert credentials.kyc == KycLevel.LEVEL_1
        assert credentials.jurisdiction is None
        assert "kyc level 1" in caplog.text

    def test_malformed_body_gives_default(self):
        gateway, _ = _make_gateway([FakeResponse(200, {"kyc": "holo_kyc_9"})])
        assert gateway.get_host_credentials() == HostCredentials()

    def test_unconfigured_gives_default(self):
        gateway, session = _make_gateway([], billing_url=None)
        assert gateway.get_host_credentials() == HostCredentials()
        assert session.posts == []


class TestSendNotification:
    def test_posts_with_access_token(self):
        gateway, session = _make_gateway([
            FakeResponse(200, CREDENTIALS),
            FakeResponse(200, {}),
        ])
        gateway.get_host_credentials()
        gateway.send_notification("suspended")

        post = session.posts[1]
        assert post["url"] == f"{BILLING}/ops/api/v1/mattermost/notify"
        assert post["json"]["message"] == "suspended"
        assert post["headers"]["Authorization"] == "tok"

    def test_failure_is_swallowed(self, caplog):
        gateway, _ = _make_gateway([requests.ConnectionError("down")])
        with caplog.at_level(logging.ERROR):
            gateway.send_notification("suspended")
        assert "failed to send notification" in caplog.text

    def test_error_status_is_swallowed(self):
        gateway, _ = _make_gateway([FakeResponse(502)])
        gateway.send_notification("suspended")
