"""
Identity/Auth Gateway — host credentials from the billing service.

Behavioral Contract:
- Authenticates as the host: the request body {email, timestamp, pubKey} is
  signed with the host agent key and the signature sent as X-Signature
- A gateway timeout (HTTP 504, or an "error code: 504" body) is retried
  exactly once
- Any failure yields the default credentials (KYC level 1, no
  jurisdiction) with a warning. Credentials never abort a run
- Notifications are best effort: failures are logged, never raised
"""

import base64
import logging
import time
from typing import Optional

import requests
from pydantic import ValidationError

from host_autopilot.conductor.transport import pack
from host_autopilot.errors import AutopilotError
from host_autopilot.models.host import HostCredentials
from host_autopilot.rpc import holo_hash
from host_autopilot.rpc.signed_client import SignedRpcClient

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/api/v1/holo-client"
NOTIFY_PATH = "/ops/api/v1/mattermost/notify"
NOTIFICATION_CHANNEL = "rgf8oe3843r5xehhp66q58onfa"
GATEWAY_TIMEOUT_MARKER = "error code: 504"


class GatewayTimeout(Exception):
    """The billing service answered 504 twice in a row."""
    pass


def _is_gateway_timeout(response: requests.Response) -> bool:
    return response.status_code == 504 or GATEWAY_TIMEOUT_MARKER in response.text


class IdentityGateway:
    """Client for the billing service's host endpoints."""

    def __init__(
        self,
        billing_url: Optional[str],
        operator_email: Optional[str],
        rpc: SignedRpcClient,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 30.0,
        clock=time.time,
    ):
        self.billing_url = billing_url.rstrip("/") if billing_url else None
        self.operator_email = operator_email
        self.rpc = rpc
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._credentials: Optional[HostCredentials] = None

    def _auth_request(self) -> requests.Response:
        payload = {
            "email": self.operator_email,
            "timestamp": int(self._clock() * 1000),
            "pubKey": holo_hash.encode(self.rpc.agent_pubkey),
        }
        signature = self.rpc.sign_raw(pack(payload))
        return self.session.post(
            f"{self.billing_url}{AUTH_PATH}",
            json=payload,
            headers={"X-Signature": base64.b64encode(signature).decode("ascii")},
            timeout=self.timeout_seconds,
        )

    def _fetch_credentials(self) -> HostCredentials:
        response = self._auth_request()
        if _is_gateway_timeout(response):
            logger.warning("billing service gateway timeout, retrying once")
            response = self._auth_request()
            if _is_gateway_timeout(response):
                raise GatewayTimeout("billing service timed out twice")
        response.raise_for_status()
        return HostCredentials.model_validate(response.json())

    def get_host_credentials(self) -> HostCredentials:
        """KYC level and jurisdiction for this host, or the restrictive default."""
        if not self.billing_url or not self.operator_email:
            logger.warning("billing service not configured; using default credentials")
            return HostCredentials()

        try:
            credentials = self._fetch_credentials()
        except (
            requests.RequestException,
            ValueError,
            ValidationError,
            GatewayTimeout,
            AutopilotError,
        ) as exc:
            logger.warning(
                "unable to get kyc & jurisdiction (%s); using kyc level 1, no jurisdiction",
                exc,
            )
            return HostCredentials()

        logger.info(
            "host credentials: %s, jurisdiction %s",
            credentials.kyc.value, credentials.jurisdiction,
        )
        self._credentials = credentials
        return credentials

    def send_notification(self, message: str) -> None:
        """Post a message to the operations channel. Never raises."""
        if not self.billing_url:
            logger.debug("billing service not configured; dropping notification")
            return

        token = self._credentials.access_token if self._credentials else None
        try:
            response = self.session.post(
                f"{self.billing_url}{NOTIFY_PATH}",
                json={"channelId": NOTIFICATION_CHANNEL, "message": message},
                headers={"Authorization": token or ""},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("failed to send notification: %s", exc)
