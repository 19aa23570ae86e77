"""
Registry Gateway — typed access to the hosting registry over signed RPC.

Behavioral Contract:
- Every read is a zome call on the core app (role core-app, zome hha), except
  pending transactions which live in the holofuel transactor zome
- Publisher jurisdictions are memoized for the lifetime of the gateway, since
  many apps share one publisher. clear_cache() starts a fresh run
- Errors from the Signed-RPC Client propagate unchanged
"""

import logging
from typing import Dict, List, Optional

from host_autopilot.models.apps import AppPricing, HostingPreferences, PublishedApp
from host_autopilot.models.transactions import PendingTransaction
from host_autopilot.rpc import holo_hash
from host_autopilot.rpc.signed_client import (
    CORE_APP_ROLE,
    HOLOFUEL_ROLE,
    SignedRpcClient,
)

logger = logging.getLogger(__name__)


def _agent_key_payload(publisher_key: str):
    """The zome takes the raw AgentPubKey; fall back to the string form."""
    try:
        return holo_hash.decode(publisher_key)
    except ValueError:
        return publisher_key


class RegistryGateway:
    """Reads the desired state from the registry and toggles host flags."""

    def __init__(self, rpc: SignedRpcClient):
        self.rpc = rpc
        self._publisher_jurisdictions: Dict[str, Optional[str]] = {}

    def get_published_apps(self) -> List[PublishedApp]:
        apps = self.rpc.call_typed(List[PublishedApp], CORE_APP_ROLE, "get_happs")
        logger.debug("registry lists %d published apps", len(apps))
        return apps

    def get_hosting_preferences(self) -> HostingPreferences:
        return self.rpc.call_typed(
            HostingPreferences, CORE_APP_ROLE, "get_default_happ_preferences"
        )

    def get_app_pricing(self, app_id: str) -> AppPricing:
        """Publisher pricing for one app (`get_happ_preferences`)."""
        return self.rpc.call_typed(
            AppPricing, CORE_APP_ROLE, "get_happ_preferences", app_id
        )

    def get_pending_transactions(self) -> PendingTransaction:
        return self.rpc.call_typed(
            PendingTransaction, HOLOFUEL_ROLE, "get_pending_transactions"
        )

    def get_publisher_jurisdiction(self, publisher_key: str) -> Optional[str]:
        """Memoized per gateway; a None answer is cached too."""
        if publisher_key in self._publisher_jurisdictions:
            return self._publisher_jurisdictions[publisher_key]

        jurisdiction = self.rpc.call_typed(
            Optional[str],
            CORE_APP_ROLE,
            "get_publisher_jurisdiction",
            _agent_key_payload(publisher_key),
        )
        self._publisher_jurisdictions[publisher_key] = jurisdiction
        return jurisdiction

    def clear_cache(self) -> None:
        self._publisher_jurisdictions.clear()

    def set_app_enabled(
        self,
        app_id: str,
        host_id: str,
        enabled: bool,
        is_automated: Optional[bool] = None,
    ) -> None:
        """
        Flip this host's registry flag for an app.

        `is_automated` marks a disable made by the autopilot itself (an unpaid
        invoice) rather than by the host operator.
        """
        function = "enable_happ" if enabled else "disable_happ"
        payload = {"happ_id": app_id, "holoport_id": host_id}
        if is_automated is not None:
            payload["is_automated"] = is_automated

        logger.info("registry %s %s for host %s", function, app_id, host_id)
        self.rpc.call(CORE_APP_ROLE, function, payload)
