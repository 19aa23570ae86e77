"""Typed admin and app interfaces over a ConductorConnection."""

import logging
from typing import Any, Dict, List, Optional

from host_autopilot.conductor.transport import ConductorConnection
from host_autopilot.errors import DecodeError

logger = logging.getLogger(__name__)

STATUS_ENABLED = "enabled"

def _expect(response: Dict[str, Any], response_type: str) -> Any:
    if response.get("type") != response_type:
        raise DecodeError(
            f"expected {response_type} response, got {response.get('type')!r}"
        )
    return response.get("data")


def _installed_id(item: Any) -> str:
    """ListApps may report bare ids or app-info records."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and isinstance(item.get("installed_app_id"), str):
        return item["installed_app_id"]
    raise DecodeError(f"unrecognized app list entry: {item!r}")


def dedupe(ids: List[str]) -> List[str]:
    """Drop repeats, keeping first-seen order."""
    seen = set()
    unique = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            unique.append(i)
    return unique


class AdminInterface:
    """The conductor's admin interface."""

    def __init__(self, connection: ConductorConnection):
        self.connection = connection

    def attach_app_interface(self, port: int) -> None:
        logger.info("attaching app interface on port %d", port)
        self.connection.request("attach_app_interface", {"port": port})

    def list_apps(self, status_filter: Optional[str] = None) -> List[str]:
        """Installed app ids, optionally filtered by run state."""
        response = self.connection.request(
            "list_apps", {"status_filter": status_filter}
        )
        items = _expect(response, "apps_listed") or []
        if not isinstance(items, list):
            raise DecodeError(f"apps_listed payload is not a list: {items!r}")
        return [_installed_id(item) for item in items]

    def list_enabled_apps(self) -> List[str]:
        return dedupe(self.list_apps(STATUS_ENABLED))

    def install_app(
        self,
        agent_key: bytes,
        bundle_path: str,
        membrane_proofs: Dict[str, bytes],
        installed_app_id: Optional[str] = None,
        network_seed: Optional[str] = None,
    ) -> Any:
        logger.info("installing %s from %s", installed_app_id or bundle_path, bundle_path)
        response = self.connection.request("install_app", {
            "agent_key": agent_key,
            "installed_app_id": installed_app_id,
            "membrane_proofs": membrane_proofs,
            "network_seed": network_seed,
            "source": {"path": bundle_path},
        })
        return _expect(response, "app_installed")

    def enable_app(self, installed_app_id: str) -> Any:
        response = self.connection.request(
            "enable_app", {"installed_app_id": installed_app_id}
        )
        return _expect(response, "app_enabled")

    def disable_app(self, installed_app_id: str) -> None:
        response = self.connection.request(
            "disable_app", {"installed_app_id": installed_app_id}
        )
        _expect(response, "app_disabled")

    def uninstall_app(self, installed_app_id: str) -> None:
        response = self.connection.request(
            "uninstall_app", {"installed_app_id": installed_app_id}
        )
        _expect(response, "app_uninstalled")


class AppInterface:
    """The conductor's app interface: app info and zome calls."""

    def __init__(self, connection: ConductorConnection):
        self.connection = connection

    def app_info(self, installed_app_id: str) -> Optional[Dict[str, Any]]:
        response = self.connection.request(
            "app_info", {"installed_app_id": installed_app_id}
        )
        return _expect(response, "app_info")

    def call_zome(self, signed_call: Dict[str, Any]) -> bytes:
        """Returns the raw msgpack-encoded zome result."""
        response = self.connection.request("call_zome", signed_call)
        data = _expect(response, "zome_called")
        if not isinstance(data, (bytes, bytearray)):
            raise DecodeError(f"zome_called payload is not bytes: {type(data).__name__}")
        return bytes(data)
