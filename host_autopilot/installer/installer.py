"""
Hosted Installer — makes an eligible published app present and enabled.

Behavioral Contract:
- ConductorInstaller runs the whole sequence against the conductor:
    service-log companion (when configured) -> install app -> enable app
    -> registry enable for this host
- HttpInstaller delegates the same sequence to an installer service
  (POST {installer_url}/install), supplying read-only membrane proofs
- Any failing step raises; the Action Fabric records it and moves on
"""

import base64
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Protocol

import requests
import yaml
from pydantic import BaseModel

from host_autopilot.conductor.interfaces import AdminInterface
from host_autopilot.errors import BundleError, TransportError
from host_autopilot.installer.bundles import BundleFetcher, ReadOnlyMembraneProofs
from host_autopilot.models.apps import PublishedApp
from host_autopilot.reconciler.classifier import servicelogger_id
from host_autopilot.registry.gateway import RegistryGateway

logger = logging.getLogger(__name__)


class ServiceloggerPreferences(BaseModel):
    """Invoicing thresholds every hosted app's service logger starts with."""

    max_fuel_before_invoice: Decimal = Decimal("1000")
    max_time_before_invoice: List[int] = [86400, 0]      # [secs, nanos]
    price_compute: Decimal = Decimal("0.025")
    price_storage: Decimal = Decimal("0.025")
    price_bandwidth: Decimal = Decimal("0.025")


def save_servicelogger_preferences(
    path: str,
    preferences: Optional[ServiceloggerPreferences] = None,
) -> ServiceloggerPreferences:
    """Write the preferences as YAML where the installer service reads them."""
    preferences = preferences or ServiceloggerPreferences()
    try:
        with open(path, "w") as f:
            yaml.safe_dump(preferences.model_dump(mode="json"), f)
    except OSError as exc:
        raise BundleError(
            f"failed writing service logger preferences to {path}: {exc}"
        ) from exc
    logger.debug("saved service logger preferences to %s", path)
    return preferences


class Installer(Protocol):
    def install(
        self,
        app: PublishedApp,
        membrane_proofs: Optional[Dict[str, bytes]] = None,
    ) -> None: ...


class ConductorInstaller:
    """Installs directly through the conductor's admin interface."""

    def __init__(
        self,
        admin: AdminInterface,
        registry: RegistryGateway,
        fetcher: BundleFetcher,
        agent_key: bytes,
        host_id: Optional[str] = None,
        servicelogger_bundle_url: Optional[str] = None,
    ):
        self.admin = admin
        self.registry = registry
        self.fetcher = fetcher
        self.proofs = ReadOnlyMembraneProofs(fetcher)
        self.agent_key = agent_key
        self.host_id = host_id
        self.servicelogger_bundle_url = servicelogger_bundle_url

    def install(
        self,
        app: PublishedApp,
        membrane_proofs: Optional[Dict[str, bytes]] = None,
    ) -> None:
        if self.servicelogger_bundle_url:
            self._install_companion(app)

        bundle_path = self.fetcher.fetch(app.bundle_url)
        if membrane_proofs is None:
            membrane_proofs = self.proofs.proofs_for(app.bundle_url)

        self.admin.install_app(
            self.agent_key,
            bundle_path,
            membrane_proofs,
            installed_app_id=app.id,
            network_seed=app.network_seed,
        )
        self.admin.enable_app(app.id)

        if self.host_id:
            self.registry.set_app_enabled(app.id, self.host_id, True)
        else:
            logger.warning("no host id configured; registry not updated for %s", app.id)
        logger.info("installed %s (%s)", app.id, app.name)

    def _install_companion(self, app: PublishedApp) -> None:
        companion_id = servicelogger_id(app.id)
        if companion_id in self.admin.list_apps():
            if companion_id not in self.admin.list_enabled_apps():
                logger.info("re-enabling %s", companion_id)
                self.admin.enable_app(companion_id)
            else:
                logger.debug("%s already installed", companion_id)
            return

        bundle_path = self.fetcher.fetch(self.servicelogger_bundle_url)
        self.admin.install_app(
            self.agent_key,
            bundle_path,
            self.proofs.proofs_for(self.servicelogger_bundle_url),
            installed_app_id=companion_id,
            network_seed=app.id,
        )
        self.admin.enable_app(companion_id)


class HttpInstaller:
    """Delegates installs to the local installer service."""

    def __init__(
        self,
        installer_url: str,
        proofs: ReadOnlyMembraneProofs,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 300.0,
    ):
        self.installer_url = installer_url.rstrip("/")
        self.proofs = proofs
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def install(
        self,
        app: PublishedApp,
        membrane_proofs: Optional[Dict[str, bytes]] = None,
    ) -> None:
        if membrane_proofs is None:
            membrane_proofs = self.proofs.proofs_for(app.bundle_url)
        body = {
            "happ_id": app.id,
            "membrane_proofs": {
                role: base64.b64encode(proof).decode("ascii")
                for role, proof in membrane_proofs.items()
            },
        }
        url = f"{self.installer_url}/install"
        try:
            response = self.session.post(url, json=body, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TransportError(f"installer rejected {app.id}: {exc}") from exc
        logger.info("installed %s via %s", app.id, url)
