"""
Installer API — FastAPI endpoints.

Local HTTP surface the reconciler (HttpInstaller) delegates installs to:
- POST /install    install, enable and registry-enable one published app
- GET  /installed  installed app ids as the conductor reports them
"""

import base64
import binascii
import logging
from typing import Dict

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from host_autopilot.conductor.interfaces import AdminInterface
from host_autopilot.errors import AutopilotError
from host_autopilot.installer.installer import Installer
from host_autopilot.registry.gateway import RegistryGateway

logger = logging.getLogger(__name__)


# --- Request/Response Models ---

class InstallRequest(BaseModel):
    happ_id: str
    membrane_proofs: Dict[str, str] = {}    # role -> base64 proof


class InstallResponse(BaseModel):
    status: str
    happ_id: str


# --- Application Factory ---

def create_app(
    installer: Installer,
    registry: RegistryGateway,
    admin: AdminInterface,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Host Autopilot Installer",
        description="Installs published apps on this host",
        version="0.1.0",
    )

    app.state.installer = installer
    app.state.registry = registry
    app.state.admin = admin

    @app.post("/install", response_model=InstallResponse)
    def install(req: InstallRequest):
        """Install a published app with the supplied membrane proofs."""
        try:
            proofs = {
                role: base64.b64decode(proof, validate=True)
                for role, proof in req.membrane_proofs.items()
            }
        except (binascii.Error, ValueError):
            raise HTTPException(400, "membrane proofs must be base64")

        try:
            apps = {a.id: a for a in registry.get_published_apps()}
        except AutopilotError as exc:
            raise HTTPException(502, f"registry unavailable: {exc}")

        published = apps.get(req.happ_id)
        if published is None:
            raise HTTPException(404, "App not published")

        try:
            installer.install(published, membrane_proofs=proofs or None)
        except AutopilotError as exc:
            logger.error("install of %s failed: %s", req.happ_id, exc)
            raise HTTPException(502, f"install failed: {exc}")

        return InstallResponse(status="installed", happ_id=req.happ_id)

    @app.get("/installed")
    def list_installed():
        """Installed app ids."""
        try:
            return admin.list_apps()
        except AutopilotError as exc:
            raise HTTPException(502, f"conductor unavailable: {exc}")

    return app
