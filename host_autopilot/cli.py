"""
host-autopilot command line.

  host-autopilot run               one reconciliation run (default)
  host-autopilot serve-installer   serve the installer API over HTTP

Exit status is 0 when the run completed (individual action failures are
logged, not fatal) and 1 when it could not complete.
"""

import argparse
import contextlib
import logging
import os
import sys
from typing import List, Optional

from host_autopilot.config import load_config, read_operator_email
from host_autopilot.conductor.interfaces import AdminInterface, AppInterface
from host_autopilot.conductor.transport import ConductorConnection
from host_autopilot.eligibility.evaluator import EligibilityEvaluator
from host_autopilot.errors import AutopilotError, ConfigError, RemoteError
from host_autopilot.execution.fabric import ActionFabric
from host_autopilot.identity.gateway import IdentityGateway
from host_autopilot.installer.bundles import BundleFetcher, ReadOnlyMembraneProofs
from host_autopilot.installer.installer import (
    ConductorInstaller,
    HttpInstaller,
    save_servicelogger_preferences,
)
from host_autopilot.models.eligibility import EligibilityPolicy
from host_autopilot.models.reconciler import ReconcilerConfig
from host_autopilot.reconciler.engine import ReconciliationEngine
from host_autopilot.registry.gateway import RegistryGateway
from host_autopilot.rpc.signed_client import SignedRpcClient
from host_autopilot.rpc.signer import LocalKeySigner
from host_autopilot.suspension.tracker import SuspensionTracker

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _connection(config: ReconcilerConfig, url: str) -> ConductorConnection:
    return ConductorConnection(
        url,
        max_attempts=config.connect_max_attempts,
        backoff_seconds=config.connect_backoff_seconds,
        max_backoff_seconds=config.connect_max_backoff_seconds,
        timeout_seconds=config.request_timeout_seconds,
    )


class Services:
    """The collaborators of one run, wired from configuration."""

    def __init__(self, config: ReconcilerConfig, stack: contextlib.ExitStack):
        if not config.keystore_seed_path:
            raise ConfigError("KEYSTORE_SEED_PATH is required")

        self.config = config
        self.signer = LocalKeySigner.from_seed_file(config.keystore_seed_path)

        self.admin = AdminInterface(stack.enter_context(_connection(config, config.admin_url)))
        try:
            self.admin.attach_app_interface(config.app_port)
        except RemoteError as exc:
            logger.warning(
                "failed to start app interface on port %d, maybe it's already up? %s",
                config.app_port, exc,
            )
        app = AppInterface(stack.enter_context(_connection(config, config.app_url)))

        self.rpc = SignedRpcClient(app, self.signer, config.core_app_id)
        self.registry = RegistryGateway(self.rpc)
        self.fetcher = BundleFetcher(timeout_seconds=config.request_timeout_seconds)
        self.conductor_installer = ConductorInstaller(
            self.admin,
            self.registry,
            self.fetcher,
            self.signer.agent_key,
            host_id=config.host_id,
            servicelogger_bundle_url=config.servicelogger_bundle_url,
        )

    def installer(self):
        if self.config.installer_url:
            return HttpInstaller(
                self.config.installer_url, ReadOnlyMembraneProofs(self.fetcher)
            )
        return self.conductor_installer

    def engine(self) -> ReconciliationEngine:
        config = self.config
        email = (
            read_operator_email(config.hpos_config_path)
            if config.hpos_config_path else None
        )
        identity = IdentityGateway(
            config.billing_url,
            email,
            self.rpc,
            timeout_seconds=config.request_timeout_seconds,
        )
        fabric = ActionFabric(self.admin, self.registry, self.installer(), config.host_id)
        evaluator = EligibilityEvaluator(
            EligibilityPolicy(missing_preference=config.missing_preference)
        )
        return ReconciliationEngine(
            identity,
            self.registry,
            SuspensionTracker(self.registry),
            self.admin,
            fabric,
            evaluator,
        )


def run(config: ReconcilerConfig) -> int:
    """One reconciliation run. Returns the process exit status."""
    try:
        if config.servicelogger_prefs_path:
            save_servicelogger_preferences(config.servicelogger_prefs_path)
        with contextlib.ExitStack() as stack:
            report = Services(config, stack).engine().reconcile_once()
    except AutopilotError as exc:
        logger.error("reconciliation failed: %s", exc)
        return 1

    failed = len(report.execution.actions_failed) if report.execution else 0
    logger.info(
        "reconciliation finished: %d planned, %d failed", len(report.plan), failed
    )
    return 0


def serve_installer(config: ReconcilerConfig, host: str, port: int) -> int:
    import uvicorn

    from host_autopilot.api.app import create_app

    try:
        with contextlib.ExitStack() as stack:
            services = Services(config, stack)
            app = create_app(
                services.conductor_installer, services.registry, services.admin
            )
            uvicorn.run(app, host=host, port=port)
    except AutopilotError as exc:
        logger.error("installer service failed: %s", exc)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="host-autopilot",
        description="Reconcile hosted apps on this host with the hosting registry.",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("AUTOPILOT_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO, or $AUTOPILOT_LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run one reconciliation (default)")
    serve = sub.add_parser("serve-installer", help="Serve POST /install")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8800)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    if args.command == "serve-installer":
        return serve_installer(config, args.host, args.port)
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
