"""Reconciler configuration, run snapshot and run report."""

from datetime import datetime
from typing import FrozenSet, List, Optional

from pydantic import BaseModel

from host_autopilot.models.actions import PlannedAction
from host_autopilot.models.apps import HostingPreferences, PublishedApp
from host_autopilot.models.eligibility import EligibilityVerdict, MissingPreferencePolicy
from host_autopilot.models.execution import ExecutionResult
from host_autopilot.models.host import HostCredentials


class ReconcilerConfig(BaseModel):
    """
    Everything a run needs from its surroundings.

    Built once by the CLI (see host_autopilot.config.load_config) and passed
    down explicitly. Nothing below the entry point reads the environment.
    """

    conductor_host: str = "localhost"
    admin_port: int = 4444
    app_port: int = 42233
    core_app_id: str = "core-app"
    host_id: Optional[str] = None                   # Holoport id used for registry toggles
    keystore_seed_path: Optional[str] = None
    hpos_config_path: Optional[str] = None
    billing_url: Optional[str] = None
    happs_file_path: Optional[str] = None
    installer_url: Optional[str] = None             # Delegate installs to POST {url}/install
    servicelogger_bundle_url: Optional[str] = None
    servicelogger_prefs_path: Optional[str] = None
    connect_max_attempts: Optional[int] = None      # None: retry until the conductor is up
    connect_backoff_seconds: float = 0.5
    connect_max_backoff_seconds: float = 10.0
    request_timeout_seconds: float = 60.0
    missing_preference: MissingPreferencePolicy = MissingPreferencePolicy.FAIL_OPEN

    @property
    def admin_url(self) -> str:
        return f"ws://{self.conductor_host}:{self.admin_port}/"

    @property
    def app_url(self) -> str:
        return f"ws://{self.conductor_host}:{self.app_port}/"


class ReconciliationSnapshot(BaseModel):
    """Fixed inputs of one run. Taken once, never refreshed mid-run."""

    credentials: HostCredentials
    hosting_preferences: HostingPreferences
    published_apps: List[PublishedApp]
    suspended: FrozenSet[str] = frozenset()
    enabled_ids: List[str] = []                     # Deduplicated, conductor order
    installed_ids: List[str] = []                   # Enabled and disabled


class ReconciliationReport(BaseModel):
    """Outcome of one run."""

    run_id: str
    started_at: datetime
    plan: List[PlannedAction]
    verdicts: List[EligibilityVerdict] = []
    execution: Optional[ExecutionResult] = None

    @property
    def success(self) -> bool:
        return self.execution is None or self.execution.success
