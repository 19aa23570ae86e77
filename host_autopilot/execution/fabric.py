"""
Action Fabric — applies a reconciliation plan to the conductor and registry.

Behavioral Contract:
- Executes planned actions in plan order, one at a time
- Each action is isolated: a failure is logged and recorded, and the
  remaining actions still run
- Reports a structured ExecutionResult (completed and failed actions)
- Performs no retries; the next run re-plans from fresh state
"""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from host_autopilot.conductor.interfaces import AdminInterface
from host_autopilot.installer.installer import Installer
from host_autopilot.models.actions import ActionType, PlannedAction
from host_autopilot.models.apps import PublishedApp
from host_autopilot.models.execution import ExecutionResult
from host_autopilot.registry.gateway import RegistryGateway

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Raised when an action cannot be carried out with what the fabric holds."""
    pass


class ActionFabric:
    """Dispatches planned actions to conductor, registry and installer."""

    def __init__(
        self,
        admin: AdminInterface,
        registry: RegistryGateway,
        installer: Installer,
        host_id: Optional[str] = None,
    ):
        self.admin = admin
        self.registry = registry
        self.installer = installer
        self.host_id = host_id
        self._apps: Mapping[str, PublishedApp] = {}
        self._executors: Dict[ActionType, Callable[[PlannedAction], object]] = {}
        self._register_default_executors()

    def _register_default_executors(self) -> None:
        self._executors[ActionType.INSTALL] = self._install
        self._executors[ActionType.ENABLE] = self._enable
        self._executors[ActionType.DISABLE] = self._disable
        self._executors[ActionType.UNINSTALL] = self._uninstall
        self._executors[ActionType.REGISTRY_ENABLE] = self._registry_enable
        self._executors[ActionType.REGISTRY_DISABLE] = self._registry_disable

    def register_executor(
        self, action_type: ActionType, executor: Callable[[PlannedAction], object]
    ) -> None:
        """Replace the executor for an action type."""
        self._executors[action_type] = executor

    def execute(
        self,
        plan: List[PlannedAction],
        apps: Optional[Mapping[str, PublishedApp]] = None,
        run_id: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Execute a plan.

        `apps` maps app id to published app; install actions need the bundle
        record to fetch and install from.
        """
        self._apps = apps or {}
        start_time = time.monotonic()
        completed = []
        failed = []

        for action in plan:
            result = self._dispatch_action(action)
            if result["success"]:
                completed.append(result)
            else:
                failed.append(result)

        elapsed = time.monotonic() - start_time

        return ExecutionResult(
            run_id=run_id or f"run_{uuid4().hex[:12]}",
            actions_completed=completed,
            actions_failed=failed,
            success=len(failed) == 0,
            executed_at=datetime.utcnow(),
            execution_duration_seconds=round(elapsed, 3),
        )

    def _dispatch_action(self, action: PlannedAction) -> dict:
        """Dispatch a single action to its registered executor."""
        record = {
            "action_type": action.action_type.value,
            "target": action.target,
            "app_id": action.app_id,
            "reason": action.reason,
        }
        executor = self._executors.get(action.action_type)
        if executor is None:
            logger.error("no executor for %s", action.action_type.value)
            return dict(
                record,
                success=False,
                error=f"No executor registered for action type: {action.action_type.value}",
                duration=0.0,
            )

        start = time.monotonic()
        try:
            executor(action)
        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "%s %s failed: %s", action.action_type.value, action.target, e
            )
            return dict(record, success=False, error=str(e), duration=round(elapsed, 3))

        elapsed = time.monotonic() - start
        logger.info(
            "%s %s (%s)", action.action_type.value, action.target, action.reason
        )
        return dict(record, success=True, duration=round(elapsed, 3))

    def _require_host_id(self) -> str:
        if not self.host_id:
            raise ExecutionError("no host id configured for registry updates")
        return self.host_id

    # --- Executors ---

    def _install(self, action: PlannedAction) -> None:
        app = self._apps.get(action.app_id or action.target)
        if app is None:
            raise ExecutionError(f"no published app record for {action.target}")
        self.installer.install(app)

    def _enable(self, action: PlannedAction) -> None:
        self.admin.enable_app(action.target)

    def _disable(self, action: PlannedAction) -> None:
        self.admin.disable_app(action.target)

    def _uninstall(self, action: PlannedAction) -> None:
        self.admin.uninstall_app(action.target)

    def _registry_enable(self, action: PlannedAction) -> None:
        self.registry.set_app_enabled(
            action.app_id or action.target, self._require_host_id(), True
        )

    def _registry_disable(self, action: PlannedAction) -> None:
        self.registry.set_app_enabled(
            action.app_id or action.target,
            self._require_host_id(),
            False,
            is_automated=True,
        )
