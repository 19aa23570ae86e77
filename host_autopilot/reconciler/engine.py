"""
Reconciliation Engine — converges the host's installed apps on the registry.

One run:
  GATHER   credentials -> suspension set -> published apps (+ pricing and
           publisher jurisdiction) -> hosting preferences -> conductor
           snapshots (enabled ids, installed ids), each taken once
  PLAN     pure diff of the snapshot against the eligibility verdicts
  EXECUTE  Action Fabric, with per-action failure isolation
  REPORT   ReconciliationReport

Behavioral Contract:
- Every action either makes an eligible app present and enabled, or makes an
  ineligible instance absent or disabled
- Infrastructure instances are never touched
- Idempotent: planning over the post-run state yields an empty plan
- Failure to reach the registry or conductor while gathering propagates;
  credential failures never do
- A per-app lookup (pricing, publisher jurisdiction) that fails leaves that
  fact unknown for the evaluator rather than aborting the run
- A disabled service-log companion is re-enabled with its eligible app
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from host_autopilot.conductor.interfaces import AdminInterface, dedupe
from host_autopilot.eligibility.evaluator import EligibilityEvaluator
from host_autopilot.errors import DecodeError, RemoteError
from host_autopilot.execution.fabric import ActionFabric
from host_autopilot.identity.gateway import IdentityGateway
from host_autopilot.models.actions import ActionType, PlannedAction
from host_autopilot.models.apps import PublishedApp
from host_autopilot.models.eligibility import EligibilityVerdict
from host_autopilot.models.instances import ClassifiedInstance, InstanceKind
from host_autopilot.models.reconciler import ReconciliationReport, ReconciliationSnapshot
from host_autopilot.reconciler.classifier import classify_installed_app, servicelogger_id
from host_autopilot.registry.gateway import RegistryGateway
from host_autopilot.suspension.tracker import SuspensionTracker

logger = logging.getLogger(__name__)

# What to do with an enabled instance whose app is ineligible
_REMOVAL = {
    InstanceKind.ANONYMOUS: ActionType.DISABLE,
    InstanceKind.IDENTIFIED: ActionType.UNINSTALL,
    InstanceKind.SERVICE_LOG_COMPANION: ActionType.DISABLE,
}


def _is_hostable(app: PublishedApp) -> bool:
    """Apps the engine installs under their own id."""
    return not app.is_draft and app.special_installed_app_id is None


class ReconciliationEngine:
    """Runs gather -> plan -> execute for one host."""

    def __init__(
        self,
        identity: IdentityGateway,
        registry: RegistryGateway,
        suspension: SuspensionTracker,
        admin: AdminInterface,
        fabric: ActionFabric,
        evaluator: Optional[EligibilityEvaluator] = None,
    ):
        self.identity = identity
        self.registry = registry
        self.suspension = suspension
        self.admin = admin
        self.fabric = fabric
        self.evaluator = evaluator or EligibilityEvaluator()

    def gather(self, now_us: Optional[int] = None) -> ReconciliationSnapshot:
        """Fetch every input of the run, in order, exactly once."""
        self.registry.clear_cache()

        credentials = self.identity.get_host_credentials()
        suspended = self.suspension.suspended_apps(now_us)

        apps = []
        for app in self.registry.get_published_apps():
            apps.append(app.model_copy(update={
                "pricing": self._lookup(
                    self.registry.get_app_pricing, app.id, "pricing"
                ),
                "publisher_jurisdiction": self._lookup(
                    self.registry.get_publisher_jurisdiction,
                    app.provider_pubkey,
                    "publisher jurisdiction",
                ),
            }))

        preferences = self.registry.get_hosting_preferences()
        enabled_ids = self.admin.list_enabled_apps()
        installed_ids = dedupe(self.admin.list_apps())

        logger.info(
            "gathered %d published apps, %d enabled / %d installed instances",
            len(apps), len(enabled_ids), len(installed_ids),
        )
        return ReconciliationSnapshot(
            credentials=credentials,
            hosting_preferences=preferences,
            published_apps=apps,
            suspended=suspended,
            enabled_ids=enabled_ids,
            installed_ids=installed_ids,
        )

    @staticmethod
    def _lookup(fetch, key: str, what: str):
        """Per-app registry lookup. A failure leaves the fact unknown."""
        try:
            return fetch(key)
        except (RemoteError, DecodeError) as exc:
            logger.error("failed to get %s for %s: %s", what, key, exc)
            return None

    def _verdict(
        self, snapshot: ReconciliationSnapshot, installed_id: str, app: Optional[PublishedApp]
    ) -> EligibilityVerdict:
        return self.evaluator.evaluate(
            installed_id,
            app,
            snapshot.credentials,
            snapshot.hosting_preferences,
            snapshot.suspended,
        )

    def evaluate(
        self, snapshot: ReconciliationSnapshot
    ) -> List[Tuple[ClassifiedInstance, EligibilityVerdict]]:
        """Verdicts for every enabled hosted instance."""
        desired = {app.id: app for app in snapshot.published_apps}
        results = []
        for installed_id in dedupe(snapshot.enabled_ids):
            instance = classify_installed_app(installed_id, desired)
            if instance.kind == InstanceKind.INFRASTRUCTURE:
                logger.debug("keeping infrastructure app %s", installed_id)
                continue
            verdict = self._verdict(snapshot, installed_id, desired.get(instance.app_id))
            results.append((instance, verdict))
        return results

    def plan(self, snapshot: ReconciliationSnapshot) -> List[PlannedAction]:
        """The minimal action list that converges the snapshot. Pure."""
        actions: List[PlannedAction] = []

        # Remove or disable what may no longer run
        for instance, verdict in self.evaluate(snapshot):
            if verdict.eligible:
                continue
            action_type = _REMOVAL[instance.kind]
            logger.info(
                "%s %s: %s", action_type.value, instance.installed_id, verdict.detail
            )
            actions.append(PlannedAction(
                action_type=action_type,
                target=instance.installed_id,
                app_id=instance.app_id,
                reason=verdict.reason.value,
            ))

        # Tell the registry about newly suspended apps
        for app in snapshot.published_apps:
            if app.id in snapshot.suspended and app.host_settings.is_enabled:
                actions.append(PlannedAction(
                    action_type=ActionType.REGISTRY_DISABLE,
                    target=app.id,
                    app_id=app.id,
                    reason="suspended",
                ))

        # Make eligible apps present and enabled
        enabled = set(snapshot.enabled_ids)
        installed = set(snapshot.installed_ids)
        for app in snapshot.published_apps:
            if not _is_hostable(app):
                continue
            verdict = self._verdict(snapshot, app.id, app)
            if not verdict.eligible:
                logger.info("skipping %s: %s", app.id, verdict.detail)
                continue

            if app.id not in installed:
                actions.append(PlannedAction(
                    action_type=ActionType.INSTALL,
                    target=app.id,
                    app_id=app.id,
                    reason="eligible_not_installed",
                ))
                continue

            # A companion disabled alongside its app comes back with it
            companion = servicelogger_id(app.id)
            if companion in installed and companion not in enabled:
                actions.append(PlannedAction(
                    action_type=ActionType.ENABLE,
                    target=companion,
                    app_id=app.id,
                    reason="eligible_companion_disabled",
                ))

            if app.id not in enabled:
                actions.append(PlannedAction(
                    action_type=ActionType.ENABLE,
                    target=app.id,
                    app_id=app.id,
                    reason="eligible_disabled",
                ))
                if not app.host_settings.is_enabled:
                    actions.append(PlannedAction(
                        action_type=ActionType.REGISTRY_ENABLE,
                        target=app.id,
                        app_id=app.id,
                        reason="eligible_disabled",
                    ))
            else:
                logger.debug("%s already enabled", app.id)

        return actions

    def reconcile_once(self, now_us: Optional[int] = None) -> ReconciliationReport:
        """Run a single reconciliation cycle."""
        run_id = f"run_{uuid4().hex[:12]}"
        started_at = datetime.utcnow()

        snapshot = self.gather(now_us)
        verdicts = [verdict for _, verdict in self.evaluate(snapshot)]
        plan = self.plan(snapshot)

        apps: Dict[str, PublishedApp] = {app.id: app for app in snapshot.published_apps}
        execution = self.fabric.execute(plan, apps=apps, run_id=run_id)
        self._notify_suspensions(execution.actions_completed)

        report = ReconciliationReport(
            run_id=run_id,
            started_at=started_at,
            plan=plan,
            verdicts=verdicts,
            execution=execution,
        )
        if report.success:
            logger.info("run %s converged: %d actions", run_id, len(plan))
        else:
            logger.error(
                "run %s finished with %d failed actions",
                run_id, len(execution.actions_failed),
            )
        return report

    def _notify_suspensions(self, completed: List[dict]) -> None:
        suspended = [
            a["app_id"] for a in completed
            if a["action_type"] == ActionType.REGISTRY_DISABLE.value
        ]
        if suspended:
            self.identity.send_notification(
                f"Suspended hosting of {', '.join(suspended)} for unpaid invoices"
            )
