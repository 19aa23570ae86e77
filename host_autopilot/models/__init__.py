"""Host autopilot data models."""

from host_autopilot.models.actions import ActionType, PlannedAction
from host_autopilot.models.apps import (
    AppPricing,
    Duration,
    ExclusivePreferences,
    HostingPreferences,
    HostSettings,
    PublishedApp,
)
from host_autopilot.models.eligibility import (
    EligibilityPolicy,
    EligibilityVerdict,
    IneligibilityReason,
    MissingPreferencePolicy,
)
from host_autopilot.models.execution import ExecutionResult
from host_autopilot.models.host import HostCredentials, KycLevel
from host_autopilot.models.instances import ClassifiedInstance, InstanceKind
from host_autopilot.models.reconciler import (
    ReconcilerConfig,
    ReconciliationReport,
    ReconciliationSnapshot,
)
from host_autopilot.models.transactions import (
    InvoiceNote,
    PendingTransaction,
    Transaction,
)

__all__ = [
    "ActionType",
    "AppPricing",
    "ClassifiedInstance",
    "Duration",
    "EligibilityPolicy",
    "EligibilityVerdict",
    "ExclusivePreferences",
    "ExecutionResult",
    "HostCredentials",
    "HostSettings",
    "HostingPreferences",
    "IneligibilityReason",
    "InstanceKind",
    "InvoiceNote",
    "KycLevel",
    "MissingPreferencePolicy",
    "PendingTransaction",
    "PlannedAction",
    "PublishedApp",
    "ReconcilerConfig",
    "ReconciliationReport",
    "ReconciliationSnapshot",
    "Transaction",
]
