"""Eligibility Verdict — output of the Eligibility Evaluator's ruling on one instance."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class MissingPreferencePolicy(str, Enum):
    """What an unconfigured host preference list means."""
    FAIL_OPEN = "fail_open"      # No list configured: no restriction
    FAIL_CLOSED = "fail_closed"  # No list configured: app is ineligible


class IneligibilityReason(str, Enum):
    UNKNOWN_APP = "unknown_app"
    SUSPENDED = "suspended"
    JURISDICTION_PREFERENCES_MISSING = "jurisdiction_preferences_missing"
    PUBLISHER_JURISDICTION_MISSING = "publisher_jurisdiction_missing"
    PUBLISHER_JURISDICTION_REJECTED = "publisher_jurisdiction_rejected"
    HOST_JURISDICTION_MISSING = "host_jurisdiction_missing"
    HOST_JURISDICTION_REJECTED = "host_jurisdiction_rejected"
    CATEGORY_PREFERENCES_MISSING = "category_preferences_missing"
    CATEGORY_REJECTED = "category_rejected"
    HOST_DISABLED = "host_disabled"
    PAUSED = "paused"
    DRAFT = "draft"
    KYC_LEVEL = "kyc_level"


class EligibilityPolicy(BaseModel):
    """Knobs for the evaluator."""

    missing_preference: MissingPreferencePolicy = MissingPreferencePolicy.FAIL_OPEN


class EligibilityVerdict(BaseModel):
    """
    The evaluator's ruling for one installed id.

    An ineligible verdict is a normal outcome, not an error. `reason` is
    machine-readable; `detail` is for the log line.
    """

    installed_id: str
    app_id: Optional[str] = None
    eligible: bool
    reason: Optional[IneligibilityReason] = None
    detail: Optional[str] = None
