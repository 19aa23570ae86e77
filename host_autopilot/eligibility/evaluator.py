"""
Eligibility Evaluator — decides whether an installed app may stay enabled.

Evaluates one installed id against the host's credentials, the host's
hosting preferences and the run's suspension set. Pure: no I/O, no clock.

Behavioral Contract:
- Infrastructure ids are always eligible and never evaluated further
- Checks run in a fixed order and the first failing check decides:
    suspended -> publisher jurisdiction -> host jurisdiction -> categories
    -> host disabled -> paused -> draft -> KYC level vs pricing
- Suspension outranks everything else
- Missing facts (publisher jurisdiction when the host filters on it, host
  jurisdiction) always make the app ineligible
- A missing host preference list is governed by EligibilityPolicy:
  fail_open (no restriction) or fail_closed (ineligible)
- Returns an EligibilityVerdict with a machine-readable reason; never raises
  for an ineligible app
"""

import logging
from typing import AbstractSet, Optional, Tuple

from host_autopilot.models.apps import (
    ExclusivePreferences,
    HostingPreferences,
    PublishedApp,
)
from host_autopilot.models.eligibility import (
    EligibilityPolicy,
    EligibilityVerdict,
    IneligibilityReason,
    MissingPreferencePolicy,
)
from host_autopilot.models.host import HostCredentials
from host_autopilot.models.instances import InstanceKind
from host_autopilot.reconciler.classifier import classify_installed_app

logger = logging.getLogger(__name__)

Failure = Optional[Tuple[IneligibilityReason, str]]


def _describe(prefs: ExclusivePreferences) -> str:
    mode = "excludes" if prefs.is_exclusion else "allows only"
    return f"{mode} {prefs.value}"


def _check_suspended(app: PublishedApp, suspended: AbstractSet[str]) -> Failure:
    if app.id in suspended:
        return IneligibilityReason.SUSPENDED, "overdue hosting invoice"
    return None


def _check_publisher_jurisdiction(
    app: PublishedApp,
    preferences: HostingPreferences,
    policy: EligibilityPolicy,
) -> Failure:
    """The host may filter apps by where their publisher is registered."""
    prefs = preferences.jurisdiction_prefs
    if prefs is None:
        if policy.missing_preference == MissingPreferencePolicy.FAIL_CLOSED:
            return (
                IneligibilityReason.JURISDICTION_PREFERENCES_MISSING,
                "host has no jurisdiction preferences",
            )
        return None

    if app.publisher_jurisdiction is None:
        return (
            IneligibilityReason.PUBLISHER_JURISDICTION_MISSING,
            f"publisher {app.provider_pubkey} has no jurisdiction on record",
        )
    if not prefs.permits(app.publisher_jurisdiction):
        return (
            IneligibilityReason.PUBLISHER_JURISDICTION_REJECTED,
            f"publisher jurisdiction {app.publisher_jurisdiction}; host {_describe(prefs)}",
        )
    return None


def _check_host_jurisdiction(
    app: PublishedApp,
    credentials: HostCredentials,
) -> Failure:
    """The app may in turn restrict which host jurisdictions serve it."""
    if credentials.jurisdiction is None:
        return (
            IneligibilityReason.HOST_JURISDICTION_MISSING,
            "host jurisdiction unknown",
        )
    app_prefs = app.jurisdiction_list
    if not app_prefs.permits(credentials.jurisdiction):
        return (
            IneligibilityReason.HOST_JURISDICTION_REJECTED,
            f"host jurisdiction {credentials.jurisdiction}; app {_describe(app_prefs)}",
        )
    return None


def _check_categories(
    app: PublishedApp,
    preferences: HostingPreferences,
    policy: EligibilityPolicy,
) -> Failure:
    prefs = preferences.categories_prefs
    if prefs is None:
        if policy.missing_preference == MissingPreferencePolicy.FAIL_CLOSED:
            return (
                IneligibilityReason.CATEGORY_PREFERENCES_MISSING,
                "host has no category preferences",
            )
        return None

    if not prefs.permits_any(app.categories):
        return (
            IneligibilityReason.CATEGORY_REJECTED,
            f"app categories {app.categories}; host {_describe(prefs)}",
        )
    return None


def _check_flags(app: PublishedApp) -> Failure:
    if app.is_host_disabled:
        return IneligibilityReason.HOST_DISABLED, "disabled by host operator"
    if app.is_paused:
        return IneligibilityReason.PAUSED, "paused by publisher"
    if app.is_draft:
        return IneligibilityReason.DRAFT, "unpublished draft"
    return None


def _check_kyc(app: PublishedApp, credentials: HostCredentials) -> Failure:
    """Unverified hosts may only serve free apps. Unknown pricing is not free."""
    if credentials.is_verified:
        return None
    if app.pricing is not None and app.pricing.is_free():
        return None
    return (
        IneligibilityReason.KYC_LEVEL,
        f"{credentials.kyc.value} host cannot serve a priced app",
    )


class EligibilityEvaluator:
    """Evaluates installed ids against credentials, preferences and suspensions."""

    def __init__(self, policy: Optional[EligibilityPolicy] = None):
        self.policy = policy or EligibilityPolicy()

    def evaluate(
        self,
        installed_id: str,
        desired_app: Optional[PublishedApp],
        credentials: HostCredentials,
        preferences: HostingPreferences,
        suspended: AbstractSet[str],
    ) -> EligibilityVerdict:
        """
        Rule on one installed id.

        `desired_app` is the published app the id resolves to, or None when
        the registry does not list it.
        """
        desired_ids = [desired_app.id] if desired_app is not None else []
        instance = classify_installed_app(installed_id, desired_ids)

        if instance.kind == InstanceKind.INFRASTRUCTURE:
            return EligibilityVerdict(installed_id=installed_id, eligible=True)

        if desired_app is None:
            return EligibilityVerdict(
                installed_id=installed_id,
                app_id=instance.app_id,
                eligible=False,
                reason=IneligibilityReason.UNKNOWN_APP,
                detail="not listed by the registry",
            )

        checks = (
            lambda: _check_suspended(desired_app, suspended),
            lambda: _check_publisher_jurisdiction(desired_app, preferences, self.policy),
            lambda: _check_host_jurisdiction(desired_app, credentials),
            lambda: _check_categories(desired_app, preferences, self.policy),
            lambda: _check_flags(desired_app),
            lambda: _check_kyc(desired_app, credentials),
        )
        for check in checks:
            failure = check()
            if failure is not None:
                reason, detail = failure
                logger.debug("%s ineligible: %s (%s)", installed_id, reason.value, detail)
                return EligibilityVerdict(
                    installed_id=installed_id,
                    app_id=desired_app.id,
                    eligible=False,
                    reason=reason,
                    detail=detail,
                )

        return EligibilityVerdict(
            installed_id=installed_id,
            app_id=desired_app.id,
            eligible=True,
        )


def should_be_enabled(
    installed_id: str,
    desired_app: Optional[PublishedApp],
    host_credentials: HostCredentials,
    hosting_preferences: HostingPreferences,
    suspended_set: AbstractSet[str],
    policy: Optional[EligibilityPolicy] = None,
) -> bool:
    """Boolean form of EligibilityEvaluator.evaluate()."""
    verdict = EligibilityEvaluator(policy).evaluate(
        installed_id,
        desired_app,
        host_credentials,
        hosting_preferences,
        suspended_set,
    )
    return verdict.eligible
