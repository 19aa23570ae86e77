"""Published applications and hosting preferences, as served by the registry."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class HostSettings(BaseModel):
    """Per-host flags the registry keeps for a published app."""

    is_enabled: bool = False                # Host has the app enabled in the registry
    is_host_disabled: bool = False          # Host operator switched the app off
    is_auto_disabled: bool = False          # Disabled by automation (e.g. unpaid invoice)


class Duration(BaseModel):
    """Registry duration encoding."""

    secs: int = 0
    nanos: int = 0


class ExclusivePreferences(BaseModel):
    """An allow-list (is_exclusion=False) or deny-list (is_exclusion=True)."""

    value: List[str] = []
    is_exclusion: bool = False

    def permits(self, item: str) -> bool:
        """Inclusive lists require membership, exclusive lists forbid it."""
        listed = item in self.value
        return not listed if self.is_exclusion else listed

    def permits_any(self, items: List[str]) -> bool:
        """Same test against a set of tags: any overlap counts as listed."""
        listed = any(i in self.value for i in items)
        return not listed if self.is_exclusion else listed


class AppPricing(BaseModel):
    """Publisher pricing for one app (registry `get_happ_preferences`)."""

    provider_pubkey: Optional[str] = None
    max_fuel_before_invoice: Decimal = Decimal("0")
    price_compute: Decimal = Decimal("0")
    price_storage: Decimal = Decimal("0")
    price_bandwidth: Decimal = Decimal("0")
    max_time_before_invoice: Duration = Duration()
    invoice_due_in_days: int = 0

    def is_free(self) -> bool:
        return (
            self.price_compute == 0
            and self.price_storage == 0
            and self.price_bandwidth == 0
        )


class HostingPreferences(BaseModel):
    """Host operator thresholds and allow/deny lists."""

    max_fuel_before_invoice: Decimal = Decimal("0")
    max_time_before_invoice: Duration = Duration()
    price_compute: Decimal = Decimal("0")
    price_storage: Decimal = Decimal("0")
    price_bandwidth: Decimal = Decimal("0")
    invoice_due_in_days: int = 0
    jurisdiction_prefs: Optional[ExclusivePreferences] = None
    categories_prefs: Optional[ExclusivePreferences] = None


class PublishedApp(BaseModel):
    """
    An application published for hosting.

    Fetched once per run. `publisher_jurisdiction` and `pricing` are not part
    of the registry's bundle record; the reconciler fills them in from
    separate registry lookups before evaluating eligibility.
    """

    id: str                                 # Content-addressed app id (uhCkk...)
    name: str = ""
    bundle_url: str
    provider_pubkey: str                    # Publisher agent key
    is_draft: bool = False
    is_paused: bool = False                 # Publisher-controlled
    uid: Optional[str] = None
    special_installed_app_id: Optional[str] = None
    jurisdictions: List[str] = []
    exclude_jurisdictions: bool = False
    categories: List[str] = []
    host_settings: HostSettings = Field(default_factory=HostSettings)
    network_seed: Optional[str] = None

    publisher_jurisdiction: Optional[str] = None
    pricing: Optional[AppPricing] = None

    @property
    def is_host_disabled(self) -> bool:
        return self.host_settings.is_host_disabled

    @property
    def jurisdiction_list(self) -> ExclusivePreferences:
        """The app's own geofence, expressed as an allow/deny list."""
        return ExclusivePreferences(
            value=self.jurisdictions,
            is_exclusion=self.exclude_jurisdictions,
        )
