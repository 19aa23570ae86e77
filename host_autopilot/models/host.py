"""Host credentials, as reported by the billing service."""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class KycLevel(str, Enum):
    LEVEL_1 = "holo_kyc_1"  # Default — unverified host
    LEVEL_2 = "holo_kyc_2"  # Verified host, may serve paid content


class HostCredentials(BaseModel):
    """
    KYC level and jurisdiction for the local host.

    The default instance (Level1, no jurisdiction) is what a run proceeds with
    whenever the billing service cannot be reached: restrictive, not open.
    """

    kyc: KycLevel = KycLevel.LEVEL_1
    jurisdiction: Optional[str] = None
    access_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("access_token", "accessToken"),
    )
    id: Optional[str] = None

    @property
    def is_verified(self) -> bool:
        return self.kyc == KycLevel.LEVEL_2
