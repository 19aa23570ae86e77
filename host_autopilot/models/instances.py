"""Installed-app classification."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class InstanceKind(str, Enum):
    INFRASTRUCTURE = "infrastructure"                 # Core platform app, never touched
    ANONYMOUS = "anonymous"                           # installed id == app id
    IDENTIFIED = "identified"                         # <app id>::<agent id>
    SERVICE_LOG_COMPANION = "service_log_companion"   # <app id>::servicelogger


class ClassifiedInstance(BaseModel):
    """One installed id as reported by the conductor, with its kind."""

    installed_id: str
    kind: InstanceKind
    app_id: Optional[str] = None            # None for infrastructure
    agent_id: Optional[str] = None          # Only for identified instances

    @property
    def is_hosted(self) -> bool:
        return self.kind != InstanceKind.INFRASTRUCTURE
