"""Planned Action — one mutating step the reconciler wants applied."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ActionType(str, Enum):
    INSTALL = "install"                     # download, install, enable, registry enable
    ENABLE = "enable"
    DISABLE = "disable"
    UNINSTALL = "uninstall"
    REGISTRY_ENABLE = "registry_enable"
    REGISTRY_DISABLE = "registry_disable"


class PlannedAction(BaseModel):
    """A single step in a reconciliation plan."""

    action_type: ActionType
    target: str                             # Installed id (or app id for registry actions)
    app_id: Optional[str] = None
    reason: str                             # Machine-readable, e.g. "suspended"

    @property
    def makes_present(self) -> bool:
        """True for the 'eligible app present and enabled' side of the plan."""
        return self.action_type in (
            ActionType.INSTALL,
            ActionType.ENABLE,
            ActionType.REGISTRY_ENABLE,
        )
