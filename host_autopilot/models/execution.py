"""Execution Result — outcome from the Action Fabric."""

from datetime import datetime
from typing import List

from pydantic import BaseModel


class ExecutionResult(BaseModel):
    """Outcome of executing one reconciliation plan."""

    run_id: str
    actions_completed: List[dict]
    actions_failed: List[dict]
    success: bool
    executed_at: datetime
    execution_duration_seconds: float
