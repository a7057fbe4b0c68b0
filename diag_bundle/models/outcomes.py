"""Pydantic models for task outcomes and run reports."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    """Outcome statuses.

    SKIPPED is only ever produced by the orchestrator when an option
    gates a task off; acquisition itself yields one of the other three.
    """

    COLLECTED = "collected"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskOutcome(BaseModel):
    """Result of running one CollectionTask."""

    task_name: str = Field(..., description="Name of the task in the catalog")
    status: TaskStatus = Field(..., description="Collection status")
    detail: str = Field("", description="Human-readable message or error text")
    reason: Optional[str] = Field(
        None, description="Machine-readable reason code for non-collected outcomes"
    )
    kind: Optional[str] = Field(None, description="Task kind")
    destination: Optional[str] = Field(None, description="Workspace-relative destination")
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def collected(self) -> bool:
        return self.status == TaskStatus.COLLECTED

    def summary(self) -> str:
        """One-line description used for audit entries."""
        text = f"{self.task_name}: {self.status.value}"
        if self.reason:
            text += f" ({self.reason})"
        if self.detail:
            text += f" - {self.detail}"
        return text


class RunReport(BaseModel):
    """Every outcome of a completed run, in catalog order."""

    run_id: str = ""
    outcomes: List[TaskOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    def counts(self) -> Dict[str, int]:
        """Number of outcomes per status value."""
        counts = {status.value: 0 for status in TaskStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts

    def by_status(self, status: TaskStatus) -> List[TaskOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
