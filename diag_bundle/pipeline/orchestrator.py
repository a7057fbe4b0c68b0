"""Collection orchestration.

The orchestrator walks the catalog in order and is the failure boundary
for the whole run: every task yields exactly one TaskOutcome, whatever
the acquirer does.
"""

import logging
from typing import Optional, Sequence

from diag_bundle.acquire.acquirer import SourceAcquirer
from diag_bundle.diagnostics.logger import AuditLog, LogLevel
from diag_bundle.models.options import CollectionOptions
from diag_bundle.models.outcomes import RunReport, TaskOutcome, TaskStatus, utc_now
from diag_bundle.models.tasks import CollectionTask
from diag_bundle.utils.errors import WorkspaceCreationError
from diag_bundle.workspace.manager import Workspace

logger = logging.getLogger(__name__)

SKIPPED_DETAIL = "skipped by option"

_STATUS_LEVELS = {
    TaskStatus.COLLECTED: LogLevel.INFO,
    TaskStatus.NOT_FOUND: LogLevel.INFO,
    TaskStatus.SKIPPED: LogLevel.INFO,
    TaskStatus.FAILED: LogLevel.WARNING,
}


class CollectionOrchestrator:
    """Drives an ordered catalog of tasks through a SourceAcquirer.

    Usage:
        orchestrator = CollectionOrchestrator(SourceAcquirer(audit), audit)
        report = orchestrator.run(catalog, workspace, CollectionOptions())
        assert len(report.outcomes) == len(catalog)
    """

    def __init__(
        self,
        acquirer: Optional[SourceAcquirer] = None,
        audit: Optional[AuditLog] = None,
    ):
        self.audit = audit or AuditLog(quiet=True)
        self.acquirer = acquirer or SourceAcquirer(audit=self.audit)

    def run(
        self,
        catalog: Sequence[CollectionTask],
        workspace: Workspace,
        options: Optional[CollectionOptions] = None,
    ) -> RunReport:
        """Run every task once, in catalog order.

        Task failures never raise. The only error is a missing workspace,
        which means creation failed before the run could start.

        Raises:
            WorkspaceCreationError: The workspace directory does not exist
        """
        options = options or CollectionOptions()
        if not workspace.path.is_dir():
            raise WorkspaceCreationError(
                f"Workspace {workspace.path} does not exist", path=str(workspace.path)
            )

        report = RunReport(run_id=workspace.run_id, started_at=utc_now())
        total = len(catalog)
        self.audit.info(f"Collecting {total} task(s) into {workspace.path}")

        for index, task in enumerate(catalog, start=1):
            outcome = self._run_task(task, workspace, options)
            report.outcomes.append(outcome)
            self.audit.record(
                f"[{index}/{total}] {outcome.summary()}",
                _STATUS_LEVELS[outcome.status],
                task=task.name,
                status=outcome.status.value,
            )

        report.finished_at = utc_now()
        counts = report.counts()
        self.audit.info(
            "Collection finished: "
            + ", ".join(f"{count} {status}" for status, count in counts.items()),
            duration_s=round(report.duration_seconds, 1),
        )
        return report

    def _run_task(
        self,
        task: CollectionTask,
        workspace: Workspace,
        options: CollectionOptions,
    ) -> TaskOutcome:
        try:
            if task.should_skip(options):
                return TaskOutcome(
                    task_name=task.name,
                    status=TaskStatus.SKIPPED,
                    detail=SKIPPED_DETAIL,
                    reason="skipped_by_option",
                    kind=task.kind.value,
                    destination=task.destination,
                )
            outcome = self.acquirer.acquire(task, workspace, options)
            if not isinstance(outcome, TaskOutcome):
                raise TypeError(f"acquirer returned {type(outcome).__name__}, not TaskOutcome")
            return outcome
        except Exception as e:
            logger.exception(f"Task {task.name} raised")
            return TaskOutcome(
                task_name=task.name,
                status=TaskStatus.FAILED,
                detail=f"{type(e).__name__}: {e}",
                reason="unhandled_error",
                kind=task.kind.value,
                destination=task.destination,
            )
