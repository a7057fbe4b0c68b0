"""Single-task acquisition.

SourceAcquirer is the isolation boundary of the pipeline: whatever
happens while collecting one task, ``acquire`` returns a TaskOutcome and
never raises. Absence is reported as a status, not as an exception.
"""

import glob
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from diag_bundle.acquire.channels import ChannelExporter, WevtutilChannelExporter
from diag_bundle.acquire.commands import CommandResult, run_command
from diag_bundle.diagnostics.logger import AuditLog
from diag_bundle.models.options import CollectionOptions
from diag_bundle.models.outcomes import TaskOutcome, TaskStatus
from diag_bundle.models.tasks import CollectionTask, TaskKind, DEST_PLACEHOLDER
from diag_bundle.utils.errors import (
    AcquisitionError,
    ArtifactMissingError,
    CommandFailedError,
    SourceCopyError,
    ToolUnavailableError,
)
from diag_bundle.workspace.manager import Workspace

logger = logging.getLogger(__name__)

# Only * and ? are wildcards; brackets occur in real directory names
_MAGIC = re.compile(r"[*?]")


def _split_parts(locator: str) -> Tuple[List[str], List[str]]:
    separators = [os.sep] + ([os.altsep] if os.altsep else [])
    return re.split("|".join(re.escape(s) for s in separators), locator), separators


def split_locator(locator: str) -> Tuple[str, bool]:
    """Split a path locator into its non-wildcard base directory.

    Returns:
        (base, has_wildcard). Without a wildcard the base is the parent
        directory of the locator.
    """
    parts, separators = _split_parts(locator)
    for i, part in enumerate(parts):
        if _MAGIC.search(part):
            base = os.sep.join(parts[:i])
            if not base and locator[:1] in separators:
                base = os.sep
            return base or os.curdir, True
    return os.path.dirname(locator) or os.curdir, False


def match_locator(locator: str) -> List[str]:
    """Existing paths named by a locator, sorted.

    A locator without wildcards names one literal path. Otherwise it is
    globbed with ``[`` taken literally.
    """
    parts, _ = _split_parts(locator)
    if not any(_MAGIC.search(part) for part in parts):
        return [locator] if os.path.lexists(locator) else []
    pattern = os.sep.join(part.replace("[", "[[]") for part in parts)
    return sorted(glob.glob(pattern))


class SourceAcquirer:
    """Performs one collection task and reports the outcome.

    Usage:
        acquirer = SourceAcquirer(audit=audit)
        outcome = acquirer.acquire(task, workspace, options)
        if outcome.status == TaskStatus.NOT_FOUND:
            ...
    """

    def __init__(
        self,
        audit: Optional[AuditLog] = None,
        channel_exporter: Optional[ChannelExporter] = None,
    ):
        """Initialize acquirer.

        Args:
            audit: Audit log for per-step detail (optional)
            channel_exporter: Event channel exporter (defaults to wevtutil)
        """
        self.audit = audit
        self.channel_exporter = channel_exporter or WevtutilChannelExporter()
        self._handlers: Dict[TaskKind, Callable[[CollectionTask, Path, CollectionOptions], TaskOutcome]] = {
            TaskKind.FILE_COPY: self._copy,
            TaskKind.TREE_COPY: self._copy,
            TaskKind.COMMAND_CAPTURE: self._capture_command,
            TaskKind.CHANNEL_EXPORT: self._export_channel,
            TaskKind.TOOL_INVOCATION: self._invoke_tool,
        }

    def acquire(
        self,
        task: CollectionTask,
        workspace: Workspace,
        options: Optional[CollectionOptions] = None,
    ) -> TaskOutcome:
        """Collect one task into the workspace.

        Args:
            task: Task to run
            workspace: Existing workspace to write into
            options: Run options (command timeout)

        Returns:
            TaskOutcome, never raises
        """
        options = options or CollectionOptions()
        destination = workspace.path / task.destination

        try:
            handler = self._handlers[task.kind]
            return handler(task, destination, options)
        except AcquisitionError as e:
            return self._outcome(task, TaskStatus.FAILED, str(e), reason=e.reason)
        except OSError as e:
            return self._outcome(task, TaskStatus.FAILED, str(e), reason="io_error")
        except Exception as e:
            logger.exception(f"Unexpected error collecting {task.name}")
            return self._outcome(
                task,
                TaskStatus.FAILED,
                f"{type(e).__name__}: {e}",
                reason="unhandled_error",
            )

    def _copy(
        self,
        task: CollectionTask,
        destination: Path,
        options: CollectionOptions,
    ) -> TaskOutcome:
        """Copy files or trees matching the task locator."""
        locator = task.source
        base, has_wildcard = split_locator(locator)
        if task.kind == TaskKind.TREE_COPY and not has_wildcard:
            # A plain tree locator copies the directory contents into the destination
            base = locator

        matches = match_locator(locator)
        if not matches:
            return self._outcome(
                task, TaskStatus.NOT_FOUND, f"No match for {locator}", reason="not_found"
            )

        copied: List[str] = []

        def copy_file(src, dst, *, follow_symlinks=True):
            result = shutil.copy2(src, dst, follow_symlinks=follow_symlinks)
            copied.append(src)
            return result

        for match in matches:
            relative = os.path.relpath(match, base)
            target = destination if relative == os.curdir else destination / relative
            self._trace(f"Copying {match} -> {target}", task=task.name)
            try:
                if os.path.isdir(match):
                    shutil.copytree(
                        match, target, copy_function=copy_file, dirs_exist_ok=True
                    )
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    copy_file(match, target)
            except OSError as e:
                raise SourceCopyError(f"Copy of {match} failed: {e}", source=match) from e

        return self._outcome(
            task,
            TaskStatus.COLLECTED,
            f"Copied {len(copied)} file(s) from {len(matches)} match(es)",
        )

    def _capture_command(
        self,
        task: CollectionTask,
        destination: Path,
        options: CollectionOptions,
    ) -> TaskOutcome:
        """Run a read-only command with stdout redirected to the destination."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        self._trace(f"Running {' '.join(task.argv)}", task=task.name)

        result = run_command(task.argv, stdout_path=destination, timeout=options.command_timeout)
        self._check_exit(result)

        return self._outcome(
            task,
            TaskStatus.COLLECTED,
            f"Captured {destination.stat().st_size} bytes",
        )

    def _export_channel(
        self,
        task: CollectionTask,
        destination: Path,
        options: CollectionOptions,
    ) -> TaskOutcome:
        """Export an event channel to the destination file."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        self._trace(f"Exporting channel {task.source}", task=task.name)

        self.channel_exporter.export(task.source, destination, timeout=options.command_timeout)
        return self._outcome(task, TaskStatus.COLLECTED, f"Exported channel {task.source}")

    def _invoke_tool(
        self,
        task: CollectionTask,
        destination: Path,
        options: CollectionOptions,
    ) -> TaskOutcome:
        """Launch an external utility and verify it produced its artifact."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        argv = [arg.replace(DEST_PLACEHOLDER, str(destination)) for arg in task.argv]
        self._trace(f"Invoking {' '.join(argv)}", task=task.name)

        result = run_command(argv, timeout=options.command_timeout)
        self._check_exit(result)
        if not destination.exists():
            raise ArtifactMissingError(
                f"{argv[0]} ran but produced no artifact at {task.destination}",
                artifact=str(destination),
            )

        return self._outcome(task, TaskStatus.COLLECTED, f"{argv[0]} produced {task.destination}")

    @staticmethod
    def _check_exit(result: CommandResult) -> None:
        name = result.argv[0]
        if result.command_not_found:
            raise ToolUnavailableError(
                f"{name} reported its utility is not available: {result.stderr_tail()}",
                tool=name,
            )
        if not result.success:
            raise CommandFailedError(
                f"{name} exited with status {result.exit_code}: {result.stderr_tail()}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

    def _trace(self, message: str, **context) -> None:
        if self.audit is not None:
            self.audit.debug(message, **context)
        else:
            logger.debug(message)

    @staticmethod
    def _outcome(
        task: CollectionTask,
        status: TaskStatus,
        detail: str,
        reason: Optional[str] = None,
    ) -> TaskOutcome:
        return TaskOutcome(
            task_name=task.name,
            status=status,
            detail=detail,
            reason=reason,
            kind=task.kind.value,
            destination=task.destination,
        )
