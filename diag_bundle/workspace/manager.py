"""Workspace lifecycle and manifest generation.

Layout of one run:

    <root>/<prefix>_<YYYYmmdd_HHMMSS>/
        logs/ events/ commands/ tools/   per-category artifacts
        collection.log                   audit log
        README.txt                       manifest
        collection_report.json           machine-readable run report
"""

import getpass
import logging
import platform
import socket
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from diag_bundle.diagnostics.logger import AuditLog, AUDIT_LOG_NAME
from diag_bundle.models.outcomes import RunReport, TaskStatus
from diag_bundle.models.registry import CATEGORY_DESCRIPTIONS, describe_categories
from diag_bundle.models.tasks import CollectionTask
from diag_bundle.utils.errors import WorkspaceCreationError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "README.txt"
REPORT_NAME = "collection_report.json"
DEFAULT_PREFIX = "diag"

# Upper bound on suffixed names tried when a run id is already taken
MAX_NAME_ATTEMPTS = 100


@dataclass(frozen=True)
class Workspace:
    """On-disk root directory for one run."""

    path: Path
    run_id: str
    created_at: datetime

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def audit_log_path(self) -> Path:
        return self.path / AUDIT_LOG_NAME


@dataclass
class HostInfo:
    """Identity of the host the artifacts were collected from."""

    hostname: str = "unknown"
    os_name: str = "unknown"
    os_release: str = "unknown"
    os_version: str = "unknown"
    architecture: str = "unknown"
    user: str = "unknown"
    python_version: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def collect_host_info() -> HostInfo:
    """Collect host identity without touching host state."""
    uname = platform.uname()
    info = HostInfo(
        hostname=socket.gethostname() or uname.node or "unknown",
        os_name=uname.system or "unknown",
        os_release=uname.release or "unknown",
        os_version=uname.version or "unknown",
        architecture=uname.machine or "unknown",
        python_version=platform.python_version(),
    )
    try:
        info.user = getpass.getuser()
    except (KeyError, OSError) as e:
        logger.debug(f"Could not determine user name: {e}")
    return info


def new_run_id(prefix: str = DEFAULT_PREFIX, now: Optional[datetime] = None) -> str:
    """Timestamp-qualified run identifier, e.g. ``diag_20261018_034100``."""
    now = now or datetime.now()
    return f"{prefix}_{now.strftime('%Y%m%d_%H%M%S')}"


class WorkspaceManager:
    """Creates workspaces and writes the run manifest and report.

    Usage:
        manager = WorkspaceManager(audit)
        ws = manager.create(Path("C:/diag"), new_run_id())
        ...
        manager.write_manifest(ws, report, collect_host_info(), catalog)
    """

    def __init__(self, audit: Optional[AuditLog] = None):
        self.audit = audit or AuditLog(quiet=True)

    def create(self, root: Path, run_id: str) -> Workspace:
        """Create a fresh workspace directory under ``root``.

        If a directory named ``run_id`` already exists a numeric suffix is
        appended, so an earlier run is never written into.

        Raises:
            WorkspaceCreationError: The directory could not be created
        """
        root = Path(root)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceCreationError(
                f"Cannot create output root {root}: {e}", path=str(root)
            ) from e

        for attempt in range(MAX_NAME_ATTEMPTS):
            name = run_id if attempt == 0 else f"{run_id}_{attempt}"
            path = root / name
            try:
                path.mkdir()
            except FileExistsError:
                continue
            except OSError as e:
                raise WorkspaceCreationError(
                    f"Cannot create workspace {path}: {e}", path=str(path)
                ) from e

            workspace = Workspace(
                path=path,
                run_id=name,
                created_at=datetime.now(timezone.utc),
            )
            self.audit.info(f"Created workspace {path}")
            return workspace

        raise WorkspaceCreationError(
            f"No free workspace name for {run_id} under {root}", path=str(root)
        )

    def render_manifest(
        self,
        workspace: Workspace,
        report: RunReport,
        host_info: HostInfo,
        catalog: Optional[Sequence[CollectionTask]] = None,
    ) -> str:
        """Render the README manifest text."""
        if catalog:
            categories = describe_categories(catalog)
        else:
            categories = dict(CATEGORY_DESCRIPTIONS)

        finished = report.finished_at or datetime.now(timezone.utc)
        lines = [
            f"Diagnostic collection {workspace.run_id} | "
            f"{finished.isoformat(timespec='seconds')} | "
            f"host {host_info.hostname} ({host_info.os_name} {host_info.os_release}, "
            f"{host_info.architecture}) | user {host_info.user} | {workspace.path}",
            "",
            "Contents",
            "--------",
        ]
        width = max([len(c) for c in categories] + [len(AUDIT_LOG_NAME)])
        for category, description in categories.items():
            lines.append(f"  {(category + '/').ljust(width + 1)}  {description}")
        lines.append(f"  {AUDIT_LOG_NAME.ljust(width + 1)}  Audit log of every action taken")
        lines.append(f"  {REPORT_NAME}  Per-task outcomes (JSON)")

        counts = report.counts()
        lines += [
            "",
            "Summary",
            "-------",
            "  " + ", ".join(f"{status}: {count}" for status, count in counts.items()),
            "",
            "Tasks",
            "-----",
        ]
        name_width = max([len(o.task_name) for o in report.outcomes] + [4])
        for outcome in report.outcomes:
            status = outcome.status.value
            if outcome.reason and outcome.status != TaskStatus.COLLECTED:
                status = f"{status} ({outcome.reason})"
            lines.append(f"  {outcome.task_name.ljust(name_width)}  {status}  {outcome.detail}")

        lines += [
            "",
            "Artifacts marked not_found were absent on this host. Artifacts marked",
            "failed were present or expected but could not be collected; see",
            f"{AUDIT_LOG_NAME} for details.",
            "",
        ]
        return "\n".join(lines)

    def write_manifest(
        self,
        workspace: Workspace,
        report: RunReport,
        host_info: HostInfo,
        catalog: Optional[Sequence[CollectionTask]] = None,
    ) -> Optional[Path]:
        """Write README.txt into the workspace. Never raises.

        Returns:
            Path of the manifest, or None if it could not be written
        """
        path = workspace.path / MANIFEST_NAME
        try:
            path.write_text(
                self.render_manifest(workspace, report, host_info, catalog),
                encoding="utf-8",
            )
        except (OSError, ValueError) as e:
            self.audit.warning(f"Failed to write manifest: {e}", path=str(path))
            return None

        self.audit.info(f"Wrote manifest {path.name}")
        return path

    def write_report(self, workspace: Workspace, report: RunReport) -> Optional[Path]:
        """Write the JSON run report into the workspace. Never raises."""
        path = workspace.path / REPORT_NAME
        try:
            path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        except (OSError, ValueError) as e:
            self.audit.warning(f"Failed to write run report: {e}", path=str(path))
            return None

        self.audit.info(f"Wrote run report {path.name}")
        return path
