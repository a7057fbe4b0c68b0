"""End-to-end collection run.

create workspace -> attach audit log -> run catalog -> write report and
manifest -> package. Only workspace creation and packaging can fail the
run; both raise after recording the failure.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from diag_bundle.acquire.acquirer import SourceAcquirer
from diag_bundle.diagnostics.logger import AuditLog
from diag_bundle.models.options import CollectionOptions
from diag_bundle.models.outcomes import RunReport
from diag_bundle.models.registry import build_default_catalog, validate_catalog
from diag_bundle.models.tasks import CollectionTask
from diag_bundle.pipeline.orchestrator import CollectionOrchestrator
from diag_bundle.utils.errors import PackagingError, WorkspaceCreationError
from diag_bundle.workspace.manager import (
    DEFAULT_PREFIX,
    HostInfo,
    Workspace,
    WorkspaceManager,
    collect_host_info,
    new_run_id,
)
from diag_bundle.workspace.packager import Packager

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a caller needs after a successful run."""

    workspace: Workspace
    report: RunReport
    bundle_path: Path


class CollectionPipeline:
    """Wires the components together for a single run.

    Usage:
        pipeline = CollectionPipeline(Path("C:/diag"), CollectionOptions())
        result = pipeline.run()
        print(result.bundle_path)
    """

    def __init__(
        self,
        output_root: Path,
        options: Optional[CollectionOptions] = None,
        catalog: Optional[Sequence[CollectionTask]] = None,
        audit: Optional[AuditLog] = None,
        acquirer: Optional[SourceAcquirer] = None,
        prefix: str = DEFAULT_PREFIX,
        host_info: Optional[HostInfo] = None,
    ):
        """Initialize pipeline.

        Args:
            output_root: Directory that receives the workspace and bundle
            options: Run options
            catalog: Ordered tasks (defaults to the built-in catalog)
            audit: Audit log (defaults to one honouring options.verbose_console)
            acquirer: Acquirer override, mainly for tests
            prefix: Workspace/bundle name prefix
            host_info: Host identity override for the manifest
        """
        self.output_root = Path(output_root)
        self.options = options or CollectionOptions()
        if catalog is None:
            self.catalog: List[CollectionTask] = build_default_catalog()
        else:
            validate_catalog(catalog)
            self.catalog = list(catalog)
        self.audit = audit or AuditLog(quiet=not self.options.verbose_console)
        self.prefix = prefix
        self.host_info = host_info

        self.manager = WorkspaceManager(self.audit)
        self.orchestrator = CollectionOrchestrator(
            acquirer or SourceAcquirer(audit=self.audit),
            self.audit,
        )
        self.packager = Packager(self.audit)

    def run(self) -> PipelineResult:
        """Run the whole pipeline.

        Raises:
            WorkspaceCreationError: No workspace could be created
            PackagingError: The bundle could not be written
        """
        run_id = new_run_id(self.prefix)
        self.audit.info(f"Starting diagnostic collection {run_id}", root=str(self.output_root))

        try:
            workspace = self.manager.create(self.output_root, run_id)
        except WorkspaceCreationError as e:
            self.audit.error(f"Cannot create workspace: {e}")
            raise

        self.audit.attach(workspace.audit_log_path)
        try:
            report = self.orchestrator.run(self.catalog, workspace, self.options)

            host_info = self.host_info or collect_host_info()
            self.manager.write_report(workspace, report)
            self.manager.write_manifest(workspace, report, host_info, self.catalog)
            self.audit.info(f"Packaging workspace {workspace.name}")
        finally:
            # The log is part of the bundle, so stop writing before archiving
            self.audit.close()

        try:
            bundle = self.packager.package(workspace)
        except PackagingError as e:
            self.audit.attach(workspace.audit_log_path)
            self.audit.error(f"Packaging failed: {e}")
            self.audit.close()
            raise

        return PipelineResult(workspace=workspace, report=report, bundle_path=bundle)
