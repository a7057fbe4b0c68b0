"""Workspace lifecycle, manifest and bundle packaging."""

from .manager import (
    Workspace,
    WorkspaceManager,
    HostInfo,
    collect_host_info,
    new_run_id,
    MANIFEST_NAME,
    REPORT_NAME,
    DEFAULT_PREFIX,
)
from .packager import Packager, bundle_path_for, ARCHIVE_EXTENSION

__all__ = [
    "Workspace",
    "WorkspaceManager",
    "HostInfo",
    "collect_host_info",
    "new_run_id",
    "MANIFEST_NAME",
    "REPORT_NAME",
    "DEFAULT_PREFIX",
    "Packager",
    "bundle_path_for",
    "ARCHIVE_EXTENSION",
]
