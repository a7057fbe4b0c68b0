"""Utility modules for diag-bundle."""

from .errors import (
    DiagBundleError,
    WorkspaceCreationError,
    PackagingError,
    AcquisitionError,
    SourceCopyError,
    CommandFailedError,
    CommandTimeoutError,
    ToolUnavailableError,
    ArtifactMissingError,
    ChannelExportError,
    ChannelNotFoundError,
)

__all__ = [
    "DiagBundleError",
    "WorkspaceCreationError",
    "PackagingError",
    "AcquisitionError",
    "SourceCopyError",
    "CommandFailedError",
    "CommandTimeoutError",
    "ToolUnavailableError",
    "ArtifactMissingError",
    "ChannelExportError",
    "ChannelNotFoundError",
]
