"""Error hierarchy for diag-bundle.

Only two errors are fatal to a run: WorkspaceCreationError and
PackagingError. Everything under AcquisitionError is raised by the
acquisition primitives and translated into a TaskOutcome before it can
reach the orchestrator.
"""

from typing import Optional


class DiagBundleError(Exception):
    """Base exception for all diag-bundle errors."""

    pass


class WorkspaceCreationError(DiagBundleError):
    """Raised when the run workspace directory cannot be created."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PackagingError(DiagBundleError):
    """Raised when the final bundle cannot be written."""

    def __init__(self, message: str, bundle_path: Optional[str] = None):
        super().__init__(message)
        self.bundle_path = bundle_path


class AcquisitionError(DiagBundleError):
    """Base exception for a single task's collection failure.

    The reason code ends up on TaskOutcome.reason.
    """

    reason = "io_error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        if reason:
            self.reason = reason


class SourceCopyError(AcquisitionError):
    """Raised when copying a file or tree into the workspace fails."""

    reason = "io_error"

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class CommandFailedError(AcquisitionError):
    """Raised when a command exits non-zero or cannot be launched."""

    reason = "nonzero_exit"

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message, reason=None if exit_code is not None else "launch_error")
        self.exit_code = exit_code
        self.stderr = stderr


class CommandTimeoutError(AcquisitionError):
    """Raised when a command outlives the configured timeout."""

    reason = "timeout"

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class ToolUnavailableError(AcquisitionError):
    """Raised when an external utility is not installed or not on PATH."""

    reason = "tool_unavailable"

    def __init__(self, message: str, tool: Optional[str] = None):
        super().__init__(message)
        self.tool = tool


class ArtifactMissingError(AcquisitionError):
    """Raised when a tool ran successfully but left no output artifact."""

    reason = "no_artifact"

    def __init__(self, message: str, artifact: Optional[str] = None):
        super().__init__(message)
        self.artifact = artifact


class ChannelExportError(AcquisitionError):
    """Raised when an event channel export fails for any other reason."""

    reason = "export_error"

    def __init__(
        self,
        message: str,
        channel: Optional[str] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.channel = channel
        self.exit_code = exit_code


class ChannelNotFoundError(ChannelExportError):
    """Raised when the requested event channel does not exist on this host."""

    reason = "channel_absent"
