"""Event channel export.

Channels are exported with ``wevtutil epl``. The exporter is injected into
SourceAcquirer so tests (and non-Windows hosts) can substitute their own.
"""

import logging
from pathlib import Path
from typing import Optional

from diag_bundle.acquire.commands import run_command
from diag_bundle.utils.errors import ChannelExportError, ChannelNotFoundError

logger = logging.getLogger(__name__)

# ERROR_EVT_CHANNEL_NOT_FOUND
WEVTUTIL_CHANNEL_NOT_FOUND = 15007
_NOT_FOUND_MARKERS = (
    "could not be found",
    "channel not found",
)


class ChannelExporter:
    """Interface for exporting a named event channel to a file."""

    def export(self, channel: str, destination: Path, timeout: Optional[float] = None) -> None:
        """Export ``channel`` to ``destination``.

        Raises:
            ChannelNotFoundError: The channel does not exist on this host
            ChannelExportError: Any other export failure
            ToolUnavailableError: The export utility is missing
            CommandTimeoutError: The export outlived the timeout
        """
        raise NotImplementedError


class WevtutilChannelExporter(ChannelExporter):
    """Exports channels with the Windows Events command line utility."""

    def __init__(self, executable: str = "wevtutil"):
        self.executable = executable

    def export(self, channel: str, destination: Path, timeout: Optional[float] = None) -> None:
        result = run_command(
            [self.executable, "epl", channel, str(destination), "/ow:true"],
            timeout=timeout,
        )
        if result.success:
            return

        stderr = result.stderr_tail()
        if result.exit_code == WEVTUTIL_CHANNEL_NOT_FOUND or any(
            marker in stderr.lower() for marker in _NOT_FOUND_MARKERS
        ):
            raise ChannelNotFoundError(
                f"Channel {channel!r} does not exist on this host",
                channel=channel,
                exit_code=result.exit_code,
            )
        raise ChannelExportError(
            f"Export of {channel!r} failed with exit code {result.exit_code}: {stderr}",
            channel=channel,
            exit_code=result.exit_code,
        )
