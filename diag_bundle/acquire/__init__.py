"""Acquisition primitives: file/tree copy, command capture, channel export, tools."""

from .acquirer import SourceAcquirer, match_locator, split_locator
from .channels import ChannelExporter, WevtutilChannelExporter
from .commands import CommandResult, run_command

__all__ = [
    "SourceAcquirer",
    "split_locator",
    "match_locator",
    "ChannelExporter",
    "WevtutilChannelExporter",
    "CommandResult",
    "run_command",
]
