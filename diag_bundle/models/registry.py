"""Default collection catalog for Windows Update troubleshooting.

The catalog is data: adding an artifact means adding a CollectionTask
here, the orchestrator never changes. Paths are resolved from the
environment so the catalog can be built (and listed) on any host; on a
host without these paths the copy tasks simply report not_found.
"""

import os
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence

from .tasks import CollectionTask, TaskKind, COMMAND_NOT_FOUND_EXIT, DEST_PLACEHOLDER, command


# Human-readable descriptions for the top-level workspace folders
CATEGORY_DESCRIPTIONS: Dict[str, str] = {
    "logs": "Log files copied verbatim from the host (CBS, DISM, Windows Update, setup)",
    "events": "Exported event log channels (.evtx)",
    "commands": "Output of read-only diagnostic commands",
    "tools": "Artifacts produced by external diagnostic utilities",
}

# Event channels exported by default
EVENT_CHANNELS: List[str] = [
    "System",
    "Application",
    "Setup",
    "Microsoft-Windows-WindowsUpdateClient/Operational",
    "Microsoft-Windows-Bits-Client/Operational",
    "Microsoft-Windows-Store/Operational",
]


def channel_filename(channel: str) -> str:
    """Map a channel name to a file name usable on every filesystem."""
    return channel.replace("/", "_").replace("\\", "_").replace(" ", "_") + ".evtx"


def _skip_merged_update_log(options) -> bool:
    return not options.include_merged_update_log


def _skip_diagnostic_bundle(options) -> bool:
    return not options.include_optional_diagnostic_bundle


def build_default_catalog(
    system_root: Optional[str] = None,
    program_data: Optional[str] = None,
) -> List[CollectionTask]:
    """Build the ordered default catalog.

    Args:
        system_root: Windows directory (defaults to %SystemRoot% or C:\\Windows)
        program_data: ProgramData directory (defaults to %ProgramData%)

    Returns:
        Ordered list of CollectionTask
    """
    windir = system_root or os.environ.get("SystemRoot") or r"C:\Windows"
    progdata = program_data or os.environ.get("ProgramData") or r"C:\ProgramData"

    def win(*parts: str) -> str:
        return "\\".join((windir,) + parts)

    tasks: List[CollectionTask] = [
        # Log files
        CollectionTask(
            name="windowsupdate-etl",
            kind=TaskKind.TREE_COPY,
            source=win("Logs", "WindowsUpdate"),
            destination="logs/WindowsUpdate",
            description="Windows Update ETL traces",
        ),
        CollectionTask(
            name="cbs-logs",
            kind=TaskKind.FILE_COPY,
            source=win("Logs", "CBS", "*.log"),
            destination="logs/CBS",
            description="Component-Based Servicing logs",
        ),
        CollectionTask(
            name="cbs-archives",
            kind=TaskKind.FILE_COPY,
            source=win("Logs", "CBS", "*.cab"),
            destination="logs/CBS-archives",
            description="Rotated CBS log archives",
        ),
        CollectionTask(
            name="dism-log",
            kind=TaskKind.FILE_COPY,
            source=win("Logs", "DISM", "dism.log"),
            destination="logs/DISM",
            description="Deployment Image Servicing log",
        ),
        CollectionTask(
            name="reporting-events",
            kind=TaskKind.FILE_COPY,
            source=win("SoftwareDistribution", "ReportingEvents.log"),
            destination="logs/SoftwareDistribution",
            description="Windows Update reporting events",
        ),
        CollectionTask(
            name="datastore-logs",
            kind=TaskKind.TREE_COPY,
            source=win("SoftwareDistribution", "DataStore", "Logs"),
            destination="logs/DataStore",
            description="Update datastore transaction logs",
        ),
        CollectionTask(
            name="setupapi-logs",
            kind=TaskKind.FILE_COPY,
            source=win("INF", "setupapi.*.log"),
            destination="logs/setupapi",
            description="Device and driver installation logs",
        ),
        CollectionTask(
            name="panther",
            kind=TaskKind.TREE_COPY,
            source=win("Panther"),
            destination="logs/Panther",
            description="Setup and upgrade logs",
        ),
        CollectionTask(
            name="uso-logs",
            kind=TaskKind.TREE_COPY,
            source="\\".join((progdata, "USOShared", "Logs")),
            destination="logs/USOShared",
            description="Update Session Orchestrator logs",
        ),
    ]

    # Event channels
    for channel in EVENT_CHANNELS:
        tasks.append(
            CollectionTask(
                name=f"event-{channel.lower().replace('/', '-')}",
                kind=TaskKind.CHANNEL_EXPORT,
                source=channel,
                destination=f"events/{channel_filename(channel)}",
                description=f"{channel} event channel",
            )
        )

    # Read-only diagnostic commands
    tasks.extend([
        command("systeminfo", ["systeminfo"], "commands/systeminfo.txt",
                "Operating system and hotfix summary"),
        command("ipconfig", ["ipconfig", "/all"], "commands/ipconfig.txt",
                "Network adapter configuration"),
        command("winhttp-proxy", ["netsh", "winhttp", "show", "proxy"],
                "commands/winhttp_proxy.txt", "WinHTTP proxy settings"),
        command("service-wuauserv", ["sc", "query", "wuauserv"],
                "commands/service_wuauserv.txt", "Windows Update service state"),
        command("service-bits", ["sc", "query", "bits"],
                "commands/service_bits.txt", "BITS service state"),
        command("bits-jobs", ["bitsadmin", "/list", "/allusers", "/verbose"],
                "commands/bits_jobs.txt", "Queued BITS transfer jobs"),
        command("dism-packages", ["dism", "/online", "/get-packages", "/format:table"],
                "commands/dism_packages.txt", "Installed servicing packages"),
        command("update-policy",
                ["reg", "query", r"HKLM\SOFTWARE\Policies\Microsoft\Windows\WindowsUpdate", "/s"],
                "commands/update_policy.txt", "Windows Update group policy"),
        command("hotfixes",
                ["powershell", "-NoProfile", "-NonInteractive", "-Command",
                 "Get-HotFix | Format-List"],
                "commands/hotfixes.txt", "Installed hotfixes"),
    ])

    # External tools
    tasks.extend([
        CollectionTask(
            name="merged-update-log",
            kind=TaskKind.TOOL_INVOCATION,
            source=(
                "powershell", "-NoProfile", "-NonInteractive", "-Command",
                "if (-not (Get-Command Get-WindowsUpdateLog -ErrorAction SilentlyContinue))"
                f" {{ exit {COMMAND_NOT_FOUND_EXIT} }}; "
                f"Get-WindowsUpdateLog -LogPath '{DEST_PLACEHOLDER}'",
            ),
            destination="tools/WindowsUpdate.log",
            description="Merged Windows Update log decoded from ETL traces",
            skip_if=_skip_merged_update_log,
        ),
        CollectionTask(
            name="msinfo32",
            kind=TaskKind.TOOL_INVOCATION,
            source=("msinfo32", "/nfo", DEST_PLACEHOLDER),
            destination="tools/msinfo32.nfo",
            description="System Information diagnostic bundle",
            skip_if=_skip_diagnostic_bundle,
        ),
    ])

    validate_catalog(tasks)
    return tasks


def validate_catalog(tasks: Sequence[CollectionTask]) -> None:
    """Check names are unique and destinations do not overlap.

    Raises:
        ValueError: on a duplicate name or overlapping destinations
    """
    names = set()
    destinations: List[PurePosixPath] = []
    for task in tasks:
        if task.name in names:
            raise ValueError(f"Duplicate task name: {task.name}")
        names.add(task.name)

        dest = PurePosixPath(task.destination)
        for other in destinations:
            shorter, longer = sorted((dest.parts, other.parts), key=len)
            if longer[: len(shorter)] == shorter:
                raise ValueError(
                    f"Task {task.name!r} destination {task.destination!r} "
                    f"overlaps {other.as_posix()!r}"
                )
        destinations.append(dest)


def describe_categories(tasks: Sequence[CollectionTask]) -> Dict[str, str]:
    """Categories used by a catalog, in first-seen order."""
    categories: Dict[str, str] = {}
    for task in tasks:
        if task.category not in categories:
            categories[task.category] = CATEGORY_DESCRIPTIONS.get(task.category, "")
    return categories
