"""Collection task definitions.

A task is pure data: what kind of acquisition to perform, where to read
from and where in the workspace to write. Tasks are built once when the
catalog is assembled and never mutated afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Optional, Sequence, Tuple, Union

from .options import CollectionOptions


class TaskKind(str, Enum):
    """Supported acquisition kinds."""

    FILE_COPY = "file_copy"
    TREE_COPY = "tree_copy"
    COMMAND_CAPTURE = "command_capture"
    TOOL_INVOCATION = "tool_invocation"
    CHANNEL_EXPORT = "channel_export"


# Placeholder substituted with the absolute destination path in tool argv
DEST_PLACEHOLDER = "{dest}"

# cmd.exe status for an unrecognized command. Wrapper scripts exit with it
# when the utility they drive is absent, which maps to tool_unavailable.
COMMAND_NOT_FOUND_EXIT = 9009

SkipPredicate = Callable[[CollectionOptions], bool]


@dataclass(frozen=True)
class CollectionTask:
    """A named unit of collection work.

    The meaning of ``source`` depends on ``kind``:

    - FILE_COPY / TREE_COPY: a filesystem path, may contain wildcards
    - COMMAND_CAPTURE: argv tuple whose stdout is captured
    - TOOL_INVOCATION: argv tuple, ``{dest}`` is replaced by the output path
    - CHANNEL_EXPORT: an event channel name
    """

    name: str
    kind: TaskKind
    source: Union[str, Tuple[str, ...]]
    destination: str  # relative to the workspace root, POSIX separators
    category: str = ""
    description: str = ""
    skip_if: Optional[SkipPredicate] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Task name must not be empty")
        dest = PurePosixPath(self.destination)
        if dest.is_absolute() or ".." in dest.parts or not dest.parts:
            raise ValueError(
                f"Task {self.name!r} destination must be a relative path "
                f"inside the workspace, got {self.destination!r}"
            )
        if self.kind in (TaskKind.COMMAND_CAPTURE, TaskKind.TOOL_INVOCATION):
            if isinstance(self.source, str) or not self.source:
                raise ValueError(f"Task {self.name!r} requires a non-empty argv tuple")
            # Normalise lists to tuples so the task stays hashable
            object.__setattr__(self, "source", tuple(self.source))
        elif not isinstance(self.source, str) or not self.source:
            raise ValueError(f"Task {self.name!r} requires a string source")
        if not self.category:
            object.__setattr__(self, "category", dest.parts[0])

    @property
    def argv(self) -> Tuple[str, ...]:
        """Command line for command and tool tasks."""
        if isinstance(self.source, str):
            return (self.source,)
        return tuple(self.source)

    def should_skip(self, options: CollectionOptions) -> bool:
        """Check whether the options gate this task off."""
        if self.skip_if is None:
            return False
        return bool(self.skip_if(options))


def command(
    name: str,
    argv: Sequence[str],
    destination: str,
    description: str = "",
) -> CollectionTask:
    """Shorthand for a COMMAND_CAPTURE task."""
    return CollectionTask(
        name=name,
        kind=TaskKind.COMMAND_CAPTURE,
        source=tuple(argv),
        destination=destination,
        description=description,
    )
