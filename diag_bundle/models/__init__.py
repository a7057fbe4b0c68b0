"""Collection tasks, options, outcomes and the default catalog."""

from .options import CollectionOptions
from .tasks import CollectionTask, TaskKind, COMMAND_NOT_FOUND_EXIT, DEST_PLACEHOLDER, command
from .outcomes import TaskOutcome, TaskStatus, RunReport
from .registry import (
    CATEGORY_DESCRIPTIONS,
    EVENT_CHANNELS,
    build_default_catalog,
    validate_catalog,
    describe_categories,
)

__all__ = [
    "CollectionOptions",
    "CollectionTask",
    "TaskKind",
    "DEST_PLACEHOLDER",
    "COMMAND_NOT_FOUND_EXIT",
    "command",
    "TaskOutcome",
    "TaskStatus",
    "RunReport",
    "CATEGORY_DESCRIPTIONS",
    "EVENT_CHANNELS",
    "build_default_catalog",
    "validate_catalog",
    "describe_categories",
]
