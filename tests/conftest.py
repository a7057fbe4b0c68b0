"""Shared fixtures."""

import sys
from pathlib import Path

import pytest

from diag_bundle.diagnostics.logger import AuditLog
from diag_bundle.workspace.manager import WorkspaceManager


def python_argv(code: str):
    """Argv running ``code`` with the current interpreter."""
    return (sys.executable, "-c", code)


@pytest.fixture
def audit():
    """In-memory audit log with console output suppressed."""
    log = AuditLog(quiet=True)
    yield log
    log.close()


@pytest.fixture
def workspace(tmp_path, audit):
    """A freshly created workspace under tmp_path/out."""
    return WorkspaceManager(audit).create(tmp_path / "out", "diag_test")


@pytest.fixture
def source_tree(tmp_path) -> Path:
    """A small tree of host-like log files."""
    root = tmp_path / "host" / "Logs"
    (root / "CBS").mkdir(parents=True)
    (root / "CBS" / "CBS.log").write_text("cbs line\n")
    (root / "CBS" / "CbsPersist_1.log").write_text("persist\n")
    (root / "CBS" / "notes.txt").write_text("not a log\n")
    (root / "WindowsUpdate" / "sub").mkdir(parents=True)
    (root / "WindowsUpdate" / "a.etl").write_bytes(b"\x00\x01\x02")
    (root / "WindowsUpdate" / "sub" / "b.etl").write_bytes(b"\x03\x04")
    return root
