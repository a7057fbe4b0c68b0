"""Tests for the acquisition primitives."""

import os
import shutil

import pytest

from conftest import python_argv
from diag_bundle.acquire import (
    ChannelExporter,
    CommandResult,
    SourceAcquirer,
    WevtutilChannelExporter,
    match_locator,
    split_locator,
)
from diag_bundle.models import (
    COMMAND_NOT_FOUND_EXIT,
    CollectionOptions,
    CollectionTask,
    TaskKind,
    TaskStatus,
)
from diag_bundle.utils.errors import (
    ChannelExportError,
    ChannelNotFoundError,
    ToolUnavailableError,
)

MISSING_TOOL = "diag-bundle-no-such-tool-xyz"


def copy_task(source, destination="logs/out", kind=TaskKind.FILE_COPY):
    return CollectionTask(name="copy", kind=kind, source=str(source), destination=destination)


def command_task(argv, destination="commands/out.txt"):
    return CollectionTask(
        name="cmd", kind=TaskKind.COMMAND_CAPTURE, source=tuple(argv), destination=destination
    )


def tool_task(argv, destination="tools/artifact.txt"):
    return CollectionTask(
        name="tool", kind=TaskKind.TOOL_INVOCATION, source=tuple(argv), destination=destination
    )


def channel_task(channel="Setup"):
    return CollectionTask(
        name="channel",
        kind=TaskKind.CHANNEL_EXPORT,
        source=channel,
        destination=f"events/{channel}.evtx",
    )


class FakeExporter(ChannelExporter):
    """Exporter writing a stub file, or raising a configured error."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def export(self, channel, destination, timeout=None):
        self.calls.append((channel, destination, timeout))
        if self.error is not None:
            raise self.error
        destination.write_bytes(b"ElfFile\x00")


class TestSplitLocator:
    """Tests for wildcard base detection."""

    def test_wildcard_file_segment(self):
        """Base is everything before the wildcard segment."""
        locator = os.path.join(os.sep + "var", "log", "*.log")
        assert split_locator(locator) == (os.path.join(os.sep + "var", "log"), True)

    def test_wildcard_directory_segment(self):
        """A wildcard in a middle segment cuts the base there."""
        locator = os.path.join(os.sep + "var", "*", "app.log")
        assert split_locator(locator) == (os.sep + "var", True)

    def test_plain_path(self):
        """Without wildcards the base is the parent directory."""
        locator = os.path.join(os.sep + "var", "log", "syslog")
        assert split_locator(locator) == (os.path.join(os.sep + "var", "log"), False)


class TestFileCopy:
    """Tests for FILE_COPY and TREE_COPY tasks."""

    def test_missing_path_is_not_found(self, workspace, tmp_path):
        """A missing source yields NOT_FOUND and no destination."""
        outcome = SourceAcquirer().acquire(copy_task(tmp_path / "nope.log"), workspace)
        assert outcome.status == TaskStatus.NOT_FOUND
        assert not (workspace.path / "logs" / "out").exists()
        assert not (workspace.path / "logs").exists()

    def test_wildcard_without_match_is_not_found(self, workspace, source_tree):
        """A wildcard matching nothing is NOT_FOUND, not an error."""
        outcome = SourceAcquirer().acquire(copy_task(source_tree / "CBS" / "*.cab"), workspace)
        assert outcome.status == TaskStatus.NOT_FOUND
        assert not (workspace.path / "logs").exists()

    def test_single_file(self, workspace, source_tree):
        """A plain file lands under the destination by name."""
        outcome = SourceAcquirer().acquire(copy_task(source_tree / "CBS" / "CBS.log"), workspace)
        assert outcome.status == TaskStatus.COLLECTED
        assert (workspace.path / "logs" / "out" / "CBS.log").read_text() == "cbs line\n"

    def test_wildcard_files(self, workspace, source_tree):
        """Only matching files are copied."""
        outcome = SourceAcquirer().acquire(
            copy_task(source_tree / "CBS" / "*.log", "logs/CBS"), workspace
        )
        assert outcome.status == TaskStatus.COLLECTED
        copied = sorted(p.name for p in (workspace.path / "logs" / "CBS").iterdir())
        assert copied == ["CBS.log", "CbsPersist_1.log"]
        assert "Copied 2 file(s)" in outcome.detail

    def test_tree_copy_preserves_structure(self, workspace, source_tree):
        """Tree contents are copied into the destination recursively."""
        outcome = SourceAcquirer().acquire(
            copy_task(source_tree / "WindowsUpdate", "logs/WindowsUpdate", TaskKind.TREE_COPY),
            workspace,
        )
        dest = workspace.path / "logs" / "WindowsUpdate"
        assert outcome.status == TaskStatus.COLLECTED
        assert (dest / "a.etl").read_bytes() == b"\x00\x01\x02"
        assert (dest / "sub" / "b.etl").read_bytes() == b"\x03\x04"

    def test_wildcard_directories(self, workspace, source_tree):
        """Directory matches keep their path relative to the wildcard base."""
        outcome = SourceAcquirer().acquire(
            copy_task(source_tree / "*", "logs/all", TaskKind.TREE_COPY), workspace
        )
        dest = workspace.path / "logs" / "all"
        assert outcome.status == TaskStatus.COLLECTED
        assert (dest / "CBS" / "notes.txt").exists()
        assert (dest / "WindowsUpdate" / "sub" / "b.etl").exists()

    def test_copy_error_is_failed(self, workspace, source_tree, monkeypatch):
        """I/O errors become FAILED with the underlying message."""

        def denied(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(shutil, "copy2", denied)
        outcome = SourceAcquirer().acquire(copy_task(source_tree / "CBS" / "CBS.log"), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "io_error"
        assert "Permission denied" in outcome.detail

    def test_literal_brackets_in_path(self, workspace, tmp_path):
        """Brackets in an existing path are not treated as a character class."""
        old_logs = tmp_path / "Logs [old]"
        old_logs.mkdir()
        (old_logs / "dism.log").write_text("dism\n")

        outcome = SourceAcquirer().acquire(copy_task(old_logs / "dism.log"), workspace)
        assert outcome.status == TaskStatus.COLLECTED
        assert (workspace.path / "logs" / "out" / "dism.log").read_text() == "dism\n"

    def test_wildcard_under_bracketed_directory(self, workspace, tmp_path):
        """Wildcards still expand below a directory whose name has brackets."""
        old_logs = tmp_path / "Logs [old]"
        old_logs.mkdir()
        (old_logs / "a.log").write_text("a\n")
        (old_logs / "b.log").write_text("b\n")
        (old_logs / "o.log").write_text("o\n")

        outcome = SourceAcquirer().acquire(copy_task(old_logs / "*.log"), workspace)
        assert outcome.status == TaskStatus.COLLECTED
        copied = sorted(p.name for p in (workspace.path / "logs" / "out").iterdir())
        assert copied == ["a.log", "b.log", "o.log"]


class TestMatchLocator:
    """Tests for locator matching."""

    def test_missing_literal_path(self, tmp_path):
        """A literal path that does not exist matches nothing."""
        assert match_locator(str(tmp_path / "absent [x].log")) == []

    def test_bracket_in_wildcard_segment_is_literal(self, tmp_path):
        """A bracket next to a wildcard matches only itself."""
        (tmp_path / "[a]1.log").write_text("1")
        (tmp_path / "a1.log").write_text("2")
        matches = match_locator(str(tmp_path / "[a]*.log"))
        assert [os.path.basename(m) for m in matches] == ["[a]1.log"]


class TestCommandCapture:
    """Tests for COMMAND_CAPTURE tasks."""

    def test_stdout_captured(self, workspace):
        """Stdout is written to the destination file."""
        outcome = SourceAcquirer().acquire(
            command_task(python_argv("print('hello from host')")), workspace
        )
        assert outcome.status == TaskStatus.COLLECTED
        assert (workspace.path / "commands" / "out.txt").read_text().strip() == "hello from host"

    def test_destination_parents_created(self, workspace):
        """Missing destination directories are created."""
        outcome = SourceAcquirer().acquire(
            command_task(python_argv("print(1)"), "commands/deep/nested/out.txt"), workspace
        )
        assert outcome.status == TaskStatus.COLLECTED
        assert (workspace.path / "commands" / "deep" / "nested" / "out.txt").exists()

    def test_nonzero_exit_is_failed(self, workspace):
        """A non-zero exit yields FAILED with exit status and stderr."""
        outcome = SourceAcquirer().acquire(
            command_task(python_argv("import sys; sys.stderr.write('access denied'); sys.exit(3)")),
            workspace,
        )
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "nonzero_exit"
        assert "status 3" in outcome.detail
        assert "access denied" in outcome.detail

    def test_missing_executable_is_tool_unavailable(self, workspace):
        """A command that cannot be found is classified as unavailable."""
        outcome = SourceAcquirer().acquire(command_task([MISSING_TOOL, "/all"]), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "tool_unavailable"

    def test_timeout(self, workspace):
        """A command outliving the timeout is FAILED with reason timeout."""
        outcome = SourceAcquirer().acquire(
            command_task(python_argv("import time; time.sleep(10)")),
            workspace,
            CollectionOptions(command_timeout=0.5),
        )
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "timeout"


class TestToolInvocation:
    """Tests for TOOL_INVOCATION tasks."""

    def test_artifact_produced(self, workspace):
        """The {dest} placeholder is replaced and the artifact verified."""
        argv = python_argv("import sys; open(sys.argv[1], 'w').write('report')") + ("{dest}",)
        outcome = SourceAcquirer().acquire(tool_task(argv), workspace)
        assert outcome.status == TaskStatus.COLLECTED
        assert (workspace.path / "tools" / "artifact.txt").read_text() == "report"

    def test_no_artifact(self, workspace):
        """A tool that succeeds without output is distinguished."""
        outcome = SourceAcquirer().acquire(tool_task(python_argv("pass")), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "no_artifact"

    def test_tool_unavailable(self, workspace):
        """A missing tool is distinguished from a tool that ran."""
        outcome = SourceAcquirer().acquire(tool_task([MISSING_TOOL, "{dest}"]), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "tool_unavailable"

    def test_tool_nonzero_exit(self, workspace):
        """A failing tool is FAILED with nonzero_exit."""
        outcome = SourceAcquirer().acquire(
            tool_task(python_argv("raise SystemExit(2)")), workspace
        )
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "nonzero_exit"

    def test_missing_utility_behind_wrapper(self, workspace):
        """A wrapper exiting with the command-not-found status is tool_unavailable."""
        outcome = SourceAcquirer().acquire(
            tool_task(python_argv(f"raise SystemExit({COMMAND_NOT_FOUND_EXIT})")), workspace
        )
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "tool_unavailable"

    def test_command_not_found_status_in_capture(self, workspace):
        """Command capture maps the same status to tool_unavailable."""
        outcome = SourceAcquirer().acquire(
            command_task(python_argv(f"raise SystemExit({COMMAND_NOT_FOUND_EXIT})")), workspace
        )
        assert outcome.reason == "tool_unavailable"


class TestChannelExport:
    """Tests for CHANNEL_EXPORT tasks."""

    def test_exported(self, workspace):
        """A successful export is COLLECTED."""
        exporter = FakeExporter()
        outcome = SourceAcquirer(channel_exporter=exporter).acquire(
            channel_task(), workspace, CollectionOptions(command_timeout=30)
        )
        assert outcome.status == TaskStatus.COLLECTED
        assert (workspace.path / "events" / "Setup.evtx").exists()
        assert exporter.calls[0][0] == "Setup"
        assert exporter.calls[0][2] == 30

    def test_channel_absent(self, workspace):
        """A missing channel is FAILED with channel_absent."""
        exporter = FakeExporter(ChannelNotFoundError("absent", channel="Setup"))
        outcome = SourceAcquirer(channel_exporter=exporter).acquire(channel_task(), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "channel_absent"

    def test_other_export_error(self, workspace):
        """Other export errors carry a different reason."""
        exporter = FakeExporter(ChannelExportError("access denied", channel="Setup"))
        outcome = SourceAcquirer(channel_exporter=exporter).acquire(channel_task(), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "export_error"

    def test_unexpected_exception_never_escapes(self, workspace):
        """Any exception becomes a FAILED outcome."""
        exporter = FakeExporter(RuntimeError("event service crashed"))
        outcome = SourceAcquirer(channel_exporter=exporter).acquire(channel_task(), workspace)
        assert outcome.status == TaskStatus.FAILED
        assert outcome.reason == "unhandled_error"
        assert "event service crashed" in outcome.detail


class TestWevtutilChannelExporter:
    """Tests for wevtutil result classification."""

    def patch_result(self, monkeypatch, exit_code, stderr=""):
        def fake_run(argv, stdout_path=None, timeout=None):
            return CommandResult(argv=argv, stdout="", stderr=stderr, exit_code=exit_code)

        monkeypatch.setattr("diag_bundle.acquire.channels.run_command", fake_run)

    def test_success(self, monkeypatch, tmp_path):
        """Exit code 0 returns normally."""
        self.patch_result(monkeypatch, 0)
        WevtutilChannelExporter().export("System", tmp_path / "System.evtx")

    def test_not_found_exit_code(self, monkeypatch, tmp_path):
        """Exit code 15007 means the channel does not exist."""
        self.patch_result(monkeypatch, 15007)
        with pytest.raises(ChannelNotFoundError):
            WevtutilChannelExporter().export("Nope", tmp_path / "Nope.evtx")

    def test_not_found_message(self, monkeypatch, tmp_path):
        """The not-found message is recognised regardless of exit code."""
        self.patch_result(monkeypatch, 1, "Failed to export log Nope. The specified channel could not be found.")
        with pytest.raises(ChannelNotFoundError):
            WevtutilChannelExporter().export("Nope", tmp_path / "Nope.evtx")

    def test_other_failure(self, monkeypatch, tmp_path):
        """Anything else is a generic export error."""
        self.patch_result(monkeypatch, 5, "Access is denied.")
        with pytest.raises(ChannelExportError) as exc_info:
            WevtutilChannelExporter().export("Security", tmp_path / "Security.evtx")
        assert not isinstance(exc_info.value, ChannelNotFoundError)
        assert exc_info.value.exit_code == 5

    def test_missing_wevtutil(self, tmp_path):
        """Without wevtutil on the host the tool is unavailable."""
        with pytest.raises(ToolUnavailableError):
            WevtutilChannelExporter(MISSING_TOOL).export("System", tmp_path / "System.evtx")
