"""Bundle packaging.

The whole workspace is zipped into ``<workspace-name>.zip`` next to it.
Archive members are written in sorted order under a top-level folder named
after the workspace, so extracting the bundle recreates the workspace tree.
"""

import logging
import os
import zipfile
from pathlib import Path
from typing import Optional

from diag_bundle.diagnostics.logger import AuditLog
from diag_bundle.utils.errors import PackagingError
from diag_bundle.workspace.manager import Workspace

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".zip"


def bundle_path_for(workspace: Workspace) -> Path:
    """Deterministic bundle path for a workspace."""
    return workspace.path.parent / f"{workspace.name}{ARCHIVE_EXTENSION}"


class Packager:
    """Compresses a finished workspace into a single archive."""

    def __init__(self, audit: Optional[AuditLog] = None, compresslevel: int = 6):
        self.audit = audit or AuditLog(quiet=True)
        self.compresslevel = compresslevel

    def package(self, workspace: Workspace) -> Path:
        """Archive the workspace, replacing any bundle of the same name.

        Returns:
            Path of the bundle

        Raises:
            PackagingError: The bundle could not be written
        """
        bundle = bundle_path_for(workspace)
        tmp = bundle.with_name(f".{bundle.name}.partial")

        if not workspace.path.is_dir():
            raise PackagingError(
                f"Workspace {workspace.path} does not exist", bundle_path=str(bundle)
            )

        files = 0
        try:
            with zipfile.ZipFile(
                tmp, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compresslevel
            ) as zf:
                files = self._write_tree(zf, workspace)
            os.replace(tmp, bundle)
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            self._discard(tmp)
            raise PackagingError(
                f"Failed to write bundle {bundle}: {e}", bundle_path=str(bundle)
            ) from e

        self.audit.info(
            f"Wrote bundle {bundle}",
            files=files,
            size_bytes=bundle.stat().st_size,
        )
        return bundle

    @staticmethod
    def _write_tree(zf: zipfile.ZipFile, workspace: Workspace) -> int:
        root = workspace.path
        files = 0
        zf.write(root, arcname=workspace.name + "/")
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            rel_dir = Path(dirpath).relative_to(root)
            for dirname in dirnames:
                arcname = (Path(workspace.name) / rel_dir / dirname).as_posix() + "/"
                zf.write(os.path.join(dirpath, dirname), arcname=arcname)
            for filename in sorted(filenames):
                arcname = (Path(workspace.name) / rel_dir / filename).as_posix()
                zf.write(os.path.join(dirpath, filename), arcname=arcname)
                files += 1
        return files

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial bundle {path}: {e}")
