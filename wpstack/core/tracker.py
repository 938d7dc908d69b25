"""
Change tracking and rollback.

A command runs inside ChangeTracker.recording(). Every file the command
writes is snapshotted first (only the pre-command version is kept), every
file and directory it creates is logged, and every file or directory it
deletes is moved aside. If the command raises, the tracker puts the
filesystem back the way it found it and re-raises.

Limitation: only the filesystem is tracked. Started containers, issued
certificates and installed cron lines are not reversed.

Example:
    tracker = ChangeTracker(paths.snapshots_dir)
    with tracker.recording():
        tracker.mkdir(site_dir)
        tracker.write_text(registry_file, new_content)
        raise RuntimeError("boom")   # site_dir removed, registry restored
"""

import os
import shutil
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from wpstack.logging import get_stack_logger

logger = get_stack_logger(__name__)


class TrackerState(Enum):
    """Tracker lifecycle."""
    IDLE = "idle"
    RECORDING = "recording"


class ChangeTracker:
    """
    Records filesystem changes made during one command.

    All writes made by wpstack go through this class, which is also where
    dry-run mode is enforced: with dry_run=True nothing is written and
    every intended change is printed.
    """

    def __init__(self, snapshot_root: Path, dry_run: bool = False):
        """
        Initialize tracker.

        Args:
            snapshot_root: Directory under which per-command snapshot
                directories are created (must be outside any tracked tree)
            dry_run: Print changes instead of making them
        """
        self.snapshot_root = Path(snapshot_root)
        self.dry_run = dry_run
        self.state = TrackerState.IDLE
        self._snapshot_dir: Optional[Path] = None
        self._snapshots: Dict[Path, Optional[Path]] = {}
        self._created_files: List[Path] = []
        self._created_dirs: List[Path] = []
        self._counter = 0

    @contextmanager
    def recording(self) -> Iterator["ChangeTracker"]:
        """
        Track changes for the duration of the block.

        Commits on normal exit, rolls back and re-raises on any exception.
        """
        if self.state is TrackerState.RECORDING:
            # Nested use joins the outer recording
            yield self
            return

        self._reset()
        self.state = TrackerState.RECORDING
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()

    @property
    def snapshot_dir(self) -> Optional[Path]:
        """Snapshot directory of the current recording, if one was needed."""
        return self._snapshot_dir

    @property
    def created(self) -> List[Path]:
        """Files and directories created so far, in creation order."""
        return list(self._created_dirs) + list(self._created_files)

    def _reset(self) -> None:
        self._snapshot_dir = None
        self._snapshots = {}
        self._created_files = []
        self._created_dirs = []
        self._counter = 0

    def _ensure_snapshot_dir(self) -> Path:
        if self._snapshot_dir is None:
            stamp = time.strftime("%Y%m%d-%H%M%S")
            path = self.snapshot_root / f"{stamp}-{os.getpid()}"
            path.mkdir(parents=True, exist_ok=True)
            self._snapshot_dir = path
        return self._snapshot_dir

    def _snapshot_path(self, path: Path) -> Path:
        self._counter += 1
        return self._ensure_snapshot_dir() / f"{self._counter:04d}-{path.name}"

    def _is_new(self, path: Path) -> bool:
        if path in self._created_files or path in self._created_dirs:
            return True
        return any(parent in self._created_dirs for parent in path.parents)

    def backup(self, path: Path) -> None:
        """
        Snapshot a file before it is modified.

        Only the first call per path during a recording has an effect.
        Paths created during this recording need no snapshot.
        """
        path = Path(path)
        if self.dry_run or path in self._snapshots or self._is_new(path):
            return

        if not path.exists():
            # Will be created by the caller
            self._snapshots[path] = None
            return

        snapshot = self._snapshot_path(path)
        shutil.copy2(path, snapshot)
        self._snapshots[path] = snapshot

    def mkdir(self, path: Path, mode: Optional[int] = None) -> Path:
        """Create a directory and any missing parents, logging each one."""
        path = Path(path)
        if path.is_dir():
            return path

        if self.dry_run:
            logger.dry_run(f"mkdir -p {path}")
            return path

        missing = []
        for candidate in [path, *path.parents]:
            if candidate.exists():
                break
            missing.append(candidate)

        for directory in reversed(missing):
            directory.mkdir()
            self._created_dirs.append(directory)

        if mode is not None:
            path.chmod(mode)
        return path

    def write_bytes(self, path: Path, data: bytes, mode: Optional[int] = None) -> Path:
        """
        Write a file, snapshotting or logging it first.

        Args:
            path: Target file
            data: New content
            mode: Optional permission bits applied after writing
        """
        path = Path(path)
        existed = path.exists()

        if self.dry_run:
            logger.dry_run(f"{'update' if existed else 'create'} {path}")
            return path

        self.mkdir(path.parent)
        if existed:
            self.backup(path)
        elif not self._is_new(path):
            self._created_files.append(path)

        path.write_bytes(data)
        if mode is not None:
            path.chmod(mode)

        logger.action("update" if existed else "create", str(path))
        return path

    def write_text(self, path: Path, text: str, mode: Optional[int] = None) -> Path:
        return self.write_bytes(path, text.encode("utf-8"), mode=mode)

    def copy(self, source: Path, destination: Path, mode: Optional[int] = None) -> Path:
        """Copy a file into the tracked tree."""
        return self.write_bytes(destination, Path(source).read_bytes(), mode=mode)

    def remove(self, path: Path) -> None:
        """
        Delete a file or directory so that rollback can restore it.

        The path is moved into the snapshot directory rather than deleted;
        committing the recording discards it for good.
        """
        path = Path(path)
        if not path.exists() and not path.is_symlink():
            return

        if self.dry_run:
            logger.dry_run(f"rm -rf {path}")
            return

        if self._is_new(path):
            self._forget(path)
            _delete(path)
        elif path in self._snapshots:
            # Already backed up in this recording; the snapshot holds the original
            _delete(path)
        else:
            snapshot = self._snapshot_path(path)
            shutil.move(str(path), str(snapshot))
            self._snapshots[path] = snapshot

        logger.action("delete", str(path))

    def _forget(self, path: Path) -> None:
        self._created_files = [p for p in self._created_files
                               if p != path and path not in p.parents]
        self._created_dirs = [p for p in self._created_dirs
                              if p != path and path not in p.parents]

    def commit(self) -> None:
        """Accept all changes and discard snapshots."""
        self._discard_snapshots()
        self._reset()
        self.state = TrackerState.IDLE

    def rollback(self) -> List[str]:
        """
        Undo every change made during the recording.

        Best effort: failures are logged and the remaining steps still run.

        Returns:
            List of error messages for steps that could not be undone
        """
        failures: List[str] = []
        if self.dry_run:
            self._reset()
            self.state = TrackerState.IDLE
            return failures

        logger.warning("Rolling back changes...")

        for path in reversed(self._created_files):
            try:
                if path.exists() or path.is_symlink():
                    path.unlink()
                    logger.action("delete", str(path), "rollback")
            except OSError as e:
                failures.append(f"{path}: {e}")

        # Deepest first so children go before their parents
        for path in sorted(self._created_dirs, key=lambda p: len(p.parts), reverse=True):
            try:
                if path.exists():
                    shutil.rmtree(path)
                    logger.action("delete", str(path), "rollback")
            except OSError as e:
                failures.append(f"{path}: {e}")

        for path, snapshot in self._snapshots.items():
            try:
                if snapshot is None:
                    if path.exists():
                        _delete(path)
                    continue
                if path.exists() or path.is_symlink():
                    _delete(path)
                path.parent.mkdir(parents=True, exist_ok=True)
                if snapshot.is_dir():
                    shutil.copytree(snapshot, path, symlinks=True)
                else:
                    shutil.copy2(snapshot, path)
                logger.action("update", str(path), "restored")
            except OSError as e:
                failures.append(f"{path}: {e}")

        for failure in failures:
            logger.error(f"Rollback failed for {failure}")

        self._discard_snapshots()
        self._reset()
        self.state = TrackerState.IDLE
        return failures

    def _discard_snapshots(self) -> None:
        if self._snapshot_dir is not None and self._snapshot_dir.exists():
            try:
                shutil.rmtree(self._snapshot_dir)
            except OSError as e:
                logger.warning(f"Could not remove snapshot directory {self._snapshot_dir}: {e}")


def _delete(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
