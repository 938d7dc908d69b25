"""
Unit tests for the change tracker.

Tests snapshot, creation log and rollback behavior on a temp directory.
"""

import pytest

from wpstack.core.tracker import ChangeTracker, TrackerState


class TestChangeTracker:
    """Unit tests for ChangeTracker."""

    def test_created_file_removed_on_rollback(self, tmp_path, tracker):
        """Test a file created during a recording is deleted by rollback."""
        target = tmp_path / "new.txt"

        with pytest.raises(RuntimeError):
            with tracker.recording():
                tracker.write_text(target, "hello\n")
                assert target.exists()
                raise RuntimeError("boom")

        assert not target.exists()

    def test_modified_file_restored(self, tmp_path, tracker):
        """Test the pre-command content comes back, not an intermediate one."""
        target = tmp_path / "registry.env"
        target.write_text("original\n")

        with pytest.raises(RuntimeError):
            with tracker.recording():
                tracker.write_text(target, "first\n")
                tracker.write_text(target, "second\n")
                raise RuntimeError("boom")

        assert target.read_text() == "original\n"

    def test_directories_removed_child_first(self, tmp_path, tracker):
        """Test nested created directories are all removed."""
        nested = tmp_path / "site-example" / "wordpress" / "wp-content"

        with pytest.raises(RuntimeError):
            with tracker.recording():
                tracker.mkdir(nested)
                tracker.write_text(nested / "index.php", "<?php\n")
                assert tracker.created[0] == tmp_path / "site-example"
                raise RuntimeError("boom")

        assert not (tmp_path / "site-example").exists()
        assert tmp_path.exists()

    def test_removed_path_restored(self, tmp_path, tracker):
        """Test a removed directory is moved back by rollback."""
        site_dir = tmp_path / "site-example"
        site_dir.mkdir()
        (site_dir / "php.ini").write_text("memory_limit = 256M\n")

        with pytest.raises(RuntimeError):
            with tracker.recording():
                tracker.remove(site_dir)
                assert not site_dir.exists()
                raise RuntimeError("boom")

        assert (site_dir / "php.ini").read_text() == "memory_limit = 256M\n"

    def test_commit_keeps_changes(self, tmp_path, tracker):
        """Test a successful recording keeps changes and drops snapshots."""
        existing = tmp_path / "a.txt"
        existing.write_text("old\n")
        doomed = tmp_path / "b.txt"
        doomed.write_text("bye\n")

        with tracker.recording():
            tracker.write_text(existing, "new\n")
            tracker.remove(doomed)
            snapshot_dir = tracker.snapshot_dir
            assert snapshot_dir.exists()

        assert existing.read_text() == "new\n"
        assert not doomed.exists()
        assert not snapshot_dir.exists()
        assert tracker.state is TrackerState.IDLE

    def test_state_transitions(self, tracker):
        """Test IDLE -> RECORDING -> IDLE, also after a failure."""
        assert tracker.state is TrackerState.IDLE

        with tracker.recording():
            assert tracker.state is TrackerState.RECORDING
        assert tracker.state is TrackerState.IDLE

        with pytest.raises(ValueError):
            with tracker.recording():
                raise ValueError("boom")
        assert tracker.state is TrackerState.IDLE

    def test_nested_recording_joins_outer(self, tmp_path, tracker):
        """Test an inner recording does not commit on its own."""
        target = tmp_path / "a.txt"

        with pytest.raises(RuntimeError):
            with tracker.recording():
                with tracker.recording():
                    tracker.write_text(target, "inner\n")
                assert tracker.state is TrackerState.RECORDING
                raise RuntimeError("boom")

        assert not target.exists()

    def test_mode_applied(self, tmp_path, tracker):
        """Test permission bits are set on written files."""
        secret = tmp_path / "secrets" / "db_password.txt"

        with tracker.recording():
            tracker.mkdir(secret.parent, mode=0o700)
            tracker.write_text(secret, "pw\n", mode=0o600)

        assert secret.stat().st_mode & 0o777 == 0o600
        assert secret.parent.stat().st_mode & 0o777 == 0o700

    def test_copy(self, tmp_path, tracker):
        """Test copy() writes the source content into the tracked tree."""
        source = tmp_path / "source.pem"
        source.write_bytes(b"cert\n")
        destination = tmp_path / "store" / "fullchain.pem"

        with pytest.raises(RuntimeError):
            with tracker.recording():
                tracker.copy(source, destination)
                assert destination.read_bytes() == b"cert\n"
                raise RuntimeError("boom")

        assert not (tmp_path / "store").exists()
        assert source.exists()

    def test_rollback_continues_after_failure(self, tmp_path, tracker, monkeypatch):
        """Test one failing step does not stop the rest of the rollback."""
        created = tmp_path / "created.txt"
        modified = tmp_path / "modified.txt"
        modified.write_text("original\n")

        with tracker.recording():
            tracker.write_text(created, "new\n")
            tracker.write_text(modified, "changed\n")

            real_unlink = type(created).unlink

            def failing_unlink(self, *args, **kwargs):
                if self == created:
                    raise PermissionError("denied")
                return real_unlink(self, *args, **kwargs)

            monkeypatch.setattr(type(created), "unlink", failing_unlink)
            failures = tracker.rollback()
            monkeypatch.undo()

        assert len(failures) == 1
        assert "created.txt" in failures[0]
        assert modified.read_text() == "original\n"

    def test_dry_run_changes_nothing(self, tmp_path):
        """Test dry-run mode only prints intended changes."""
        tracker = ChangeTracker(tmp_path / "snapshots", dry_run=True)
        existing = tmp_path / "a.txt"
        existing.write_text("keep\n")

        with tracker.recording():
            tracker.mkdir(tmp_path / "new-dir")
            tracker.write_text(tmp_path / "new-dir" / "b.txt", "x\n")
            tracker.write_text(existing, "changed\n")
            tracker.remove(existing)

        assert existing.read_text() == "keep\n"
        assert not (tmp_path / "new-dir").exists()
        assert not (tmp_path / "snapshots").exists()
