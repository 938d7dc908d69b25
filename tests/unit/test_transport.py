"""
Unit tests for the local transport.

These run a few harmless shell utilities for real.
"""

import pytest

from wpstack.errors import ExternalToolError
from wpstack.transport import CommandResult, LocalTransport


class TestLocalTransport:
    """Unit tests for LocalTransport."""

    def test_run_command(self):
        """Test output and exit code are captured."""
        result = LocalTransport().run_command(["echo", "hello"])

        assert result.ok
        assert result.output == "hello\n"
        assert result.args == ["echo", "hello"]

    def test_input_is_fed_to_stdin(self):
        """Test input text reaches the command."""
        result = LocalTransport().run_command(["cat"], input="SELECT 1;\n")

        assert result.output == "SELECT 1;\n"

    def test_failure_exit_code(self):
        """Test a failing command reports its exit code."""
        result = LocalTransport().run_command(["false"])

        assert not result.ok
        assert result.exit_code == 1

    def test_missing_program(self):
        """Test an unknown program reports 127 instead of raising."""
        result = LocalTransport().run_command(["wpstack-no-such-tool"])

        assert result.exit_code == 127
        assert "not found" in result.output

    def test_dry_run_skips_mutating_commands(self, tmp_path):
        """Test dry-run does not execute commands that change state."""
        target = tmp_path / "touched"

        result = LocalTransport(dry_run=True).run_command(["touch", str(target)])

        assert result.ok
        assert not target.exists()

    def test_dry_run_runs_readonly_commands(self):
        """Test read-only commands still run in dry-run mode."""
        result = LocalTransport(dry_run=True).run_command(["echo", "ps"], readonly=True)

        assert result.output == "ps\n"

    def test_which(self):
        transport = LocalTransport()

        assert transport.which("sh")
        assert transport.which("wpstack-no-such-tool") is None

    def test_read_file(self, tmp_path):
        path = tmp_path / "privkey.pem"
        path.write_bytes(b"key\n")

        assert LocalTransport().read_file(str(path)) == b"key\n"

        with pytest.raises(FileNotFoundError):
            LocalTransport().read_file(str(tmp_path / "missing.pem"))


class TestCommandResult:
    """Unit tests for CommandResult."""

    def test_check_passes_through(self):
        result = CommandResult(["docker", "ps"], "ok", 0)

        assert result.check() is result

    def test_check_raises(self):
        """Test check() raises ExternalToolError carrying the details."""
        result = CommandResult(["docker", "compose", "up"], "no such service", 1)

        with pytest.raises(ExternalToolError) as exc:
            result.check()

        assert exc.value.exit_code == 1
        assert exc.value.args_ == ["docker", "compose", "up"]
        assert "no such service" in str(exc.value)
