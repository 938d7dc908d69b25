"""
Shared fixtures for wpstack tests.

External tools are never run: MockTransport records every command and
answers the few that wpstack reads output from.
"""

from pathlib import Path

import pytest

from wpstack.config import CERT_FILES, LETSENCRYPT_LIVE_DIR, Settings
from wpstack.core.tracker import ChangeTracker
from wpstack.deployment import Deployment
from wpstack.transport import CommandResult, Transport

RANDOM_OUTPUT = "c2VjcmV0UGFzc3dvcmRGb3JUZXN0czEyMzQ1Njc4OQ==\n"


class MockTransport(Transport):
    """Mock transport for testing."""

    def __init__(self):
        self.commands = []
        self.inputs = []
        self.files = {}
        self.missing = set()
        self.running = set()
        self.failures = []
        self.crontab = None
        self.enddate = "notAfter=Jan  5 12:00:00 2099 GMT"

    def reset(self):
        """Forget recorded commands."""
        self.commands.clear()
        self.inputs.clear()

    def fail(self, needle, output="mock failure", exit_code=1):
        """Make every command whose text contains needle fail."""
        self.failures.append((needle, output, exit_code))

    def add_certificate(self, domain):
        """Pretend certbot already wrote live files for a domain."""
        for name in CERT_FILES:
            path = str(Path(LETSENCRYPT_LIVE_DIR) / domain / name)
            self.files[path] = f"{name} for {domain}\n".encode("utf-8")

    def which(self, name):
        if name in self.missing:
            return None
        return f"/usr/bin/{name}"

    def read_file(self, path):
        if path in self.files:
            return self.files[path]
        raise FileNotFoundError(path)

    def run_command(self, args, input=None, readonly=False):
        args = list(args)
        self.commands.append(args)
        self.inputs.append(input)
        text = " ".join(args)

        for needle, output, exit_code in self.failures:
            if needle in text:
                return CommandResult(args, output, exit_code)

        if args[:2] == ["openssl", "rand"]:
            return CommandResult(args, RANDOM_OUTPUT, 0)
        if args[:2] == ["openssl", "x509"]:
            return CommandResult(args, self.enddate + "\n", 0)
        if args == ["crontab", "-l"]:
            if self.crontab is None:
                return CommandResult(args, "no crontab for root\n", 1)
            return CommandResult(args, self.crontab, 0)
        if args == ["crontab", "-"]:
            self.crontab = input
            return CommandResult(args, "", 0)
        if self.compose_command(args) == "ps":
            return CommandResult(args, "".join(f"{s}\n" for s in sorted(self.running)), 0)

        return CommandResult(args, "", 0)

    @staticmethod
    def compose_command(args):
        """Subcommand of a `docker compose -f M --project-directory D -p P <sub>` call."""
        if args[:2] == ["docker", "compose"] and len(args) > 8:
            return args[8]
        return None

    def compose_calls(self, subcommand):
        """Arguments after the subcommand, for every matching compose call."""
        return [cmd[9:] for cmd in self.commands if self.compose_command(cmd) == subcommand]

    def ran(self, program):
        return any(cmd[0] == program for cmd in self.commands)

    def cron_lines(self):
        return [line for line in (self.crontab or "").splitlines() if line.strip()]


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def tracker(tmp_path):
    return ChangeTracker(tmp_path / ".wpstack" / "snapshots")


@pytest.fixture
def settings(tmp_path):
    return Settings(base_dir=tmp_path, env_name="test")


@pytest.fixture
def deployment(settings, transport):
    return Deployment(settings, transport)
