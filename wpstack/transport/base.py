"""
Base transport interface.

Every external tool wpstack drives (docker, certbot, openssl, wget, tar,
crontab) is invoked through a Transport, so tests can swap in a recording
double instead of running real commands.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from wpstack.errors import ExternalToolError


@dataclass
class CommandResult:
    """Outcome of a single external command."""
    args: List[str]
    output: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self) -> "CommandResult":
        """
        Raise ExternalToolError unless the command succeeded.

        Returns:
            self, for chaining
        """
        if not self.ok:
            raise ExternalToolError(self.args, self.exit_code, self.output)
        return self


class Transport(ABC):
    """
    Abstract base class for command running and file operations.

    Implementations:
    - LocalTransport: Run commands on this machine (optionally dry-run)
    """

    @abstractmethod
    def run_command(
        self,
        args: List[str],
        input: Optional[str] = None,
        readonly: bool = False,
    ) -> CommandResult:
        """
        Run a command from a list of arguments (no shell).

        Args:
            args: Command and arguments as list
            input: Optional text fed to the command's stdin
            readonly: The command only inspects state; it still runs in dry-run mode

        Returns:
            CommandResult with combined output and exit code

        Example:
            result = transport.run_command(["docker", "compose", "ps"], readonly=True)
        """
        pass

    @abstractmethod
    def which(self, name: str) -> Optional[str]:
        """
        Locate an executable.

        Returns:
            Absolute path, or None if not installed
        """
        pass

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """
        Read file content.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        pass
