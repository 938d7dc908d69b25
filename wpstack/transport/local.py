"""
Local transport - run commands on the local machine.
"""

import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from wpstack.logging import get_stack_logger
from wpstack.transport.base import CommandResult, Transport

logger = get_stack_logger(__name__)


class LocalTransport(Transport):
    """
    Local transport using subprocess.

    With dry_run=True, commands that change state are printed instead of
    executed and report success; readonly commands still run.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def run_command(
        self,
        args: List[str],
        input: Optional[str] = None,
        readonly: bool = False,
    ) -> CommandResult:
        """
        Run command from list of arguments.

        Args:
            args: Command and arguments as list
            input: Optional stdin text
            readonly: Run even in dry-run mode

        Returns:
            CommandResult
        """
        if self.dry_run and not readonly:
            logger.dry_run(shlex.join(args))
            return CommandResult(list(args), "", 0)

        logger.debug(f"$ {shlex.join(args)}")
        try:
            result = subprocess.run(
                args,
                input=input,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return CommandResult(list(args), f"{args[0]}: command not found", 127)

        return CommandResult(list(args), result.stdout + result.stderr, result.returncode)

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)

    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

