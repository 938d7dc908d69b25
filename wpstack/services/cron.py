"""
Crontab management for certificate renewal.

One line per domain. A line belongs to a domain when it carries the
`-d <domain>` certbot argument; installing replaces that line.
"""

from typing import List

from wpstack.logging import get_stack_logger
from wpstack.transport import Transport

logger = get_stack_logger(__name__)


def renews(line: str, domain: str) -> bool:
    """True if a crontab line is the renewal job of exactly this domain."""
    return f" -d {domain} " in f" {line} "


class CronTable:
    """The invoking user's crontab, read and written with `crontab`."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def lines(self) -> List[str]:
        result = self.transport.run_command(["crontab", "-l"], readonly=True)
        if not result.ok:
            # "no crontab for <user>" is an empty table, not an error
            return []
        return [line for line in result.output.splitlines() if line.strip()]

    def _write(self, lines: List[str]) -> None:
        content = "\n".join(lines) + "\n" if lines else ""
        self.transport.run_command(["crontab", "-"], input=content).check()

    def install(self, domain: str, line: str) -> None:
        """
        Install a line for a domain, replacing previous ones.

        Raises:
            ExternalToolError: If crontab rejects the table
        """
        kept = [existing for existing in self.lines() if not renews(existing, domain)]
        kept.append(line)
        self._write(kept)
        logger.info(f"Renewal job installed for {domain}")

    def uninstall(self, domain: str) -> bool:
        """
        Remove the renewal line of a domain.

        Returns:
            True if a line was removed
        """
        lines = self.lines()
        kept = [existing for existing in lines if not renews(existing, domain)]
        if len(kept) == len(lines):
            return False
        self._write(kept)
        logger.info(f"Renewal job removed for {domain}")
        return True
