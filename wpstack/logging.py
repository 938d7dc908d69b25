"""
Logging for wpstack.

Example:
    from wpstack.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Rendering nginx config")
    logger.warning("certbot failed for example.com")
    logger.error("Rollback incomplete", exc_info=True)
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme

STACK_THEME = Theme({
    "log.time": "dim cyan",
    "log.level.debug": "dim blue",
    "log.level.info": "green",
    "log.level.warning": "yellow",
    "log.level.error": "bold red",
    "log.level.critical": "bold white on red",
    "wpstack.success": "bold green",
    "wpstack.action.create": "green",
    "wpstack.action.update": "yellow",
    "wpstack.action.delete": "red",
    "wpstack.dry_run": "cyan",
})

# Global console instance
console = Console(theme=STACK_THEME, stderr=True)

_initialized = False


def setup_logging(
    level: Optional[str] = None,
    show_time: bool = True,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> None:
    """
    Initialize wpstack's logging.

    Args:
        level: Log level name; defaults to $WPSTACK_LOG_LEVEL or INFO
        show_time: Show timestamps in log output
        show_path: Show file path in log output
        rich_tracebacks: Use rich formatting for tracebacks

    Note:
        Only the first call installs the handler; use set_level() afterwards.
    """
    global _initialized

    if _initialized:
        return

    level = level or os.getenv("WPSTACK_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        markup=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logging.basicConfig(
        level=numeric_level,
        handlers=[handler],
        force=True,
    )

    _initialized = True


def set_level(level: str) -> None:
    """Change the root log level after setup (e.g. for --verbose)."""
    setup_logging()
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a given module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    if not _initialized:
        setup_logging()

    return logging.getLogger(name)


class StackLogger:
    """
    wpstack-specific logger.

    Wraps a standard logger with helpers for the status lines the CLI prints.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.console = console

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, **kwargs)

    def success(self, message: str) -> None:
        """Print a success line."""
        self.console.print(f"[wpstack.success]✓[/wpstack.success] {escape(message)}")

    def action(self, action: str, target: str, details: Optional[str] = None) -> None:
        """
        Print a file or service action (create/update/delete).

        Args:
            action: Action type (create, update, delete)
            target: Path or service name
            details: Optional details about the action
        """
        symbols = {
            "create": "+",
            "update": "~",
            "delete": "-",
        }
        symbol = symbols.get(action.lower(), "•")
        style = f"wpstack.action.{action.lower()}"

        msg = f"[{style}]{symbol}[/{style}] {escape(target)}"
        if details:
            msg += f" [dim]({escape(details)})[/dim]"

        self.console.print(msg)

    def dry_run(self, message: str) -> None:
        """Print an operation that dry-run mode skipped."""
        self.console.print(f"[wpstack.dry_run][DRY RUN][/wpstack.dry_run] {escape(message)}")


def get_stack_logger(name: str) -> StackLogger:
    """
    Get a StackLogger instance for the given module.

    Example:
        logger = get_stack_logger(__name__)
        logger.success("Site example.com added")
        logger.action("create", "nginx/example.com.conf")
    """
    return StackLogger(name)
