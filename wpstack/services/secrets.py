"""
Database password generation.

Passwords come from `openssl rand` and are written once, owner-only.
Existing secrets are never regenerated.
"""

import re
from pathlib import Path

from wpstack.core.tracker import ChangeTracker
from wpstack.errors import ExternalToolError
from wpstack.logging import get_stack_logger
from wpstack.transport import Transport

logger = get_stack_logger(__name__)

SECRET_MODE = 0o600


def generate_password(transport: Transport, length: int = 33) -> str:
    """
    Return a random alphanumeric password.

    Raises:
        ExternalToolError: If openssl fails or returns nothing usable
    """
    args = ["openssl", "rand", "-base64", str(length)]
    result = transport.run_command(args, readonly=True).check()
    password = re.sub(r"[^A-Za-z0-9]", "", result.output)
    if len(password) < 16:
        raise ExternalToolError(args, result.exit_code, result.output,
                                message="openssl returned too little random data")
    return password


def ensure_secret(path: Path, transport: Transport, tracker: ChangeTracker) -> bool:
    """
    Create a password file unless it already exists.

    Returns:
        True if a new secret was written
    """
    path = Path(path)
    if path.exists():
        logger.debug(f"Reusing existing secret {path.name}")
        return False

    tracker.write_text(path, generate_password(transport) + "\n", mode=SECRET_MODE)
    return True
