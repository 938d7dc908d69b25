"""
Error taxonomy for wpstack.

Every error the CLI knows how to report derives from WpStackError.
Filesystem failures are left as the builtin OSError.
"""

from typing import List, Optional


class WpStackError(Exception):
    """Base class for handled wpstack errors."""
    pass


class PrerequisiteMissingError(WpStackError):
    """A required external tool is not installed."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Requirement missing: {', '.join(missing)}")


class InvalidInputError(WpStackError):
    """Malformed user input (domain, count, confirmation)."""
    pass


class DuplicateSiteError(WpStackError):
    """Domain or one of its derived names is already registered."""

    def __init__(self, domain: str, reason: str = ""):
        self.domain = domain
        message = f"Site already registered: {domain}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class NotFoundError(WpStackError):
    """Domain is not registered."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Site not found: {domain}")


class NotInitializedError(WpStackError):
    """The deployment has not been created with `wpstack init`."""

    def __init__(self, env_name: str):
        self.env_name = env_name
        super().__init__(
            f"Deployment '{env_name}' is not initialized. Run 'wpstack init' first."
        )


class ExternalToolError(WpStackError):
    """An external command exited with a non-zero status."""

    def __init__(self, args: List[str], exit_code: int, output: str = "",
                 message: Optional[str] = None):
        self.args_ = list(args)
        self.exit_code = exit_code
        self.output = output
        if message is None:
            message = f"Command failed with exit code {exit_code}: {' '.join(args)}"
            if output.strip():
                message += f"\nOutput: {output.strip()}"
        super().__init__(message)


class CertificateError(ExternalToolError):
    """Certificate issuance or installation failed for a domain."""

    def __init__(self, domain: str, message: str, args: Optional[List[str]] = None,
                 exit_code: int = 1, output: str = ""):
        self.domain = domain
        super().__init__(args or [], exit_code, output, message=message)
