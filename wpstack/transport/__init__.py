"""
Transport layer for running external tools.

Provides abstraction for:
- Local command execution (with dry-run support)
- File reads outside the tracked deployment tree (certbot live files)
"""

from wpstack.transport.base import CommandResult, Transport
from wpstack.transport.local import LocalTransport

__all__ = ["CommandResult", "Transport", "LocalTransport"]
