__version__ = "0.1.0"

from wpstack.core import Site, SiteRegistry, ManifestGenerator, ChangeTracker, render
from wpstack.config import Settings, DeploymentPaths
from wpstack.deployment import Deployment
from wpstack.errors import WpStackError
from wpstack.logging import get_logger, get_stack_logger, setup_logging

"""
Building blocks of a wpstack deployment:
    Site is one WordPress instance, identified by its domain.
    SiteRegistry is the ordered record of sites kept in the deployment's .env.
    ManifestGenerator rebuilds docker-compose.yml from the registry.
    ChangeTracker snapshots files so a failed command can be rolled back.
    Deployment ties them together behind the CLI commands.
"""

__all__ = [
    "Site",
    "SiteRegistry",
    "ManifestGenerator",
    "ChangeTracker",
    "render",
    "Settings",
    "DeploymentPaths",
    "Deployment",
    "WpStackError",
    "get_logger",
    "get_stack_logger",
    "setup_logging",
]
