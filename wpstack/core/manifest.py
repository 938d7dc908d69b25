"""
Compose manifest generation.

The manifest is always rebuilt in full from the ordered site list; the
previous file content is never read. The same sites in the same order
always give byte-identical output.
"""

from pathlib import Path
from typing import Optional, Sequence

from wpstack.config import DB_USER, MYSQL_IMAGE, NGINX_IMAGE, REDIS_IMAGE
from wpstack.core.site import Site
from wpstack.core.tracker import ChangeTracker
from wpstack.templates import TemplateStore

MANIFEST_TEMPLATE = "docker-compose.yml.j2"


def project_name_for(env_name: str) -> str:
    """Compose project name of a deployment."""
    return f"wp_{env_name}".replace("-", "_")


class ManifestGenerator:
    """
    Renders docker-compose.yml for a deployment.

    Service graph:
        nginx          -> every php_<short> (service_healthy)
        php_<short>    -> db, redis_<short> (service_healthy)
        db, redis_<short>
    """

    def __init__(self, templates: Optional[TemplateStore] = None):
        self.templates = templates or TemplateStore()

    def generate(self, sites: Sequence[Site], env_name: str) -> str:
        """
        Render the manifest text.

        Args:
            sites: Sites in registry order
            env_name: Deployment name

        Returns:
            YAML document
        """
        return self.templates.render_internal(
            MANIFEST_TEMPLATE,
            sites=list(sites),
            env_name=env_name,
            project_name=project_name_for(env_name),
            db_user=DB_USER,
            nginx_image=NGINX_IMAGE,
            mysql_image=MYSQL_IMAGE,
            redis_image=REDIS_IMAGE,
        )

    def write(self, path: Path, sites: Sequence[Site], env_name: str,
              tracker: ChangeTracker) -> Path:
        """
        Regenerate and write the manifest through the tracker.

        Raises:
            OSError: If the file cannot be written
        """
        return tracker.write_text(path, self.generate(sites, env_name))
