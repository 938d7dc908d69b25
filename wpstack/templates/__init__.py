"""
Template store.

Two kinds of templates live here:
- master templates (nginx vhost, cache/ssl includes, per-site PHP image)
  using literal {{TOKEN}} placeholders, which operators may override with
  their own master-template directory;
- internal Jinja2 templates such as the compose manifest.
"""

from pathlib import Path
from typing import Any, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from wpstack.errors import PrerequisiteMissingError

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_MASTER_DIR = PACKAGE_DIR / "master"

SITE_TEMPLATE = "nginx/site-template.conf"
CACHE_CONFIG = "nginx/includes/fastcgi-cache.conf"
SSL_PARAMS = "nginx/includes/ssl-params.conf"
SITE_FILES = ("Dockerfile", "php.ini", "www.conf")

REQUIRED = [SITE_TEMPLATE, *(f"site-template/{name}" for name in SITE_FILES)]


class TemplateStore:
    """
    Read-only access to master and internal templates.

    Example:
        store = TemplateStore()                       # packaged defaults
        store = TemplateStore(Path("master-template"))  # operator overrides
        vhost = store.read(SITE_TEMPLATE)
    """

    def __init__(self, master_dir: Optional[Path] = None):
        self.master_dir = Path(master_dir) if master_dir else DEFAULT_MASTER_DIR
        self._env = Environment(
            loader=FileSystemLoader(PACKAGE_DIR),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )

    def validate(self) -> None:
        """
        Ensure the master directory holds every required template.

        Raises:
            PrerequisiteMissingError: Listing the missing template paths
        """
        missing = self.missing()
        if missing:
            raise PrerequisiteMissingError([str(self.master_dir / name) for name in missing])

    def missing(self) -> List[str]:
        return [name for name in REQUIRED if not (self.master_dir / name).is_file()]

    def path(self, name: str) -> Path:
        """
        Resolve a master template, falling back to the packaged default.

        Optional templates (cache config, ssl params) may be absent from an
        operator's directory.
        """
        candidate = self.master_dir / name
        if candidate.is_file():
            return candidate
        return DEFAULT_MASTER_DIR / name

    def read(self, name: str) -> str:
        return self.path(name).read_text()

    def site_file(self, name: str) -> str:
        return self.read(f"site-template/{name}")

    def render_internal(self, name: str, **context: Any) -> str:
        """Render a packaged Jinja2 template."""
        return self._env.get_template(name).render(**context)


__all__ = [
    "TemplateStore",
    "SITE_TEMPLATE",
    "CACHE_CONFIG",
    "SSL_PARAMS",
    "SITE_FILES",
]
