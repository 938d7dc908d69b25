"""
Configuration for wpstack.

Settings come from environment variables first and are then overridden by
command line options. DeploymentPaths derives the on-disk layout of one
named deployment.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from wpstack.errors import InvalidInputError

DEFAULT_ENV = "production"
ENV_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")

WORDPRESS_URL = "https://wordpress.org/latest.tar.gz"
LETSENCRYPT_LIVE_DIR = "/etc/letsencrypt/live"
CERT_FILES = ("fullchain.pem", "privkey.pem", "chain.pem")

# Sundays at 03:00
RENEWAL_SCHEDULE = "0 3 * * 0"

DB_USER = "wp_user"
MYSQL_IMAGE = "mysql:8.0"
NGINX_IMAGE = "nginx:stable-alpine"
REDIS_IMAGE = "redis:alpine"

CACHE_ZONES_BEGIN = "# BEGIN wpstack cache zones"
CACHE_ZONES_END = "# END wpstack cache zones"

# Tools each command needs before it is allowed to touch anything
PREREQUISITES = {
    "init": ["docker", "certbot", "openssl", "wget", "tar", "crontab"],
    "add": ["docker", "certbot", "openssl", "wget", "tar", "crontab"],
    "remove": ["docker", "crontab"],
    "list": ["docker", "openssl"],
    "clean": ["docker", "crontab"],
    "logs": ["docker"],
}


@dataclass
class Settings:
    """Runtime settings shared by all commands."""
    base_dir: Path = field(default_factory=Path.cwd)
    env_name: str = DEFAULT_ENV
    dry_run: bool = False
    templates_dir: Optional[Path] = None
    email: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Reads DEPLOY_ENV, WPSTACK_BASE_DIR, WPSTACK_TEMPLATES,
        WPSTACK_EMAIL and WPSTACK_LOG_LEVEL.
        """
        templates = os.getenv("WPSTACK_TEMPLATES")
        return cls(
            base_dir=Path(os.getenv("WPSTACK_BASE_DIR") or Path.cwd()),
            env_name=os.getenv("DEPLOY_ENV") or DEFAULT_ENV,
            templates_dir=Path(templates) if templates else None,
            email=os.getenv("WPSTACK_EMAIL") or None,
            log_level=os.getenv("WPSTACK_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> "Settings":
        """
        Raises:
            InvalidInputError: If the deployment name is unusable as a
                directory and compose project name
        """
        if not ENV_NAME.match(self.env_name):
            raise InvalidInputError(
                f"Invalid deployment name '{self.env_name}' "
                "(lowercase letters, digits, '-' and '_' only)"
            )
        return self

    @property
    def master_dir(self) -> Optional[Path]:
        """Operator master templates: --templates, else ./master-template if present."""
        if self.templates_dir:
            return self.templates_dir
        legacy = self.base_dir / "master-template"
        return legacy if legacy.is_dir() else None

    @property
    def paths(self) -> "DeploymentPaths":
        return DeploymentPaths(self.base_dir.resolve(), self.env_name)


@dataclass(frozen=True)
class DeploymentPaths:
    """Filesystem layout of one deployment."""
    base_dir: Path
    env_name: str

    @property
    def root(self) -> Path:
        return self.base_dir / "deployments" / self.env_name

    @property
    def registry(self) -> Path:
        return self.root / ".env"

    @property
    def manifest(self) -> Path:
        return self.root / "docker-compose.yml"

    @property
    def nginx_dir(self) -> Path:
        return self.root / "nginx"

    @property
    def includes_dir(self) -> Path:
        return self.nginx_dir / "includes"

    @property
    def cache_config(self) -> Path:
        return self.includes_dir / "fastcgi-cache.conf"

    @property
    def ssl_params(self) -> Path:
        return self.includes_dir / "ssl-params.conf"

    @property
    def db_init(self) -> Path:
        return self.root / "scripts" / "init-databases.sql"

    @property
    def secrets_dir(self) -> Path:
        return self.root / "secrets"

    @property
    def db_password(self) -> Path:
        return self.secrets_dir / "db_password.txt"

    @property
    def db_root_password(self) -> Path:
        return self.secrets_dir / "db_root_password.txt"

    @property
    def ssl_dir(self) -> Path:
        return self.root / "ssl" / "live"

    @property
    def state_dir(self) -> Path:
        """Tool-private state kept outside the deployment tree."""
        return self.base_dir / ".wpstack"

    @property
    def snapshots_dir(self) -> Path:
        return self.state_dir / "snapshots"

    @property
    def download_cache(self) -> Path:
        return self.state_dir / "cache"

    def vhost(self, domain: str) -> Path:
        return self.nginx_dir / f"{domain}.conf"

    def site_dir(self, short_name: str) -> Path:
        return self.root / f"site-{short_name}"

    def webroot(self, short_name: str) -> Path:
        return self.site_dir(short_name) / "wordpress"

    def cert_dir(self, domain: str) -> Path:
        return self.ssl_dir / domain
