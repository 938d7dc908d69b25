"""
Site registry persisted in the deployment's .env file.

Each site owns a pair of lines:

    SITE1_DOMAIN=example.com
    SITE1_DB_NAME=wp_example

Lines that are not SITE<N>_* entries (COMPOSE_PROJECT_NAME, comments,
anything an operator added) are preserved as written. The registry also
owns the per-site lines of two dependent files: the database init script
and the zone list of the FastCGI cache config.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional

from wpstack.config import CACHE_ZONES_BEGIN, CACHE_ZONES_END, DB_USER
from wpstack.core.site import Site, normalize_domain
from wpstack.core.tracker import ChangeTracker
from wpstack.errors import DuplicateSiteError, NotFoundError
from wpstack.logging import get_stack_logger

logger = get_stack_logger(__name__)

SITE_LINE = re.compile(r"^SITE(\d+)_([A-Z_]+)=(.*)$")


def database_lines(site: Site) -> List[str]:
    """SQL statements creating a site's database; every line names it."""
    name = site.database_name
    return [
        f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;",
        f"GRANT ALL PRIVILEGES ON `{name}`.* TO '{DB_USER}'@'%';",
    ]


def cache_zone_line(site: Site) -> str:
    """fastcgi_cache_path directive for a site's cache zone."""
    return (
        f"fastcgi_cache_path /var/cache/nginx/{site.short_name} levels=1:2 "
        f"keys_zone={site.zone_name}:100m max_size=1g inactive=60m use_temp_path=off;"
    )


def _zone_marker(site: Site) -> str:
    return f"keys_zone={site.zone_name}:"


def _read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    return path.read_text().splitlines()


def _final_newline(path: Path) -> bool:
    """False only for an existing, non-empty file that lacks one."""
    if not path.exists():
        return True
    text = path.read_text()
    return not text or text.endswith("\n")


class SiteRegistry:
    """
    Ordered record of the sites in one deployment.

    Example:
        registry = SiteRegistry(paths.registry, paths.db_init, paths.cache_config, tracker)
        site = registry.add("example.com")
        registry.list()    # [Site(domain="example.com", index=1)]
        registry.remove("example.com")
    """

    def __init__(
        self,
        registry_file: Path,
        db_init_file: Path,
        cache_config_file: Path,
        tracker: ChangeTracker,
    ):
        self.registry_file = Path(registry_file)
        self.db_init_file = Path(db_init_file)
        self.cache_config_file = Path(cache_config_file)
        self.tracker = tracker

    def initialized(self) -> bool:
        return self.registry_file.exists()

    def _entries(self) -> Dict[int, Dict[str, str]]:
        entries: Dict[int, Dict[str, str]] = {}
        for line in _read_lines(self.registry_file):
            match = SITE_LINE.match(line.strip())
            if match:
                index, key, value = int(match.group(1)), match.group(2), match.group(3).strip()
                entries.setdefault(index, {})[key] = value
        return entries

    def list(self) -> List[Site]:
        """Sites in the order their DOMAIN lines appear in the file."""
        sites = []
        seen = set()
        entries = self._entries()
        for line in _read_lines(self.registry_file):
            match = SITE_LINE.match(line.strip())
            if not match or match.group(2) != "DOMAIN":
                continue
            index = int(match.group(1))
            if index in seen:
                continue
            seen.add(index)
            sites.append(Site(domain=entries[index]["DOMAIN"], index=index))
        return sites

    def find(self, domain: str) -> Optional[Site]:
        domain = normalize_domain(domain)
        for site in self.list():
            if site.domain == domain:
                return site
        return None

    def exists(self, domain: str) -> bool:
        return self.find(domain) is not None

    def get(self, domain: str) -> Site:
        """
        Raises:
            NotFoundError: If the domain is not registered
        """
        site = self.find(domain)
        if site is None:
            raise NotFoundError(normalize_domain(domain))
        return site

    def check_available(self, domain: str, sites: Optional[List[Site]] = None) -> Site:
        """
        Validate that a domain and its derived names are free.

        Args:
            domain: Domain to check
            sites: Sites to check against (default: the registry content)

        Returns:
            The unsaved Site (index 0)

        Raises:
            DuplicateSiteError: On any collision with a registered site
        """
        candidate = Site.from_domain(domain)
        for site in (self.list() if sites is None else sites):
            if site.domain == candidate.domain:
                raise DuplicateSiteError(candidate.domain)
            if site.short_name == candidate.short_name:
                # database, cache zone and services are all named after it
                raise DuplicateSiteError(
                    candidate.domain, f"short name '{site.short_name}' is used by {site.domain}"
                )
        return candidate

    def add(self, domain: str) -> Site:
        """
        Register a site and its database and cache zone lines.

        Returns:
            The registered Site with its index

        Raises:
            DuplicateSiteError: If the domain or a derived name collides
        """
        candidate = self.check_available(domain)
        entries = self._entries()
        index = max(entries, default=0) + 1
        site = Site(domain=candidate.domain, index=index)

        lines = _read_lines(self.registry_file)
        lines.append(f"SITE{index}_DOMAIN={site.domain}")
        lines.append(f"SITE{index}_DB_NAME={site.database_name}")
        self._write(self.registry_file, lines)

        self._add_database(site)
        self._add_cache_zone(site)

        logger.info(f"Registered {site.domain} as SITE{index} (db={site.database_name})")
        return site

    def remove(self, domain: str) -> Site:
        """
        Delete a site's registry, database and cache zone lines.

        Raises:
            NotFoundError: If the domain is not registered
        """
        site = self.get(domain)

        kept = []
        for line in _read_lines(self.registry_file):
            match = SITE_LINE.match(line.strip())
            if match and int(match.group(1)) == site.index:
                continue
            kept.append(line)
        self._write(self.registry_file, kept)

        self._remove_lines(self.db_init_file, f"`{site.database_name}`")
        self._remove_lines(self.cache_config_file, _zone_marker(site))

        logger.info(f"Unregistered {site.domain}")
        return site

    def _add_database(self, site: Site) -> None:
        lines = _read_lines(self.db_init_file)
        if any(f"`{site.database_name}`" in line for line in lines):
            logger.debug(f"Database {site.database_name} already in {self.db_init_file}")
            return
        lines.extend(database_lines(site))
        self._write(self.db_init_file, lines)

    def _add_cache_zone(self, site: Site) -> None:
        lines = _read_lines(self.cache_config_file)
        if any(_zone_marker(site) in line for line in lines):
            logger.debug(f"Cache zone {site.zone_name} already in {self.cache_config_file}")
            return

        zone = cache_zone_line(site)
        if CACHE_ZONES_END in lines:
            lines.insert(lines.index(CACHE_ZONES_END), zone)
        else:
            lines.extend([CACHE_ZONES_BEGIN, zone, CACHE_ZONES_END])
        self._write(self.cache_config_file, lines)

    def _write(self, path: Path, lines: List[str]) -> None:
        ending = "\n" if _final_newline(path) else ""
        self.tracker.write_text(path, "\n".join(lines) + ending if lines else "")

    def _remove_lines(self, path: Path, needle: str) -> None:
        lines = _read_lines(path)
        kept = [line for line in lines if needle not in line]
        if len(kept) != len(lines):
            self._write(path, kept)
