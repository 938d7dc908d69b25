"""
Deployment - one named set of WordPress sites sharing nginx and MySQL.

The Deployment object is the aggregate every command works on. It owns the
registry, the change tracker and the wrappers around external tools, and
keeps the in-memory site list in step with the registry file so the
manifest can always be rebuilt from it.

Example:
    settings = Settings(base_dir=Path("/srv/wp"), env_name="staging")
    deployment = Deployment(settings, LocalTransport())
    report = deployment.init(["example.com", "example.org"], start=True)
    deployment.add("blog.example.net")
    deployment.remove("example.org")
"""

import shutil
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from wpstack.config import CACHE_ZONES_BEGIN, CACHE_ZONES_END, PREREQUISITES, Settings
from wpstack.core.manifest import ManifestGenerator, project_name_for
from wpstack.core.registry import SiteRegistry, database_lines
from wpstack.core.render import render, unresolved
from wpstack.core.site import Site, normalize_domain
from wpstack.core.tracker import ChangeTracker
from wpstack.errors import (
    CertificateError,
    ExternalToolError,
    NotInitializedError,
    PrerequisiteMissingError,
)
from wpstack.logging import get_stack_logger
from wpstack.services import wordpress
from wpstack.services.certs import CertificateProvisioner, CertificateStatus
from wpstack.services.compose import DB_SERVICE, PROXY_SERVICE, ComposeProject
from wpstack.services.cron import CronTable
from wpstack.services.secrets import ensure_secret
from wpstack.templates import CACHE_CONFIG, SITE_FILES, SITE_TEMPLATE, SSL_PARAMS, TemplateStore
from wpstack.transport import Transport

logger = get_stack_logger(__name__)

DB_INIT_HEADER = "-- WordPress databases (managed by wpstack; one site per line pair)\n"


@dataclass
class ProvisionReport:
    """Outcome of init/add."""
    added: List[Site] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    certificate_failures: Dict[str, CertificateError] = field(default_factory=dict)
    started: bool = False


@dataclass
class SiteStatus:
    """One row of `wpstack list`."""
    site: Site
    running: bool
    certificate: CertificateStatus


class Deployment:
    """
    Aggregate root for a deployment directory.

    Commands:
        init, add, remove, remove_all, status, clean
    """

    def __init__(
        self,
        settings: Settings,
        transport: Transport,
        templates: Optional[TemplateStore] = None,
    ):
        self.settings = settings.validate()
        self.paths = settings.paths
        self.transport = transport
        self.templates = templates or TemplateStore(settings.master_dir)
        self.tracker = ChangeTracker(self.paths.snapshots_dir, dry_run=settings.dry_run)
        self.registry = SiteRegistry(
            self.paths.registry,
            self.paths.db_init,
            self.paths.cache_config,
            self.tracker,
        )
        self.manifest = ManifestGenerator(self.templates)
        self.compose = ComposeProject(transport, self.paths.manifest, self.project_name)
        self.certs = CertificateProvisioner(
            transport, self.tracker, self.paths.ssl_dir, email=settings.email
        )
        self.cron = CronTable(transport)
        self.sites: List[Site] = self.registry.list()

    @property
    def name(self) -> str:
        return self.settings.env_name

    @property
    def project_name(self) -> str:
        return project_name_for(self.name)

    @property
    def dry_run(self) -> bool:
        return self.settings.dry_run

    def exists(self) -> bool:
        return self.paths.root.exists()

    def initialized(self) -> bool:
        return self.registry.initialized()

    def require_initialized(self) -> None:
        """
        Raises:
            NotInitializedError: If `init` has not been run for this deployment
        """
        if not self.initialized():
            raise NotInitializedError(self.name)

    def check_prerequisites(self, command: str) -> None:
        """
        Raises:
            PrerequisiteMissingError: Listing every missing tool
        """
        missing = [tool for tool in PREREQUISITES.get(command, [])
                   if not self.transport.which(tool)]
        if missing:
            raise PrerequisiteMissingError(missing)

    def find(self, domain: str) -> Optional[Site]:
        domain = normalize_domain(domain)
        for site in self.sites:
            if site.domain == domain:
                return site
        return None

    # ----- building blocks -------------------------------------------------

    def create(self) -> None:
        """Create the deployment skeleton; existing files are kept."""
        paths = self.paths
        logger.info(f"Preparing deployment '{self.name}' in {paths.root}")

        for directory in (paths.root, paths.includes_dir, paths.db_init.parent, paths.ssl_dir):
            self.tracker.mkdir(directory)
        self.tracker.mkdir(paths.secrets_dir, mode=0o700)

        if not paths.registry.exists():
            self.tracker.write_text(paths.registry, f"COMPOSE_PROJECT_NAME={self.project_name}\n")

        if not paths.ssl_params.exists():
            self.tracker.write_text(paths.ssl_params, self.templates.read(SSL_PARAMS))

        if not paths.cache_config.exists():
            zones = f"{CACHE_ZONES_BEGIN}\n{CACHE_ZONES_END}"
            self.tracker.write_text(
                paths.cache_config,
                render(self.templates.read(CACHE_CONFIG), {"CACHE_ZONES": zones}),
            )

        if not paths.db_init.exists():
            self.tracker.write_text(paths.db_init, DB_INIT_HEADER)

        ensure_secret(paths.db_password, self.transport, self.tracker)
        ensure_secret(paths.db_root_password, self.transport, self.tracker)

    def add_site(self, domain: str) -> Site:
        """
        Write a site's files, then register it.

        Raises:
            DuplicateSiteError: If the domain or a derived name is taken
            ExternalToolError: If the WordPress download or extraction fails
        """
        candidate = self.registry.check_available(domain, self.sites)
        tokens = candidate.tokens()
        logger.info(
            f"Processing {candidate.domain} "
            f"(short={candidate.short_name} zone={candidate.zone_name})"
        )

        site_dir = self.paths.site_dir(candidate.short_name)
        webroot = self.paths.webroot(candidate.short_name)
        self.tracker.mkdir(webroot)
        for name in SITE_FILES:
            self._write_rendered(site_dir / name, self.templates.site_file(name), tokens)

        archive = wordpress.fetch_archive(self.transport, self.paths.download_cache)
        wordpress.install_into(self.transport, archive, webroot)

        self._write_rendered(self.paths.vhost(candidate.domain),
                             self.templates.read(SITE_TEMPLATE), tokens)

        site = self.registry.add(candidate.domain)
        self.sites.append(site)
        return site

    def _write_rendered(self, path: Path, template: str, tokens: Dict[str, str]) -> None:
        text = render(template, tokens)
        leftover = unresolved(text)
        if leftover:
            logger.warning(f"{path.name}: unknown placeholders left as is: {', '.join(leftover)}")
        self.tracker.write_text(path, text)

    def remove_site_files(self, site: Site) -> None:
        """Delete a site's artifacts and registry entries."""
        self.tracker.remove(self.paths.vhost(site.domain))
        self.tracker.remove(self.paths.site_dir(site.short_name))
        self.certs.remove(site.domain)
        self.registry.remove(site.domain)
        self.sites = [s for s in self.sites if s.domain != site.domain]

    def write_manifest(self) -> None:
        self.manifest.write(self.paths.manifest, self.sites, self.name, self.tracker)

    def provision_certificates(self, sites: List[Site]) -> Dict[str, CertificateError]:
        return self.certs.issue_all([site.domain for site in sites], self.compose.proxy_paused)

    def schedule_renewals(self, sites: List[Site]) -> None:
        for site in sites:
            self.certs.schedule_renewal(
                self.cron,
                site.domain,
                self.paths.webroot(site.short_name),
                self.paths.manifest,
            )

    # ----- commands --------------------------------------------------------

    def init(self, domains: List[str], start: bool = False,
             skip_certs: bool = False) -> ProvisionReport:
        """
        Create the deployment and provision every domain.

        Domains that are already registered are skipped, so init can be
        re-run on an existing deployment. Certificate failures do not abort
        the run; any other error rolls everything back.
        """
        self.templates.validate()
        report = ProvisionReport()

        with self.tracker.recording():
            self.create()
            for domain in domains:
                existing = self.find(domain)
                if existing is not None:
                    logger.warning(f"{existing.domain} already registered, skipping")
                    report.skipped.append(existing.domain)
                    continue
                report.added.append(self.add_site(domain))

            self.write_manifest()

            if not skip_certs:
                report.certificate_failures = self.provision_certificates(report.added)
                self.schedule_renewals(report.added)

            if start:
                self.compose.build()
                self.compose.up()
                report.started = True

        return report

    def add(self, domain: str, start: bool = True,
            skip_certs: bool = False) -> ProvisionReport:
        """
        Provision one more site on an existing deployment.

        Raises:
            NotInitializedError: If the deployment does not exist
            DuplicateSiteError: If the domain or a derived name is taken
        """
        self.require_initialized()
        self.templates.validate()
        report = ProvisionReport()

        with self.tracker.recording():
            site = self.add_site(domain)
            report.added.append(site)
            self.write_manifest()

            if not skip_certs:
                report.certificate_failures = self.provision_certificates([site])
                self.schedule_renewals([site])

            if start:
                running = self.compose.running_services()
                if DB_SERVICE in running:
                    # init scripts only run on an empty data volume
                    sql = "\n".join(database_lines(site)) + "\n"
                    self.compose.execute_sql(sql).check()
                self.compose.build([site.php_service])
                self.compose.up(site.services)
                self.compose.up([PROXY_SERVICE])
                report.started = True

        return report

    def remove(self, domain: str) -> Site:
        """
        Stop and delete one site.

        Raises:
            NotInitializedError: If the deployment does not exist
            NotFoundError: If the domain is not registered
        """
        self.require_initialized()
        site = self.registry.get(domain)

        with self.tracker.recording():
            running = self.compose.running_services()
            if self.paths.manifest.exists():
                if running.intersection(site.services):
                    self.compose.stop(site.services)
                self.compose.rm(site.services)

            self.remove_site_files(site)
            self.write_manifest()
            self.cron.uninstall(site.domain)

            if PROXY_SERVICE in running:
                self.compose.up([PROXY_SERVICE])

        logger.success(f"Removed {site.domain}")
        return site

    def remove_all(self) -> List[Site]:
        """Stop the stack and delete every site; shared services stay defined."""
        self.require_initialized()
        removed = list(self.sites)

        with self.tracker.recording():
            if self.paths.manifest.exists():
                self.compose.down().check()
            for site in removed:
                self.remove_site_files(site)
                self.cron.uninstall(site.domain)
            self.write_manifest()

        logger.success(f"Removed {len(removed)} site(s) from '{self.name}'")
        return removed

    def status(self) -> List[SiteStatus]:
        """Liveness and certificate state of every site."""
        running = self.compose.running_services()
        return [
            SiteStatus(
                site=site,
                running=site.php_service in running,
                certificate=self.certs.status(site.domain),
            )
            for site in self.sites
        ]

    def logs(self, domain: Optional[str] = None, tail: int = 100) -> str:
        self.require_initialized()
        services = None
        if domain:
            services = self.registry.get(domain).services
        return self.compose.logs(services, tail=tail)

    def clean(self) -> None:
        """
        Delete the whole deployment, including secrets and certificates.

        Not tracked: this cannot be rolled back. Failures to stop containers
        or remove cron lines are reported and do not stop the cleanup.
        """
        if self.paths.manifest.exists():
            result = self.compose.down(volumes=True)
            if not result.ok:
                logger.warning(f"docker compose down failed: {result.output.strip()}")

        for site in self.sites:
            try:
                self.cron.uninstall(site.domain)
            except ExternalToolError as e:
                logger.warning(f"Could not remove renewal job for {site.domain}: {e}")

        if self.dry_run:
            logger.dry_run(f"rm -rf {self.paths.root}")
        elif self.paths.root.exists():
            shutil.rmtree(self.paths.root)
            logger.action("delete", str(self.paths.root))

        self.sites = []
        logger.success(f"Deployment '{self.name}' removed")


__all__ = ["Deployment", "ProvisionReport", "SiteStatus"]
