"""
TLS certificate provisioning with certbot.

Issuance uses the standalone authenticator, so port 80 must be free: the
caller passes a context manager (normally ComposeProject.proxy_paused)
that stops the reverse proxy for the duration of the request. Renewal is
scheduled as a cron job using the webroot authenticator, which works
while nginx keeps serving the site.
"""

import shlex
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from wpstack.config import CERT_FILES, LETSENCRYPT_LIVE_DIR, RENEWAL_SCHEDULE
from wpstack.core.tracker import ChangeTracker
from wpstack.errors import CertificateError
from wpstack.logging import get_stack_logger
from wpstack.services.cron import CronTable
from wpstack.transport import Transport

logger = get_stack_logger(__name__)

KEY_FILE = "privkey.pem"
KEY_MODE = 0o600
PUBLIC_MODE = 0o644


class CertificateState(Enum):
    MISSING = "missing"
    VALID = "valid"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


@dataclass
class CertificateStatus:
    """Certificate state of one domain in the local store."""
    domain: str
    state: CertificateState
    expires: Optional[datetime] = None

    def __str__(self):
        if self.expires and self.state in (CertificateState.VALID, CertificateState.EXPIRED):
            return f"{self.state.value} ({self.expires.strftime('%Y-%m-%d')})"
        return self.state.value


@dataclass
class CertificateMaterial:
    """Files copied into the store for a domain."""
    domain: str
    directory: Path
    files: Dict[str, Path] = field(default_factory=dict)

    @property
    def key(self) -> Path:
        return self.files[KEY_FILE]


def parse_enddate(output: str) -> datetime:
    """
    Parse `openssl x509 -enddate` output.

    Example:
        parse_enddate("notAfter=Jan  5 12:00:00 2027 GMT")
    """
    value = output.strip().split("=", 1)[-1].strip()
    parsed = datetime.strptime(value, "%b %d %H:%M:%S %Y %Z")
    return parsed.replace(tzinfo=timezone.utc)


class CertificateProvisioner:
    """
    Requests certificates and keeps the deployment's certificate store.

    Example:
        certs = CertificateProvisioner(transport, tracker, paths.ssl_dir, "ops@example.com")
        with_proxy = compose.proxy_paused
        failures = certs.issue_all(["example.com", "example.org"], with_proxy)
    """

    def __init__(
        self,
        transport: Transport,
        tracker: ChangeTracker,
        store_dir: Path,
        email: Optional[str] = None,
        live_dir: str = LETSENCRYPT_LIVE_DIR,
    ):
        self.transport = transport
        self.tracker = tracker
        self.store_dir = Path(store_dir)
        self.email = email
        self.live_dir = live_dir

    def store_path(self, domain: str) -> Path:
        return self.store_dir / domain

    def _email_for(self, domain: str) -> str:
        return self.email or f"admin@{domain}"

    def certbot_args(self, domain: str) -> list[str]:
        return [
            "certbot", "certonly", "--standalone",
            "-d", domain, "-d", f"www.{domain}",
            "--non-interactive", "--agree-tos", "--no-eff-email",
            "--email", self._email_for(domain),
        ]

    def issue(
        self,
        domain: str,
        proxy: Optional[Callable[[], AbstractContextManager]] = None,
    ) -> CertificateMaterial:
        """
        Request a certificate and copy it into the store.

        Args:
            domain: Domain to certify (www.<domain> is included)
            proxy: Factory for a context manager that frees port 80

        Raises:
            CertificateError: If certbot fails or the files cannot be copied
        """
        logger.info(f"Requesting certificate for {domain} (standalone)...")
        args = self.certbot_args(domain)

        # the proxy comes back only once its vhost's certificate files exist
        with (proxy() if proxy else nullcontext()):
            result = self.transport.run_command(args)
            if not result.ok:
                raise CertificateError(
                    domain,
                    f"certbot failed for {domain} (exit {result.exit_code})",
                    args=args,
                    exit_code=result.exit_code,
                    output=result.output,
                )

            return self.install(domain)

    def install(self, domain: str) -> CertificateMaterial:
        """
        Copy certbot's live files for a domain into the store.

        Raises:
            CertificateError: If a file cannot be read
        """
        source_dir = Path(self.live_dir) / domain
        target_dir = self.store_path(domain)
        material = CertificateMaterial(domain=domain, directory=target_dir)

        if self.tracker.dry_run:
            logger.dry_run(f"copy {', '.join(CERT_FILES)} from {source_dir} to {target_dir}")
            return material

        self.tracker.mkdir(target_dir)
        for name in CERT_FILES:
            source = source_dir / name
            try:
                content = self.transport.read_file(str(source))
            except OSError as e:
                raise CertificateError(domain, f"Cannot read {source}: {e}") from e

            mode = KEY_MODE if name == KEY_FILE else PUBLIC_MODE
            material.files[name] = self.tracker.write_bytes(target_dir / name, content, mode=mode)

        logger.success(f"Certificate for {domain} stored in {target_dir}")
        return material

    def issue_all(
        self,
        domains: Iterable[str],
        proxy: Optional[Callable[[], AbstractContextManager]] = None,
    ) -> Dict[str, CertificateError]:
        """
        Issue certificates one domain at a time.

        A failure is logged and recorded, and the next domain is still
        processed.

        Returns:
            Mapping of domain to the error for each failed domain
        """
        failures: Dict[str, CertificateError] = {}
        for domain in domains:
            try:
                self.issue(domain, proxy)
            except CertificateError as e:
                logger.error(f"{e}. Continuing with next domain.")
                if e.output.strip():
                    logger.debug(e.output.strip())
                failures[domain] = e
        return failures

    def status(self, domain: str, now: Optional[datetime] = None) -> CertificateStatus:
        """Inspect the stored certificate of a domain."""
        fullchain = self.store_path(domain) / "fullchain.pem"
        if not fullchain.exists():
            return CertificateStatus(domain, CertificateState.MISSING)

        result = self.transport.run_command(
            ["openssl", "x509", "-enddate", "-noout", "-in", str(fullchain)],
            readonly=True,
        )
        if not result.ok:
            return CertificateStatus(domain, CertificateState.UNKNOWN)

        try:
            expires = parse_enddate(result.output)
        except ValueError:
            return CertificateStatus(domain, CertificateState.UNKNOWN)

        now = now or datetime.now(timezone.utc)
        state = CertificateState.VALID if expires > now else CertificateState.EXPIRED
        return CertificateStatus(domain, state, expires)

    def remove(self, domain: str) -> None:
        self.tracker.remove(self.store_path(domain))

    def renewal_line(self, domain: str, webroot: Path, manifest: Path) -> str:
        """Cron line renewing a domain through its webroot."""
        live = Path(self.live_dir) / domain
        store = self.store_path(domain)
        q = shlex.quote
        renew = " ".join([
            "certbot", "certonly", "--webroot", "-w", q(str(webroot)),
            "-d", q(domain), "-d", q(f"www.{domain}"),
            "--quiet", "--keep-until-expiring", "--non-interactive",
        ])
        copy = " ".join(
            ["cp", "-L"] + [q(str(live / name)) for name in CERT_FILES] + [q(str(store)) + "/"]
        )
        protect = f"chmod 600 {q(str(store / KEY_FILE))}"
        restart = f"docker compose -f {q(str(manifest))} restart nginx"
        return f"{RENEWAL_SCHEDULE} {renew} && {copy} && {protect} && {restart}"

    def schedule_renewal(self, cron: CronTable, domain: str, webroot: Path,
                         manifest: Path) -> None:
        """
        Install (or replace) the renewal job of a domain.

        Raises:
            ExternalToolError: If crontab fails
        """
        cron.install(domain, self.renewal_line(domain, webroot, manifest))
