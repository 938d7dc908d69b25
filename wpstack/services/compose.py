"""
Docker Compose wrapper.

Runs `docker compose` against a deployment's manifest through the
transport, so every call can be recorded in tests or printed in dry-run.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Set

from wpstack.logging import get_stack_logger
from wpstack.transport import CommandResult, Transport

logger = get_stack_logger(__name__)

PROXY_SERVICE = "nginx"
DB_SERVICE = "db"


class ComposeProject:
    """
    One compose project (one deployment).

    Example:
        compose = ComposeProject(transport, paths.manifest, "wp_production")
        compose.build(["php_example"])
        compose.up(["php_example", "redis_example"])
    """

    def __init__(self, transport: Transport, manifest: Path, project_name: str):
        self.transport = transport
        self.manifest = Path(manifest)
        self.project_name = project_name

    def _base(self) -> List[str]:
        return [
            "docker", "compose",
            "-f", str(self.manifest),
            "--project-directory", str(self.manifest.parent),
            "-p", self.project_name,
        ]

    def run(self, *args: str, input: Optional[str] = None,
            readonly: bool = False) -> CommandResult:
        return self.transport.run_command(self._base() + list(args), input=input,
                                          readonly=readonly)

    def build(self, services: Optional[List[str]] = None) -> None:
        """
        Raises:
            ExternalToolError: If the build fails
        """
        logger.info(f"Building {', '.join(services) if services else 'all services'}...")
        self.run("build", *(services or [])).check()

    def up(self, services: Optional[List[str]] = None) -> None:
        logger.info(f"Starting {', '.join(services) if services else 'all services'}...")
        self.run("up", "-d", *(services or [])).check()

    def stop(self, services: List[str]) -> None:
        self.run("stop", *services).check()

    def rm(self, services: List[str]) -> None:
        self.run("rm", "-f", "-s", *services).check()

    def down(self, volumes: bool = False) -> CommandResult:
        args = ["down", "--remove-orphans"]
        if volumes:
            args.append("-v")
        return self.run(*args)

    def logs(self, services: Optional[List[str]] = None, tail: int = 100) -> str:
        result = self.run("logs", "--no-color", "--tail", str(tail), *(services or []),
                          readonly=True).check()
        return result.output

    def running_services(self) -> Set[str]:
        """
        Names of services with a running container.

        Returns an empty set when the manifest is missing or compose fails,
        so callers can treat "unknown" as "not running".
        """
        if not self.manifest.exists():
            return set()
        result = self.run("ps", "--status", "running", "--services", readonly=True)
        if not result.ok:
            logger.debug(f"docker compose ps failed: {result.output.strip()}")
            return set()
        return {line.strip() for line in result.output.splitlines() if line.strip()}

    def is_running(self, service: str) -> bool:
        return service in self.running_services()

    @contextmanager
    def proxy_paused(self) -> Iterator[None]:
        """
        Free ports 80/443 for the duration of the block.

        Stops the reverse proxy if it is running and starts it again
        afterwards, also when the block raises.
        """
        was_running = self.is_running(PROXY_SERVICE)
        if was_running:
            logger.info("Stopping nginx to free port 80...")
            self.stop([PROXY_SERVICE])
        try:
            yield
        finally:
            if was_running:
                logger.info("Starting nginx again...")
                result = self.run("up", "-d", PROXY_SERVICE)
                if not result.ok:
                    logger.warning(f"Could not restart nginx: {result.output.strip()}")

    def execute_sql(self, sql: str) -> CommandResult:
        """Pipe SQL into the running database as root."""
        return self.run(
            "exec", "-T", DB_SERVICE, "sh", "-c",
            'exec mysql -uroot -p"$(cat /run/secrets/db_root_password)"',
            input=sql,
        )
