"""
WordPress source download.

The upstream archive is fetched once into the tool's cache directory and
extracted into each new site's webroot.
"""

from pathlib import Path

from wpstack.config import WORDPRESS_URL
from wpstack.logging import get_stack_logger
from wpstack.transport import Transport

logger = get_stack_logger(__name__)


def fetch_archive(transport: Transport, cache_dir: Path, url: str = WORDPRESS_URL) -> Path:
    """
    Download the WordPress archive unless it is already cached.

    Raises:
        ExternalToolError: If wget fails
    """
    cache_dir = Path(cache_dir)
    archive = cache_dir / "wordpress-latest.tar.gz"
    if archive.exists():
        return archive

    logger.info(f"Downloading {url} ...")
    partial = archive.with_suffix(".part")
    transport.run_command(["mkdir", "-p", str(cache_dir)]).check()
    transport.run_command(["wget", "-q", url, "-O", str(partial)]).check()
    transport.run_command(["mv", str(partial), str(archive)]).check()
    return archive


def install_into(transport: Transport, archive: Path, webroot: Path) -> bool:
    """
    Extract WordPress into an empty webroot.

    Returns:
        False if the webroot already had content and was left alone

    Raises:
        ExternalToolError: If tar fails
    """
    webroot = Path(webroot)
    if webroot.is_dir() and any(webroot.iterdir()):
        logger.info(f"{webroot} already populated, skipping download")
        return False

    transport.run_command(
        ["tar", "-xzf", str(archive), "-C", str(webroot), "--strip-components=1"]
    ).check()
    logger.info(f"WordPress extracted into {webroot}")
    return True
