"""
wpstack CLI - provision WordPress sites behind shared nginx, PHP-FPM,
MySQL and Redis containers.

Commands:
    wpstack init                 - Create a deployment and its first sites
    wpstack add <domain>         - Add one site to a deployment
    wpstack remove <domain>      - Remove one site (or --all)
    wpstack list                 - Show sites, containers and certificates
    wpstack clean                - Delete the whole deployment
    wpstack logs [domain]        - Show container logs
    wpstack version              - Show version
"""

import functools
import sys
from pathlib import Path
from typing import List, Optional

import click

from wpstack.config import DEFAULT_ENV, Settings
from wpstack.core.site import normalize_domain
from wpstack.deployment import Deployment, ProvisionReport
from wpstack.errors import InvalidInputError, WpStackError
from wpstack.logging import set_level, setup_logging
from wpstack.transport import LocalTransport


def handle_errors(func):
    """Turn handled errors into a red message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except WpStackError as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            sys.exit(1)
        except OSError as e:
            click.secho(f"I/O error: {e}", fg="red", err=True)
            sys.exit(1)

    return wrapper


@click.group(invoke_without_command=True)
@click.option('--env', 'env_name', envvar='DEPLOY_ENV', default=DEFAULT_ENV, show_default=True,
              help='Deployment name')
@click.option('--dry', is_flag=True, help='Print intended operations without changing anything')
@click.option('--base-dir', type=click.Path(file_okay=False, path_type=Path),
              envvar='WPSTACK_BASE_DIR', help='Directory holding deployments/ (default: cwd)')
@click.option('--templates', type=click.Path(exists=True, file_okay=False, path_type=Path),
              envvar='WPSTACK_TEMPLATES', help='Alternate master-template directory')
@click.option('--verbose', '-v', is_flag=True, help='Show debug output and external commands')
@click.pass_context
def cli(ctx, env_name: str, dry: bool, base_dir: Optional[Path],
        templates: Optional[Path], verbose: bool):
    """wpstack - multi-site WordPress on Docker Compose."""
    ctx.ensure_object(dict)

    settings = Settings.from_env()
    settings.env_name = env_name
    settings.dry_run = dry
    if base_dir:
        settings.base_dir = base_dir
    if templates:
        settings.templates_dir = templates

    setup_logging(settings.log_level)
    if verbose:
        set_level("DEBUG")

    ctx.obj["settings"] = settings

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _deployment(ctx, email: Optional[str] = None) -> Deployment:
    """Build the Deployment for this invocation (tests inject obj['transport'])."""
    settings: Settings = ctx.obj["settings"]
    if email:
        settings.email = email
    transport = ctx.obj.get("transport") or LocalTransport(dry_run=settings.dry_run)
    if settings.dry_run:
        click.secho("Dry run: no changes will be made.\n", fg="cyan")
    return Deployment(settings, transport)


def _domain_value(value: str) -> str:
    try:
        return normalize_domain(value)
    except InvalidInputError as e:
        raise click.BadParameter(str(e))


def _prompt_domains() -> List[str]:
    total = click.prompt("How many sites do you want to create?", type=click.IntRange(min=1))

    domains: List[str] = []
    while len(domains) < total:
        domain = click.prompt(f"Domain #{len(domains) + 1} (e.g. example.com)",
                              value_proc=_domain_value)
        if domain in domains:
            click.secho(f"{domain} was already entered.", fg="yellow")
            continue
        domains.append(domain)
    return domains


def _confirm_typed(message: str) -> bool:
    """Require the literal word 'yes'."""
    answer = click.prompt(f"{message} Type 'yes' to continue", default="", show_default=False)
    return answer.strip() == "yes"


def _print_report(deployment: Deployment, report: ProvisionReport) -> None:
    click.echo()
    for site in report.added:
        symbol = click.style("+", fg="green")
        click.echo(f"  {symbol} {site.domain} ... ", nl=False)
        click.secho("✓ Done", fg="green")

    for domain in report.skipped:
        click.echo(f"    {domain} (already registered)")

    if report.certificate_failures:
        click.secho("\nCertificate issuance failed for:", fg="yellow")
        for domain, error in report.certificate_failures.items():
            click.secho(f"  ! {domain}: {error}", fg="yellow")
        click.echo("The sites are registered without certificates. Once DNS points here and")
        click.echo("port 80 is reachable, issue them with certbot and copy the files into")
        click.echo(f"  {deployment.paths.ssl_dir}/<domain>/")

    click.secho(f"\nDeployment '{deployment.name}' ready: {deployment.paths.root}", fg="green")
    if not report.started:
        click.echo(f"Start it with: docker compose -f {deployment.paths.manifest} up -d --build")


@cli.command()
@click.option('--domain', '-d', 'domains', multiple=True,
              help='Domain to provision (repeatable; skips the prompts)')
@click.option('--email', help="Let's Encrypt contact email (default: admin@<domain>)")
@click.option('--up/--no-up', 'start', default=None, help='Build and start containers afterwards')
@click.option('--skip-certs', is_flag=True, help='Do not request certificates')
@click.option('--yes', '-y', is_flag=True, help='Reuse an existing deployment without asking')
@click.pass_context
@handle_errors
def init(ctx, domains: tuple, email: Optional[str], start: Optional[bool],
         skip_certs: bool, yes: bool):
    """
    Create a deployment and provision its sites.

    Example:
        wpstack init
        wpstack --env staging init -d example.com -d example.org --up
    """
    deployment = _deployment(ctx, email)
    deployment.check_prerequisites("init")

    if deployment.exists() and not yes:
        if not click.confirm(f"Deployment '{deployment.name}' already exists at "
                             f"{deployment.paths.root}. Reuse it?"):
            click.echo("Aborted.")
            return

    if domains:
        domain_list = [normalize_domain(d) for d in domains]
    else:
        domain_list = _prompt_domains()

    if start is None:
        start = click.confirm("Run docker compose up after setup?", default=True)

    report = deployment.init(domain_list, start=start, skip_certs=skip_certs)
    _print_report(deployment, report)


@cli.command()
@click.argument('domain')
@click.option('--email', help="Let's Encrypt contact email (default: admin@<domain>)")
@click.option('--start/--no-start', default=True, show_default=True,
              help='Build and start the new containers')
@click.option('--skip-certs', is_flag=True, help='Do not request a certificate')
@click.pass_context
@handle_errors
def add(ctx, domain: str, email: Optional[str], start: bool, skip_certs: bool):
    """
    Add a site to an existing deployment.

    Example:
        wpstack add blog.example.com
    """
    deployment = _deployment(ctx, email)
    deployment.check_prerequisites("add")

    report = deployment.add(domain, start=start, skip_certs=skip_certs)
    _print_report(deployment, report)


@cli.command()
@click.argument('domain', required=False)
@click.option('--all', 'remove_all', is_flag=True, help='Remove every site')
@click.pass_context
@handle_errors
def remove(ctx, domain: Optional[str], remove_all: bool):
    """
    Remove a site (containers, files, registry entry, renewal job).

    Example:
        wpstack remove blog.example.com
        wpstack remove --all
    """
    if bool(domain) == remove_all:
        raise InvalidInputError("Specify exactly one of DOMAIN or --all")

    deployment = _deployment(ctx)
    deployment.check_prerequisites("remove")

    if not remove_all:
        deployment.remove(domain)
        return

    deployment.require_initialized()
    if not deployment.sites:
        click.echo("No sites registered.")
        return

    click.secho(f"This removes {len(deployment.sites)} site(s) from "
                f"'{deployment.name}':", fg="yellow")
    for site in deployment.sites:
        click.echo(f"  - {site.domain}")
    if not _confirm_typed("Continue?"):
        click.echo("Aborted.")
        return

    deployment.remove_all()


@cli.command('list')
@click.pass_context
@handle_errors
def list_sites(ctx):
    """List sites with container state and certificate expiry."""
    deployment = _deployment(ctx)
    deployment.check_prerequisites("list")

    if not deployment.sites:
        click.echo(f"No sites registered in '{deployment.name}'.")
        return

    click.echo(f"{'#':<4} {'DOMAIN':<32} {'SHORT':<16} {'DATABASE':<20} {'CONTAINER':<10} CERTIFICATE")
    click.echo("-" * 100)

    for row in deployment.status():
        site = row.site
        state = click.style(f"{'running':<10}", fg="green") if row.running \
            else click.style(f"{'stopped':<10}", fg="red")
        click.echo(f"{site.index:<4} {site.domain:<32} {site.short_name:<16} "
                   f"{site.database_name:<20} {state} {row.certificate}")


@cli.command()
@click.pass_context
@handle_errors
def clean(ctx):
    """Delete the deployment, including secrets and certificates."""
    deployment = _deployment(ctx)
    deployment.check_prerequisites("clean")

    if not deployment.exists():
        click.echo(f"Deployment '{deployment.name}' does not exist. Nothing to clean.")
        return

    click.secho(f"This deletes {deployment.paths.root}, its containers, volumes, "
                "secrets and certificates.", fg="red")
    if not _confirm_typed("Are you sure?"):
        click.echo("Aborted.")
        return

    deployment.clean()


@cli.command()
@click.argument('domain', required=False)
@click.option('--tail', default=100, show_default=True, help='Lines per service')
@click.pass_context
@handle_errors
def logs(ctx, domain: Optional[str], tail: int):
    """Show logs of a site's containers, or of every service."""
    deployment = _deployment(ctx)
    deployment.check_prerequisites("logs")
    click.echo(deployment.logs(domain, tail=tail))


@cli.command()
def version():
    """Show wpstack version."""
    from wpstack import __version__
    click.echo(f"wpstack version {__version__}")


def main():
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
