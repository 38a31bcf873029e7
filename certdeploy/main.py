"""
certdeploy — CLI entrypoint.

Usage:
    certdeploy --help
    certdeploy install example.com
    certdeploy install --all --force
    certdeploy plan example.com
    certdeploy config check example.com
    certdeploy issue example.com
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from certdeploy import __version__
from certdeploy.core.config.paths import DEFAULT_WORKDIR
from certdeploy.core.observability.logging_config import resolve_level, setup_logging

_STATUS_STYLE = {
    "built": ("✓", "green"),
    "planned": ("→", "cyan"),
    "skipped": ("⊘", "white"),
    "failed": ("✗", "red"),
}


@click.group()
@click.version_option(version=__version__, prog_name="certdeploy")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--workdir",
    "-w",
    type=click.Path(file_okay=False),
    default=DEFAULT_WORKDIR,
    show_default=True,
    help="getssl working directory.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool, workdir: str) -> None:
    """certdeploy — install ACME certificates where they are needed."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["workdir"] = Path(workdir).expanduser()

    # ── Logging setup (once, at process start) ──────────────────
    _configure_logging(debug, verbose, quiet)


def _configure_logging(debug: bool, verbose: bool, quiet: bool) -> None:
    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ.get("CERTDEPLOY_LOG_LEVEL")),
        log_file=os.environ.get("CERTDEPLOY_LOG_FILE"),
        log_file_level=os.environ.get("CERTDEPLOY_LOG_FILE_LEVEL"),
    )


# ── install ─────────────────────────────────────────────────────


@cli.command()
@click.argument("domain", required=False)
@click.option("--all", "-a", "all_domains", is_flag=True, help="Install every domain in the work dir.")
@click.option("--force", "-f", is_flag=True, help="Rebuild everything (reused DH parameters excepted).")
@click.option("--text", "-t", "include_text", is_flag=True, help="Also write the text reports.")
@click.option("--dry-run", is_flag=True, help="Plan but don't build or deliver.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging.")
@click.pass_context
def install(
    ctx: click.Context,
    domain: str | None,
    all_domains: bool,
    force: bool,
    include_text: bool,
    dry_run: bool,
    as_json: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Build and install the artifacts of DOMAIN (or of all domains)."""
    from certdeploy.core.errors import InstallError
    from certdeploy.core.use_cases.install import install_all, install_domain

    if quiet or debug:
        ctx.obj["quiet"] = ctx.obj["quiet"] or quiet
        ctx.obj["debug"] = ctx.obj["debug"] or debug
        _configure_logging(ctx.obj["debug"], ctx.obj["verbose"], ctx.obj["quiet"])

    if bool(domain) == all_domains:
        raise click.UsageError("Give either a DOMAIN or --all.")

    workdir = ctx.obj["workdir"]
    options = {"force": force, "include_text": include_text, "dry_run": dry_run}

    if all_domains:
        try:
            results = install_all(workdir, **options)
        except InstallError as e:
            click.secho(f"❌ {e.diagnostic()}", fg="red", err=True)
            sys.exit(1)
    else:
        results = [install_domain(domain, workdir, **options)]

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        sys.exit(0 if all(r.ok for r in results) else 1)

    if not results:
        click.secho(f"⚠️  No domains found in {workdir}", fg="yellow")
        return

    for result in results:
        _print_install(result, ctx.obj["quiet"])

    if not all(r.ok for r in results):
        sys.exit(1)


def _print_install(result, quiet: bool) -> None:
    if result.report and not quiet:
        mode = " (dry run)" if result.report.dry_run else ""
        click.secho(f"\n🔐 {result.domain}{mode}", fg="cyan", bold=True)
        for outcome in result.report.outcomes:
            icon, color = _STATUS_STYLE.get(outcome.status, ("•", "white"))
            click.secho(f"   {icon} {outcome.kind}", fg=color, nl=False)
            click.echo(f"  → {outcome.output}  ({outcome.reason})")
        if result.reloaded:
            click.secho("   🔄 Reload command ran", fg="green")

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
    elif not quiet:
        built = len(result.report.built) if result.report else 0
        click.secho(f"✅ {result.domain}: {built} artifact(s) built", fg="green")


# ── plan ────────────────────────────────────────────────────────


@cli.command()
@click.argument("domain")
@click.option("--force", "-f", is_flag=True, help="Plan a forced rebuild.")
@click.option("--text", "-t", "include_text", is_flag=True, help="Include the text reports.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, domain: str, force: bool, include_text: bool, as_json: bool) -> None:
    """Show what an install of DOMAIN would build, and why."""
    from certdeploy.core.config.loader import load_domain_config
    from certdeploy.core.config.paths import WorkPaths
    from certdeploy.core.config.settings_loader import load_settings
    from certdeploy.core.engine.planner import build_plan
    from certdeploy.core.errors import InstallError

    paths = WorkPaths.for_domain(ctx.obj["workdir"], domain)
    try:
        settings = load_settings(paths.workdir)
        config = load_domain_config(domain, paths.workdir)
        result = build_plan(config, paths, settings, force=force, include_text=include_text)
    except InstallError as e:
        e.domain = e.domain or domain
        click.secho(f"❌ {e.diagnostic()}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(f"\n📋 {domain}: {len(result.to_rebuild)} of {len(result.nodes)} to rebuild",
                fg="cyan", bold=True)
    for node in result.nodes:
        icon, color = ("→", "yellow") if node.rebuild else ("✓", "green")
        click.secho(f"   {icon} {node.kind}", fg=color, nl=False)
        where = str(node.target.target) if node.target else str(node.output)
        click.echo(f"  {node.profile.octal}  {where}  ({node.reason})")
    click.echo()


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Domain configuration commands."""


@config.command("check")
@click.argument("domain")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, domain: str, as_json: bool) -> None:
    """Validate the configuration of DOMAIN."""
    from certdeploy.core.catalog.recipes import config_key
    from certdeploy.core.use_cases.config_check import check_config

    result = check_config(domain, ctx.obj["workdir"])

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    cfg = result.config
    if cfg is not None:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        for kind, target in cfg.targets.items():
            click.echo(f"   {config_key(kind)} = {target}")
        click.echo(f"   DH parameters: {cfg.dhparam_len} bits"
                   f"{' (reused)' if cfg.reuse_dhparam else ''}")
        if cfg.reload_cmd:
            click.echo(f"   Reload: {cfg.reload_cmd}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


# ── issue ───────────────────────────────────────────────────────


@cli.command()
@click.argument("domain")
@click.option("--force", "-f", is_flag=True, help="Ask the ACME client to renew now.")
@click.option("--text", "-t", "include_text", is_flag=True, help="Also write the text reports.")
@click.option("--dry-run", is_flag=True, help="Show the ACME command and the plan only.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def issue(
    ctx: click.Context,
    domain: str,
    force: bool,
    include_text: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Run the ACME client for DOMAIN, then install its artifacts."""
    from certdeploy.core.use_cases.issue import issue_domain

    result = issue_domain(
        domain,
        ctx.obj["workdir"],
        force=force,
        include_text=include_text,
        dry_run=dry_run,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if not ctx.obj["quiet"]:
        click.secho(f"🔏 {result.command}", fg="cyan")
    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)
    if result.install:
        _print_install(result.install, ctx.obj["quiet"])
    if not result.ok:
        sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
