"""
repocheck — CLI entrypoint.

Usage:
    repocheck --help
    repocheck check            # check only: unsupported repos warn
    repocheck check install    # install mode: unsupported repos fail
    repocheck detect
    repocheck policy

The exit status of ``check`` is a bit set: 1 = warning, 2 = failure.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from repocheck import __version__
from repocheck.core.config.loader import ConfigError, Settings, load_settings
from repocheck.core.models.outcome import RunMode, Status
from repocheck.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="repocheck")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to a YAML settings file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """repocheck — reconcile OS package repositories with installer policy."""
    ctx.ensure_object(dict)

    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(int(Status.FATAL))

    level = resolve_level(settings.log_level, debug=debug, verbose=verbose, quiet=quiet)
    setup_logging(level=level, log_file=settings.log_file)

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("mode", required=False, default="", type=click.Choice(["", "install"]))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.option(
    "--report",
    "report_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append failure records to this NDJSON file.",
)
@click.option(
    "--skip-flag",
    type=click.Path(dir_okay=False),
    default=None,
    help="Sentinel file whose presence skips the check.",
)
@click.pass_context
def check(
    ctx: click.Context,
    mode: str,
    as_json: bool,
    report_path: str | None,
    skip_flag: str | None,
) -> None:
    """Check and repair repository configuration.

    MODE is empty for a check-only run, or "install" when an
    installation follows and unsupported repositories must block it.
    """
    from repocheck.core.use_cases.check import run_repository_check

    settings: Settings = ctx.obj["settings"]
    overrides: dict = {}
    if report_path:
        overrides["error_report"] = Path(report_path)
    if skip_flag:
        overrides["skip_flag"] = Path(skip_flag)
    if overrides:
        settings = settings.model_copy(update=overrides)

    result = run_repository_check(mode=RunMode(mode), settings=settings)

    if as_json:
        data = {"status": result.exit_code, "failed": result.failed, **result.model_dump(mode="json")}
        click.echo(json.dumps(data, indent=2))
    elif ctx.obj.get("verbose"):
        if result.skipped:
            click.secho(f"⊘ skipped: {result.skipped}", fg="yellow", err=True)
        for name in result.checks_run:
            click.echo(f"   • {name}", err=True)

    sys.exit(result.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def detect(ctx: click.Context, as_json: bool) -> None:
    """Show the detected platform."""
    from repocheck.core.services.platform import DetectionIncomplete, detect_platform

    settings: Settings = ctx.obj["settings"]
    try:
        info = detect_platform(settings.os_release_path, settings.debian_version_path)
    except DetectionIncomplete as e:
        if as_json:
            click.echo(json.dumps({"detected": False, "error": str(e)}, indent=2))
        else:
            click.secho(f"⚠️  Platform not detected: {e}", fg="yellow")
        return

    if as_json:
        data = {"detected": True, **info.model_dump(mode="json"), "key": info.key}
        click.echo(json.dumps(data, indent=2))
        return

    click.secho(f"\n🔍 Platform: {info.key}", fg="cyan", bold=True)
    click.echo(f"   OS:              {info.os_name} {info.major_version}")
    click.echo(f"   Architecture:    {info.architecture} ({info.package_arch})")
    click.echo(f"   Codename:        {info.codename or '-'}")
    pm = info.package_manager.value if info.package_manager else "unsupported"
    click.echo(f"   Package manager: {pm}")
    click.echo()


@cli.command()
@click.option("--platform", "platform_key", default=None, help="Platform key, e.g. centos7 or ubuntu22.")
@click.pass_context
def policy(ctx: click.Context, platform_key: str | None) -> None:
    """List the checks that would run for a platform."""
    from repocheck.core.services.platform import DetectionIncomplete, detect_platform
    from repocheck.core.services.policies import lookup_policy, lookup_policy_key

    settings: Settings = ctx.obj["settings"]
    if platform_key:
        entry = lookup_policy_key(platform_key)
    else:
        try:
            info = detect_platform(settings.os_release_path, settings.debian_version_path)
        except DetectionIncomplete as e:
            click.secho(f"⚠️  Platform not detected: {e}", fg="yellow")
            return
        platform_key = info.key
        entry = lookup_policy(info)

    if entry is None:
        click.echo(f"No repository policy for {platform_key}: nothing is checked.")
        return

    click.secho(f"\n📋 Policy {entry.key} (for {platform_key})", fg="cyan", bold=True)
    for i, chk in enumerate(entry.checks, start=1):
        flags = []
        if chk.gate:
            flags.append("gate")
        if chk.install_only:
            flags.append("install mode only")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        click.echo(f"   {i}. {chk.name}{suffix}")
    click.echo()


if __name__ == "__main__":
    cli()
