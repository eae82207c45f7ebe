"""
svcctl — CLI entrypoint.

Usage:
    svcctl --help
    svcctl start 'svc*'
    svcctl stop svc1 --rid app
    svcctl status --json
    svcctl config check
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from svcctl import __version__
from svcctl.core.observability.logging_config import resolve_level, setup_logging_from_env


@click.group()
@click.version_option(version=__version__, prog_name="svcctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to cluster.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """svcctl — start, stop and provision cluster objects."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


# ── Object actions ──────────────────────────────────────────────


_ACTION_OPTIONS = [
    click.argument("selector"),
    click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON."),
    click.option("--rid", default="", help="Resource selector (e.g. app#1,disk)."),
    click.option(
        "--waitlock",
        type=click.FloatRange(min=0),
        default=None,
        help="Seconds to wait for the action lock (default: cluster lock_timeout).",
    ),
    click.option("--nolock", is_flag=True, help="Don't acquire the action lock. Dangerous."),
    click.option("--force", is_flag=True, help="Allow dangerous operations."),
    click.option("--dry-run", is_flag=True, help="Show the actions, change nothing."),
]


def action_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every object action command."""
    for decorator in reversed(_ACTION_OPTIONS):
        fn = decorator(fn)
    return fn


@cli.command()
@action_options
@click.pass_context
def start(ctx: click.Context, **kwargs: Any) -> None:
    """Start the selected objects.

    Examples:

        svcctl start svc1

        svcctl start 'ns1/svc/*' --rid app
    """
    _run_action(ctx, "start", **kwargs)


@cli.command()
@action_options
@click.pass_context
def stop(ctx: click.Context, **kwargs: Any) -> None:
    """Stop the selected objects."""
    _run_action(ctx, "stop", **kwargs)


@cli.command()
@action_options
@click.pass_context
def provision(ctx: click.Context, **kwargs: Any) -> None:
    """Allocate the resources of the selected objects."""
    _run_action(ctx, "provision", **kwargs)


@cli.command()
@action_options
@click.pass_context
def unprovision(ctx: click.Context, **kwargs: Any) -> None:
    """Release the resources of the selected objects."""
    _run_action(ctx, "unprovision", **kwargs)


def _run_action(
    ctx: click.Context,
    action: str,
    *,
    selector: str,
    as_json: bool,
    rid: str,
    waitlock: float | None,
    nolock: bool,
    force: bool,
    dry_run: bool,
) -> None:
    from svcctl.core.models.action import ActionOptions
    from svcctl.core.use_cases.action import run_action

    fields: dict[str, Any] = {"rid": rid, "no_lock": nolock, "force": force, "dry_run": dry_run}
    if waitlock is not None:
        fields["lock_timeout"] = waitlock
    options = ActionOptions(**fields)

    result = run_action(
        action,
        selector,
        options=options,
        config_path=ctx.obj.get("config_path"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.all_ok:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not ctx.obj.get("quiet"):
        mode_label = "[dry-run] " if dry_run else ""
        click.secho(f"\n⚡ {mode_label}{action} — {selector}", fg="cyan", bold=True)
        click.echo()

    if not result.results:
        click.secho("   ⊘ no object selected", fg="yellow")
        click.echo()
        return

    for r in result.sorted_results():
        if r.ok:
            click.secho(f"   ✓ {r.path}", fg="green")
        elif r.error is not None:
            click.secho(f"   ✗ {r.path}", fg="red")
            for line in str(r.error).split("\n")[:5]:
                click.echo(f"     │ {line}")
        else:
            click.secho(f"   💥 {r.path}", fg="red", bold=True)
            click.echo(f"     │ {r.defect!r}")
            if ctx.obj.get("verbose") or ctx.obj.get("debug"):
                for line in r.traceback.rstrip().split("\n"):
                    click.echo(f"     │ {line}")

    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
        result.status, "white"
    )
    click.secho(
        f"   Result: {result.succeeded}/{result.total} succeeded",
        fg=status_color,
        bold=True,
    )
    click.echo()

    if not result.all_ok:
        sys.exit(1)


# ── Status ──────────────────────────────────────────────────────


_STATUS_COLORS = {
    "up": "green",
    "stdby up": "green",
    "down": "red",
    "stdby down": "red",
    "warn": "yellow",
}


@cli.command()
@click.argument("selector", default="**")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--rid", default="", help="Resource selector (e.g. app#1,disk).")
@click.pass_context
def status(ctx: click.Context, selector: str, as_json: bool, rid: str) -> None:
    """Show the status of the selected objects (all by default)."""
    from svcctl.core.use_cases.status import get_status

    result = get_status(selector, config_path=ctx.obj.get("config_path"), rid=rid)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error or result.failures:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    config = result.config
    assert config is not None  # guaranteed after error check above

    if not ctx.obj.get("quiet"):
        node = f" @ {config.node}" if config.node else ""
        click.secho(f"\n📋 {config.name}{node}", fg="cyan", bold=True)
        click.echo()

    for path, report in result.objects.items():
        avail = report["avail"]
        click.secho(f"   {path:<30} ", nl=False, bold=True)
        click.secho(avail, fg=_STATUS_COLORS.get(avail, "white"))
        for rid_, value in report["resources"].items():
            click.echo(f"     • {rid_:<26} ", nl=False)
            click.secho(value, fg=_STATUS_COLORS.get(value, "white"))

    for path, error in result.failures.items():
        click.secho(f"   ✗ {path}: {error}", fg="red")

    click.echo()
    if result.failures:
        sys.exit(1)


# ── Configuration ───────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Cluster configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate cluster.yml and every resource's driver keywords."""
    from svcctl.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Cluster: {result.config.name}")
        click.echo(f"   Objects: {len(result.config.objects)}")
        click.echo(f"   Resources: {result.resource_count}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")
        click.echo()
        sys.exit(1)

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output keyword schemas as JSON.")
def drivers(as_json: bool) -> None:
    """List the resource drivers."""
    from svcctl.adapters.registry import default_registry

    registry = default_registry()

    if as_json:
        click.echo(json.dumps(registry.describe(), indent=2))
        return

    for name, schema in registry.describe().items():
        keywords = ", ".join(schema.get("properties", {}))
        click.secho(f"   {name}", bold=True, nl=False)
        click.echo(f"  ({keywords})" if keywords else "")


if __name__ == "__main__":
    cli()
