"""rtrace CLI - Main Entry Point.

Commands:
    enable   - Arm tracing globally or for named routes
    disable  - Turn global tracing off
    status   - Show control state and stored trace count
    view     - Display stored traces
    clean    - Delete stored traces

``enable``/``disable`` write the gate control file; the application picks
it up on ``RouteTracer.boot()`` or ``RouteTracer.refresh()``.
"""

import json
import logging
import sys
from typing import Optional

import click

from .. import __version__
from ..config import TracerConfig, TracerConfigLoader
from ..control import GateControl
from ..faults import TracerFault
from ..record import OutputFormat
from ..store import StoredTraceRef, TraceStore
from . import __cli_name__
from .utils.colors import (
    success, error, warning, info, dim,
    banner, kv, bullet, table,
)


def _resolve_config(ctx: click.Context) -> TracerConfig:
    obj = ctx.obj
    if "config" not in obj:
        overrides = {"base_dir": obj["base_dir"]} if obj.get("base_dir") else None
        try:
            loader = TracerConfigLoader.load(
                paths=[obj["config_path"]] if obj.get("config_path") else None,
                env_file=obj.get("env_file"),
                overrides=overrides,
            )
            obj["config"] = loader.to_config()
        except TracerFault as exc:
            error(str(exc))
            sys.exit(1)
    return obj["config"]


def _store(ctx: click.Context) -> TraceStore:
    config = _resolve_config(ctx)
    return TraceStore(config.traces_path, default_format=config.output_format)


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Config file (JSON or YAML)")
@click.option("--env-file", type=click.Path(dir_okay=False), default=".env", show_default=True,
              help=".env file with ROUTE_TRACER_* keys")
@click.option("--dir", "-d", "base_dir", type=click.Path(file_okay=False), default=None,
              help="Application base directory")
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[str], env_file: str, base_dir: Optional[str]):
    """Trace which source files each route loads.

    \b
    Quick start:
      rtrace enable checkout.store
      rtrace view --route checkout --latest
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    ctx.obj["env_file"] = env_file
    ctx.obj["base_dir"] = base_dir
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ── enable / disable ─────────────────────────────────────────────────────


@cli.command("enable")
@click.argument("routes", nargs=-1)
@click.pass_context
def enable(ctx, routes: tuple):
    """
    Enable route tracing for the named routes, or for all routes.

    Examples:
      rtrace enable
      rtrace enable checkout.store cart.show
    """
    config = _resolve_config(ctx)
    control = GateControl.in_dir(config.traces_path)
    try:
        if routes:
            control.add_routes(routes)
            success(f"Route tracing enabled for: {', '.join(routes)}")
        else:
            control.arm()
            success("Route tracing enabled globally")
    except TracerFault as exc:
        error(str(exc))
        sys.exit(1)

    dim(f"Traces will be saved to: {config.traces_path}")
    _apply_hint(config)


@cli.command("disable")
@click.pass_context
def disable(ctx):
    """Disable global route tracing."""
    config = _resolve_config(ctx)
    try:
        GateControl.in_dir(config.traces_path).disarm()
    except TracerFault as exc:
        error(str(exc))
        sys.exit(1)
    success("Route tracing disabled")
    _apply_hint(config)


def _apply_hint(config: TracerConfig) -> None:
    if config.control_poll_seconds > 0:
        dim(f"Running apps pick this up within {config.control_poll_seconds:g}s.")
    else:
        dim("Running apps pick this up on RouteTracer.boot() or RouteTracer.refresh().")


# ── status ───────────────────────────────────────────────────────────────


@cli.command("status")
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx, json_output: bool):
    """Show tracing control state and stored trace count."""
    config = _resolve_config(ctx)
    control = GateControl.in_dir(config.traces_path)
    try:
        state = control.read()
    except TracerFault as exc:
        error(str(exc))
        sys.exit(1)
    count = len(_store(ctx).list())

    if json_output:
        click.echo(json.dumps({**state, "traces": count, "config": config.to_dict()}, indent=2))
        return

    info("Route tracer status")
    kv("Enabled", "yes" if state["enabled"] else "no")
    kv("Routes", ", ".join(state["routes"]) or "-")
    kv("Default", "trace all" if config.enabled else "off")
    kv("Format", config.output_format.value)
    kv("Directory", config.traces_path)
    kv("Traces", count)


# ── view ─────────────────────────────────────────────────────────────────


@cli.command("view")
@click.option("--route", "-r", default=None, help="Filter by route name")
@click.option("--latest", is_flag=True, help="Show only the latest trace")
@click.option("--files/--no-files", default=None, help="Show the loaded file list")
@click.option("--json-output", "-j", is_flag=True, help="Output records as JSON")
@click.pass_context
def view(ctx, route: Optional[str], latest: bool, files: Optional[bool], json_output: bool):
    """
    View stored route traces, newest first.

    Examples:
      rtrace view
      rtrace view --route checkout --latest
      rtrace view --latest --files
    """
    store = _store(ctx)
    refs = store.list(route=route, latest=latest)

    if not refs:
        if route:
            warning("No matching trace files found.")
        else:
            warning("No traces found. Run `rtrace enable` first.")
        return

    if json_output:
        records = []
        for ref in refs:
            if ref.format is OutputFormat.STRUCTURED:
                try:
                    records.append(store.load(ref).to_dict())
                except TracerFault:
                    continue
        click.echo(json.dumps(records, indent=2, ensure_ascii=False))
        return

    for ref in refs:
        _display_trace(store, ref, files)


def _display_trace(store: TraceStore, ref: StoredTraceRef, show_files: Optional[bool]) -> None:
    banner(ref.name)

    if ref.format is OutputFormat.READABLE:
        try:
            click.echo(store.read_text(ref))
        except TracerFault as exc:
            error(str(exc))
        return

    try:
        record = store.load(ref)
    except TracerFault:
        error("Failed to parse trace file")
        return

    table(
        ["Metric", "Value"],
        [
            ["Route", record.route],
            ["URI", record.uri],
            ["Method", record.method],
            ["Controller", record.controller],
            ["Files Loaded", record.files_loaded_count],
            ["Memory Used", f"{record.memory_used_mb} MB"],
            ["Execution Time", f"{record.execution_time_ms} ms"],
            ["Timestamp", record.timestamp],
        ],
    )

    if record.exception is not None:
        error(f"Exception: {record.exception.message}")

    if show_files is None:
        show_files = click.confirm("Show file list?", default=False)
    if not show_files:
        return

    for category, paths in record.files_loaded.items():
        click.echo()
        warning(f"{category.capitalize()} ({len(paths)}):")
        for path in paths:
            bullet(path)


# ── clean ────────────────────────────────────────────────────────────────


@cli.command("clean")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@click.pass_context
def clean(ctx, force: bool):
    """Delete all stored trace files."""
    store = _store(ctx)
    if not store.list():
        warning("No traces found.")
        return

    if not force:
        click.confirm("Delete all trace files?", abort=True)

    count = store.clean()
    success(f"Cleaned {count} trace files.")


def main():
    """Entry point for `rtrace` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
