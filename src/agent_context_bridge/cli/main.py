"""CLI entry point for agent-context-bridge.

Invoked as::

    agent-context-bridge [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m agent_context_bridge.cli.main

Every command runs through ``ToolDispatcher`` so the CLI and the tool
surface share one set of validations and one reply envelope.

Commands
--------
- version   — Show version information
- call      — Run any tool operation from a JSON parameter mapping
- query     — Run the context pipeline for a query
- session   — Session store command group
- search    — Search command group
- project   — Project state command group

Session sub-commands
--------------------
- session capture  — Capture (or overwrite) a session
- session restore  — Restore a session
- session list     — List active sessions ranked by freshness
- session cleanup  — Remove expired sessions

Search sub-commands
-------------------
- search all    — Fan a query out and show per-backend results
- search fresh  — Fan a query out and show freshness-ranked results

Project sub-commands
--------------------
- project init         — Create the directory layout
- project create       — Write a fresh project state
- project update       — Merge into the current project state
- project show         — Show the current project state
- project checkpoint   — Snapshot the current state
- project checkpoints  — List checkpoints, newest first
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console()
error_console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_json_object(raw: str | None, option_name: str) -> dict[str, Any] | None:
    """Parse a ``--context``/``--params`` style option into a dict."""
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except ValueError as exc:
        console.print(f"[red]Invalid JSON for {option_name}:[/red] {exc}")
        sys.exit(1)
    if not isinstance(value, dict):
        console.print(f"[red]{option_name} must be a JSON object[/red]")
        sys.exit(1)
    return value


async def _dispatch(config: Any, params: dict[str, Any]) -> dict[str, Any]:
    from agent_context_bridge.bridge import ContextBridge
    from agent_context_bridge.tools import ToolDispatcher

    bridge = ContextBridge.from_config(config)
    try:
        return await ToolDispatcher(bridge).execute(params)
    finally:
        await bridge.aclose()


def _run(ctx: click.Context, operation: str, **params: Any) -> dict[str, Any]:
    """Execute ``operation`` and exit with status 1 on failure."""
    payload = {key: value for key, value in params.items() if value is not None}
    payload["operation"] = operation
    reply = asyncio.run(_dispatch(ctx.obj["config"], payload))
    if not reply.get("success"):
        console.print(f"[red]{reply.get('errorType', 'Error')}:[/red] {reply.get('error')}")
        sys.exit(1)
    return reply


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="agent-context-bridge")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML configuration file.",
)
@click.option("--base-dir", default=None, help="Override store.base_dir.")
@click.option("--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, base_dir: str | None, verbose: bool) -> None:
    """Freshness-aware context retrieval for agent sessions"""
    from agent_context_bridge.config import load_config
    from agent_context_bridge.errors import ValidationError

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=error_console, show_path=False)],
        )

    try:
        config = load_config(config_path)
    except ValidationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)
    if base_dir:
        config = config.model_copy(
            update={"store": config.store.model_copy(update={"base_dir": Path(base_dir)})}
        )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# ---------------------------------------------------------------------------
# version / call / query
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from agent_context_bridge import __version__

    console.print(f"[bold]agent-context-bridge[/bold] v{__version__}")


@cli.command(name="call")
@click.argument("operation")
@click.option("--params", "params_json", default=None, help="JSON object of parameters.")
@click.pass_context
def call_command(ctx: click.Context, operation: str, params_json: str | None) -> None:
    """Run OPERATION through the tool surface and print the reply."""
    params = _parse_json_object(params_json, "--params") or {}
    reply = asyncio.run(_dispatch(ctx.obj["config"], {**params, "operation": operation}))
    _print_json(reply)
    if not reply.get("success"):
        sys.exit(1)


@cli.command(name="query")
@click.argument("query")
@click.option("--context", "context_json", default=None, help="JSON object to enrich.")
@click.pass_context
def query_command(ctx: click.Context, query: str, context_json: str | None) -> None:
    """Run the context pipeline for QUERY."""
    reply = _run(
        ctx,
        "process_query_realtime",
        query=query,
        context=_parse_json_object(context_json, "--context"),
    )
    _print_json(reply)


# ---------------------------------------------------------------------------
# session command group
# ---------------------------------------------------------------------------


@cli.group(name="session")
def session_group() -> None:
    """Session store commands."""


@session_group.command(name="capture")
@click.argument("session_id")
@click.argument("project_name")
@click.option("--context", "context_json", default=None, help="JSON object to store.")
@click.option("--metadata", "metadata_json", default=None, help="JSON object of metadata.")
@click.option("--smart", is_flag=True, help="Archive expired sessions after capturing.")
@click.pass_context
def session_capture(
    ctx: click.Context,
    session_id: str,
    project_name: str,
    context_json: str | None,
    metadata_json: str | None,
    smart: bool,
) -> None:
    """Capture SESSION_ID for PROJECT_NAME."""
    reply = _run(
        ctx,
        "capture_session",
        sessionId=session_id,
        projectName=project_name,
        context=_parse_json_object(context_json, "--context"),
        metadata=_parse_json_object(metadata_json, "--metadata"),
        smart=smart,
    )
    capture = reply.get("capture", reply)
    console.print(f"[green]Session captured:[/green] {capture['sessionId']} -> {capture['filePath']}")
    cleanup = reply.get("cleanup")
    if cleanup:
        console.print(f"[dim]Archived {cleanup['cleaned']} expired session(s).[/dim]")


@session_group.command(name="restore")
@click.argument("session_id")
@click.option("--project", "project_name", default=None, help="Require this project name.")
@click.pass_context
def session_restore(ctx: click.Context, session_id: str, project_name: str | None) -> None:
    """Restore SESSION_ID and print it as JSON."""
    reply = _run(ctx, "restore_session", sessionId=session_id, projectName=project_name)
    _print_json(reply["session"])


@session_group.command(name="list")
@click.option("--project", "project_name", default=None, help="Exact project name filter.")
@click.option("--max-results", default=None, type=int, help="Maximum sessions to show.")
@click.pass_context
def session_list(ctx: click.Context, project_name: str | None, max_results: int | None) -> None:
    """List active sessions ranked by freshness."""
    reply = _run(ctx, "list_active_sessions", projectName=project_name, maxResults=max_results)

    for warning in reply["warnings"]:
        console.print(f"[yellow]{warning}[/yellow]")
    if not reply["sessions"]:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    table = Table(title="Active sessions", show_lines=False)
    table.add_column("Session ID", style="cyan")
    table.add_column("Project", style="green")
    table.add_column("Score", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Last accessed")
    for session in reply["sessions"]:
        table.add_row(
            session["sessionId"],
            session["projectName"],
            f"{session['relevanceScore']:.4f}",
            str(session["size"]),
            session["lastAccessed"] or "-",
        )
    console.print(table)
    console.print(f"\n[dim]Showing {len(reply['sessions'])} of {reply['total']} sessions.[/dim]")


@session_group.command(name="cleanup")
@click.option(
    "--strategy",
    default="timestamp",
    show_default=True,
    type=click.Choice(["timestamp", "smart_archive"]),
    help="Delete outright or archive first.",
)
@click.pass_context
def session_cleanup(ctx: click.Context, strategy: str) -> None:
    """Remove sessions idle for longer than the session timeout."""
    reply = _run(ctx, "cleanup_expired", strategy=strategy)
    console.print(f"[green]Removed {reply['cleaned']} session(s)[/green] ({strategy})")
    for entry in reply["sessions"]:
        console.print(f"  {entry['sessionId']}  {entry['action']}  {entry['age']}")
    for warning in reply["warnings"]:
        console.print(f"[yellow]{warning}[/yellow]")


# ---------------------------------------------------------------------------
# search command group
# ---------------------------------------------------------------------------


@cli.group(name="search")
def search_group() -> None:
    """Search commands."""


@search_group.command(name="all")
@click.argument("query")
@click.option("--backend", "backends", multiple=True, help="Backend tag; repeatable.")
@click.option("--limit", default=10, show_default=True, help="Per-backend result cap.")
@click.pass_context
def search_all(ctx: click.Context, query: str, backends: tuple[str, ...], limit: int) -> None:
    """Query every backend and print the per-backend replies."""
    reply = _run(ctx, "search_all", query=query, databases=list(backends) or None, limit=limit)
    _print_json(reply)


@search_group.command(name="fresh")
@click.argument("query")
@click.option("--backend", "backends", multiple=True, help="Backend tag; repeatable.")
@click.option("--limit", default=None, type=int, help="Maximum ranked results.")
@click.option("--decay-factor", default=None, type=float, help="Decay rate per day.")
@click.option("--no-freshness", is_flag=True, help="Rank by base score only.")
@click.pass_context
def search_fresh(
    ctx: click.Context,
    query: str,
    backends: tuple[str, ...],
    limit: int | None,
    decay_factor: float | None,
    no_freshness: bool,
) -> None:
    """Query every backend and print one freshness-ranked list."""
    reply = _run(
        ctx,
        "search_with_freshness",
        query=query,
        databases=list(backends) or None,
        limit=limit,
        decayFactor=decay_factor,
        freshnessEnabled=False if no_freshness else None,
    )

    for tag, source in reply["sources"].items():
        if not source["success"]:
            console.print(f"[yellow]{tag} failed:[/yellow] {source['error']}")

    table = Table(title=f"Results for {query!r}", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Source", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Adjusted", justify="right")
    for position, result in enumerate(reply["results"], start=1):
        table.add_row(
            str(position),
            result["source"],
            result["id"],
            f"{result['score']:.2f}",
            f"{result.get('adjustedScore', result['score']):.2f}",
        )
    console.print(table)
    console.print(f"\n[dim]{len(reply['results'])} of {reply['total']} results.[/dim]")


# ---------------------------------------------------------------------------
# project command group
# ---------------------------------------------------------------------------


@cli.group(name="project")
def project_group() -> None:
    """Project state commands."""


@project_group.command(name="init")
@click.pass_context
def project_init(ctx: click.Context) -> None:
    """Create the base, projects and admin_sync directories."""
    reply = _run(ctx, "init_system")
    for label, path in reply["directories"].items():
        console.print(f"[green]{label}:[/green] {path}")


@project_group.command(name="create")
@click.argument("project_name")
@click.option("--state", "state_json", default=None, help="JSON object of initial state.")
@click.option("--context", "context_json", default=None, help="JSON object of context.")
@click.pass_context
def project_create(
    ctx: click.Context, project_name: str, state_json: str | None, context_json: str | None
) -> None:
    """Write a fresh state document for PROJECT_NAME."""
    reply = _run(
        ctx,
        "create_project_state",
        projectName=project_name,
        state=_parse_json_object(state_json, "--state"),
        context=_parse_json_object(context_json, "--context"),
    )
    console.print(f"[green]Project state created:[/green] {reply['stateFile']}")


@project_group.command(name="update")
@click.argument("project_name")
@click.option("--state", "state_json", required=True, help="JSON object to merge.")
@click.pass_context
def project_update(ctx: click.Context, project_name: str, state_json: str) -> None:
    """Merge --state into the current state of PROJECT_NAME."""
    reply = _run(
        ctx,
        "update_state",
        projectName=project_name,
        state=_parse_json_object(state_json, "--state"),
    )
    _print_json(reply["state"])


@project_group.command(name="show")
@click.argument("project_name")
@click.pass_context
def project_show(ctx: click.Context, project_name: str) -> None:
    """Print the current state of PROJECT_NAME."""
    reply = _run(ctx, "get_current_state", projectName=project_name)
    _print_json(reply["state"])


@project_group.command(name="checkpoint")
@click.argument("project_name")
@click.option("--context", "context_json", default=None, help="JSON object to attach.")
@click.pass_context
def project_checkpoint(ctx: click.Context, project_name: str, context_json: str | None) -> None:
    """Snapshot the current state of PROJECT_NAME."""
    reply = _run(
        ctx,
        "create_checkpoint",
        projectName=project_name,
        context=_parse_json_object(context_json, "--context"),
    )
    console.print(f"[green]Checkpoint created:[/green] {reply['checkpointId']}")


@project_group.command(name="checkpoints")
@click.argument("project_name")
@click.pass_context
def project_checkpoints(ctx: click.Context, project_name: str) -> None:
    """List checkpoints of PROJECT_NAME, newest first."""
    reply = _run(ctx, "list_checkpoints", projectName=project_name)
    if not reply["checkpoints"]:
        console.print("[yellow]No checkpoints found.[/yellow]")
        return

    table = Table(title=f"Checkpoints for {project_name}", show_lines=False)
    table.add_column("Checkpoint ID", style="cyan")
    table.add_column("Created")
    table.add_column("Size", justify="right")
    for checkpoint in reply["checkpoints"]:
        table.add_row(checkpoint["checkpointId"], checkpoint["createdAt"], str(checkpoint["size"]))
    console.print(table)
    console.print(f"\n[dim]Showing {len(reply['checkpoints'])} of {reply['total']} checkpoints.[/dim]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()
