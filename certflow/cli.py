"""Command line interface for running certflow workflows."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from certflow import (
    NodeDependencies,
    ProviderFactory,
    RunDB,
    WorkflowExecutor,
    get_repositories,
    load_config,
    load_workflow,
)
from certflow.config import configure_logging
from certflow.errors import CertflowError, RecordNotFound
from certflow.models import WorkflowRunStatus, WorkflowTrigger

app = typer.Typer(help="CLI for certflow certificate workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for executing workflows")
run_app = typer.Typer(help="Commands for inspecting workflow runs")
output_app = typer.Typer(help="Commands for inspecting node outputs")

app.add_typer(workflow_app, name="workflow")
app.add_typer(run_app, name="run")
app.add_typer(output_app, name="output")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to the YAML configuration file"
    ),
) -> None:
    """certflow CLI entry point."""
    try:
        config = load_config(str(config_path) if config_path else None)
    except CertflowError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    configure_logging(config.log_level)
    ctx.obj = config


async def _open_run_db(database_url: str) -> RunDB:
    run_db = RunDB(database_url)
    await run_db.init_db()
    return run_db


@workflow_app.command("run")
def workflow_run(
    ctx: typer.Context,
    workflow_file: Path,
    timeout: Optional[float] = typer.Option(None, help="Deadline for the whole run in seconds"),
) -> None:
    """
    Execute every node of a workflow definition in order.

    Creates a run record, executes the nodes, persists each node's log and
    prints the final run status. Exits with code 1 unless the run succeeded.

    Example:
        certflow workflow run ./workflows/example.yaml --timeout 300
    """
    config = ctx.obj
    try:
        workflow = load_workflow(workflow_file)
    except (OSError, CertflowError) as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    repos = get_repositories(config=config)
    deps = NodeDependencies(
        outputs=repos.outputs,
        certificates=repos.certificates,
        providers=ProviderFactory(config.http),
    )

    async def _run():
        run_db = await _open_run_db(config.run_database_url)
        try:
            executor = WorkflowExecutor(deps, run_db)
            return await executor.execute(
                workflow,
                trigger=WorkflowTrigger.MANUAL,
                timeout=timeout if timeout is not None else config.node_timeout,
            )
        finally:
            await run_db.dispose()

    run = asyncio.run(_run())
    typer.echo(f"Run {run.id}: {run.status.value}")
    if run.status != WorkflowRunStatus.SUCCEEDED:
        if run.error:
            typer.secho(run.error, fg=typer.colors.RED)
        raise typer.Exit(code=1)


@run_app.command("list")
def run_list(
    ctx: typer.Context,
    workflow_id: Optional[str] = typer.Option(None, help="Filter by workflow"),
) -> None:
    """List workflow runs with their status."""
    config = ctx.obj

    async def _list():
        run_db = await _open_run_db(config.run_database_url)
        try:
            return await run_db.list_runs(workflow_id)
        finally:
            await run_db.dispose()

    runs = asyncio.run(_list())
    if not runs:
        typer.echo("No runs found")
        return
    for run in runs:
        typer.echo(f"{run.id}\t{run.workflow_id}\t{run.status.value}")


@run_app.command("show")
def run_show(ctx: typer.Context, run_id: str) -> None:
    """Show the status and log records of a run."""
    config = ctx.obj

    async def _get():
        run_db = await _open_run_db(config.run_database_url)
        try:
            return await run_db.get_run(run_id)
        finally:
            await run_db.dispose()

    try:
        run = asyncio.run(_get())
    except RecordNotFound:
        typer.echo("Run not found")
        raise typer.Exit(code=1)

    typer.echo(f"Run {run.id}: {run.status.value}")
    if run.error:
        typer.echo(f"Error: {run.error}")
    for log in run.logs:
        typer.echo(f"[{log.node_name}]")
        for record in log.records:
            line = f"  {record.time.isoformat()} {record.level.upper()} {record.content}"
            if record.error:
                line += f" ({record.error})"
            typer.echo(line)


@output_app.command("show")
def output_show(ctx: typer.Context, node_id: str) -> None:
    """Show the current output of a node."""
    repos = get_repositories(config=ctx.obj)
    try:
        output = asyncio.run(repos.outputs.get_by_node_id(node_id))
    except RecordNotFound:
        typer.echo("Output not found")
        raise typer.Exit(code=1)

    typer.echo(f"Output {output.id} (run {output.run_id}): succeeded={output.succeeded}")
    for item in output.outputs:
        typer.echo(f"  {item.name} = {item.value or ''}")
