"""
Command-line interface for dbrefactor.
"""

import asyncio
import json
import sys
from functools import wraps
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .config import DbRefactorConfig, LoggingConfig, configure_logging
from .editor import SchemaEditor
from .exceptions import ConfigurationError, DbRefactorError, ValidationError
from .executor.client import PlanExecutorClient
from .executor.models import CodefixResult, RefactorResponse, SqlScripts
from .plan.plan import Plan
from .schema.baseline import BaselineSchema
from .session import SessionManager


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DbRefactorError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Configuration file path (defaults to DBREFACTOR_* environment variables)",
)
plan_option = click.option(
    "--plan",
    "-p",
    "plan_path",
    type=click.Path(exists=True),
    required=True,
    help="Plan JSON file",
)
connection_option = click.option(
    "--connection-string",
    envvar="DBREFACTOR_CONNECTION_STRING",
    required=True,
    help="Database connection string, passed to the executor as is",
)


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """dbrefactor: Plan and apply database renames through a refactoring service."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    if debug:
        configure_logging(LoggingConfig(), debug=True)


def _load_config(path: Optional[str]) -> DbRefactorConfig:
    config = DbRefactorConfig.from_yaml(path) if path else DbRefactorConfig()
    ctx = click.get_current_context(silent=True)
    debug = bool(ctx and ctx.find_root().obj and ctx.find_root().obj.get("debug"))
    if debug or config.logging.file:
        configure_logging(config.logging, debug=debug or config.debug)
    return config


def _read_structured(path: str) -> Any:
    """Read a JSON or YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(f"Cannot parse {path}: {e}")


def _load_schema(path: str) -> BaselineSchema:
    return BaselineSchema.from_payload(_read_structured(path))


def _load_plan(path: str) -> Plan:
    return Plan.from_payload(_read_structured(path) or [])


def _write_json(path: str, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="dbrefactor.yaml",
    help="Output configuration file path",
)
@click.option(
    "--endpoint",
    help="Executor API base URL",
)
@handle_errors
def init(output: str, endpoint: Optional[str]):
    """Initialize a new dbrefactor configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    config = DbRefactorConfig(executor={"endpoint": endpoint or "http://localhost:5000"})
    config.to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Point executor.endpoint at your refactoring service")
    console.print("2. Run: dbrefactor fetch-schema -c your-config.yaml -o schema.json")
    console.print("3. Run: dbrefactor edit-plan --schema schema.json --events edits.yaml")
    console.print("4. Run: dbrefactor generate-sql -c your-config.yaml --plan plan.json")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        cfg = DbRefactorConfig.from_yaml(config)
        cfg.validate_config()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {escape(str(e))}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(cfg)


@main.command()
@click.option(
    "--schema",
    "schema_path",
    type=click.Path(exists=True),
    required=True,
    help="Schema JSON file",
)
@click.option("--search", "-s", default="", help="Only show tables whose name contains this")
@handle_errors
def show_schema(schema_path: str, search: str):
    """Show tables, columns and foreign keys of a schema snapshot."""
    editor = SchemaEditor(_load_schema(schema_path))
    editor.search_term = search
    tables = editor.visible_tables()

    if not tables:
        console.print("[yellow]No tables to show[/yellow]")
        return

    _display_schema(tables)


@main.command()
@config_option
@connection_option
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="schema.json",
    help="Where to write the schema snapshot",
)
@handle_errors
def fetch_schema(config: Optional[str], connection_string: str, output: str):
    """Fetch the current schema through the executor and save it."""
    cfg = _load_config(config)

    async def run_fetch() -> BaselineSchema:
        async with PlanExecutorClient.from_config(cfg) as client:
            async with SessionManager(client) as sessions:
                session_id = await sessions.connect(connection_string)
                return await client.analyze_schema(session_id)

    schema = asyncio.run(run_fetch())
    _write_json(output, schema.to_payload())
    console.print(f"[green]✓[/green] Saved {len(schema)} tables to {output}")


@main.command()
@click.option(
    "--schema",
    "schema_path",
    type=click.Path(exists=True),
    required=True,
    help="Schema JSON file",
)
@click.option(
    "--events",
    "events_path",
    type=click.Path(exists=True),
    required=True,
    help="YAML or JSON file with the edit events to replay",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="plan.json",
    help="Where to write the resulting plan",
)
@handle_errors
def edit_plan(schema_path: str, events_path: str, output: str):
    """Replay schema edits and write the resulting rename plan."""
    editor = SchemaEditor(_load_schema(schema_path))

    raw = _read_structured(events_path) or []
    if isinstance(raw, dict):
        raw = raw.get("events", [])
    if not isinstance(raw, list):
        raise ValidationError(f"{events_path} must contain a list of events")

    editor.apply_events(raw)
    plan = editor.plan

    _write_json(output, {"renames": editor.snapshot()})
    _display_plan(plan)
    console.print(f"[green]✓[/green] Plan with {len(plan)} operations written to {output}")


@main.command()
@click.argument("plan_path", type=click.Path(exists=True))
@handle_errors
def show_plan(plan_path: str):
    """Show the operations of a plan file."""
    _display_plan(_load_plan(plan_path))


@main.command()
@config_option
@plan_option
@handle_errors
def generate_sql(config: Optional[str], plan_path: str):
    """Generate the SQL scripts for a plan without touching any database."""
    cfg = _load_config(config)
    plan = _load_plan(plan_path)

    async def run_generate():
        async with PlanExecutorClient.from_config(cfg) as client:
            return await client.generate_plan(plan)

    response = asyncio.run(run_generate())

    if response.report:
        console.print(
            f"Tables changed: {response.report.tables_changed}, "
            f"columns changed: {response.report.columns_changed}, "
            f"operations: {response.report.operations}"
        )
    _display_sql(response.sql)


@main.command()
@config_option
@plan_option
@connection_option
@click.option("--apply", is_flag=True, help="Apply the changes instead of previewing them")
@click.option("--root-key", help="Codebase root key (overrides config)")
@handle_errors
def refactor(
    config: Optional[str],
    plan_path: str,
    connection_string: str,
    apply: bool,
    root_key: Optional[str],
):
    """Preview or apply a plan against the database and codebase."""
    cfg = _load_config(config)
    plan = _load_plan(plan_path)

    if apply and not click.confirm(
        f"Apply {len(plan)} operations to the database and codebase?"
    ):
        return

    async def run_refactor():
        async with PlanExecutorClient.from_config(cfg) as client:
            return await client.run_refactor(
                connection_string, plan, apply=apply, root_key=root_key
            )

    _display_refactor_response(asyncio.run(run_refactor()))


@main.command()
@config_option
@plan_option
@connection_option
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@handle_errors
def cleanup(config: Optional[str], plan_path: str, connection_string: str, yes: bool):
    """Remove compatibility objects left behind by an applied plan."""
    cfg = _load_config(config)
    plan = _load_plan(plan_path)

    if (plan.has_destructive_operations or cfg.options.allow_destructive) and not yes:
        console.print("[red]This plan contains destructive operations.[/red]")
        if click.prompt("Type CLEANUP to continue", default="", show_default=False) != "CLEANUP":
            console.print("[yellow]Cleanup cancelled[/yellow]")
            return

    async def run_cleanup():
        async with PlanExecutorClient.from_config(cfg) as client:
            return await client.run_cleanup(connection_string, plan)

    _display_refactor_response(asyncio.run(run_cleanup()))


@main.command()
@config_option
@plan_option
@click.option("--apply", is_flag=True, help="Write the fixes instead of previewing them")
@click.option("--root-key", help="Codebase root key (overrides config)")
@handle_errors
def codefix(config: Optional[str], plan_path: str, apply: bool, root_key: Optional[str]):
    """Preview or apply source code fixes for a plan."""
    cfg = _load_config(config)
    plan = _load_plan(plan_path)

    async def run_codefix():
        async with PlanExecutorClient.from_config(cfg) as client:
            return await client.run_codefix(plan, apply=apply, root_key=root_key)

    _display_codefix(asyncio.run(run_codefix()))


def _display_config_summary(config: DbRefactorConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    table = Table(title="Executor")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Endpoint", config.resolve_endpoint())
    table.add_row("Timeout", f"{config.executor.timeout}s")
    table.add_row("Session TTL", f"{config.executor.session_ttl}s")
    table.add_row("Synonyms", str(config.options.use_synonyms))
    table.add_row("Views", str(config.options.use_views))
    table.add_row("CQRS", str(config.options.cqrs))
    table.add_row("Root key", config.codefix.root_key)

    console.print(table)


def _display_schema(tables):
    for t in tables:
        table = Table(title=t.full_name)
        table.add_column("Column", style="cyan")
        table.add_column("Type", style="magenta")
        table.add_column("Nullable", style="yellow")
        table.add_column("PK", style="green")

        for column in t.columns:
            table.add_row(
                column.name,
                column.sql_type,
                "yes" if column.is_nullable else "no",
                "🔑" if t.is_primary_key(column.name) else "",
            )
        console.print(table)

        for fk in t.foreign_keys:
            console.print(f"  🔗 {fk}")


def _display_plan(plan: Plan):
    if plan.is_empty:
        console.print("[yellow]No changes in plan yet.[/yellow]")
        return

    table = Table(title="Plan")
    table.add_column("#", style="dim")
    table.add_column("Scope", style="cyan")
    table.add_column("Change", style="green")

    for i, op in enumerate(plan):
        scope = f"[red]{op.scope.value}[/red]" if op.is_destructive else op.scope.value
        table.add_row(str(i), scope, op.describe())

    console.print(table)

    summary = plan.summary()
    console.print(
        f"{summary.total} operations: {summary.tables_renamed} table renames, "
        f"{summary.columns_renamed} column renames, "
        f"{summary.column_types_changed} type changes, "
        f"{summary.columns_added} new columns"
    )


def _display_sql(scripts: Optional[SqlScripts]):
    if scripts is None or scripts.is_empty:
        console.print("[yellow]No SQL returned[/yellow]")
        return
    for label, sql in scripts.items():
        console.print(f"\n[bold cyan]-- {label} --[/bold cyan]")
        console.print(Syntax(sql, "sql", word_wrap=True))


def _display_codefix(result: Optional[CodefixResult]):
    if result is None:
        return
    status = "[green]ok[/green]" if result.ok else "[red]failed[/red]"
    console.print(f"\nCode fix {status}: scanned {result.scanned}, changed {result.changed}")
    for f in result.changed_files:
        changes = f" ({f.changes} changes)" if f.changes is not None else ""
        console.print(f"  ✏️  {f.path}{changes}")
        diff = f.unified_diff()
        if diff:
            console.print(Syntax(diff, "diff", word_wrap=True))


def _display_refactor_response(response: RefactorResponse):
    if response.error:
        console.print(f"[red]Operation failed:[/red] {escape(response.error)}")
    elif response.ok:
        mode = "applied" if response.apply else "preview"
        console.print(f"[green]✓[/green] Refactor {mode} completed")

    _display_sql(response.sql)
    for log in (response.db_log, response.log):
        if log:
            console.print(f"\n[bold cyan]-- log --[/bold cyan]\n{escape(log)}")
    _display_codefix(response.codefix)

    if response.has_error:
        sys.exit(1)


if __name__ == "__main__":
    main()
