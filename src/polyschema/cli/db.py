"""
CLI: ``polyschema db``: schema and database provisioning commands.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer

from polyschema.cli.utils import console, open_utility, print_rows
from polyschema.core.errors import qualified_name

app = typer.Typer(no_args_is_help=True)

ModuleOption = typer.Option(
    None,
    "--module",
    "-m",
    help="Module configuration hook, 'package.module:attribute'. Repeatable.",
)
DatabaseOption = typer.Option(None, "--database-url", "-d", help="Overrides POLYSCHEMA_DATABASE_URL")
EntryPointsOption = typer.Option(
    True,
    "--entry-points/--no-entry-points",
    help="Also load modules published under the 'polyschema.modules' entry point group.",
)


@app.command()
def tables(
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show every entity with its module, table and construction."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        rows = [
            {
                "entity": qualified_name(binding.entity),
                "module": binding.owning_module,
                "table": binding.table_name,
                "construction": binding.construction,
            }
            for binding in sorted(utility.composer.bindings.values(), key=lambda b: b.table_name)
        ]
    if json_out:
        console.print_json(json.dumps(rows))
    else:
        print_rows(rows, title="Schema")


@app.command()
def check(
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
) -> None:
    """Run the production-safety check without changing anything."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        result = utility.check_safe_target()
    if result.passed:
        console.print(f"[green]Safe to modify[/green]: {result.reason}")
    else:
        console.print(f"[bold red]Not safe to modify[/bold red]: {result.reason}")
        raise typer.Exit(code=1)


@app.command()
def regenerate(
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
) -> None:
    """Drop and recreate every table of the composed schema."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        utility.regenerate_schema()
        count = len(utility.composer.metadata.tables)
    console.print(f"Regenerated {count} tables.")


@app.command()
def script(
    output: str = typer.Argument(..., help="Output file; '{dialect}' is replaced by the dialect name"),
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
) -> None:
    """Write the schema DDL to a file instead of executing it."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        path = utility.generate_schema_script(output)
    console.print(f"Wrote {path}")


@app.command("run-sql")
def run_sql(
    path: Path = typer.Argument(..., help="SQL script, or a directory of *.sql scripts"),
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
) -> None:
    """Run a SQL script or a directory of scripts in file-name order."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        utility.run_sql_script(path)
    console.print(f"Ran {path}")


@app.command("exec")
def exec_(
    statements: list[str] = typer.Argument(..., help="Statements executed as one transaction"),
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
) -> None:
    """Execute literal SQL statements as one batch."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        utility.run_sql_commands(*statements)
    console.print(f"Executed {len(statements)} statement(s).")


@app.command()
def delete(
    entities: list[str] = typer.Argument(..., help="Entity class names or dotted paths"),
    module: list[str] | None = ModuleOption,
    database_url: str | None = DatabaseOption,
    entry_points: bool = EntryPointsOption,
) -> None:
    """Delete every row of the given entities."""
    with open_utility(module, database_url, entry_points=entry_points) as utility:
        resolved = [utility.composer.entity_named(name) for name in entities]
        utility.delete(*resolved)
    console.print(f"Deleted rows from {len(entities)} table(s).")
