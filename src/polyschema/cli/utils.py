"""
CLI utility helpers: output formatting and schema composition.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from polyschema.core.errors import PolyschemaError, categorize_error
from polyschema.core.logging import configure_from_settings
from polyschema.core.settings import get_settings
from polyschema.orm.composer import SchemaComposer
from polyschema.orm.registry import ModuleRegistryCatalog, load_modules
from polyschema.orm.session import create_engine_from_settings
from polyschema.tools.database import DatabaseUtility

console = Console()
err_console = Console(stderr=True)


# ── Composition helper ───────────────────────────────────────────────────


@contextmanager
def open_utility(
    modules: list[str] | None,
    database_url: str | None = None,
    *,
    entry_points: bool = True,
) -> Iterator[DatabaseUtility]:
    """Compose the schema for *modules* and yield a ``DatabaseUtility``.

    Library errors are rendered as a red error line and exit with code 1.
    """
    settings = get_settings(database_url=database_url)
    configure_from_settings(settings)

    composer: SchemaComposer | None = None
    engine: Engine | None = None
    try:
        catalog = ModuleRegistryCatalog()
        load_modules(catalog, modules or [], entry_points=entry_points)
        engine = create_engine_from_settings(settings)
        composer = SchemaComposer(settings, engine, catalog)
        yield DatabaseUtility(composer)
    except (PolyschemaError, SQLAlchemyError) as exc:
        fail(exc)
    finally:
        if composer is not None:
            composer.dispose()
        if engine is not None:
            engine.dispose()


def fail(exc: BaseException) -> NoReturn:
    """Print *exc* and exit with status 1."""
    code = categorize_error(exc).value
    message = exc.message if isinstance(exc, PolyschemaError) else str(exc)
    err_console.print(f"[bold red]Error[/bold red] ({code}): {escape(message)}", highlight=False)
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def print_rows(rows: list[dict[str, str]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)
