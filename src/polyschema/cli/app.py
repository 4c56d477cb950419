"""
Root Typer application for the polyschema CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from polyschema.cli.db import app as db_app

app = Typer(
    name="polyschema",
    help="polyschema: compose module entities into one schema and provision it.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from polyschema import __version__

        typer.echo(f"polyschema {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """polyschema CLI: schema composition and database provisioning."""


app.add_typer(db_app, name="db", help="Database provisioning.")
