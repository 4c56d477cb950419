"""Administrative operations against the composed schema's database.

``DatabaseUtility`` deletes entity rows, regenerates the schema, renders
DDL scripts and runs SQL scripts or literal statements.  Destructive
operations (``delete`` and ``regenerate_schema``) only run once the target
has proven it is disposable:

* in-memory targets always pass;
* any other target must hold the sentinel row in the marker table::

      create table test_marker (drop_database varchar (50));
      insert into test_marker values ('YES, DROP ME');

Statement batches run inside one session and one transaction on the
session's connection.  A failing statement rolls back the whole batch and
the original driver error is re-raised.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import create_mock_engine
from sqlalchemy.exc import SQLAlchemyError

from polyschema.core.errors import (
    MarkerQueryError,
    MissingConfigError,
    UnsafeTargetError,
)
from polyschema.core.logging import LogContext, get_logger
from polyschema.orm.composer import SchemaComposer
from polyschema.tools.sql_parser import SqlScriptParser

logger = get_logger(__name__)

MARKER_TABLE = "test_marker"
MARKER_COLUMN = "drop_database"
MARKER_VALUE = "YES, DROP ME"
DIALECT_PLACEHOLDER = "{dialect}"
SCRIPT_SUFFIX = ".sql"

MARKER_REMEDIATION = (
    f"create table {MARKER_TABLE} ({MARKER_COLUMN} varchar (50));\n"
    f"insert into {MARKER_TABLE} values ('{MARKER_VALUE}');"
)


_SIMPLE_ESCAPES = {"b": "\b", "t": "\t", "n": "\n", "f": "\f", "r": "\r", '"': '"', "'": "'", "\\": "\\"}
_ESCAPE = re.compile(r"\\(u+[0-9a-fA-F]{4}|[0-3][0-7]{2}|[0-7]{1,2}|[btnfr'\"\\]|\Z)")


def _decode_escape(match: re.Match[str]) -> str:
    body = match.group(1)
    if not body:
        return ""
    if body[0] == "u":
        return chr(int(body[-4:], 16))
    if body[0].isdigit():
        return chr(int(body, 8))
    return _SIMPLE_ESCAPES[body]


@dataclass(frozen=True)
class SafetyCheck:
    """Outcome of the production-safety check."""

    passed: bool
    reason: str
    in_memory: bool = False


def unescape_statement(statement: str) -> str:
    """Decode Java-style backslash escapes.

    Handles ``\\b \\t \\n \\f \\r \\" \\' \\\\``, octal (``\\0`` to ``\\377``) and
    ``\\uXXXX``.  Unknown sequences are kept as written and a lone trailing
    backslash is dropped.
    """
    if "\\" not in statement:
        return statement
    return _ESCAPE.sub(_decode_escape, statement)


def short_dialect_name(dialect: str) -> str:
    """Last dot-separated segment of a dialect identifier."""
    return dialect.rsplit(".", 1)[-1]


class DatabaseUtility:
    """Provision and reset the database behind a :class:`SchemaComposer`."""

    def __init__(self, composer: SchemaComposer, parser: SqlScriptParser | None = None):
        if composer is None:
            raise MissingConfigError("composer", "The SchemaComposer is None")
        self._composer = composer
        self._parser = parser or SqlScriptParser()

    @property
    def composer(self) -> SchemaComposer:
        return self._composer

    # ------------------------------------------------------------------
    # Destructive operations
    # ------------------------------------------------------------------

    def delete(self, *entities: type) -> None:
        """Delete every row of the given entities' tables in one transaction."""
        if not entities:
            raise MissingConfigError("entities", "No entities to delete")

        statements = [f"delete from {self._composer.table_name_for(entity)}" for entity in entities]
        self.assert_safe_target()
        self.run_sql_commands(*statements)

    def regenerate_schema(self) -> None:
        """Drop and recreate every table of the composed schema."""
        self.assert_safe_target()
        metadata = self._composer.metadata
        with LogContext(operation="regenerate_schema"):
            logger.info("schema_regenerating", tables=len(metadata.tables))
            with self._composer.engine.begin() as connection:
                metadata.drop_all(connection)
                metadata.create_all(connection)
            logger.info("schema_regenerated", tables=sorted(metadata.tables))

    # ------------------------------------------------------------------
    # Safety check
    # ------------------------------------------------------------------

    def check_safe_target(self) -> SafetyCheck:
        """Check whether the target may be destroyed.

        Raises :class:`MarkerQueryError` when the marker table cannot be
        queried at all.
        """
        if self._composer.is_in_memory_target():
            return SafetyCheck(True, "in-memory database", in_memory=True)

        query = f"select {MARKER_COLUMN} from {MARKER_TABLE}"
        logger.debug("safety_check_started", table=MARKER_TABLE)
        try:
            with self._composer.engine.connect() as connection:
                row = connection.exec_driver_sql(query).first()
        except SQLAlchemyError as exc:
            logger.error(
                "safety_check_query_failed",
                table=MARKER_TABLE,
                error=str(exc),
                remediation=MARKER_REMEDIATION,
            )
            raise MarkerQueryError(
                f"Could not select from {MARKER_TABLE}; it probably does not exist. "
                f"Create it with:\n{MARKER_REMEDIATION}",
                context={"table": MARKER_TABLE},
                cause=exc,
            ) from exc

        if row is None or row[0] is None:
            return SafetyCheck(False, "Marker table does not contain a row")
        if row[0] != MARKER_VALUE:
            return SafetyCheck(False, "Marker table does not contain the correct row")
        return SafetyCheck(True, "marker row present")

    def assert_safe_target(self) -> SafetyCheck:
        """Raise :class:`UnsafeTargetError` unless the target may be destroyed."""
        result = self.check_safe_target()
        if not result.passed:
            logger.error("safety_check_failed", reason=result.reason, remediation=MARKER_REMEDIATION)
            raise UnsafeTargetError(
                f"{result.reason}. Refusing to modify a database that is not marked as disposable; "
                f"create the marker with:\n{MARKER_REMEDIATION}",
                context={"table": MARKER_TABLE},
            )
        return result

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def resolve_script_path(self, schema_file: str | Path) -> Path:
        """Substitute ``{dialect}`` in *schema_file* with the short dialect name."""
        name = str(schema_file)
        if DIALECT_PLACEHOLDER in name:
            name = name.replace(DIALECT_PLACEHOLDER, short_dialect_name(self._composer.dialect_name))
        return Path(name)

    def generate_schema_script(self, schema_file: str | Path) -> Path:
        """Write the schema's CREATE DDL to *schema_file* and return its path."""
        if schema_file is None or str(schema_file) in ("", "."):
            raise MissingConfigError("schema_file", "Schema file name is null or empty")

        output = self.resolve_script_path(schema_file)
        if output.exists():
            output.unlink()
        else:
            output.parent.mkdir(parents=True, exist_ok=True)

        statements: list[str] = []

        def _collect(sql: Any, *multiparams: Any, **params: Any) -> None:
            statements.append(str(sql.compile(dialect=mock.dialect)).strip())

        mock = create_mock_engine(self._composer.engine.url, _collect)
        self._composer.metadata.create_all(mock, checkfirst=False)

        output.write_text("".join(f"{stmt};\n\n" for stmt in statements), encoding="utf-8")
        logger.info("schema_script_generated", path=str(output), statements=len(statements))
        return output

    def run_sql_script(self, path: str | Path) -> None:
        """Run a script file, or every ``*.sql`` file of a directory in name order.

        A path that does not exist is logged and ignored.
        """
        if path is None or str(path) in ("", "."):
            raise MissingConfigError("path", "Script File Name is null or empty")

        target = Path(path)
        if not target.exists():
            logger.info("sql_script_missing", path=str(target))
            return

        if target.is_dir():
            scripts = sorted(
                (p for p in target.iterdir() if p.is_file() and p.name.endswith(SCRIPT_SUFFIX)),
                key=lambda p: p.name,
            )
            logger.debug("sql_directory_scanned", path=str(target), scripts=[p.name for p in scripts])
            for script in scripts:
                self._run_script_file(script)
        else:
            self._run_script_file(target)

    def _run_script_file(self, script: Path) -> None:
        with LogContext(script=script.name):
            self.run_sql_commands(*self._parser.parse(script))

    def run_sql_commands(self, *statements: str) -> None:
        """Execute *statements* as one batch in one transaction."""
        if not statements:
            raise MissingConfigError("statements", "No commands to run")
        self._execute_batch([unescape_statement(s) for s in statements])

    def _execute_batch(self, statements: Sequence[str]) -> None:
        with self._composer.session_factory() as session:
            try:
                with session.begin():
                    connection = session.connection()
                    for statement in statements:
                        connection.exec_driver_sql(statement)
            except SQLAlchemyError as exc:
                logger.error("sql_batch_failed", statements=len(statements), error=str(exc))
                raise
        logger.debug("sql_batch_committed", statements=len(statements))


__all__ = [
    "MARKER_TABLE",
    "MARKER_COLUMN",
    "MARKER_VALUE",
    "MARKER_REMEDIATION",
    "DIALECT_PLACEHOLDER",
    "SafetyCheck",
    "DatabaseUtility",
    "unescape_statement",
    "short_dialect_name",
]
