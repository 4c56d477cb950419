"""Split SQL scripts into statements.

The parser is line oriented.  A statement ends on the first line
whose trimmed text ends with ``;``; that line is part of the statement.
Lines are trimmed and joined with ``\\n``.  Blank lines between statements
are skipped, blank lines inside a statement are kept as empty lines.

Script format contract: the terminator of every statement must be the last
non-whitespace character of its final line.  The parser does not understand
comments or string literals, so ``values ('a;'); -- note`` does *not* close
a statement and a line inside a quoted literal that ends with ``;`` *does*.
Text after the last terminator is ignored.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

from polyschema.core.errors import ConfigError, MissingConfigError
from polyschema.core.logging import get_logger

logger = get_logger(__name__)

TERMINATOR = ";"


class SqlScriptParser:
    """Translate SQL script text into a list of executable statements."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def parse(self, script: str | Path) -> list[str]:
        """Parse the script file at *script*."""
        if script is None or not str(script):
            raise MissingConfigError("script", "The sql file to parse cannot be empty.")
        path = Path(script)
        logger.debug("sql_script_parsing", path=str(path))
        try:
            text = path.read_text(encoding=self.encoding)
        except OSError as exc:
            raise ConfigError(f"Cannot read SQL script {path}", cause=exc) from exc
        return self.parse_text(text)

    def parse_text(self, text: str) -> list[str]:
        return list(self.iter_statements(text.splitlines()))

    def iter_statements(self, lines: Iterable[str]) -> Iterator[str]:
        """Yield statements from an iterable of raw lines."""
        current: list[str] | None = None
        for raw in lines:
            line = raw.strip()
            if current is None:
                if not line:
                    continue
                current = []
            current.append(line)
            if line.endswith(TERMINATOR):
                yield "\n".join(current)
                current = None

        if current:
            logger.debug("sql_script_unterminated", discarded="\n".join(current))


__all__ = ["TERMINATOR", "SqlScriptParser"]
