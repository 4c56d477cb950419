"""Database provisioning tools: statement parser and database utility."""

from polyschema.tools.database import (
    MARKER_REMEDIATION,
    MARKER_TABLE,
    MARKER_VALUE,
    DatabaseUtility,
    SafetyCheck,
    unescape_statement,
)
from polyschema.tools.sql_parser import SqlScriptParser

__all__ = [
    "DatabaseUtility",
    "SafetyCheck",
    "SqlScriptParser",
    "MARKER_TABLE",
    "MARKER_VALUE",
    "MARKER_REMEDIATION",
    "unescape_statement",
]
