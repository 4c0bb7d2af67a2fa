"""
SQL side of the engine: ``#{name}`` templates, injection screening,
execution and row normalization.

Exports: PlaceholderTemplateEngine, extract_placeholders, execute_sql, normalize_rows.
"""

from querybridge.engines.sql.executor import execute_sql
from querybridge.engines.sql.normalize import normalize_rows, normalize_value
from querybridge.engines.sql.placeholder import (
    PlaceholderTemplateEngine,
    RenderedStatement,
    extract_placeholders,
)
from querybridge.engines.sql.safety import check_injection, find_injection_signature

__all__ = [
    "PlaceholderTemplateEngine",
    "RenderedStatement",
    "extract_placeholders",
    "check_injection",
    "find_injection_signature",
    "execute_sql",
    "normalize_rows",
    "normalize_value",
]
