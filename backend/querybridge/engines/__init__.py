"""
Engines: ``#{name}`` SQL templates, XML mapper, QueryExecutor.
"""

from querybridge.engines.executor import QueryExecutor
from querybridge.engines.mapper import MapperRegistry, MapperResolver
from querybridge.engines.sql import PlaceholderTemplateEngine, execute_sql

__all__ = [
    "QueryExecutor",
    "MapperRegistry",
    "MapperResolver",
    "PlaceholderTemplateEngine",
    "execute_sql",
]
