"""
Dynamic mapper: MyBatis-style XML statements with conditional fragments.

Exports: MapperRegistry, MapperResolver, parse_value, Structured, Raw.
"""

from querybridge.engines.mapper.loader import MapperRegistry
from querybridge.engines.mapper.resolver import (
    MapperResolver,
    ParsedValue,
    Raw,
    Structured,
    normalize_parameters,
    parse_value,
)

__all__ = [
    "MapperRegistry",
    "MapperResolver",
    "ParsedValue",
    "Raw",
    "Structured",
    "normalize_parameters",
    "parse_value",
]
