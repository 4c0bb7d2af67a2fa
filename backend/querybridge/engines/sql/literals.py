"""
SQL literals for values bound with ``#{name}`` in mapper statements.

``sql_literal`` always yields exactly one SQL expression:

=====================  ==============================
value                  literal
=====================  ==============================
None                   NULL
bool                   TRUE / FALSE
int, float, Decimal    bare number
date, datetime         quoted ISO text
list, tuple            (a, b, c); empty -> (NULL)
dict                   quoted JSON
anything else          quoted text, ``'`` doubled
=====================  ==============================
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any

# An IN list nothing can match (``x IN (NULL)`` is never true).
EMPTY_IN_LIST = "(NULL)"


def quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def sql_literal(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        if not value:
            return EMPTY_IN_LIST
        return "(" + ", ".join(_scalar_literal(v) for v in value) + ")"
    return _scalar_literal(value)


def _scalar_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, date):
        return quote(value.isoformat())
    if isinstance(value, (dict, list, tuple)):
        return quote(json.dumps(value, default=str, ensure_ascii=False))
    return quote(str(value))
