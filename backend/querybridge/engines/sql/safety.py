"""
Injection screening for caller-supplied values.

Signatures are matched against the *raw* value before it is bound into
SQL, never against the assembled statement, so literal SQL around a
placeholder cannot trigger a false positive.

Matched (case-insensitive):

- statement terminator ``;``
- comment markers ``--``, ``/*``, ``*/``
- ``UNION [ALL|DISTINCT] SELECT``

Apostrophes, single hyphens, ``#`` and lone keywords (``union station``)
are legitimate data and pass.

Usage::

    check_injection("id", "1; DROP TABLE t")  # raises InjectionDetectedError
"""

import re
from typing import Any

from querybridge.core.exceptions import InjectionDetectedError

_SIGNATURES: list[tuple[str, re.Pattern[str]]] = [
    ("statement terminator", re.compile(r";")),
    ("line comment", re.compile(r"--")),
    ("block comment", re.compile(r"/\*|\*/")),
    (
        "union select",
        re.compile(r"\bunion\s+(?:all\s+|distinct\s+)?select\b", re.IGNORECASE),
    ),
]


def find_injection_signature(value: Any) -> str | None:
    """Return the name of the first signature found in *value*, else None.

    Lists, tuples and dict values are screened element-wise; other
    non-string scalars are screened by their text.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        value = list(value.values())
    if isinstance(value, (list, tuple)):
        for item in value:
            found = find_injection_signature(item)
            if found:
                return found
        return None
    text = value if isinstance(value, str) else str(value)
    for label, pattern in _SIGNATURES:
        if pattern.search(text):
            return label
    return None


def check_injection(name: str, value: Any) -> None:
    """Raise InjectionDetectedError when *value* carries a signature."""
    found = find_injection_signature(value)
    if found:
        raise InjectionDetectedError(name, value, found)
