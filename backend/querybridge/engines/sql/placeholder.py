"""
Named-placeholder SQL templates (``#{name}``).

Values are substituted as plain text; they are not quoted. Injection
screening, when enabled, runs on each raw value before substitution.

A placeholder whose value is absent or ``None`` is left in the output as
``#{name}``. This can produce SQL the data store rejects; it is kept that
way rather than guessing a default.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any, NamedTuple

from querybridge.engines.sql.safety import check_injection

_log = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"#\{\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\}")


class RenderedStatement(NamedTuple):
    """Final SQL plus the values bound into it."""

    sql: str
    params: dict[str, Any]


def extract_placeholders(template: str) -> list[str]:
    """Distinct placeholder names in first-appearance order."""
    names: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


class PlaceholderTemplateEngine:
    """Renders ``#{name}`` templates from a parameter bag."""

    def render_statement(
        self,
        template: str,
        bag: Mapping[str, Any],
        *,
        screen_injection: bool = False,
    ) -> RenderedStatement:
        names = extract_placeholders(template)
        if not names:
            return RenderedStatement(template, {})

        bound: dict[str, Any] = {}
        for name in names:
            value = bag.get(name)
            if value is None:
                continue
            if screen_injection:
                check_injection(name, value)
            bound[name] = value

        _log.debug("Placeholders %s bound %s", names, bound)

        def _substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in bound:
                return str(bound[name])
            return match.group(0)

        return RenderedStatement(PLACEHOLDER_PATTERN.sub(_substitute, template), bound)

    def render(
        self,
        template: str,
        bag: Mapping[str, Any],
        *,
        screen_injection: bool = False,
    ) -> str:
        """Render *template* with *bag* to final SQL text.

        Raises InjectionDetectedError when ``screen_injection`` is set and a
        bound value matches an injection signature.
        """
        return self.render_statement(
            template, bag, screen_injection=screen_injection
        ).sql

    def parse_parameters(self, template: str) -> list[str]:
        return extract_placeholders(template)


def render(
    template: str, bag: Mapping[str, Any], screen_injection: bool = False
) -> str:
    return PlaceholderTemplateEngine().render(
        template, bag, screen_injection=screen_injection
    )
