"""
Query executor: renders a definition by kind and runs it.

- api / mqtt: ``#{name}`` template -> PlaceholderTemplateEngine
- mybatis: namespace + statement id -> MapperResolver
then execute_sql -> normalize_rows.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any, assert_never

from querybridge.core.exceptions import DefinitionError
from querybridge.definitions import (
    MappedQuery,
    QueryDefinition,
    ScheduledQuery,
    SynchronousQuery,
)
from querybridge.engines.mapper import MapperRegistry, MapperResolver
from querybridge.engines.sql import (
    PlaceholderTemplateEngine,
    RenderedStatement,
    execute_sql,
    normalize_rows,
)

_log = logging.getLogger(__name__)


class QueryExecutor:
    """
    render(definition, params) -> RenderedStatement
    execute(definition, params) -> normalized rows

    ``run_sql`` is the execution capability (``sql -> rows``); it defaults
    to the pooled execute_sql.
    """

    def __init__(
        self,
        mappers: MapperRegistry | None = None,
        *,
        screen_injection: bool = False,
        run_sql: Callable[[str], list[dict[str, Any]]] = execute_sql,
    ) -> None:
        self.templates = PlaceholderTemplateEngine()
        self.mapper = MapperResolver(mappers or MapperRegistry())
        self.screen_injection = screen_injection
        self._run_sql = run_sql

    def render(
        self, definition: QueryDefinition, params: Mapping[str, Any] | None = None
    ) -> RenderedStatement:
        """Render SQL for *definition*.

        Raises DefinitionError when the definition has no template (or no
        mapper coordinates), InjectionDetectedError and
        MapperResolutionError on bad caller input.
        """
        _params = params or {}
        if isinstance(definition, SynchronousQuery):
            if not definition.template:
                raise DefinitionError("Query item empty")
            return self.templates.render_statement(
                definition.template, _params, screen_injection=self.screen_injection
            )
        elif isinstance(definition, ScheduledQuery):
            if not definition.template:
                raise DefinitionError("Query item empty")
            # No caller input on the publish path
            return self.templates.render_statement(definition.template, {})
        elif isinstance(definition, MappedQuery):
            if not definition.namespace or not definition.statement_id:
                raise DefinitionError("Namespace or Query ID is empty")
            return self.mapper.resolve(
                definition.namespace,
                definition.statement_id,
                _params,
                screen_injection=self.screen_injection,
            )
        else:
            assert_never(definition)

    def execute(
        self, definition: QueryDefinition, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Render, run and normalize. Raises QueryExecutionError on store failure."""
        statement = self.render(definition, params)
        _log.info("RUN SQL : %s", statement.sql)
        rows = self._run_sql(statement.sql)
        return normalize_rows(rows)
