"""Unit tests for engines.executor (QueryExecutor dispatch by definition kind)."""

from unittest.mock import MagicMock

import pytest

from querybridge.core.exceptions import DefinitionError, InjectionDetectedError
from querybridge.definitions import MappedQuery, ScheduledQuery, SynchronousQuery
from querybridge.engines import MapperRegistry, QueryExecutor

MAPPER = """
<mapper namespace="items">
  <select id="byId">SELECT * FROM items WHERE id = #{id}</select>
</mapper>
"""


def _executor(run_sql=None, *, screen_injection=False) -> QueryExecutor:
    return QueryExecutor(
        MapperRegistry.from_strings(MAPPER),
        screen_injection=screen_injection,
        run_sql=run_sql or MagicMock(return_value=[]),
    )


def test_synchronous_renders_template():
    ex = _executor()
    d = SynchronousQuery(template="SELECT * FROM t WHERE id=#{id}", endpoint="/t")
    assert ex.render(d, {"id": "5"}).sql == "SELECT * FROM t WHERE id=5"


def test_synchronous_screening_follows_flag():
    d = SynchronousQuery(template="SELECT #{id}", endpoint="/t")
    with pytest.raises(InjectionDetectedError):
        _executor(screen_injection=True).render(d, {"id": "1; DROP TABLE t"})
    assert _executor().render(d, {"id": "1;"}).sql == "SELECT 1;"


def test_scheduled_ignores_params():
    ex = _executor(screen_injection=True)
    d = ScheduledQuery(template="SELECT * FROM s", topic="/s", interval_ms=1000)
    assert ex.render(d, {"x": "1; DROP"}).sql == "SELECT * FROM s"


def test_mapped_resolves_statement():
    ex = _executor()
    d = MappedQuery(namespace="items", statement_id="byId", endpoint="/items")
    assert ex.render(d, {"id": "7"}).sql == "SELECT * FROM items WHERE id = 7"


@pytest.mark.parametrize(
    "definition, message",
    [
        (SynchronousQuery(template="", endpoint="/t"), "Query item empty"),
        (ScheduledQuery(template="", topic="/s", interval_ms=10), "Query item empty"),
        (
            MappedQuery(namespace="", statement_id="byId", endpoint="/m"),
            "Namespace or Query ID is empty",
        ),
        (
            MappedQuery(namespace="items", statement_id="", endpoint="/m"),
            "Namespace or Query ID is empty",
        ),
    ],
)
def test_blank_definition_raises(definition, message):
    with pytest.raises(DefinitionError, match=message):
        _executor().render(definition, {})


def test_execute_runs_sql_and_normalizes_rows():
    run_sql = MagicMock(return_value=[{"id": 9223372036854775807, "n": 42}])
    ex = _executor(run_sql)
    d = SynchronousQuery(template="SELECT * FROM t WHERE id=#{id}", endpoint="/t")

    rows = ex.execute(d, {"id": "1"})

    run_sql.assert_called_once_with("SELECT * FROM t WHERE id=1")
    assert rows == [{"id": "9223372036854775807", "n": 42}]


def test_execute_is_not_cached():
    run_sql = MagicMock(return_value=[])
    ex = _executor(run_sql)
    d = SynchronousQuery(template="SELECT 1", endpoint="/t")
    ex.execute(d)
    ex.execute(d)
    assert run_sql.call_count == 2
