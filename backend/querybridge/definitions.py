"""
Query definitions and the registry built from raw ``QUERY_*`` entries.

A raw entry is ``;``-delimited; the first field is the kind token and the
remaining positional fields depend on it:

    api;<sql template>;<endpoint>
    mqtt;<sql template>;<topic suffix>;<interval ms>
    mybatis;<namespace>;<statement id>;<endpoint>

Definitions are frozen once loaded. Consumers dispatch on the concrete
class and end the chain with ``assert_never`` so a new kind cannot slip
through unhandled.
"""

import logging
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError

from querybridge.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENTRY_DELIMITER = ";"


class QueryKindEnum(str, Enum):
    """Kind token of a raw entry (first field)."""

    API = "api"
    MQTT = "mqtt"
    MYBATIS = "mybatis"


class _Definition(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Configuration key the entry came from (e.g. QUERY_USERS); logging only.
    name: str = ""


class SynchronousQuery(_Definition):
    """Request/response endpoint rendering a ``#{name}`` template."""

    kind: Literal[QueryKindEnum.API] = QueryKindEnum.API
    template: str
    endpoint: str


class ScheduledQuery(_Definition):
    """Template executed every ``interval_ms`` and published to ``topic``."""

    kind: Literal[QueryKindEnum.MQTT] = QueryKindEnum.MQTT
    template: str
    topic: str
    interval_ms: PositiveInt


class MappedQuery(_Definition):
    """Endpoint resolving a mapper statement by namespace and id."""

    kind: Literal[QueryKindEnum.MYBATIS] = QueryKindEnum.MYBATIS
    namespace: str
    statement_id: str
    endpoint: str


QueryDefinition = Annotated[
    SynchronousQuery | ScheduledQuery | MappedQuery,
    Field(discriminator="kind"),
]

EndpointDefinition = SynchronousQuery | MappedQuery

# Positional layout (after the kind token) per kind.
_FIELD_LAYOUT: dict[QueryKindEnum, tuple[str, ...]] = {
    QueryKindEnum.API: ("template", "endpoint"),
    QueryKindEnum.MQTT: ("template", "topic", "interval_ms"),
    QueryKindEnum.MYBATIS: ("namespace", "statement_id", "endpoint"),
}

_MODELS: dict[QueryKindEnum, type[_Definition]] = {
    QueryKindEnum.API: SynchronousQuery,
    QueryKindEnum.MQTT: ScheduledQuery,
    QueryKindEnum.MYBATIS: MappedQuery,
}


def _normalize_endpoint(path: str) -> str:
    path = path.strip()
    if not path.startswith("/"):
        path = "/" + path
    return path


def parse_entry(raw: str, *, name: str = "") -> QueryDefinition:
    """Parse one raw entry into a definition.

    Raises ConfigurationError for an unknown kind token, missing fields, or
    an interval that is not a positive integer.
    """
    fields = [f.strip() for f in raw.split(ENTRY_DELIMITER)]
    token = fields[0].lower()
    try:
        kind = QueryKindEnum(token)
    except ValueError as e:
        raise ConfigurationError(
            f"{name or 'entry'}: unknown query kind {fields[0]!r}; "
            f"expected one of {[k.value for k in QueryKindEnum]}"
        ) from e

    layout = _FIELD_LAYOUT[kind]
    values = fields[1:]
    if len(values) < len(layout):
        missing = layout[len(values):]
        raise ConfigurationError(
            f"{name or 'entry'}: {kind.value} definition is missing {', '.join(missing)}"
        )

    data: dict[str, str] = dict(zip(layout, values))
    if "endpoint" in data:
        data["endpoint"] = _normalize_endpoint(data["endpoint"])
    if kind == QueryKindEnum.MQTT and not data["interval_ms"].isdigit():
        raise ConfigurationError(
            f"{name or 'entry'}: interval must be an integer number of ms, "
            f"got {data['interval_ms']!r}"
        )

    try:
        return _MODELS[kind].model_validate({"name": name, **data})  # type: ignore[return-value]
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"{name or 'entry'}: {errors}") from e


class Registry:
    """Ordered, immutable set of loaded definitions.

    Built once at startup and passed by reference to the executor, router
    and scheduler. Entries rejected during load are kept in ``rejected``.
    """

    def __init__(
        self,
        definitions: Iterable[QueryDefinition] = (),
        rejected: Iterable[tuple[str, ConfigurationError]] = (),
    ) -> None:
        self._definitions = tuple(definitions)
        self.rejected: tuple[tuple[str, ConfigurationError], ...] = tuple(rejected)

    @classmethod
    def load(cls, raw_entries: Sequence[str | tuple[str, str]]) -> "Registry":
        """Parse entries in order; a bad entry is logged and skipped.

        Each entry is either a raw string or a ``(key, raw)`` pair.
        """
        definitions = []
        rejected: list[tuple[str, ConfigurationError]] = []
        for index, item in enumerate(raw_entries):
            if isinstance(item, tuple):
                name, raw = item
            else:
                name, raw = f"entry[{index}]", item
            try:
                definitions.append(parse_entry(raw, name=name))
            except ConfigurationError as e:
                logger.error("Skipping query definition %s: %s", name, e)
                rejected.append((raw, e))
        return cls(definitions, rejected)

    def __iter__(self):
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def synchronous(self) -> list[SynchronousQuery]:
        return [d for d in self._definitions if isinstance(d, SynchronousQuery)]

    def scheduled(self) -> list[ScheduledQuery]:
        return [d for d in self._definitions if isinstance(d, ScheduledQuery)]

    def mapped(self) -> list[MappedQuery]:
        return [d for d in self._definitions if isinstance(d, MappedQuery)]

    def endpoints(self) -> list[EndpointDefinition]:
        """Endpoint-bearing definitions in registration order.

        Duplicate endpoints are kept; the first registered one answers.
        """
        return [
            d for d in self._definitions if isinstance(d, (SynchronousQuery, MappedQuery))
        ]
