"""
Resolve ``(namespace, statement id, parameters)`` to SQL through a mapper.

Parameter values arriving as text are parsed as JSON (so ``ids=[1,2,3]``
drives a ``<foreach>`` and ``age=20`` compares as a number); anything that
is not valid JSON is bound as the original string. Values are bound with
``#{name}`` as SQL literals and with ``${name}`` as raw text.

Supported elements: ``if``, ``choose``/``when``/``otherwise``, ``where``,
``set``, ``trim``, ``foreach``, ``include``, ``bind``.
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, NamedTuple
from xml.etree import ElementTree

from querybridge.core.exceptions import MapperResolutionError
from querybridge.engines.mapper.expressions import evaluate, evaluate_test
from querybridge.engines.mapper.loader import MapperRegistry
from querybridge.engines.sql.literals import sql_literal
from querybridge.engines.sql.placeholder import RenderedStatement
from querybridge.engines.sql.safety import check_injection

_log = logging.getLogger(__name__)

# #{name} binds an SQL literal, ${name} raw text; one pass so bound values
# are never re-scanned.
_PARAM_PATTERN = re.compile(r"([#$])\{([^}]*)\}")

_MISSING = object()


class Structured(NamedTuple):
    """A text parameter that parsed as a JSON value (number, boolean,
    null, quoted string, array or object)."""

    value: Any


class Raw(NamedTuple):
    """A text parameter bound as-is."""

    value: str


ParsedValue = Structured | Raw

# First characters a JSON document can start with.
_JSON_START = frozenset('[{"-0123456789tfn')


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_value(text: str) -> ParsedValue:
    """Parse *text* as JSON, falling back to the raw string.

    ``"20"`` binds the number 20 and ``"true"`` the boolean, so test
    expressions compare them as such; ``NaN`` / ``Infinity`` stay text.
    """
    s = text.strip()
    if not s or s[0] not in _JSON_START:
        return Raw(text)
    try:
        value = json.loads(s, parse_constant=_reject_constant)
    except ValueError:
        return Raw(text)
    return Structured(value)


def normalize_parameters(
    params: Mapping[str, Any], *, screen_injection: bool = False
) -> dict[str, Any]:
    """Drop empty values, screen raw values, parse structured text.

    Raises InjectionDetectedError when screening is on and a raw value
    matches an injection signature (checked before any parsing).
    """
    bound: dict[str, Any] = {}
    for name, value in params.items():
        if value is None or value == "":
            continue
        if screen_injection:
            check_injection(name, value)
        if isinstance(value, str):
            value = parse_value(value).value
        bound[name] = value
    return bound


def lookup(context: Mapping[str, Any], path: str) -> Any:
    """Resolve a (possibly dotted) name; ``_MISSING`` when absent."""
    if path in context:
        return context[path]
    head, *rest = path.split(".")
    if head not in context:
        return _MISSING
    obj = context[head]
    for part in rest:
        if isinstance(obj, Mapping):
            if part not in obj:
                return _MISSING
            obj = obj[part]
        elif isinstance(obj, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(obj):
                return _MISSING
            obj = obj[index]
        else:
            return _MISSING
    return obj


def _override_pattern(override: str) -> str:
    token = re.escape(override.strip())
    if override.strip()[-1:].isalnum():
        token += r"(?=\s|$)"
    return token


def _trim(
    inner: str,
    *,
    prefix: str = "",
    suffix: str = "",
    prefix_overrides: list[str] | None = None,
    suffix_overrides: list[str] | None = None,
) -> str:
    s = inner.strip()
    if not s:
        return ""
    for override in prefix_overrides or []:
        if not override.strip():
            continue
        stripped = re.sub(r"^\s*" + _override_pattern(override), "", s, count=1, flags=re.IGNORECASE)
        if stripped != s:
            s = stripped.strip()
            break
    for override in suffix_overrides or []:
        if not override.strip():
            continue
        stripped = re.sub(re.escape(override.strip()) + r"\s*$", "", s, count=1, flags=re.IGNORECASE)
        if stripped != s:
            s = stripped.strip()
            break
    if not s:
        return ""
    return " ".join(part for part in (prefix, s, suffix) if part)


def _split_overrides(value: str | None) -> list[str]:
    return [v for v in (value or "").split("|") if v.strip()]


def _tidy(sql: str) -> str:
    lines = (line.strip() for line in sql.splitlines())
    return "\n".join(line for line in lines if line)


class _StatementRenderer:
    """Renders one statement element; holds the namespace for includes."""

    def __init__(self, mappers: MapperRegistry, namespace: str, statement_id: str) -> None:
        self._mappers = mappers
        self._namespace = namespace
        self._where = f"{namespace}.{statement_id}"

    def render(self, element: ElementTree.Element, context: dict[str, Any]) -> str:
        return self._children(element, context)

    def _children(self, element: ElementTree.Element, context: dict[str, Any]) -> str:
        parts = [self._text(element.text, context)]
        for child in element:
            parts.append(self._node(child, context))
            parts.append(self._text(child.tail, context))
        return "".join(parts)

    def _value(self, name: str, context: Mapping[str, Any]) -> Any:
        value = lookup(context, name)
        if value is _MISSING:
            raise MapperResolutionError(
                f"{self._where}: parameter {name!r} is required but was not supplied"
            )
        return value

    def _text(self, text: str | None, context: Mapping[str, Any]) -> str:
        if not text:
            return ""

        def _substitute(match: re.Match[str]) -> str:
            name = match.group(2).split(",")[0].strip()
            value = self._value(name, context)
            if match.group(1) == "#":
                return sql_literal(value)
            return "" if value is None else str(value)

        return _PARAM_PATTERN.sub(_substitute, text)

    def _test(self, element: ElementTree.Element, context: Mapping[str, Any]) -> bool:
        test = element.get("test")
        if test is None:
            raise MapperResolutionError(f"{self._where}: <{element.tag}> without test")
        return evaluate_test(test, context)

    def _node(self, el: ElementTree.Element, context: dict[str, Any]) -> str:
        tag = el.tag
        if tag == "if":
            return self._children(el, context) if self._test(el, context) else ""
        if tag == "choose":
            otherwise = None
            for branch in el:
                if branch.tag == "when" and self._test(branch, context):
                    return self._children(branch, context)
                if branch.tag == "otherwise":
                    otherwise = branch
            return self._children(otherwise, context) if otherwise is not None else ""
        if tag == "where":
            return _trim(
                self._children(el, context),
                prefix="WHERE",
                prefix_overrides=["AND", "OR"],
            )
        if tag == "set":
            return _trim(self._children(el, context), prefix="SET", suffix_overrides=[","])
        if tag == "trim":
            return _trim(
                self._children(el, context),
                prefix=el.get("prefix", ""),
                suffix=el.get("suffix", ""),
                prefix_overrides=_split_overrides(el.get("prefixOverrides")),
                suffix_overrides=_split_overrides(el.get("suffixOverrides")),
            )
        if tag == "foreach":
            return self._foreach(el, context)
        if tag == "include":
            refid = el.get("refid", "")
            fragment = self._mappers.fragment(self._namespace, refid)
            if fragment is None:
                raise MapperResolutionError(f"{self._where}: unknown <include refid={refid!r}>")
            return self._children(fragment, context)
        if tag == "bind":
            name = el.get("name")
            if not name:
                raise MapperResolutionError(f"{self._where}: <bind> without name")
            context[name] = evaluate(el.get("value", ""), context)
            return ""
        raise MapperResolutionError(f"{self._where}: unsupported element <{tag}>")

    def _foreach(self, el: ElementTree.Element, context: dict[str, Any]) -> str:
        collection_name = (el.get("collection") or "").strip()
        collection = self._value(collection_name, context)
        if isinstance(collection, Mapping):
            pairs = list(collection.items())
        elif isinstance(collection, (list, tuple)):
            pairs = list(enumerate(collection))
        else:
            raise MapperResolutionError(
                f"{self._where}: foreach collection {collection_name!r} is not a list"
            )
        if not pairs:
            return ""
        item_name = el.get("item") or "item"
        index_name = el.get("index") or "index"
        pieces = []
        for index, item in pairs:
            scope = {**context, item_name: item, index_name: index}
            pieces.append(self._children(el, scope).strip())
        return el.get("open", "") + el.get("separator", ",").join(pieces) + el.get("close", "")


class MapperResolver:
    """Resolves mapper statements to final SQL."""

    def __init__(self, mappers: MapperRegistry) -> None:
        self.mappers = mappers

    def resolve(
        self,
        namespace: str,
        statement_id: str,
        params: Mapping[str, Any],
        *,
        screen_injection: bool = False,
    ) -> RenderedStatement:
        """
        Render the statement with *params*.

        Raises MapperResolutionError for an unknown statement, a required
        parameter missing from *params*, or an invalid fragment; raises
        InjectionDetectedError when screening rejects a value.
        """
        element = self.mappers.get(namespace, statement_id)
        if element is None:
            raise MapperResolutionError(
                f"Mapper statement {namespace}.{statement_id} not found"
            )
        bound = normalize_parameters(params, screen_injection=screen_injection)
        _log.info("%s, %s, %s", namespace, statement_id, json.dumps(bound, default=str))
        renderer = _StatementRenderer(self.mappers, namespace, statement_id)
        sql = _tidy(renderer.render(element, dict(bound)))
        return RenderedStatement(sql, bound)
