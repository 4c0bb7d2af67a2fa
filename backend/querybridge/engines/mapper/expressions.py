"""
Test expressions of mapper fragments (``<if test="...">``, ``<when>``,
``<bind value="...">``), evaluated with Jinja2's expression compiler.

Accepted syntax is a Jinja2 expression plus the mapper conventions:

- ``null`` is ``None``
- ``&&`` / ``||`` are ``and`` / ``or``
- a parameter missing from the bag equals ``null`` and is falsy;
  attribute access on it stays missing

Performance: compiled expressions are cached in an LRU dict keyed by
source so a statement's conditions are only compiled once.
"""

import logging
import re
import threading
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Any

from jinja2 import (
    ChainableUndefined,
    Environment,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
)

from querybridge.core.exceptions import MapperResolutionError

_log = logging.getLogger(__name__)


class MissingParam(ChainableUndefined):
    """Undefined that compares equal to ``None`` (``name != null`` is False)."""

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return other is None or isinstance(other, ChainableUndefined)

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    __hash__ = ChainableUndefined.__hash__


_EXPR_ENV: Environment | None = None

_CACHE_MAX_SIZE = 512
_expr_cache: OrderedDict[str, Callable[..., Any]] = OrderedDict()
_cache_lock = threading.Lock()

_AND = re.compile(r"\s*&&\s*")
_OR = re.compile(r"\s*\|\|\s*")


def _get_expr_env() -> Environment:
    global _EXPR_ENV
    if _EXPR_ENV is None:
        _EXPR_ENV = Environment(autoescape=False, undefined=MissingParam)
    return _EXPR_ENV


def _translate(source: str) -> str:
    return _OR.sub(" or ", _AND.sub(" and ", source)).strip()


def _compile_cached(source: str) -> Callable[..., Any]:
    with _cache_lock:
        fn = _expr_cache.get(source)
        if fn is not None:
            _expr_cache.move_to_end(source)
            return fn
    try:
        fn = _get_expr_env().compile_expression(_translate(source))
    except TemplateSyntaxError as e:
        raise MapperResolutionError(
            f"Invalid mapper expression {source!r}: {e}"
        ) from e
    with _cache_lock:
        _expr_cache[source] = fn
        if len(_expr_cache) > _CACHE_MAX_SIZE:
            _expr_cache.popitem(last=False)
    return fn


def evaluate(source: str, context: Mapping[str, Any]) -> Any:
    """Evaluate *source* against *context*; a missing name yields ``None``.

    Raises MapperResolutionError when the expression fails on the supplied
    values (e.g. ``age > 18`` with a non-numeric ``age``).
    """
    fn = _compile_cached(source)
    try:
        value = fn(**{**context, "null": None})
    except UndefinedError as e:
        _log.debug("Expression %r hit a missing parameter: %s", source, e)
        return None
    except (TypeError, ValueError, ArithmeticError, LookupError, TemplateRuntimeError) as e:
        raise MapperResolutionError(
            f"Mapper expression {source!r} failed: {e}"
        ) from e
    if isinstance(value, ChainableUndefined):
        return None
    return value


def evaluate_test(source: str, context: Mapping[str, Any]) -> bool:
    """Truth value of a ``test`` attribute."""
    return bool(evaluate(source, context))
