"""
Load MyBatis-style XML mapper files.

    <mapper namespace="users">
      <sql id="columns">id, name</sql>
      <select id="byIds">
        SELECT <include refid="columns"/> FROM users
        <where>
          <if test="ids != null">
            id IN <foreach collection="ids" item="id" open="(" separator="," close=")">#{id}</foreach>
          </if>
        </where>
      </select>
    </mapper>

A file that fails to parse, or has no namespace, is logged and skipped.
"""

import logging
import os
from xml.etree import ElementTree

from querybridge.core.exceptions import ConfigurationError

_log = logging.getLogger(__name__)

STATEMENT_TAGS = frozenset({"select", "insert", "update", "delete"})
FRAGMENT_TAG = "sql"


class MapperRegistry:
    """Statements and ``<sql>`` fragments keyed by ``(namespace, id)``."""

    def __init__(self) -> None:
        self._statements: dict[tuple[str, str], ElementTree.Element] = {}
        self._fragments: dict[tuple[str, str], ElementTree.Element] = {}

    @classmethod
    def load_dir(cls, path: str | None) -> "MapperRegistry":
        """Load every ``*.xml`` file in *path* (sorted by file name).

        A missing or unset folder yields an empty registry.
        """
        registry = cls()
        if not path:
            _log.info("Skip mapper loading (MAPPER_DIR not set)")
            return registry
        if not os.path.isdir(path):
            _log.warning("Mapper folder %s does not exist", path)
            return registry
        _log.info("Load mappers from folder %s", path)
        for file_name in sorted(os.listdir(path)):
            if not file_name.endswith(".xml"):
                continue
            file_path = os.path.join(path, file_name)
            try:
                with open(file_path, encoding="utf-8") as f:
                    namespace = registry.add_source(f.read(), origin=file_path)
            except (OSError, ConfigurationError) as e:
                _log.error("Skipping mapper file %s: %s", file_path, e)
                continue
            _log.info("Mapper file %s (namespace %s)", file_name, namespace)
        return registry

    @classmethod
    def from_strings(cls, *sources: str) -> "MapperRegistry":
        """Build a registry from XML texts. Raises ConfigurationError on a bad one."""
        registry = cls()
        for index, source in enumerate(sources):
            registry.add_source(source, origin=f"<mapper {index}>")
        return registry

    def add_source(self, source: str, *, origin: str = "<string>") -> str:
        """Parse one mapper document and register its statements.

        Returns the namespace. Raises ConfigurationError when the document
        is not well-formed or is not a namespaced ``<mapper>``.
        """
        try:
            root = ElementTree.fromstring(source)
        except ElementTree.ParseError as e:
            raise ConfigurationError(f"{origin}: invalid mapper XML: {e}") from e
        if root.tag != "mapper":
            raise ConfigurationError(f"{origin}: root element must be <mapper>, got <{root.tag}>")
        namespace = (root.get("namespace") or "").strip()
        if not namespace:
            raise ConfigurationError(f"{origin}: <mapper> has no namespace")

        for el in root:
            statement_id = (el.get("id") or "").strip()
            if el.tag in STATEMENT_TAGS:
                target = self._statements
            elif el.tag == FRAGMENT_TAG:
                target = self._fragments
            else:
                _log.debug("%s: ignoring <%s> in namespace %s", origin, el.tag, namespace)
                continue
            if not statement_id:
                raise ConfigurationError(f"{origin}: <{el.tag}> without id in namespace {namespace}")
            key = (namespace, statement_id)
            if key in target:
                _log.warning("%s: %s.%s redefined; the later definition wins", origin, *key)
            target[key] = el
        return namespace

    def get(self, namespace: str, statement_id: str) -> ElementTree.Element | None:
        return self._statements.get((namespace, statement_id))

    def fragment(self, namespace: str, refid: str) -> ElementTree.Element | None:
        """Look up an ``<sql>`` fragment by id in *namespace*, or by
        ``other.namespace.id``."""
        found = self._fragments.get((namespace, refid))
        if found is None and "." in refid:
            other_ns, _, other_id = refid.rpartition(".")
            found = self._fragments.get((other_ns, other_id))
        return found

    def statements(self) -> list[tuple[str, str]]:
        return list(self._statements)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._statements
