"""Link metadata of HAL+JSON snapshots.

Type links look like ``<domain>/rest/type/<entity_type>/<bundle>``, relation
links like ``<domain>/rest/relation/<entity_type>/<bundle>/<field>``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, NamedTuple
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from contentdeploy.domain.model import EntityTypeRegistry

TYPE_LINK_PREFIX: Final[str] = "/rest/type/"
RELATION_LINK_PREFIX: Final[str] = "/rest/relation/"

log = logging.getLogger(__name__)


class RelationLink(NamedTuple):
    entity_type: str
    bundle: str
    field_name: str


def type_link_path(entity_type: str, bundle: str | None) -> str:
    return f"{TYPE_LINK_PREFIX}{entity_type}/{bundle or entity_type}"


def relation_link_path(relation: RelationLink) -> str:
    return f"{RELATION_LINK_PREFIX}{relation.entity_type}/{relation.bundle}/{relation.field_name}"


def entity_link(domain: str, entity_type: str, entity_id: int | None) -> str:
    return f"{domain}/{entity_type}/{entity_id}?_format=hal_json"


def link_path(url: str) -> str:
    """Return the path of ``url``, dropping scheme, host and query."""

    return urlsplit(url).path


@dataclass(slots=True)
class HalLinkTypeResolver:
    """Resolve type and relation links against the known entity types."""

    registry: EntityTypeRegistry
    _types: dict[str, str] = field(default_factory=dict[str, str])
    _relations: dict[str, RelationLink | None] = field(
        default_factory=dict[str, "RelationLink | None"]
    )

    def resolve_type_from_url(self, url: str) -> str | None:
        path = link_path(url)
        cached = self._types.get(path)
        if cached is not None:
            return cached
        if not path.startswith(TYPE_LINK_PREFIX):
            return None
        segments = [segment for segment in path[len(TYPE_LINK_PREFIX) :].split("/") if segment]
        if not segments or segments[0] not in self.registry:
            return None
        self._types[path] = segments[0]
        return segments[0]

    def resolve_relation(self, url: str) -> RelationLink | None:
        path = link_path(url)
        if path in self._relations:
            return self._relations[path]
        relation: RelationLink | None = None
        # sites installed below a base path prefix every link with it
        start = path.find(RELATION_LINK_PREFIX)
        if start >= 0:
            segments = path[start + len(RELATION_LINK_PREFIX) :].strip("/").split("/")
            if len(segments) == 3 and all(segments):  # noqa: PLR2004
                relation = RelationLink(*segments)
        self._relations[path] = relation
        return relation

    def invalidate_type_cache(self) -> None:
        log.debug("Invalidating %s cached type links", len(self._types))
        self._types.clear()

    def reset_relation_cache(self) -> None:
        self._relations.clear()
