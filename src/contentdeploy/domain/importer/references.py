"""Rewriting of embedded references against the local repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from .payload import PATH_FIELD

if TYPE_CHECKING:
    from collections.abc import Callable

    from contentdeploy.domain.ports import EntityRepository, LinkTypeResolver

    from .payload import SnapshotPayload

log = logging.getLogger(__name__)


def entity_type_from_link(url: str, link_types: LinkTypeResolver) -> str:
    """Return the entity type a type link points at.

    Falls back to the second-to-last path segment of ``url`` when the resolver
    does not know the link, and drops the resolver's cached type links since
    they are evidently stale.
    """

    entity_type = link_types.resolve_type_from_url(url)
    if entity_type:
        return entity_type

    components = url.split("/")
    link_types.invalidate_type_cache()
    return components[-2] if len(components) > 1 else url


def resolve_link_domain(payload: SnapshotPayload) -> str:
    """Return ``scheme://host[:port]`` of the payload's own links."""

    link = payload.self_link or payload.type_link
    if not link:
        return ""
    parts = urlsplit(link)
    if not parts.scheme or not parts.hostname:
        return ""
    host = f"{parts.scheme}://{parts.hostname}"
    return host if parts.port is None else f"{host}:{parts.port}"


@dataclass(slots=True)
class ReferenceResolver:
    """Repair revision pointers of embedded references in place.

    A referenced entity that was re-imported locally carries a different
    revision than in the source environment, so each pointer is replaced with
    the current local revision. Targets that do not exist yet are left alone:
    the correction pass or the next run picks them up.
    """

    entities: EntityRepository
    link_types: LinkTypeResolver

    def resolve(self, payload: SnapshotPayload) -> None:
        for relation, stubs in payload.embedded.items():
            if not any(stub.target_revision_id is not None for stub in stubs):
                continue
            for stub in stubs:
                entity_type = entity_type_from_link(stub.target_url, self.link_types)
                target = self.entities.load_by_uuid(entity_type, stub.target_uuid)
                if target is None:
                    log.debug(
                        "Deferring %s reference to %s %s", relation, entity_type, stub.target_uuid
                    )
                    continue
                stub.target_revision_id = target.revision_id


def localize_alias_path(
    payload: SnapshotPayload,
    *,
    imported_uuid_for: Callable[[str], str | None],
    entities: EntityRepository,
) -> str | None:
    """Rewrite the source path of an alias without reference stub to the local path.

    The alias names its target as ``/<type>/<id>`` of the source environment.
    When that entity was imported during this run, the path is pointed at the
    id it has locally. Returns the new path, or ``None`` if nothing changed.
    """

    if payload.embedded:
        return None
    source_path = payload.field_value(PATH_FIELD)
    if not isinstance(source_path, str):
        return None
    uuid = imported_uuid_for(source_path)
    if uuid is None:
        return None

    entity_type = source_path.strip("/").split("/")[0]
    target = entities.load_by_uuid(entity_type, uuid)
    if target is None or target.id is None:
        return None
    local_path = f"/{entity_type}/{target.id}"
    for item in payload.fields[PATH_FIELD]:
        if isinstance(item, dict):
            item["value"] = local_path
    return local_path
