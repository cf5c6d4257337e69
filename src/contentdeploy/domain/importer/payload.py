"""Decoded snapshot payloads, prepared for reconciliation."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlsplit

from contentdeploy.domain.model import max_changed_time

from .errors import DecodeError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from contentdeploy.domain.model import EntityTypeDefinition

    from .index import SnapshotDescriptor

LINKS_KEY: Final[str] = "_links"
EMBEDDED_KEY: Final[str] = "_embedded"
METADATA_KEY: Final[str] = "_dcd_metadata"
REVISION_POINTER_KEY: Final[str] = "target_revision_id"
PATH_FIELD: Final[str] = "path"


@dataclass(slots=True, kw_only=True)
class EmbeddedReferenceStub:
    """Reference to another entity, embedded in a snapshot."""

    target_url: str
    target_uuid: str
    target_revision_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict[str, Any])

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> EmbeddedReferenceStub:
        links = dict(document.get(LINKS_KEY) or {})
        type_link = links.pop("type", None) or {}
        target_uuid = _first_value(document.get("uuid"))
        if target_uuid is None:
            raise DecodeError("Embedded reference without uuid")

        extra = {
            key: copy.deepcopy(value)
            for key, value in document.items()
            if key not in {LINKS_KEY, "uuid", REVISION_POINTER_KEY}
        }
        if links:
            extra[LINKS_KEY] = links

        revision = document.get(REVISION_POINTER_KEY)
        return cls(
            target_url=str(type_link.get("href", "")),
            target_uuid=str(target_uuid),
            target_revision_id=int(revision) if revision is not None else None,
            extra=extra,
        )

    def to_document(self) -> dict[str, Any]:
        document = {key: value for key, value in self.extra.items() if key != LINKS_KEY}
        document[LINKS_KEY] = {"type": {"href": self.target_url}, **self.extra.get(LINKS_KEY, {})}
        document["uuid"] = [{"value": self.target_uuid}]
        if self.target_revision_id is not None:
            document[REVISION_POINTER_KEY] = self.target_revision_id
        return document


@dataclass(slots=True, kw_only=True)
class SnapshotPayload:
    """Structured content of one snapshot file.

    The payload is mutable: the engine and the reference resolver rewrite the
    id field and the embedded revision pointers in place before the payload is
    turned into a live record.
    """

    entity_type_id: str
    uuid: str
    id_field: str
    revision_field: str | None = None
    links: dict[str, Any] = field(default_factory=dict[str, Any])
    fields: dict[str, Any] = field(default_factory=dict[str, Any])
    embedded: dict[str, list[EmbeddedReferenceStub]] = field(
        default_factory=dict[str, list[EmbeddedReferenceStub]]
    )
    export_timestamp: int | None = None

    @property
    def entity_id(self) -> int | None:
        value = _first_value(self.fields.get(self.id_field))
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Invalid {self.id_field} value: {value!r}") from exc

    @entity_id.setter
    def entity_id(self, value: int | None) -> None:
        if value is None:
            self.fields.pop(self.id_field, None)
            return
        items = self.fields.get(self.id_field)
        if isinstance(items, list) and items and isinstance(items[0], dict):
            items[0]["value"] = value
        else:
            self.fields[self.id_field] = [{"value": value}]

    @property
    def type_link(self) -> str | None:
        return _href(self.links.get("type"))

    @property
    def self_link(self) -> str | None:
        return _href(self.links.get("self"))

    @property
    def bundle(self) -> str | None:
        if not self.type_link:
            return None
        segments = [segment for segment in urlsplit(self.type_link).path.split("/") if segment]
        return segments[-1] if segments else None

    def changed_time_across_translations(self) -> int | None:
        items = self.fields.get("changed")
        if not isinstance(items, list):
            return None
        return max_changed_time(item for item in items if isinstance(item, dict))

    def field_value(self, name: str) -> Any:
        return _first_value(self.fields.get(name))

    def to_document(self, *, include_self_link: bool = True) -> dict[str, Any]:
        """Return the payload in snapshot document form (without metadata)."""

        links = copy.deepcopy(self.links)
        if not include_self_link:
            links.pop("self", None)
        document: dict[str, Any] = {LINKS_KEY: links, **copy.deepcopy(self.fields)}
        if self.embedded:
            document[EMBEDDED_KEY] = {
                relation: [stub.to_document() for stub in stubs]
                for relation, stubs in self.embedded.items()
            }
        return document


def prepare_payload(
    document: Mapping[str, Any],
    descriptor: SnapshotDescriptor,
    definition: EntityTypeDefinition,
) -> SnapshotPayload:
    """Build a payload from a decoded document, dropping ignorable fields.

    Computed path data is removed for the types that export it, and the
    revision id is always removed: revisions are assigned by local storage.
    """

    fields = {
        key: copy.deepcopy(value)
        for key, value in document.items()
        if key not in {LINKS_KEY, EMBEDDED_KEY, METADATA_KEY}
    }
    if definition.strip_path:
        fields.pop(PATH_FIELD, None)
    if definition.revision_key:
        fields.pop(definition.revision_key, None)
    if definition.uuid_key not in fields:
        fields[definition.uuid_key] = [{"value": descriptor.uuid}]

    embedded_document = document.get(EMBEDDED_KEY) or {}
    embedded = {
        str(relation): [EmbeddedReferenceStub.from_document(stub) for stub in stubs]
        for relation, stubs in embedded_document.items()
    }

    metadata = document.get(METADATA_KEY) or {}
    export_timestamp = metadata.get("export_timestamp")

    return SnapshotPayload(
        entity_type_id=descriptor.entity_type_id,
        uuid=descriptor.uuid,
        id_field=definition.id_key,
        revision_field=definition.revision_key,
        links=copy.deepcopy(dict(document.get(LINKS_KEY) or {})),
        fields=fields,
        embedded=embedded,
        export_timestamp=int(export_timestamp) if export_timestamp is not None else None,
    )


def _first_value(items: object) -> Any:
    if not isinstance(items, list) or not items:
        return None
    first = items[0]
    if not isinstance(first, dict):
        return None
    return first.get("value")


def _href(link: object) -> str | None:
    if isinstance(link, dict):
        href = link.get("href")
        return str(href) if href is not None else None
    return None
