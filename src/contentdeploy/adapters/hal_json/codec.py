"""HAL+JSON snapshot codec."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from contentdeploy.domain.importer.errors import DecodeError
from contentdeploy.domain.importer.payload import (
    EMBEDDED_KEY,
    LINKS_KEY,
    PATH_FIELD,
    REVISION_POINTER_KEY,
)
from contentdeploy.domain.importer.references import entity_type_from_link
from contentdeploy.domain.model import ContentEntity, CoreEntityType, EntityReference

from .links import entity_link, link_path, relation_link_path, type_link_path
from .schema import HalDocument

if TYPE_CHECKING:
    from contentdeploy.domain.importer.payload import EmbeddedReferenceStub, SnapshotPayload
    from contentdeploy.domain.model import EntityTypeDefinition, EntityTypeRegistry, FieldItems
    from contentdeploy.domain.ports import EntityRepository

    from .links import HalLinkTypeResolver

log = logging.getLogger(__name__)


@dataclass(slots=True)
class HalJsonCodec:
    """Translate between HAL+JSON snapshot documents and live records."""

    link_types: HalLinkTypeResolver
    registry: EntityTypeRegistry

    def decode(self, raw: bytes) -> dict[str, Any]:
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise DecodeError(f"Snapshot is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise DecodeError("Snapshot document must be a JSON object")

        try:
            validated = HalDocument.model_validate(document)
        except ValidationError as exc:
            raise DecodeError(f"Snapshot is not a HAL document: {exc}") from exc
        for name, items in validated.field_lists().items():
            if not isinstance(items, list):
                raise DecodeError(f"Field {name!r} must hold a list of items")
        return document

    def encode(self, entity: ContentEntity, *, link_domain: str) -> bytes:
        definition = self.registry.get(entity.entity_type)
        links: dict[str, Any] = {
            "self": {"href": entity_link(link_domain, entity.entity_type, entity.id)},
            "type": {"href": f"{link_domain}{type_link_path(entity.entity_type, entity.bundle)}"},
        }
        document: dict[str, Any] = {LINKS_KEY: links}
        document[definition.id_key] = [{"value": entity.id}]
        document[definition.uuid_key] = [{"value": entity.uuid}]
        if definition.revision_key and entity.revision_id is not None:
            document[definition.revision_key] = [{"value": entity.revision_id}]
        document.update(copy.deepcopy(entity.fields))

        embedded: dict[str, list[dict[str, Any]]] = {}
        for reference in entity.references:
            if not reference.is_resolved:
                # dangling references are not part of the stored state yet
                continue
            relation = f"{link_domain}{reference.relation}"
            target_href = entity_link(link_domain, reference.target_type, reference.target_id)
            links.setdefault(relation, []).append({"href": target_href})
            embedded.setdefault(relation, []).append(_stub_document(reference, link_domain))
        if embedded:
            document[EMBEDDED_KEY] = embedded
        return json.dumps(document).encode()

    def denormalize(
        self,
        payload: SnapshotPayload,
        definition: EntityTypeDefinition,
        *,
        entities: EntityRepository,
    ) -> ContentEntity:
        excluded = {
            definition.id_key,
            definition.uuid_key,
            definition.revision_key,
            definition.credential_field,
        }
        fields: dict[str, FieldItems] = {
            name: copy.deepcopy(items)
            for name, items in payload.fields.items()
            if name not in excluded
        }

        references: list[EntityReference] = []
        for relation_url, stubs in payload.embedded.items():
            parsed = self.link_types.resolve_relation(relation_url)
            if parsed is None:
                log.debug("Keeping unrecognised relation link %s", relation_url)
            relation = relation_link_path(parsed) if parsed else link_path(relation_url)
            references.extend(self._reference(relation, stub, entities) for stub in stubs)

        record = ContentEntity(
            entity_type=payload.entity_type_id,
            uuid=payload.uuid,
            id=payload.entity_id,
            bundle=payload.bundle,
            fields=fields,
            references=references,
        )
        if payload.entity_type_id == CoreEntityType.PATH_ALIAS:
            _rewrite_alias_path(record)
        return record

    def _reference(
        self, relation: str, stub: EmbeddedReferenceStub, entities: EntityRepository
    ) -> EntityReference:
        target_type = entity_type_from_link(stub.target_url, self.link_types)
        target = entities.load_by_uuid(target_type, stub.target_uuid)
        extra = {key: value for key, value in stub.extra.items() if key != LINKS_KEY}
        return EntityReference(
            relation=relation,
            target_type=target_type,
            target_uuid=stub.target_uuid,
            target_link=link_path(stub.target_url),
            target_id=target.id if target is not None else None,
            target_revision_id=stub.target_revision_id if target is not None else None,
            extra=copy.deepcopy(extra),
        )


def _stub_document(reference: EntityReference, link_domain: str) -> dict[str, Any]:
    stub: dict[str, Any] = {
        LINKS_KEY: {
            "self": {
                "href": entity_link(link_domain, reference.target_type, reference.target_id)
            },
            "type": {"href": f"{link_domain}{reference.target_link}"},
        },
        "uuid": [{"value": reference.target_uuid}],
        **copy.deepcopy(reference.extra),
    }
    if reference.target_revision_id is not None:
        stub[REVISION_POINTER_KEY] = reference.target_revision_id
    return stub


def _rewrite_alias_path(record: ContentEntity) -> None:
    """Point an alias at the local id of the entity it aliases."""

    target = next((ref for ref in record.references if ref.is_resolved), None)
    if target is None:
        return
    local_path = f"/{target.target_type}/{target.target_id}"
    items = record.fields.get(PATH_FIELD)
    if items:
        for item in items:
            item["value"] = local_path
    else:
        record.fields[PATH_FIELD] = [{"value": local_path}]
