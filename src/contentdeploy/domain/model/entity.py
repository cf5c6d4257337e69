"""Live content records as held by the content repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

type FieldItems = list[dict[str, Any]]
type FieldValues = dict[str, FieldItems]


@dataclass(eq=False, kw_only=True)
class EntityReference:
    """One outbound reference held by a live record.

    ``relation`` and ``target_link`` are stored as URL paths so the record can
    be re-serialised against any link domain. ``target_id`` stays ``None``
    while the referenced entity does not exist locally.
    """

    relation: str
    target_type: str
    target_uuid: str
    target_link: str = ""
    target_id: int | None = None
    target_revision_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict[str, Any])

    @property
    def is_resolved(self) -> bool:
        return self.target_id is not None


@dataclass(eq=False, kw_only=True)
class ContentEntity:
    """A content entity as stored locally."""

    entity_type: str
    uuid: str
    id: int | None = None
    revision_id: int | None = None
    bundle: str | None = None
    fields: FieldValues = field(default_factory=dict[str, FieldItems])
    references: list[EntityReference] = field(default_factory=list[EntityReference])

    def changed_time_across_translations(self) -> int | None:
        """Return the newest ``changed`` time of all translations."""

        return max_changed_time(self.fields.get("changed", ()))

    def has_unresolved_references(self) -> bool:
        return any(not reference.is_resolved for reference in self.references)

    def has_revision_pointers(self) -> bool:
        return any(reference.target_revision_id is not None for reference in self.references)


def max_changed_time(items: Iterable[Mapping[str, Any]]) -> int | None:
    """Return the largest ``changed`` value of ``items`` as a unix timestamp.

    Values may be unix timestamps or ISO-8601 strings; unparseable values
    count as ``0``. ``None`` means no item carried a value at all.
    """

    newest: int | None = None
    for item in items:
        if "value" not in item:
            continue
        parsed = parse_timestamp(item["value"])
        if newest is None or parsed > newest:
            newest = parsed
    return newest


def parse_timestamp(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int | float):
        return int(value)
    if not isinstance(value, str):
        return 0
    text = value.strip()
    if text.lstrip("-").isdigit():
        return int(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())
