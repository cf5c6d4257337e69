"""Minimal Pydantic models for HAL+JSON snapshot documents."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HalBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class HalLink(HalBaseModel):
    href: str


class HalLinks(HalBaseModel):
    self_link: HalLink | None = Field(default=None, alias="self")
    type: HalLink | None = None


class FieldItem(HalBaseModel):
    """One item of a field list; most items hold a ``value``."""


class EmbeddedStub(HalBaseModel):
    links: HalLinks = Field(default_factory=HalLinks, alias="_links")
    uuid: list[FieldItem] = Field(min_length=1)
    target_revision_id: int | None = None


class ExportMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    export_timestamp: int | None = None


class HalDocument(HalBaseModel):
    """Top level of one snapshot document.

    Everything that is not a HAL control key is a field list; those land in
    ``model_extra`` and are checked by :meth:`field_lists`.
    """

    links: HalLinks = Field(default_factory=HalLinks, alias="_links")
    embedded: dict[str, list[EmbeddedStub]] = Field(default_factory=dict, alias="_embedded")
    metadata: ExportMetadata | None = Field(default=None, alias="_dcd_metadata")

    def field_lists(self) -> dict[str, Any]:
        return dict(self.model_extra or {})
