"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Document:
    id: str
    owner_id: str
    title: str | None
    domain: str | None
    collection_id: str | None
    summary: str | None
    body: str
    deleted_at: int | None
    created_at: int
    updated_at: int

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(slots=True)
class Concept:
    id: str
    owner_id: str
    term: str
    definition: str | None = None
    example: str | None = None
    ai_definition: str | None = None
    source_document_id: str | None = None
