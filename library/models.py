"""
library/models.py -- Domain dataclasses for the document library.

These are pure data containers with zero logic. Lifecycle rules (ownership,
visibility, storage consistency) live in library/lifecycle.py.

A Document is only ever constructed from a stored row: the transient
"uploading" state exists inside DocumentManager.create() and is never
returned to a caller.
"""

from dataclasses import dataclass
from typing import Optional

SUPPORTED_FORMATS = frozenset({"pdf", "epub", "mobi"})

VISIBILITY_PUBLIC = "public"
VISIBILITY_PRIVATE = "private"
VISIBILITIES = (VISIBILITY_PUBLIC, VISIBILITY_PRIVATE)

# Fields a caller may change after upload. storage_key, format and size are fixed.
MUTABLE_FIELDS = frozenset({"title", "author", "description", "visibility"})


@dataclass
class Document:
    """A stored document file and its metadata.

    storage_key is the artifact's locator relative to the upload root.
    id is None before the record is written to the database.
    """

    owner_id: int
    title: str
    storage_key: str
    size: int
    format: str  # "pdf" | "epub" | "mobi"
    visibility: str = VISIBILITY_PRIVATE
    author: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    @property
    def is_public(self) -> bool:
        return self.visibility == VISIBILITY_PUBLIC


@dataclass
class DocumentPage:
    """One page of a listing query."""

    items: list[Document]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0
