"""
library/store.py -- SQLAlchemy-backed metadata store for documents.

Uses SQLAlchemy Core (not ORM) so the dataclasses in library/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. DocumentStore is the repository;
_row_to_document is the mapper. Nothing outside this module touches SQL.

This store knows nothing about files on disk or about who may see what.
Ownership and visibility rules are applied by library/lifecycle.py.

Security: all queries use bound parameters. Sort columns come from a fixed
whitelist, never from raw input.

Usage:
    store = DocumentStore("sqlite:///readshelf.db")
    doc_id = store.insert(document)
    doc = store.get(doc_id)
    docs = store.find(owner_id=1, search="dune", sort="-created_at", skip=0, limit=10)
    store.update(doc_id, title="New title")
    store.delete(doc_id)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from core.config import get_settings
from library.models import MUTABLE_FIELDS, VISIBILITY_PRIVATE, Document

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_documents = Table(
    "documents",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("author", String(255)),
    Column("description", Text),
    Column("storage_key", String(255), nullable=False, unique=True),
    Column("size", Integer, nullable=False),
    Column("format", String(10), nullable=False),
    Column("visibility", String(10), nullable=False, server_default=VISIBILITY_PRIVATE),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

SORTABLE_FIELDS = ("created_at", "updated_at", "title", "author", "size")
DEFAULT_SORT = "-created_at"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _order_by(sort: str):
    """Translate "field" / "-field" into an ORDER BY clause.

    Ties fall back to id so paging is stable.
    """
    descending = sort.startswith("-")
    field = sort.lstrip("-")
    if field not in SORTABLE_FIELDS:
        raise ValueError(f"Unsupported sort field: {field!r}")
    column = _documents.c[field]
    if descending:
        return [column.desc(), _documents.c.id.desc()]
    return [column.asc(), _documents.c.id.asc()]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _where(owner_id: Optional[int], search: Optional[str]) -> list:
    clauses = []
    if owner_id is not None:
        clauses.append(_documents.c.owner_id == owner_id)
    if search:
        pattern = f"%{_escape_like(search)}%"
        clauses.append(
            or_(
                _documents.c.title.ilike(pattern, escape="\\"),
                _documents.c.author.ilike(pattern, escape="\\"),
                _documents.c.description.ilike(pattern, escape="\\"),
            )
        )
    return clauses


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class DocumentStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def insert(self, document: Document) -> int:
        """Insert a document record and return its ID.

        Raises sqlalchemy.exc.IntegrityError if storage_key is already used.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _documents.insert().values(
                    owner_id=document.owner_id,
                    title=document.title,
                    author=document.author,
                    description=document.description,
                    storage_key=document.storage_key,
                    size=document.size,
                    format=document.format,
                    visibility=document.visibility,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get(self, document_id: int) -> Optional[Document]:
        """Return a document by ID, or None if it does not exist."""
        with self.engine.connect() as conn:
            row = conn.execute(_documents.select().where(_documents.c.id == document_id)).fetchone()
        return _row_to_document(row) if row is not None else None

    def find(
        self,
        owner_id: Optional[int] = None,
        search: Optional[str] = None,
        sort: str = DEFAULT_SORT,
        skip: int = 0,
        limit: int = 10,
    ) -> list[Document]:
        """Return documents matching the filters, sorted and windowed."""
        query = (
            _documents.select()
            .where(*_where(owner_id, search))
            .order_by(*_order_by(sort))
            .offset(max(skip, 0))
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_document(r) for r in rows]

    def count(self, owner_id: Optional[int] = None, search: Optional[str] = None) -> int:
        query = select(func.count()).select_from(_documents).where(*_where(owner_id, search))
        with self.engine.connect() as conn:
            result = conn.execute(query).scalar()
        return result or 0

    def update(self, document_id: int, **fields) -> bool:
        """Apply a partial update to the mutable fields of a document.

        Returns True if a row was updated, False if document_id was not found.
        """
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable or unknown document fields: {sorted(unknown)!r}")
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_documents.update().where(_documents.c.id == document_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete(self, document_id: int) -> bool:
        """Delete a document record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_documents.delete().where(_documents.c.id == document_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_document(row) -> Document:
    return Document(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        author=row.author,
        description=row.description,
        storage_key=row.storage_key,
        size=row.size,
        format=row.format,
        visibility=row.visibility,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
