"""
library/lifecycle.py -- Document lifecycle: upload, read, update, delete.

DocumentManager is the only code that touches both the artifact store
(files on disk) and the metadata store (database rows). The two are separate
systems with no shared transaction, so consistency is maintained by ordering
and compensation rather than atomicity:

  create: promote the artifact (atomic rename), then insert the record. If
      the insert fails, the promoted artifact is deleted before the original
      error is re-raised. Cleanup failures are logged and never replace the
      original error. A crash between rename and insert can still leave an
      orphan file on disk; nothing references it, so no read path can reach
      it. There is no write-ahead marker or reconciliation sweep.

  delete: remove the artifact first (best effort, see below), then always
      delete the record. A record must never be left pointing at storage
      because a file could not be removed; an orphaned file with no record is
      the accepted failure mode.

Artifact deletion policy: up to `delete_attempts` tries on OSError; any
other storage error stops retrying at once. A missing file counts as removed.
When the artifact cannot be removed the storage key is logged at
ERROR so the orphan can be found, and record deletion proceeds.

Visibility: a private document is reported as NotFoundError to anyone but its
owner or an admin, never AuthorizationError, so its existence is not
confirmed. Public documents are readable by every authenticated caller, but
only the owner or an admin may change or delete them; anyone else gets
NotFoundError there too.

Concurrent update/delete of the same document is last-writer-wins at the
metadata store. Storage keys are unique per upload, so concurrent uploads
never collide.
"""

import logging
from pathlib import Path
from typing import Optional

from auth.models import Identity
from auth.permissions import authorize_ownership, is_owner_or_admin
from core.errors import AuthorizationError, NotFoundError, UnsupportedFormatError, ValidationError
from library.models import MUTABLE_FIELDS, SUPPORTED_FORMATS, VISIBILITIES, VISIBILITY_PRIVATE, Document, DocumentPage
from library.storage import ArtifactStore
from library.store import DEFAULT_SORT, DocumentStore

logger = logging.getLogger("readshelf.library")


def normalize_format(declared: Optional[str]) -> str:
    """Return the lower-cased format name without a leading dot, or raise UnsupportedFormatError."""
    fmt = (declared or "").strip().lower().lstrip(".")
    if fmt not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(
            f"Unsupported file type. Allowed formats: {', '.join(sorted(SUPPORTED_FORMATS))}."
        )
    return fmt


class DocumentManager:
    def __init__(self, store: DocumentStore, artifacts: ArtifactStore, delete_attempts: int = 2) -> None:
        self.store = store
        self.artifacts = artifacts
        self.delete_attempts = max(delete_attempts, 1)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, owner_id: int, temp_path: Path, declared_format: str, metadata: dict) -> Document:
        """Store an already-received upload and record its metadata.

        The caller keeps ownership of temp_path until it is promoted; if this
        method raises before promotion the temp file is still the caller's to
        discard.

        metadata keys: title (required), author, description, visibility.
        """
        fmt = normalize_format(declared_format)
        visibility = metadata.get("visibility") or VISIBILITY_PRIVATE
        if visibility not in VISIBILITIES:
            raise ValidationError(f"visibility must be one of: {', '.join(VISIBILITIES)}")
        title = (metadata.get("title") or "").strip()
        if not title:
            raise ValidationError("title is required")

        size = Path(temp_path).stat().st_size
        storage_key = self.artifacts.promote(Path(temp_path), fmt)

        try:
            document_id = self.store.insert(
                Document(
                    owner_id=owner_id,
                    title=title,
                    author=metadata.get("author"),
                    description=metadata.get("description"),
                    storage_key=storage_key,
                    size=size,
                    format=fmt,
                    visibility=visibility,
                )
            )
        except Exception:
            self._discard_after_failed_insert(storage_key)
            raise

        logger.info("Stored document %d (%s, %d bytes) for user %d", document_id, fmt, size, owner_id)
        return self.store.get(document_id)

    def _discard_after_failed_insert(self, storage_key: str) -> None:
        logger.warning("Metadata insert failed; removing artifact %s", storage_key)
        try:
            self.artifacts.delete(storage_key)
        except FileNotFoundError:
            pass
        except Exception:
            logger.exception("Could not remove artifact %s after failed insert", storage_key)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, document_id: int, identity: Identity) -> Document:
        """Return the document if it is public or the caller may manage it."""
        document = self.store.get(document_id)
        if document is None or not (document.is_public or is_owner_or_admin(identity, document.owner_id)):
            raise NotFoundError("Document not found.")
        return document

    def list_owned(
        self,
        identity: Identity,
        page: int = 1,
        limit: int = 10,
        sort: str = DEFAULT_SORT,
        search: Optional[str] = None,
    ) -> DocumentPage:
        """Return one page of the caller's own documents."""
        page = max(page, 1)
        items = self.store.find(
            owner_id=identity.user_id,
            search=search,
            sort=sort,
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = self.store.count(owner_id=identity.user_id, search=search)
        return DocumentPage(items=items, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, document_id: int, identity: Identity, fields: dict) -> Document:
        """Apply a partial update to title, author, description and visibility.

        Keys with a None value are ignored. Any other key is rejected:
        storage_key, format and size are fixed once stored.
        """
        document = self._get_managed(document_id, identity)

        changes = {k: v for k, v in fields.items() if v is not None}
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(unknown))}")
        if "visibility" in changes and changes["visibility"] not in VISIBILITIES:
            raise ValidationError(f"visibility must be one of: {', '.join(VISIBILITIES)}")
        if "title" in changes:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise ValidationError("title cannot be empty")

        if changes and not self.store.update(document.id, **changes):
            raise NotFoundError("Document not found.")
        updated = self.store.get(document.id)
        if updated is None:
            raise NotFoundError("Document not found.")
        return updated

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, document_id: int, identity: Identity) -> None:
        document = self._get_managed(document_id, identity)

        removed = self._remove_artifact(document.storage_key)
        self.store.delete(document.id)
        if removed:
            logger.info("Deleted document %d by user %d", document.id, identity.user_id)
        else:
            logger.error(
                "Deleted document %d by user %d; artifact %s left on disk",
                document.id,
                identity.user_id,
                document.storage_key,
            )

    def _get_managed(self, document_id: int, identity: Identity) -> Document:
        """Return the document if the caller owns it or is an admin.

        Everyone else gets NotFoundError, public document or not.
        """
        document = self.store.get(document_id)
        if document is None:
            raise NotFoundError("Document not found.")
        try:
            authorize_ownership(identity, document.owner_id)
        except AuthorizationError:
            raise NotFoundError("Document not found.") from None
        return document

    def _remove_artifact(self, storage_key: str) -> bool:
        """Try to delete the artifact. Returns False if it is still on disk.

        OSError is retried up to delete_attempts times. Any other failure is
        not transient and ends the attempts at once.
        """
        for attempt in range(1, self.delete_attempts + 1):
            try:
                self.artifacts.delete(storage_key)
                return True
            except FileNotFoundError:
                logger.warning("Artifact %s already missing", storage_key)
                return True
            except OSError as exc:
                logger.warning(
                    "Deleting artifact %s failed (attempt %d/%d): %s",
                    storage_key,
                    attempt,
                    self.delete_attempts,
                    exc,
                )
            except Exception:
                logger.exception("Deleting artifact %s failed", storage_key)
                return False
        return False
