"""
api/routes/v1/documents.py -- Document library routes for the ReadShelf REST API.

Routes:
  POST       /documents        -- upload a document (multipart/form-data)
  GET        /documents        -- list the caller's own documents (paged, searchable)
  GET        /documents/{id}   -- document metadata (owner, admin, or public)
  PUT|PATCH  /documents/{id}   -- update title/author/description/visibility (owner or admin)
  DELETE     /documents/{id}   -- delete file and record (owner or admin)

All routes require authentication. Access rules live in
library/lifecycle.DocumentManager; handlers only translate HTTP to calls.

File uploads:
  The multipart field is "file". Format comes from the filename extension
  (pdf, epub, mobi) and is checked before the body is written anywhere. The
  body is streamed into the artifact store's temp area with a size cap; the
  temp file is removed afterwards unless it was promoted to a stored document.
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from api.limiter import limiter
from api.models import (
    SORT_PATTERN,
    DocumentEnvelope,
    DocumentListResponse,
    DocumentResponse,
    DocumentSummaryRow,
    DocumentUpdate,
    MessageResponse,
    VisibilityEnum,
)
from auth.dependencies import get_current_identity
from auth.models import Identity
from core.errors import NoFileError
from library.lifecycle import DocumentManager, normalize_format
from library.storage import ArtifactStore

router = APIRouter()


def _visibility_from_form(visibility: Optional[str], is_public: Optional[str]) -> str:
    if visibility:
        return visibility.strip().lower()
    if is_public is not None and is_public.strip().lower() == "true":
        return VisibilityEnum.public.value
    return VisibilityEnum.private.value


# ---------------------------------------------------------------------------
# POST /documents -- upload
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/documents", response_model=DocumentEnvelope, status_code=201)
def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None, max_length=255),
    author: Optional[str] = Form(None, max_length=255),
    description: Optional[str] = Form(None, max_length=5000),
    visibility: Optional[str] = Form(None),
    is_public: Optional[str] = Form(None),
    identity: Identity = Depends(get_current_identity),
) -> DocumentEnvelope:
    """Store an uploaded pdf/epub/mobi file and its metadata.

    title defaults to the filename without its extension. Visibility comes
    from `visibility` (public|private) or the legacy `is_public` ("true").
    """
    if file is None or not file.filename:
        raise NoFileError()

    filename = Path(file.filename)
    fmt = normalize_format(filename.suffix)

    manager: DocumentManager = request.app.state.documents
    artifacts: ArtifactStore = request.app.state.artifacts
    temp_path, _size = artifacts.write_temp(file.file, request.app.state.settings.max_upload_bytes)
    try:
        document = manager.create(
            identity.user_id,
            temp_path,
            fmt,
            {
                "title": (title or "").strip() or filename.stem,
                "author": author,
                "description": description,
                "visibility": _visibility_from_form(visibility, is_public),
            },
        )
    finally:
        # No-op once the file has been promoted.
        artifacts.discard_temp(temp_path)

    return DocumentEnvelope(document=DocumentResponse.from_document(document))


# ---------------------------------------------------------------------------
# GET /documents -- list own documents
# ---------------------------------------------------------------------------


@router.get("/documents", response_model=DocumentListResponse)
def list_documents(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query("-created_at", pattern=SORT_PATTERN),
    search: Optional[str] = Query(None, max_length=100),
    identity: Identity = Depends(get_current_identity),
) -> DocumentListResponse:
    """Return one page of the caller's documents, newest first by default."""
    manager: DocumentManager = request.app.state.documents
    result = manager.list_owned(identity, page=page, limit=limit, sort=sort, search=search or None)
    return DocumentListResponse(
        items=[DocumentSummaryRow.from_document(d) for d in result.items],
        count=len(result.items),
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


# ---------------------------------------------------------------------------
# /documents/{document_id}
# ---------------------------------------------------------------------------


@router.get("/documents/{document_id}", response_model=DocumentEnvelope)
def get_document(
    request: Request,
    document_id: int,
    identity: Identity = Depends(get_current_identity),
) -> DocumentEnvelope:
    """Return a document's metadata. Private documents of other users are a 404."""
    manager: DocumentManager = request.app.state.documents
    document = manager.read(document_id, identity)
    return DocumentEnvelope(document=DocumentResponse.from_document(document))


@router.api_route("/documents/{document_id}", methods=["PUT", "PATCH"], response_model=DocumentEnvelope)
def update_document(
    request: Request,
    document_id: int,
    body: DocumentUpdate,
    identity: Identity = Depends(get_current_identity),
) -> DocumentEnvelope:
    """Partially update a document's metadata. Only provided fields change."""
    manager: DocumentManager = request.app.state.documents
    document = manager.update(document_id, identity, body.changes())
    return DocumentEnvelope(document=DocumentResponse.from_document(document))


@router.delete("/documents/{document_id}", response_model=MessageResponse)
def delete_document(
    request: Request,
    document_id: int,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Delete the stored file (best effort) and then the record."""
    manager: DocumentManager = request.app.state.documents
    manager.delete(document_id, identity)
    return MessageResponse(message="Document deleted.")
