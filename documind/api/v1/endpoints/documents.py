"""Document upload, listing and deletion."""

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from documind.api import deps
from documind.api.errors import http_error
from documind.core.config import settings
from documind.core.exceptions import QnABackendError, StorageError, UsageLimitExceeded
from documind.models.document import Document
from documind.models.user import User
from documind.schemas.documents import DocumentResponse
from documind.services import limits as limit_service
from documind.services.qna_client import QnAClient
from documind.services.storage import StorageService, document_key

logger = logging.getLogger(__name__)

router = APIRouter()


def _is_pdf(file: UploadFile) -> bool:
    if file.content_type == "application/pdf":
        return True
    return bool(file.filename) and file.filename.lower().endswith(".pdf")


@router.post("/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
def upload_document(
    file: UploadFile = File(...),
    title: str | None = Form(None),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    storage: StorageService = Depends(deps.get_storage),
    qna: QnAClient = Depends(deps.get_qna_client),
):
    """Upload a PDF and hand it to the AI backend for indexing."""
    if not _is_pdf(file):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are supported"
        )

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB upload limit",
        )

    try:
        limit_service.ensure_can_upload(db, current_user.id, len(content))
    except UsageLimitExceeded as e:
        raise http_error(e)

    key = document_key(current_user.id)
    try:
        file_url = storage.upload(content, key)
    except StorageError as e:
        raise http_error(e)

    file_name = file.filename or "document.pdf"
    document = Document(
        user_id=current_user.id,
        title=(title or file_name).strip()[:500],
        file_name=file_name,
        file_size=len(content),
        file_url=file_url,
        storage_key=key,
    )
    try:
        db.add(document)
        db.commit()
        db.refresh(document)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Saving metadata for %s failed; removing stored file", key)
        try:
            storage.delete(key)
        except StorageError:
            logger.error("Could not remove orphaned file %s", key)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save document"
        )

    try:
        qna.ingest_document(current_user.id, document.id, file_name, content, file_url)
    except QnABackendError as e:
        # The document stays listed; indexing can be retried by re-uploading
        logger.warning("AI backend ingestion failed for document %s: %s", document.id, e)

    return document


@router.get("", response_model=list[DocumentResponse])
def list_documents(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """The current user's documents, newest first."""
    return (
        db.query(Document)
        .filter(Document.user_id == current_user.id)
        .order_by(Document.created_at.desc())
        .all()
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    storage: StorageService = Depends(deps.get_storage),
    qna: QnAClient = Depends(deps.get_qna_client),
):
    """Delete a document, its stored file and its question history."""
    document = (
        db.query(Document)
        .filter(Document.id == document_id, Document.user_id == current_user.id)
        .first()
    )
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    if document.storage_key:
        try:
            storage.delete(document.storage_key)
        except StorageError as e:
            logger.warning("Storage delete failed for document %s: %s", document.id, e)

    try:
        qna.delete_document(document.id, current_user.id)
    except QnABackendError as e:
        logger.warning("AI backend delete failed for document %s: %s", document.id, e)

    db.delete(document)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
