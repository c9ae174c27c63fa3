"""Question answering over an uploaded document."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from documind.api import deps
from documind.api.errors import http_error
from documind.core.exceptions import QnABackendError, UsageLimitExceeded
from documind.models.document import Document, QAHistory
from documind.models.user import User
from documind.schemas.documents import AskRequest, AskResponse, QAHistoryResponse
from documind.services import limits as limit_service
from documind.services.qna_client import QnAClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=AskResponse)
def ask_question(
    request: AskRequest,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
    qna: QnAClient = Depends(deps.get_qna_client),
):
    """Ask a question about one of the current user's documents."""
    try:
        limit_service.ensure_can_ask(db, current_user.id)
    except UsageLimitExceeded as e:
        raise http_error(e)

    document = (
        db.query(Document)
        .filter(Document.id == request.document_id, Document.user_id == current_user.id)
        .first()
    )
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    try:
        answer = qna.query(request.question, current_user.id, document.id)
    except QnABackendError as e:
        raise http_error(e)

    record = QAHistory(
        user_id=current_user.id,
        document_id=document.id,
        question=request.question,
        answer=answer,
    )
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # The answer is still returned; only the history entry is lost
        logger.exception("Failed to save Q&A history for document %s", document.id)
        return AskResponse(id=str(uuid.uuid4()), answer=answer)

    return AskResponse(id=str(record.id), answer=answer)


@router.get("/history", response_model=list[QAHistoryResponse])
def question_history(
    document_id: uuid.UUID | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """Previous questions, newest first, optionally for one document."""
    query = db.query(QAHistory).filter(QAHistory.user_id == current_user.id)
    if document_id is not None:
        query = query.filter(QAHistory.document_id == document_id)
    return query.order_by(QAHistory.created_at.desc()).limit(limit).all()
