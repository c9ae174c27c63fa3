"""
Uploaded document and question/answer history models.
"""

import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from documind.db.base import Base
from documind.db.types import GUID
from documind.utils.dates import utcnow


class Document(Base):
    """A PDF owned by a user. Text extraction and indexing happen in the AI Q&A backend."""

    __tablename__ = "documents"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(500), nullable=False)
    file_name = Column(String(500), nullable=False)
    file_size = Column(BigInteger)  # in bytes
    file_url = Column(String(1000))
    storage_key = Column(String(1000))

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    # Relationships
    owner = relationship("User", back_populates="documents")
    questions = relationship(
        "QAHistory",
        back_populates="document",
        cascade="all, delete-orphan",
    )


class QAHistory(Base):
    """One question asked about a document and the answer returned."""

    __tablename__ = "qa_history"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(
        GUID(), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )

    question = Column(Text, nullable=False)
    answer = Column(Text)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    document = relationship("Document", back_populates="questions")
