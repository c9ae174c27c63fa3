import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    file_name: str
    file_size: int | None
    file_url: str | None
    created_at: datetime


class AskRequest(BaseModel):
    document_id: uuid.UUID
    question: str = Field(..., min_length=1, max_length=4000)


class AskResponse(BaseModel):
    id: str
    answer: str


class QAHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    document_id: uuid.UUID
    question: str
    answer: str | None
    created_at: datetime
