import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from documind.models.user import UserRole


class AdminUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    username: str
    role: str
    is_active: bool
    created_at: datetime
    last_login: datetime | None = None


class RoleUpdate(BaseModel):
    user_id: uuid.UUID
    role: UserRole


class OutboxReplayResponse(BaseModel):
    processed: int
    failed: int
