import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from documind.api import deps
from documind.models.user import User
from documind.schemas.admin import AdminUserResponse, OutboxReplayResponse, RoleUpdate
from documind.services import outbox as outbox_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/users", response_model=list[AdminUserResponse])
def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_admin),
):
    """All users, newest first."""
    return db.query(User).order_by(User.created_at.desc()).offset(skip).limit(limit).all()


@router.put("/roles", response_model=AdminUserResponse)
def update_role(
    update: RoleUpdate,
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_admin),
):
    """Change a user's role."""
    user = db.query(User).filter(User.id == update.user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if user.id == admin.id and update.role.value != user.role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot change their own role"
        )

    user.role = update.role.value
    db.commit()
    db.refresh(user)
    logger.info("Admin %s set role of %s to %s", admin.id, user.id, user.role)
    return user


@router.post("/billing-outbox/replay", response_model=OutboxReplayResponse)
def replay_billing_outbox(
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_admin),
):
    """Re-apply billing writes that failed during checkout."""
    processed, failed = outbox_service.replay_pending(db, limit=limit)
    return OutboxReplayResponse(processed=processed, failed=failed)
