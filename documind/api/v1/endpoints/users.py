from fastapi import APIRouter, Depends

from documind.api import deps
from documind.models.user import User
from documind.schemas.auth import UserResponse

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def read_current_user(current_user: User = Depends(deps.get_current_user)):
    """Profile of the authenticated user."""
    return current_user
