from fastapi import APIRouter, Depends

from db.database import get_db
from models.user import Profile, ProfileUpdate
from utils.auth import require_user, update_username

router = APIRouter()

@router.get("", response_model=Profile)
async def get_profile(user = Depends(require_user)):
    return user

@router.put("", response_model=Profile)
async def update_profile(payload: ProfileUpdate, user = Depends(require_user), conn = Depends(get_db)):
    """Update the current user's profile. Only the username is editable."""
    if payload.username is None:
        return user
    return update_username(conn, user["id"], payload.username)
