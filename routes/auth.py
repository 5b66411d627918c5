from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status

from db.database import get_db
from models.user import SessionToken, User, UserCredentials
from utils.auth import (
    SESSION_COOKIE_NAME,
    authenticate_user,
    create_session_token,
    create_user,
    get_secret_key,
    get_token_minutes,
    require_user,
)
from utils.timestamps import to_iso

router = APIRouter()

@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(credentials: UserCredentials, conn = Depends(get_db)):
    """Create a user account."""
    return create_user(conn, credentials.email, credentials.password)

@router.post("/login", response_model=SessionToken)
async def login(credentials: UserCredentials, response: Response, conn = Depends(get_db)):
    """Exchange credentials for a signed session token (also set as a cookie)."""
    user = authenticate_user(conn, credentials.email, credentials.password)
    minutes = get_token_minutes()
    token, expires_at = create_session_token(user["id"], minutes, get_secret_key())
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=minutes * 60,
        httponly=True,
        samesite="lax",
    )
    return SessionToken(
        access_token=token,
        expires_at=to_iso(datetime.fromtimestamp(expires_at, tz=timezone.utc)),
    )

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME)

@router.get("/session", response_model=User)
async def current_session(user = Depends(require_user)):
    """Return the authenticated user."""
    return user
