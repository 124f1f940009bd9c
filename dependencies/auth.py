# dependencies/auth.py
from fastapi import Depends, HTTPException, Request, status
from typing import Optional, Annotated

from config import oauth2_scheme_optional
from db.schemas.users_schema import UserInDB
from dependencies.user import get_user_repository
from helpers.auth import AuthError, authenticate_token
from repos.user_repo import UserRepository

async def get_token(request: Request, bearer: Optional[str] = Depends(oauth2_scheme_optional)) -> Optional[str]:
    """Bearer header first, then the token cookie set by the web client."""
    return bearer or request.cookies.get("token")

async def get_current_user(
    token: Optional[str] = Depends(get_token),
    user_repo: UserRepository = Depends(get_user_repository)
) -> UserInDB:
    """Get the current authenticated, verified user."""
    try:
        return await authenticate_token(token, user_repo)
    except AuthError as e:
        headers = {"WWW-Authenticate": "Bearer"} if e.status_code == status.HTTP_401_UNAUTHORIZED else None
        raise HTTPException(status_code=e.status_code, detail=e.detail, headers=headers)

# Create annotated types for cleaner dependency injection
CurrentUser = Annotated[UserInDB, Depends(get_current_user)]
