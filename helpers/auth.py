import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId

from config import JWT_SECRET_KEY, JWT_ALGORITHM
from db.mongodb import is_valid_object_id
from db.schemas.users_schema import UserInDB
from repos.user_repo import UserRepository


class AuthError(Exception):
    """Token missing, invalid, or naming an unusable account"""

    def __init__(self, detail: str, status_code: int = 401):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> str:
    """Return the user id carried by a token issued by the auth service"""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise AuthError("Could not validate credentials")

    user_id = payload.get("id")
    if not user_id or not is_valid_object_id(user_id):
        raise AuthError("Could not validate credentials")
    return user_id


async def authenticate_token(token: Optional[str], user_repo: UserRepository) -> UserInDB:
    """
    Shared by the REST dependencies and the socket namespace.
    The account must exist and be verified.
    """
    if not token:
        raise AuthError("Not authenticated")

    user = await user_repo.get_user_by_id(ObjectId(decode_access_token(token)))
    if user is None:
        raise AuthError("Could not validate credentials")
    if not user.is_verified:
        raise AuthError("Please verify your email first", status_code=403)
    return user
