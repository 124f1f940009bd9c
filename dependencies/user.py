from fastapi import Depends

from repos.user_repo import UserRepository
from .db import get_db

def get_user_repository(db = Depends(get_db)):
    """
    Dependency to get a user repository instance.
    """
    return UserRepository(db)

