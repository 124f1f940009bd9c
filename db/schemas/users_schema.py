from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from bson import ObjectId


class UserInDB(BaseModel):
    """Database representation of a user document (owned by the accounts service)"""
    id: str = Field(alias="_id")
    username: str
    email: str
    role: str = "user"
    is_verified: bool = False
    created_at: Optional[datetime] = None

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator('id', mode='before')
    @classmethod
    def convert_object_id(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v
