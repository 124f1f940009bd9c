# centralizes MongoDB utilities
from bson import ObjectId
from typing import Any


# Helper functions for MongoDB operations
def is_valid_object_id(id_value: Any) -> bool:
    """True when id_value is an ObjectId or its 24-hex string form"""
    if isinstance(id_value, ObjectId):
        return True
    return isinstance(id_value, str) and ObjectId.is_valid(id_value)

def convert_to_object_id(id_value: Any) -> ObjectId:
    """Convert string ID to ObjectId for MongoDB queries"""
    if isinstance(id_value, ObjectId):
        return id_value
    return ObjectId(id_value)

def pair_key(user_a: Any, user_b: Any) -> str:
    """Order-independent key for a pair of user ids"""
    return ":".join(sorted([str(user_a), str(user_b)]))
