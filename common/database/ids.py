"""ObjectId coercion for ids arriving as strings."""

from typing import Union

from bson import ObjectId
from bson.errors import InvalidId

from common.auth.errors import ValidationError


def to_object_id(value: Union[str, ObjectId], field: str = "id") -> ObjectId:
    """Coerce a string id to ObjectId, raising ValidationError if it is not one."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {field}", code="INVALID_ID", details={"field": field})
