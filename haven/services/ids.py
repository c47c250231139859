"""
ObjectId parsing helpers.
"""

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from common.utils.exceptions import NotFoundException


def parse_object_id(
    value: Any,
    message: str = "Not found",
    code: str = "NOT_FOUND"
) -> ObjectId:
    """
    Convert a path/body id into an ObjectId.

    A malformed id cannot match any document, so it is reported the same
    way as a missing one.

    Raises:
        NotFoundException: If the value is not a valid ObjectId
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundException(message=message, code=code)
