"""
Conversion of domain values into plain BSON-friendly documents.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel


def to_document(value: Any) -> Any:
    """Recursively turn models, enums and aware datetimes into storable values.

    MongoDB keeps dates as naive UTC, so aware datetimes are normalised the
    same way before they are written or used in a query.
    """
    if isinstance(value, BaseModel):
        return to_document(value.model_dump())
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, dict):
        return {k: to_document(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_document(v) for v in value]
    return value
