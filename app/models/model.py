from datetime import datetime
from typing import Any

from app.helpers.time import as_utc

from pydantic import BaseModel, field_serializer


class UTCBaseModel(BaseModel):
    """Base model that always serializes datetimes as timezone-aware UTC."""

    @field_serializer("*", when_used="json")
    def serialize_datetime(self, v: Any, _info) -> Any:
        if isinstance(v, datetime):
            return as_utc(v).isoformat()
        return v
