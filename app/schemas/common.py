"""
Shared schema building blocks.
"""
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from app.utils.datetime_utils import to_iso_utc

# Datetimes always leave the API as ISO 8601 UTC with a 'Z' suffix
UTCDateTime = Annotated[datetime, PlainSerializer(to_iso_utc, return_type=str, when_used="json")]


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BooleanResult(BaseModel):
    """Result of a mutation that only reports success."""

    data: bool = True

    class Config:
        json_schema_extra = {"example": {"data": True}}
