"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Entity payload models are generated from
the registry descriptors, so every entity type gets the same strictness:
unknown keys, missing keys, nulls and loosely typed values are rejected.
"""

import re
from datetime import date, datetime
from functools import lru_cache
from typing import Annotated, Optional, Type

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictBool, StrictStr, create_model

from .registry import EntityDescriptor, FieldType

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_iso_date(value):
    """Accept only `yyyy-mm-dd` strings (or `date` objects) as dates."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not _ISO_DATE.fullmatch(value):
        raise ValueError("expected a date formatted as yyyy-mm-dd")
    return datetime.strptime(value, "%Y-%m-%d").date()


Int32 = Annotated[int, Field(strict=True, ge=INT32_MIN, le=INT32_MAX)]
IsoDate = Annotated[date, BeforeValidator(parse_iso_date)]

FIELD_ANNOTATIONS = {
    FieldType.INT: Int32,
    FieldType.STR: StrictStr,
    FieldType.DATE: IsoDate,
    FieldType.BOOL: StrictBool,
}


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    """Authentication response containing a bearer token."""
    token: str


class IdOut(BaseModel):
    """Response of entity create/edit/delete."""
    id: int


class DeleteIn(BaseModel):
    """Request body of `DELETE /data/{entity}`."""
    model_config = ConfigDict(extra="forbid")

    id: Int32


@lru_cache(maxsize=None)
def payload_model_for(descriptor: EntityDescriptor) -> Type[BaseModel]:
    """Build (once) the create/edit payload model for `descriptor`.

    `id` may be absent or null (create) or an int32 (edit); every
    descriptor field is required and non-nullable.
    """
    fields = {
        descriptor.id_column: (Optional[Int32], None),
    }
    for spec in descriptor.fields:
        fields[spec.name] = (FIELD_ANNOTATIONS[spec.type], ...)
    model_name = "".join(part.title() for part in descriptor.name.split("_")) + "Payload"
    return create_model(model_name, __config__=ConfigDict(extra="forbid"), **fields)
