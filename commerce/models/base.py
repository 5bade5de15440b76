"""Shared pieces of the collection document models"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..utils.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; a trailing Z or a missing offset means UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CamelModel(BaseModel):
    """Fields are snake_case in Python and camelCase on disk and on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Document(CamelModel):
    """A record in a collection file. `id` never changes once assigned."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


def build_model(model: Type[M], data: Dict[str, Any]) -> M:
    """Validate data into a model, reporting the first problem as a ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or model.__name__
        raise ValidationError(f"Invalid {field}: {first.get('msg', 'invalid value')}")
