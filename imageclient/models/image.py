from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Base for payloads exchanged with the Image Service (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("id", "original_image_id", mode="before", check_fields=False)
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        # The backend issues numeric ids; the client treats them as opaque.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class UploadTicket(_WireModel):
    """Single-use target for a direct-to-storage write."""

    upload_url: str
    filename: str


class ImageResource(_WireModel):
    id: str
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "originalName"))
    url: Optional[str] = None
    content_type: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    created_at: Optional[str] = None


class TransformedImageResource(_WireModel):
    id: str
    url: Optional[str] = None
    content_type: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    original_image_id: str


class DownloadLink(_WireModel):
    download_url: str
    expires_in: Optional[int] = None
