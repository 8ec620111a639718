"""Transformation drafts and the normalized payload sent to the backend.

A draft mirrors what a user typed into the transform form: each size field may
be empty, text, or a number (fractional numbers are later treated as invalid). :func:`imageclient.services.transform.build_transformations`
turns a draft into a :class:`NormalizedSpec` that only carries the
transformations the user actually specified.
"""
from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, NonNegativeInt, PositiveInt

Rotation = Literal[0, 90, 180, 270]
ImageFormat = Literal["", "jpeg", "png", "webp"]

# Raw form input: "" / None when untouched, otherwise text or a number.
FieldInput = Union[int, float, str, None]


class _Draft(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ResizeDraft(_Draft):
    width: FieldInput = ""
    height: FieldInput = ""


class CropDraft(_Draft):
    width: FieldInput = ""
    height: FieldInput = ""
    x: FieldInput = ""
    y: FieldInput = ""


class FilterDraft(_Draft):
    grayscale: bool = False
    sepia: bool = False


class TransformationDraft(_Draft):
    resize: ResizeDraft = ResizeDraft()
    crop: CropDraft = CropDraft()
    rotate: Rotation = 0
    format: ImageFormat = ""
    filters: FilterDraft = FilterDraft()

    def updated(self, **changes: Any) -> "TransformationDraft":
        """Return a copy with ``changes`` applied.

        Nested sections may be given as dicts holding only the fields to change,
        e.g. ``draft.updated(resize={"width": "640"})``.
        """

        data = self.model_dump()
        for key, value in changes.items():
            if isinstance(value, BaseModel):
                value = value.model_dump()
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        return TransformationDraft.model_validate(data)


class ResizeSpec(BaseModel):
    width: Optional[PositiveInt] = None
    height: Optional[PositiveInt] = None


class CropSpec(BaseModel):
    width: PositiveInt
    height: PositiveInt
    x: NonNegativeInt = 0
    y: NonNegativeInt = 0


class FilterSpec(BaseModel):
    grayscale: Optional[Literal[True]] = None
    sepia: Optional[Literal[True]] = None


class NormalizedSpec(BaseModel):
    resize: Optional[ResizeSpec] = None
    crop: Optional[CropSpec] = None
    rotate: Optional[Literal[90, 180, 270]] = None
    format: Optional[Literal["jpeg", "png", "webp"]] = None
    filters: Optional[FilterSpec] = None

    @property
    def is_empty(self) -> bool:
        return not self.to_payload()

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
