"""Transformation request building and submission."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from imageclient.models import (
    CropSpec,
    FilterSpec,
    NormalizedSpec,
    ResizeSpec,
    TransformationDraft,
)
from imageclient.models.transformation import CropDraft, FieldInput, FilterDraft, ResizeDraft
from imageclient.services.api import ImageServiceClient, ImageServiceError
from imageclient.services.errors import ErrorKind, TransformError

logger = logging.getLogger(__name__)


class TransformState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    SUBMITTING = "submitting"
    APPLIED = "applied"
    REJECTED = "rejected"


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def build_transformations(draft: TransformationDraft) -> NormalizedSpec:
    """Reduce a draft to the minimal payload the transform backend accepts.

    Only transformations the user meaningfully filled in are kept: unset
    resize dimensions are omitted so the backend keeps the aspect ratio, a crop
    without both width and height is dropped, rotation 0 and an empty format
    mean "unchanged", and filters switched off are left out.
    """

    return NormalizedSpec(
        resize=_resize(draft.resize),
        crop=_crop(draft.crop),
        rotate=draft.rotate or None,
        format=draft.format or None,
        filters=_filters(draft.filters),
    )


def _resize(draft: ResizeDraft) -> Optional[ResizeSpec]:
    if _is_blank(draft.width) and _is_blank(draft.height):
        return None
    width, height = _positive_int(draft.width), _positive_int(draft.height)
    if width is None and height is None:
        return None
    return ResizeSpec(width=width, height=height)


def _crop(draft: CropDraft) -> Optional[CropSpec]:
    width, height = _positive_int(draft.width), _positive_int(draft.height)
    if width is None or height is None:
        return None
    return CropSpec(width=width, height=height, x=_offset(draft.x), y=_offset(draft.y))


def _filters(draft: FilterDraft) -> Optional[FilterSpec]:
    enabled = {name: True for name, on in draft.model_dump().items() if on}
    return FilterSpec(**enabled) if enabled else None


def _is_blank(value: FieldInput) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: FieldInput) -> Optional[int]:
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _positive_int(value: FieldInput) -> Optional[int]:
    number = _as_int(value)
    return number if number is not None and number > 0 else None


def _offset(value: FieldInput) -> int:
    number = _as_int(value)
    return number if number is not None and number >= 0 else 0


_UNION_TAGS = frozenset({"int", "float", "str"})


def _field_path(loc: tuple) -> str:
    # Union members show up as trailing type names in the error location.
    parts = [str(p) for p in loc]
    while len(parts) > 1 and parts[-1] in _UNION_TAGS:
        parts.pop()
    return ".".join(parts)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class TransformRequestBuilder:
    """Holds the draft for one transform dialog and submits it.

    State moves ``IDLE -> EDITING -> SUBMITTING -> APPLIED | REJECTED``; any
    finished state may start editing again, for the same or another image.
    """

    build = staticmethod(build_transformations)

    def __init__(
        self,
        client: ImageServiceClient,
        *,
        on_applied: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> None:
        self._client = client
        self._on_applied = on_applied
        self.draft = TransformationDraft()
        self.state = TransformState.IDLE
        self.image_id: Optional[str] = None

    def edit(self, **changes: Any) -> TransformationDraft:
        self._ensure_not_submitting()
        try:
            self.draft = self.draft.updated(**changes)
        except ValidationError as exc:
            fields = sorted({_field_path(err["loc"]) for err in exc.errors()})
            raise TransformError(
                ErrorKind.INVALID_TRANSFORMATION, f"Invalid transformation fields: {', '.join(fields)}"
            ) from exc
        self.state = TransformState.EDITING
        return self.draft

    def reset(self) -> None:
        """Discard the draft. No network effect."""

        self._ensure_not_submitting()
        self.draft = TransformationDraft()
        self.state = TransformState.IDLE

    async def apply(
        self,
        image_id: str,
        draft: Optional[TransformationDraft],
        token: str,
    ) -> NormalizedSpec:
        """Send the normalized draft for ``image_id`` and return what was sent."""

        self._ensure_not_submitting()
        if draft is not None:
            self.draft = draft
        spec = build_transformations(self.draft)
        if spec.is_empty:
            raise TransformError(
                ErrorKind.EMPTY_TRANSFORMATION, "Please specify at least one transformation"
            )

        self.image_id = image_id
        self.state = TransformState.SUBMITTING
        payload = spec.to_payload()
        logger.debug("Submitting transformations for image %s: %s", image_id, payload)
        try:
            await self._client.transform(image_id, payload, token)
        except ImageServiceError as exc:
            self.state = TransformState.REJECTED
            logger.warning("Transformation of image %s rejected: %s", image_id, exc.message)
            raise TransformError.from_service_error(ErrorKind.TRANSFORM_REJECTED, exc) from exc
        except BaseException:
            self.state = TransformState.REJECTED
            raise

        self.state = TransformState.APPLIED
        self.draft = TransformationDraft()
        logger.info("Transformation applied to image %s", image_id)
        if self._on_applied is not None:
            await self._on_applied()
        return spec

    def _ensure_not_submitting(self) -> None:
        if self.state is TransformState.SUBMITTING:
            raise TransformError(
                ErrorKind.OPERATION_IN_PROGRESS, "A transformation is already being applied"
            )
