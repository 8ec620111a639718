from .credentials import Credentials
from .image import DownloadLink, ImageResource, TransformedImageResource, UploadTicket
from .local_file import LocalFile
from .transformation import (
    CropDraft,
    CropSpec,
    FilterDraft,
    FilterSpec,
    NormalizedSpec,
    ResizeDraft,
    ResizeSpec,
    TransformationDraft,
)

__all__ = [
    "Credentials",
    "DownloadLink",
    "ImageResource",
    "TransformedImageResource",
    "UploadTicket",
    "LocalFile",
    "CropDraft",
    "CropSpec",
    "FilterDraft",
    "FilterSpec",
    "NormalizedSpec",
    "ResizeDraft",
    "ResizeSpec",
    "TransformationDraft",
]
