"""Cached image lists plus download and delete actions.

List fetches never raise: a failed fetch leaves an empty list behind and
records a ``LIST_FETCH_FAILED`` error for that list (:attr:`ImageLibrary.images_error`,
:attr:`ImageLibrary.transformed_error`) until its next successful fetch, so
the rest of the client keeps working while the failure stays observable.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from imageclient.models import DownloadLink, ImageResource, TransformedImageResource
from imageclient.services.api import ImageServiceClient, ImageServiceError
from imageclient.services.errors import ErrorKind, LibraryError

logger = logging.getLogger(__name__)


class ImageLibrary:
    """Read-only local view of the user's original and transformed images."""

    def __init__(self, client: ImageServiceClient) -> None:
        self._client = client
        self.images: list[ImageResource] = []
        self.transformed: list[TransformedImageResource] = []
        self.images_error: Optional[LibraryError] = None
        self.transformed_error: Optional[LibraryError] = None

    # -------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------

    async def refresh_images(self, token: str, *, page: int = 0, limit: int = 0) -> list[ImageResource]:
        """Fetch the original images; ``limit=0`` asks for all of them."""

        try:
            self.images = await self._client.list_images(token, page=page, limit=limit)
        except ImageServiceError as exc:
            self.images_error = _list_failure("images", exc)
            self.images = []
        else:
            self.images_error = None
        return self.images

    async def refresh_transformed(self, token: str) -> list[TransformedImageResource]:
        try:
            self.transformed = await self._client.list_transformed_images(token)
        except ImageServiceError as exc:
            self.transformed_error = _list_failure("transformed images", exc)
            self.transformed = []
        else:
            self.transformed_error = None
        return self.transformed

    @property
    def last_error(self) -> Optional[LibraryError]:
        return self.images_error or self.transformed_error

    async def refresh_all(self, token: str) -> None:
        await asyncio.gather(self.refresh_images(token), self.refresh_transformed(token))

    def find(self, image_id: str) -> Optional[ImageResource]:
        return next((img for img in self.images if img.id == image_id), None)

    def transformed_for(self, image_id: str) -> list[TransformedImageResource]:
        return [t for t in self.transformed if t.original_image_id == image_id]

    # -------------------------------------------------------------------
    # Download
    # -------------------------------------------------------------------

    async def download_url(self, image_id: str, token: str, *, transformed: bool = False) -> DownloadLink:
        try:
            if transformed:
                return await self._client.get_transformed_download_url(image_id, token)
            return await self._client.get_download_url(image_id, token)
        except ImageServiceError as exc:
            logger.warning("Download URL for image %s unavailable: %s", image_id, exc.message)
            raise LibraryError.from_service_error(ErrorKind.DOWNLOAD_URL_FAILED, exc) from exc

    async def download(
        self,
        image_id: str,
        token: str,
        dest: Union[str, Path],
        *,
        transformed: bool = False,
    ) -> Path:
        """Fetch an image through its download link and write it to ``dest``.

        ``dest`` may be a directory, in which case the image id is used as the
        file name.
        """

        link = await self.download_url(image_id, token, transformed=transformed)
        try:
            data = await self._client.fetch_bytes(link.download_url)
        except ImageServiceError as exc:
            raise LibraryError.from_service_error(ErrorKind.DOWNLOAD_FAILED, exc) from exc

        target = Path(dest).expanduser()
        if target.is_dir():
            target = target / self._default_name(image_id, transformed)
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise LibraryError(ErrorKind.DOWNLOAD_FAILED, f"Could not write {target}: {exc}") from exc
        logger.info("Downloaded image %s to %s (%d bytes)", image_id, target, len(data))
        return target

    # -------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------

    async def delete(self, image_id: str, token: str, *, transformed: bool = False) -> None:
        try:
            if transformed:
                await self._client.delete_transformed_image(image_id, token)
            else:
                await self._client.delete_image(image_id, token)
        except ImageServiceError as exc:
            logger.warning("Deleting image %s failed: %s", image_id, exc.message)
            raise LibraryError.from_service_error(ErrorKind.DELETE_FAILED, exc) from exc

        logger.info("Deleted %simage %s", "transformed " if transformed else "", image_id)
        if transformed:
            await self.refresh_transformed(token)
        else:
            await self.refresh_all(token)

    # -------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------

    def _default_name(self, image_id: str, transformed: bool) -> str:
        if not transformed:
            image = self.find(image_id)
            if image is not None and image.name:
                return image.name
        return f"{'transformed-' if transformed else ''}{image_id}"


def _list_failure(what: str, exc: ImageServiceError) -> LibraryError:
    logger.warning("Could not fetch %s, showing an empty list: %s", what, exc.message)
    return LibraryError.from_service_error(ErrorKind.LIST_FETCH_FAILED, exc)
