"""Three-step upload handshake.

1. request an upload slot (pre-signed storage URL) from the Image Service,
2. PUT the raw file bytes straight to storage,
3. commit the image metadata so it shows up in the user's library.

Progress is reported through :class:`UploadProgress`: 25 after the slot is
granted, 25-75 while bytes are streamed, 100 once the metadata is committed.
A failed step ends the attempt; retrying always starts again at step 1.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from imageclient.config import get_settings
from imageclient.models import ImageResource, LocalFile, UploadTicket
from imageclient.services.api import ImageServiceClient, ImageServiceError
from imageclient.services.errors import ErrorKind, UploadError

logger = logging.getLogger(__name__)
settings = get_settings()

SLOT_GRANTED = 25
BYTES_SENT = 75
COMMITTED = 100


class UploadProgress:
    """Observable upload percentage in [0, 100]."""

    def __init__(self) -> None:
        self.value = 0
        self._listeners: list[Callable[[int], None]] = []
        self._reset_handle: Optional[asyncio.TimerHandle] = None

    def subscribe(self, listener: Callable[[int], None]) -> None:
        self._listeners.append(listener)

    def advance(self, value: int) -> None:
        """Move forward to ``value``; lower values are ignored."""

        value = max(0, min(COMMITTED, int(value)))
        if value <= self.value:
            return
        self.value = value
        self._notify()

    def reset(self) -> None:
        self._cancel_pending_reset()
        if self.value:
            self.value = 0
            self._notify()

    def reset_later(self, delay: float) -> None:
        """Reset to 0 after ``delay`` seconds so the final value stays visible briefly."""

        self._cancel_pending_reset()
        if delay <= 0:
            self.reset()
            return
        self._reset_handle = asyncio.get_running_loop().call_later(delay, self.reset)

    def _cancel_pending_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.value)


class UploadCoordinator:
    """Drives one local file through the upload handshake at a time."""

    def __init__(
        self,
        client: ImageServiceClient,
        *,
        on_committed: Optional[Callable[[], Awaitable[object]]] = None,
        chunk_size: Optional[int] = None,
        reset_delay: Optional[float] = None,
    ) -> None:
        self._client = client
        self._on_committed = on_committed
        self._chunk_size = chunk_size or settings.upload_chunk_size
        self._reset_delay = settings.progress_reset_delay if reset_delay is None else reset_delay
        self._busy = False
        self.progress = UploadProgress()
        self.selected_file: Optional[LocalFile] = None

    @property
    def busy(self) -> bool:
        return self._busy

    def select(self, file: Optional[LocalFile]) -> None:
        self.selected_file = file

    async def upload_selected(self, token: str) -> ImageResource:
        return await self.upload(self.selected_file, token)

    async def upload(self, file: Optional[LocalFile], token: str) -> ImageResource:
        if file is None:
            raise UploadError(ErrorKind.NO_FILE_SELECTED, "Please select a file to upload")
        if self._busy:
            raise UploadError(ErrorKind.OPERATION_IN_PROGRESS, "An upload is already in progress")

        self._busy = True
        self.progress.reset()
        try:
            image = await self._handshake(file, token)
        finally:
            self._busy = False
            self.progress.reset_later(self._reset_delay)

        logger.info("Uploaded %s as image %s", file.name, image.id)
        if self.selected_file == file:
            self.selected_file = None
        if self._on_committed is not None:
            await self._on_committed()
        return image

    # ------------------------------------------------------------------
    # Handshake steps
    # ------------------------------------------------------------------

    async def _handshake(self, file: LocalFile, token: str) -> ImageResource:
        ticket = await self._request_slot(file, token)
        await self._send_bytes(file, ticket)
        return await self._commit(file, ticket, token)

    async def _request_slot(self, file: LocalFile, token: str) -> UploadTicket:
        try:
            ticket = await self._client.request_upload_slot(file.name, file.content_type, token)
        except ImageServiceError as exc:
            logger.warning("Upload slot request for %s failed: %s", file.name, exc.message)
            raise UploadError.from_service_error(ErrorKind.SLOT_REQUEST_FAILED, exc) from exc
        self.progress.advance(SLOT_GRANTED)
        logger.debug("Upload slot granted for %s -> %s", file.name, ticket.filename)
        return ticket

    async def _send_bytes(self, file: LocalFile, ticket: UploadTicket) -> None:
        try:
            await self._client.put_object(
                ticket.upload_url,
                self._tracked_chunks(file),
                content_type=file.content_type,
                size=file.size,
            )
        except ImageServiceError as exc:
            logger.warning("Direct upload of %s failed: %s", file.name, exc.message)
            raise UploadError.from_service_error(ErrorKind.DIRECT_UPLOAD_FAILED, exc) from exc
        except OSError as exc:
            logger.warning("Could not read %s during upload: %s", file.path, exc)
            raise UploadError(ErrorKind.DIRECT_UPLOAD_FAILED, f"Could not read {file.name}: {exc}") from exc
        self.progress.advance(BYTES_SENT)

    async def _tracked_chunks(self, file: LocalFile) -> AsyncIterator[bytes]:
        sent = 0
        span = BYTES_SENT - SLOT_GRANTED
        async for chunk in file.iter_chunks(self._chunk_size):
            yield chunk
            sent += len(chunk)
            if file.size:
                self.progress.advance(SLOT_GRANTED + (min(sent, file.size) * span) // file.size)

    async def _commit(self, file: LocalFile, ticket: UploadTicket, token: str) -> ImageResource:
        try:
            image = await self._client.save_metadata(
                filename=ticket.filename,
                original_name=file.name,
                content_type=file.content_type,
                file_size=file.size,
                token=token,
            )
        except ImageServiceError as exc:
            # The object is already in storage but no image record points to it.
            logger.warning(
                "Metadata commit for %s failed; stored object %s is orphaned: %s",
                file.name,
                ticket.filename,
                exc.message,
            )
            raise UploadError.from_service_error(ErrorKind.METADATA_COMMIT_FAILED, exc) from exc

        if image is None:
            logger.debug("Metadata commit acknowledged without an image body for %s", ticket.filename)
            image = ImageResource(
                id=ticket.filename,
                name=file.name,
                content_type=file.content_type,
                file_size=file.size,
            )
        self.progress.advance(COMMITTED)
        return image
