"""Image Service REST API wrapper.

Provides async helper methods for every endpoint the client talks to:
authentication, the upload handshake, listing, transformation requests,
download links and deletion. Authenticated calls carry the bearer token
passed in by the caller; requests to pre-signed storage URLs never do.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterable, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from imageclient.models import (
    Credentials,
    DownloadLink,
    ImageResource,
    TransformedImageResource,
    UploadTicket,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ImageServiceError(Exception):
    """Raised when the Image Service (or storage) returns an error or is unreachable."""

    def __init__(self, status: Optional[int], message: str, payload: Any = None):
        prefix = "Image Service error" if status is None else f"Image Service error {status}"
        super().__init__(f"{prefix}: {message}")
        self.status = status
        self.message = message
        self.payload = payload


class ImageServiceClient:
    """Minimal async client for the Image Service API."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ImageServiceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, credentials: Credentials) -> str:
        resp = await self._request("POST", "/login", json=credentials.model_dump())
        return _token_from(resp)

    async def register(self, credentials: Credentials) -> str:
        resp = await self._request("POST", "/register", json=credentials.model_dump())
        return _token_from(resp)

    # ------------------------------------------------------------------
    # Upload handshake
    # ------------------------------------------------------------------

    async def request_upload_slot(self, filename: str, content_type: str, token: str) -> UploadTicket:
        resp = await self._request(
            "POST",
            "/images/upload-url",
            token=token,
            json={"filename": filename, "contentType": content_type},
        )
        return _parse(UploadTicket, resp)

    async def put_object(
        self,
        upload_url: str,
        content: AsyncIterable[bytes],
        *,
        content_type: str,
        size: int,
    ) -> None:
        """PUT raw bytes to a pre-signed storage URL.

        An explicit Content-Length keeps httpx from switching to a chunked
        body, which pre-signed object-store URLs refuse.
        """

        headers = {"Content-Type": content_type, "Content-Length": str(size)}
        await self._request("PUT", upload_url, content=content, headers=headers)

    async def save_metadata(
        self,
        *,
        filename: str,
        original_name: str,
        content_type: str,
        file_size: int,
        token: str,
    ) -> Optional[ImageResource]:
        """Commit an uploaded object. Returns the image, or None for a bare acknowledgement."""

        resp = await self._request(
            "POST",
            "/images/save-metadata",
            token=token,
            json={
                "filename": filename,
                "originalName": original_name,
                "contentType": content_type,
                "fileSize": file_size,
            },
        )
        body = _json_or_none(resp)
        if isinstance(body, dict) and "id" in body:
            return _parse(ImageResource, resp, body)
        return None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_images(self, token: str, *, page: int = 0, limit: int = 0) -> list[ImageResource]:
        """List the user's images. ``limit=0`` returns every image unpaged."""

        resp = await self._request("GET", "/images", token=token, params={"page": page, "limit": limit})
        return _parse_list(ImageResource, resp)

    async def list_transformed_images(self, token: str) -> list[TransformedImageResource]:
        resp = await self._request("GET", "/images/transformed-images", token=token)
        return _parse_list(TransformedImageResource, resp)

    # ------------------------------------------------------------------
    # Transformation
    # ------------------------------------------------------------------

    async def transform(self, image_id: str, transformations: dict[str, Any], token: str) -> Any:
        resp = await self._request(
            "POST",
            f"/images/{_segment(image_id)}/transform",
            token=token,
            json={"transformations": transformations},
        )
        return _json_or_none(resp) if resp.content else None

    # ------------------------------------------------------------------
    # Download / delete
    # ------------------------------------------------------------------

    async def get_download_url(self, image_id: str, token: str) -> DownloadLink:
        resp = await self._request("GET", f"/images/{_segment(image_id)}/download-url", token=token)
        return _parse(DownloadLink, resp)

    async def get_transformed_download_url(self, image_id: str, token: str) -> DownloadLink:
        resp = await self._request(
            "GET", f"/images/transformed-images/{_segment(image_id)}/download-url", token=token
        )
        return _parse(DownloadLink, resp)

    async def delete_image(self, image_id: str, token: str) -> None:
        await self._request("DELETE", f"/images/{_segment(image_id)}", token=token)

    async def delete_transformed_image(self, image_id: str, token: str) -> None:
        await self._request("DELETE", f"/images/transformed-images/{_segment(image_id)}", token=token)

    async def fetch_bytes(self, url: str) -> bytes:
        """GET a pre-signed download URL (no Authorization header)."""

        resp = await self._request("GET", url)
        return resp.content

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        token: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = dict(headers or {})
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        logger.debug("%s %s", method, url)
        try:
            resp = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise ImageServiceError(None, f"Network error: {str(exc) or type(exc).__name__}") from exc
        if resp.status_code >= 400:
            message, payload = _error_details(resp)
            raise ImageServiceError(resp.status_code, message, payload)
        return resp

    async def close(self) -> None:
        await self._client.aclose()


# ------------------------------------------------------------------
# Helper functions
# ------------------------------------------------------------------

def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_details(resp: httpx.Response) -> tuple[str, Any]:
    """Return (message, payload), preferring the backend's own wording."""

    body = _json_or_none(resp)
    if isinstance(body, str) and body.strip():
        return body.strip(), body
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip(), body
    if body is None and resp.text.strip():
        return resp.text.strip(), resp.text
    return f"HTTP {resp.status_code}", body


def _token_from(resp: httpx.Response) -> str:
    body = _json_or_none(resp)
    if isinstance(body, str):
        token = body.strip()
    elif isinstance(body, dict) and isinstance(body.get("token"), str):
        token = body["token"].strip()
    else:
        token = resp.text.strip()
    if not token:
        raise ImageServiceError(resp.status_code, "Empty token in response")
    return token


def _parse(model: type[ModelT], resp: httpx.Response, body: Any = None) -> ModelT:
    if body is None:
        body = _json_or_none(resp)
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        logger.debug("Unexpected %s payload: %s", model.__name__, body)
        raise ImageServiceError(resp.status_code, f"Malformed {model.__name__} in response", body) from exc


def _parse_list(model: type[ModelT], resp: httpx.Response) -> list[ModelT]:
    body = _json_or_none(resp)
    if not isinstance(body, list):
        raise ImageServiceError(resp.status_code, f"Expected a list of {model.__name__}", body)
    return [_parse(model, resp, item) for item in body]

