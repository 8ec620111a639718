"""Authentication state and on-disk token persistence.

The auth token is kept in a small JSON file under the single key ``token``:
written on login/register, read when the client starts, removed on logout.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from imageclient.models import Credentials
from imageclient.services.api import ImageServiceClient, ImageServiceError
from imageclient.services.errors import AuthError, ErrorKind

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
MIN_PASSWORD_LENGTH = 6


class TokenStore:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Token file %s unreadable, ignoring it: %s", self.path, exc)
            return None
        token = data.get(TOKEN_KEY) if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # 0600 from creation; fchmod covers a pre-existing file.
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            try:
                os.fchmod(fh.fileno(), 0o600)
            except (AttributeError, OSError):  # pragma: no cover
                logger.debug("Could not restrict permissions on %s", self.path)
            json.dump({TOKEN_KEY: token}, fh)
        logger.debug("Token saved to %s", self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
        logger.debug("Token cleared from %s", self.path)


class AuthSession:
    """Login, registration and logout on top of a :class:`TokenStore`."""

    def __init__(self, client: ImageServiceClient, store: TokenStore) -> None:
        self._client = client
        self._store = store
        self.token: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    def restore(self) -> Optional[str]:
        self.token = self._store.load()
        if self.token:
            logger.debug("Restored saved session")
        return self.token

    def require_token(self) -> str:
        if not self.token:
            raise AuthError(ErrorKind.NOT_AUTHENTICATED, "Not logged in; run 'login' first")
        return self.token

    async def login(self, credentials: Credentials) -> str:
        if not credentials.complete:
            raise AuthError(ErrorKind.INVALID_CREDENTIALS, "Please enter both username and password")
        try:
            token = await self._client.login(credentials)
        except ImageServiceError as exc:
            raise AuthError.from_service_error(ErrorKind.LOGIN_FAILED, exc) from exc
        self._remember(token, ErrorKind.LOGIN_FAILED)
        logger.info("Logged in as %s", credentials.username)
        return token

    async def register(self, credentials: Credentials, confirm_password: str) -> str:
        if not credentials.complete or not confirm_password:
            raise AuthError(ErrorKind.INVALID_CREDENTIALS, "Please fill in all fields")
        if credentials.password != confirm_password:
            raise AuthError(ErrorKind.INVALID_CREDENTIALS, "Passwords do not match")
        if len(credentials.password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                ErrorKind.INVALID_CREDENTIALS,
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            )
        try:
            token = await self._client.register(credentials)
        except ImageServiceError as exc:
            raise AuthError.from_service_error(ErrorKind.REGISTRATION_FAILED, exc) from exc
        self._remember(token, ErrorKind.REGISTRATION_FAILED)
        logger.info("Registered %s", credentials.username)
        return token

    def logout(self) -> None:
        try:
            self._store.clear()
        except OSError as exc:
            raise AuthError(ErrorKind.LOGOUT_FAILED, f"Could not remove session: {exc}") from exc
        self.token = None
        logger.info("Logged out")

    def _remember(self, token: str, kind: ErrorKind) -> None:
        try:
            self._store.save(token)
        except OSError as exc:
            logger.warning("Could not write token file %s: %s", self._store.path, exc)
            raise AuthError(kind, f"Could not save session: {exc}") from exc
        self.token = token
