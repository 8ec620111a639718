from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator

from pydantic import BaseModel, Field


class LocalFile(BaseModel):
    """A file picked on the local machine, ready to be uploaded."""

    path: Path
    name: str
    content_type: str
    size: int = Field(..., ge=0)

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        with self.path.open("rb") as fh:
            while True:
                chunk = fh.read(chunk_size)
                if not chunk:
                    break
                yield chunk
