from __future__ import annotations

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    username: str = ""
    password: str = Field("", repr=False)

    @property
    def complete(self) -> bool:
        return bool(self.username) and bool(self.password)
