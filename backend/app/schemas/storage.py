from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


class StoredObject(BaseModel):
    key: str
    title: str
    url: str = ""

    @classmethod
    def from_key(cls, key: str, url: str = "") -> "StoredObject":
        # Titles are recovered by cutting at the last delimiter.
        title, sep, _ = key.rpartition("_")
        return cls(key=key, title=title if sep else key, url=url)


class PreviewResponse(BaseModel):
    url: str


class Envelope(BaseModel):
    status: str = "success"
    message: str
    data: Any = None


class ErrorEnvelope(BaseModel):
    status: str = "error"
    message: str


@dataclass(frozen=True)
class UploadRequest:
    title: str
    file_bytes: bytes | None
    filename: str
    declared_size: int = 0


@dataclass(frozen=True)
class UpdateRequest(UploadRequest):
    key: str = ""


@dataclass(frozen=True)
class RenameRequest:
    old_key: str
    new_key: str


@dataclass(frozen=True)
class PreparedUpload:
    key: str
    prefix: str
    content_type: str
    length: int

    @property
    def object_key(self) -> str:
        return self.prefix + self.key
