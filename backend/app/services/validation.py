import logging
from collections.abc import Collection
from uuid import uuid4

from app.core.errors import InvalidContentType, MissingField
from app.schemas import PreparedUpload, UploadRequest
from app.services.sniffing import detect_content_type

logger = logging.getLogger(__name__)

TITLE_DELIMITER = "_"


def file_extension(filename: str) -> str:
    # Backslashes are ordinary characters, not separators.
    name = filename.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return name[dot:] if dot != -1 else ""


def validate_content_type(content_type: str, allowed: Collection[str]) -> None:
    if content_type not in allowed:
        raise InvalidContentType(content_type)


def generate_object_key(filename: str) -> str:
    return f"{uuid4()}{file_extension(filename)}"


def title_prefix(title: str) -> str:
    return f"{title}{TITLE_DELIMITER}"


def prepare_upload(request: UploadRequest, allowed: Collection[str]) -> PreparedUpload:
    """Validate an incoming upload and derive where it will be stored.

    Raises ``MissingField`` for an absent title or an absent/empty file and
    ``InvalidContentType`` when the sniffed type is not in ``allowed``.
    """
    if not request.title or not request.title.strip():
        raise MissingField("title")
    if request.file_bytes is None:
        raise MissingField("file")
    if not request.file_bytes:
        raise MissingField("file content")

    content_type = detect_content_type(request.file_bytes)
    validate_content_type(content_type, allowed)
    logger.debug("Detected %s for %s", content_type, request.filename)

    return PreparedUpload(
        key=generate_object_key(request.filename),
        prefix=title_prefix(request.title),
        content_type=content_type,
        length=request.declared_size or len(request.file_bytes),
    )
