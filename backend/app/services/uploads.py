from __future__ import annotations

import logging
from collections.abc import Collection

from app.core.errors import AppError, MissingField, ObjectNotFound
from app.schemas import RenameRequest, StoredObject, UpdateRequest, UploadRequest
from app.services.storage import ObjectStore
from app.services.validation import file_extension, prepare_upload

logger = logging.getLogger(__name__)


class UploadService:
    """Composes validation and store calls for each file operation.

    No compensating actions are taken: ``update`` deletes the old object
    before writing the new one and ``rename`` deletes the source after the
    copy, so a failure between the two steps leaves zero or two objects.
    """

    def __init__(self, store: ObjectStore, allowed_mime_types: Collection[str]) -> None:
        self.store = store
        self.allowed_mime_types = frozenset(allowed_mime_types)

    def _log_failure(self, operation: str, exc: AppError) -> None:
        logger.error("usecase %s failed: %s", operation, exc.message)

    async def create(self, request: UploadRequest) -> list[StoredObject]:
        try:
            prepared = prepare_upload(request, self.allowed_mime_types)
            await self.store.put(
                prepared.object_key,
                request.file_bytes,
                prepared.content_type,
                prepared.length,
            )
            logger.info("Uploaded %s (%s)", prepared.object_key, prepared.content_type)
            return await self.store.list_objects()
        except AppError as exc:
            self._log_failure("UploadFile", exc)
            raise

    async def preview(self, key: str) -> str:
        if not key:
            raise MissingField("key parameter")
        try:
            return await self.store.presign(key)
        except AppError as exc:
            self._log_failure("PreviewFile", exc)
            raise

    async def list_objects(self) -> list[StoredObject]:
        try:
            return await self.store.list_objects()
        except AppError as exc:
            self._log_failure("ListObjects", exc)
            raise

    async def update(self, request: UpdateRequest) -> str:
        if not request.key:
            raise MissingField("key")
        try:
            prepared = prepare_upload(request, self.allowed_mime_types)
            if not await self.store.head(request.key):
                raise ObjectNotFound(request.key)
            await self.store.delete(request.key)
            await self.store.put(
                prepared.object_key,
                request.file_bytes,
                prepared.content_type,
                prepared.length,
            )
        except AppError as exc:
            self._log_failure("UpdateFile", exc)
            raise
        logger.info("Replaced %s with %s", request.key, prepared.object_key)
        return prepared.object_key

    async def rename(self, request: RenameRequest) -> str:
        if not request.old_key:
            raise MissingField("oldKey")
        if not request.new_key:
            raise MissingField("newKey")

        new_key = request.new_key + file_extension(request.old_key)
        try:
            await self.store.copy(request.old_key, new_key)
            await self.store.delete(request.old_key)
        except AppError as exc:
            self._log_failure("UpdateObject", exc)
            raise
        logger.info("Moved %s to %s", request.old_key, new_key)
        return new_key

    async def delete(self, key: str) -> None:
        if not key:
            raise MissingField("key parameter")
        try:
            await self.store.delete(key)
        except AppError as exc:
            self._log_failure("DeleteFile", exc)
            raise
        logger.info("Deleted %s", key)
