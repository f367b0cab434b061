import asyncio
import io
import logging
import math
from collections.abc import Callable
from typing import Any, Final, Protocol, TypeVar

import boto3
from boto3.s3.transfer import TransferConfig, create_transfer_manager
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError, WaiterError
from s3transfer.manager import TransferManager

from app.core.config import Settings
from app.core.errors import (
    BucketNotFound,
    CopyFailed,
    DeleteTimeout,
    ObjectNotFound,
    ObjectTooLarge,
    OperationTimeout,
    StoreError,
    StoreUnavailable,
)
from app.schemas import StoredObject

logger = logging.getLogger(__name__)

MiB: Final[int] = 1024 * 1024
MAX_OBJECT_SIZE: Final[int] = 5 * 1024 * 1024 * MiB  # 5 TiB
WAITER_DELAY: Final[int] = 1

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_NO_BUCKET_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})

T = TypeVar("T")


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _error_message(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Message", "")) or str(exc)


class ObjectStore(Protocol):
    """Capabilities the upload workflow needs from an object store."""

    async def put(self, key: str, data: bytes, content_type: str, length: int) -> None: ...

    async def head(self, key: str) -> bool: ...

    async def delete(self, key: str) -> None: ...

    async def list_objects(self) -> list[StoredObject]: ...

    async def presign(self, key: str, ttl: int | None = None) -> str: ...

    async def copy(self, old_key: str, new_key: str) -> None: ...

    async def ensure_bucket(self) -> None: ...

    async def drain(self) -> None: ...


class S3ObjectStore:
    """S3-compatible object store backed by boto3."""

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self.settings = settings
        self.bucket = settings.s3_bucket_name
        self.timeout = settings.timeout
        if client is None:
            session = boto3.session.Session()
            client = session.client(
                "s3",
                endpoint_url=str(settings.s3_endpoint) if settings.s3_endpoint else None,
                aws_access_key_id=settings.s3_access_key,
                aws_secret_access_key=settings.s3_secret_key,
                region_name=settings.s3_region,
                config=Config(
                    signature_version="s3v4",
                    connect_timeout=settings.timeout,
                    read_timeout=settings.timeout,
                ),
            )
        self.client = client
        self.transfer_config = TransferConfig(
            multipart_threshold=settings.multipart_threshold_mb * MiB,
            multipart_chunksize=settings.multipart_part_size_mb * MiB,
            max_concurrency=settings.max_concurrency,
        )
        self._cleanup_tasks: set[asyncio.Task] = set()

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        # Single-request calls cannot be aborted once on the wire: on timeout or
        # cancellation the worker thread finishes the request unobserved. Only
        # put cancels its transfer and removes what it may have written.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise OperationTimeout(
                f"store call {getattr(func, '__name__', func)!s} exceeded {self.timeout}s"
            ) from exc

    async def drain(self) -> None:
        """Wait for cleanup of uploads abandoned by cancelled requests."""
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)

    async def ensure_bucket(self) -> None:
        try:
            await self._call(self.client.head_bucket, Bucket=self.bucket)
            return
        except ClientError as exc:
            if _error_code(exc) not in _NO_BUCKET_CODES:
                raise StoreUnavailable(_error_message(exc)) from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(str(exc)) from exc

        params: dict[str, Any] = {"Bucket": self.bucket}
        # us-east-1 rejects an explicit location constraint.
        if self.settings.s3_region and self.settings.s3_region != "us-east-1":
            params["CreateBucketConfiguration"] = {
                "LocationConstraint": self.settings.s3_region
            }
        try:
            await self._call(self.client.create_bucket, **params)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Couldn't create bucket %s: %s", self.bucket, exc)
            raise StoreUnavailable(str(exc)) from exc
        logger.info("Created bucket %s in %s", self.bucket, self.settings.s3_region)

    async def put(self, key: str, data: bytes, content_type: str, length: int) -> None:
        if max(length, len(data)) > MAX_OBJECT_SIZE:
            raise ObjectTooLarge()

        manager = create_transfer_manager(self.client, self.transfer_config)
        future = manager.upload(
            io.BytesIO(data),
            self.bucket,
            key,
            extra_args={"ContentType": content_type},
        )
        try:
            await asyncio.wait_for(asyncio.to_thread(future.result), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Upload of %s:%s exceeded %ss", self.bucket, key, self.timeout)
            await asyncio.to_thread(self._discard_upload, manager, future, key)
            raise OperationTimeout(f"upload of {key} exceeded {self.timeout}s") from exc
        except asyncio.CancelledError:
            task = asyncio.ensure_future(
                asyncio.to_thread(self._discard_upload, manager, future, key)
            )
            self._cleanup_tasks.add(task)
            task.add_done_callback(self._cleanup_tasks.discard)
            raise
        except ClientError as exc:
            await asyncio.to_thread(manager.shutdown)
            if _error_code(exc) == "EntityTooLarge":
                raise ObjectTooLarge() from exc
            logger.error("Couldn't upload object to %s:%s: %s", self.bucket, key, exc)
            raise StoreUnavailable(_error_message(exc)) from exc
        except BotoCoreError as exc:
            await asyncio.to_thread(manager.shutdown)
            logger.error("Couldn't upload object to %s:%s: %s", self.bucket, key, exc)
            raise StoreUnavailable(str(exc)) from exc
        await asyncio.to_thread(manager.shutdown)

    def _discard_upload(self, manager: TransferManager, future: Any, key: str) -> None:
        future.cancel()
        # Waits for in-flight requests; an open multipart upload is aborted.
        manager.shutdown(cancel=True)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Couldn't remove abandoned upload %s:%s: %s", self.bucket, key, exc)
        else:
            logger.warning("Discarded abandoned upload %s:%s", self.bucket, key)

    async def head(self, key: str) -> bool:
        try:
            await self._call(self.client.head_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return False
            raise StoreUnavailable(f"error checking file existence: {_error_message(exc)}") from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(f"error checking file existence: {exc}") from exc
        return True

    async def delete(self, key: str) -> None:
        if not await self.head(key):
            raise ObjectNotFound(key)

        try:
            await self._call(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailable(f"error deleting file: {exc}") from exc

        waiter = self.client.get_waiter("object_not_exists")
        max_attempts = max(1, math.ceil(self.timeout / WAITER_DELAY))

        def _wait() -> None:
            waiter.wait(
                Bucket=self.bucket,
                Key=key,
                WaiterConfig={"Delay": WAITER_DELAY, "MaxAttempts": max_attempts},
            )

        try:
            # The waiter enforces the window itself; leave it room to report.
            await asyncio.wait_for(
                asyncio.to_thread(_wait), timeout=self.timeout + WAITER_DELAY
            )
        except (WaiterError, asyncio.TimeoutError) as exc:
            logger.error("Deletion of %s:%s was not confirmed: %s", self.bucket, key, exc)
            raise DeleteTimeout(key, self.timeout) from exc

    async def list_objects(self) -> list[StoredObject]:
        paginator = self.client.get_paginator("list_objects_v2")

        def _collect_keys() -> list[str]:
            keys: list[str] = []
            for page in paginator.paginate(Bucket=self.bucket):
                keys.extend(item["Key"] for item in page.get("Contents", []))
            return keys

        try:
            keys = await self._call(_collect_keys)
        except ClientError as exc:
            if _error_code(exc) == "NoSuchBucket":
                logger.error("Bucket %s does not exist", self.bucket)
                raise BucketNotFound(self.bucket) from exc
            raise StoreUnavailable(_error_message(exc)) from exc
        except BotoCoreError as exc:
            raise StoreUnavailable(str(exc)) from exc

        objects: list[StoredObject] = []
        for key in keys:
            try:
                url = await self.presign(key)
            except StoreError:
                url = ""
            objects.append(StoredObject.from_key(key, url))
        return objects

    async def presign(self, key: str, ttl: int | None = None) -> str:
        expires_in = ttl or self.settings.presign_expires_in
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error(
                "Couldn't get presigned URL for object %s:%s: %s", self.bucket, key, exc
            )
            raise StoreUnavailable(str(exc)) from exc

    async def copy(self, old_key: str, new_key: str) -> None:
        try:
            await self._call(
                self.client.copy_object,
                Bucket=self.bucket,
                CopySource={"Bucket": self.bucket, "Key": old_key},
                Key=new_key,
            )
        except ClientError as exc:
            code, message = _error_code(exc), _error_message(exc)
            logger.error("error copying object, code: %s, message: %s", code, message)
            raise CopyFailed(code, message) from exc
        except BotoCoreError as exc:
            raise CopyFailed("", str(exc)) from exc
