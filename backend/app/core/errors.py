from fastapi import status


class AppError(Exception):
    """Base error carrying the HTTP status it is rendered with."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class MissingField(ValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(f"{field} is required")
        self.field = field


class InvalidContentType(ValidationError):
    def __init__(self, content_type: str) -> None:
        super().__init__("not valid mime-type")
        self.content_type = content_type


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ObjectNotFound(NotFoundError):
    def __init__(self, key: str) -> None:
        super().__init__(f"file {key} not found")
        self.key = key


class StoreError(AppError):
    """Failure reported by the backing object store."""


class StoreUnavailable(StoreError):
    pass


class BucketNotFound(StoreError):
    def __init__(self, bucket: str) -> None:
        super().__init__(f"bucket {bucket} does not exist")
        self.bucket = bucket


class CopyFailed(StoreError):
    def __init__(self, code: str, store_message: str) -> None:
        super().__init__(f"failed to copy object: {store_message}")
        self.code = code
        self.store_message = store_message


class ObjectTooLarge(StoreError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self) -> None:
        super().__init__(
            "error uploading. The object is too large. "
            "The maximum size for a multipart upload is 5TB."
        )


class OperationTimeout(AppError):
    pass


class DeleteTimeout(OperationTimeout):
    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"timed out after {timeout:g}s waiting for {key} to be deleted")
        self.key = key
        self.timeout = timeout
