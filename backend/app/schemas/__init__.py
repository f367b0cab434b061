from app.schemas.storage import (
    Envelope,
    ErrorEnvelope,
    PreparedUpload,
    PreviewResponse,
    RenameRequest,
    StoredObject,
    UpdateRequest,
    UploadRequest,
)

__all__ = [
    "StoredObject",
    "PreviewResponse",
    "Envelope",
    "ErrorEnvelope",
    "UploadRequest",
    "UpdateRequest",
    "RenameRequest",
    "PreparedUpload",
]
