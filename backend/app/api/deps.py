from fastapi import Request

from app.services.uploads import UploadService


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service
