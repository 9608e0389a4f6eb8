from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from loguru import logger
from packaging.version import Version

from .deps import get_package_store, require_api_version
from .package_models import UploadStatus
from .package_schemas import UploadAccepted, UploadStatusResponse
from .package_store import PackageStore, PackageValidationError
from .versioning import V2, package_url, upload_status_url

router = APIRouter()

UPLOAD_EXAMPLE = {
    "id": "Pathy",
    "versions": [
        {
            "version": "1.5.0",
            "description": "Fluently building and using file and directory paths",
            "repositoryUrl": "https://github.com/dennisdoomen/pathy",
            "owner": "dennisdoomen",
        }
    ],
}


# ------------------ POST /api/v{version}/packages/uploads ------------------ #


@router.post(
    "/api/v{version}/packages/uploads",
    response_model=UploadAccepted,
    status_code=202,
    responses={400: {"description": "Malformed package descriptor"}},
)
def upload_package(
    response: Response,
    payload: Any = Body(default=None, examples=[UPLOAD_EXAMPLE]),
    api_version: Version = Depends(require_api_version(V2)),
    store: PackageStore = Depends(get_package_store),
) -> UploadAccepted:
    """
    Accept a package descriptor for asynchronous processing.

    The package becomes visible once its status has been polled; the
    Location header points at the status endpoint.
    """
    try:
        pending_id = store.upload(payload)
    except PackageValidationError as e:
        logger.warning("Rejected upload: {}", e)
        raise HTTPException(status_code=400, detail=str(e))

    response.headers["Location"] = upload_status_url(api_version, pending_id)
    return UploadAccepted(pending_id=pending_id)


# ------------------ GET /api/v{version}/packages/uploads/{pending_id} ------------------ #


@router.get(
    "/api/v{version}/packages/uploads/{pending_id}",
    response_model=UploadStatusResponse,
    responses={
        202: {"description": "Upload is still being processed"},
        404: {"description": "No upload with this id"},
    },
)
def get_upload_status(
    pending_id: str,
    response: Response,
    api_version: Version = Depends(require_api_version(V2)),
    store: PackageStore = Depends(get_package_store),
) -> UploadStatusResponse:
    result = store.get_upload_status(pending_id)

    if result.status is UploadStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Could not find an upload with ID {pending_id}")

    if result.status is UploadStatus.IN_PROGRESS:
        response.status_code = 202
        response.headers["Location"] = upload_status_url(api_version, pending_id)
    else:
        response.headers["Location"] = package_url(api_version, result.id)

    return UploadStatusResponse(status=result.status.value, id=result.id)
