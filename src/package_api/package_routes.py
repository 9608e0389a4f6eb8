from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from loguru import logger
from packaging.version import Version

from .deps import get_package_store, require_api_version, require_package_id, set_cache_headers
from .package_schemas import (
    PackageResponse,
    PackageStatistics,
    PackageWithVersionDetailsResponse,
    PackageWithVersionSummaryResponse,
    PatchPackageRequest,
    PutPackageRequest,
    VersionDetails,
)
from .package_store import PackageStore
from .versioning import V0_1, V1, V2, package_url, reporting_headers

router = APIRouter()


def _find_or_404(store: PackageStore, package_id: str):
    package = store.find_by_id(package_id)
    if package is None:
        logger.warning("Could not find a package with ID {}", package_id)
        raise HTTPException(
            status_code=404, detail=f"Could not find a package with ID {package_id}"
        )
    return package


# ------------------ GET /api/v{version}/packages ------------------ #


@router.get(
    "/api/v{version}/packages",
    response_model=List[PackageResponse],
    responses={410: {"description": "Deprecated in API version 1.0"}},
)
def get_packages(
    response: Response,
    skip: int = Query(0, ge=0),
    take: Optional[int] = Query(None, ge=0),
    api_version: Version = Depends(require_api_version(V1, V2)),
    store: PackageStore = Depends(get_package_store),
) -> List[PackageResponse]:
    """Retrieve the packages available for download."""
    if api_version == V1:
        raise HTTPException(
            status_code=410, detail="This endpoint is deprecated.", headers=reporting_headers()
        )

    set_cache_headers(response)

    packages = store.list()[skip:]
    if take is not None:
        packages = packages[:take]

    return [PackageResponse(id=pid, description=description) for pid, description in packages]


# ------------------ GET /api/v{version}/packages/{package_id} ------------------ #


@router.get(
    "/api/v{version}/packages/{package_id}",
    response_model=None,
    responses={
        200: {"model": PackageWithVersionDetailsResponse},
        400: {"description": "Blank package id"},
        404: {"description": "Package does not exist"},
    },
)
def get_package(
    response: Response,
    package_id: str = Depends(require_package_id),
    api_version: Version = Depends(require_api_version(V1, V2)),
    store: PackageStore = Depends(get_package_store),
):
    """
    Retrieve a package with its versions.

    Version 1.0 returns a summary per version (version, description,
    repository and owner); version 2.0 returns the full version details.
    """
    set_cache_headers(response)
    package = _find_or_404(store, package_id)

    if api_version == V1:
        return PackageWithVersionSummaryResponse.from_record(package)
    return PackageWithVersionDetailsResponse.from_record(package)


# ------------------ GET /api/v{version}/packages/{package_id}/statistics ------------------ #


@router.get("/api/v{version}/packages/{package_id}/statistics", response_model=PackageStatistics)
def get_statistics(
    response: Response,
    package_id: str = Depends(require_package_id),
    api_version: Version = Depends(require_api_version(V2)),
    store: PackageStore = Depends(get_package_store),
) -> PackageStatistics:
    set_cache_headers(response)
    package = _find_or_404(store, package_id)
    return PackageStatistics(id=package.id, total_downloads=package.total_downloads)


# ------------------ PUT /api/v{version}/packages/{package_id} ------------------ #


@router.put(
    "/api/v{version}/packages/{package_id}",
    response_model=PackageWithVersionDetailsResponse,
    responses={201: {"description": "Package created"}, 200: {"description": "Package replaced"}},
)
def put_package(
    body: PutPackageRequest,
    response: Response,
    package_id: str = Depends(require_package_id),
    api_version: Version = Depends(require_api_version(V2)),
    store: PackageStore = Depends(get_package_store),
) -> PackageWithVersionDetailsResponse:
    """Create a package registration or replace an existing one."""
    created = store.upsert(
        package_id, body.total_downloads, [v.to_record() for v in body.versions]
    )

    if created:
        response.status_code = 201
        response.headers["Location"] = package_url(api_version, package_id)

    # Replacing keeps the stored casing of the id
    package = store.find_by_id(package_id)
    if package is not None:
        return PackageWithVersionDetailsResponse.from_record(package)

    # Still pending after an upload, so not readable yet
    return PackageWithVersionDetailsResponse(
        id=package_id,
        versions=[VersionDetails(**v.model_dump()) for v in body.versions],
    )


# ------------------ PATCH /api/v{version}/packages/{package_id} ------------------ #


@router.patch("/api/v{version}/packages/{package_id}", status_code=204)
def patch_package(
    body: PatchPackageRequest,
    package_id: str = Depends(require_package_id),
    api_version: Version = Depends(require_api_version(V2)),
    store: PackageStore = Depends(get_package_store),
) -> None:
    """Replace only the fields present in the request body."""
    versions = None if body.versions is None else [v.to_record() for v in body.versions]

    if not store.patch(package_id, body.total_downloads, versions):
        logger.warning("Could not patch missing package {}", package_id)
        raise HTTPException(
            status_code=404, detail=f"Could not find a package with ID {package_id}"
        )


# ------------------ DELETE /api/v{version}/packages/{package_id} ------------------ #


@router.delete("/api/v{version}/packages/{package_id}", status_code=204)
def delete_package(
    package_id: str = Depends(require_package_id),
    api_version: Version = Depends(require_api_version(V2)),
    store: PackageStore = Depends(get_package_store),
) -> None:
    """Delete a package registration. Deleting a missing package is not an error."""
    store.delete(package_id)


# ------------------ GET /api/v{version}/packagesbyid ------------------ #


@router.get("/api/v{version}/packagesbyid", deprecated=True)
def get_packages_by_id(
    package_id: Optional[str] = Query(None, alias="packageId"),
    api_version: Version = Depends(require_api_version(V0_1)),
):
    logger.warning("Deprecated endpoint packagesbyid called for {}", package_id)
    raise HTTPException(
        status_code=404, detail="This endpoint is deprecated.", headers=reporting_headers()
    )
