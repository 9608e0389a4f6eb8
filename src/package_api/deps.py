# src/package_api/deps.py
from datetime import datetime, timezone
from email.utils import format_datetime

from fastapi import HTTPException, Request, Response
from loguru import logger
from packaging.version import Version

from .package_store import PackageStore
from .versioning import parse_api_version, reporting_headers


def get_package_store(request: Request) -> PackageStore:
    return request.app.state.package_store


def require_api_version(*allowed: Version):
    """
    Build a dependency that resolves the ``{version}`` path segment and only
    lets through the versions this endpoint is mapped to.
    """

    def dep(version: str, response: Response) -> Version:
        headers = reporting_headers()
        v = parse_api_version(version)
        if v is None or v not in allowed:
            logger.warning("Unsupported API version {} requested", version)
            raise HTTPException(
                status_code=404,
                detail=f"API version {version} is not supported by this endpoint",
                headers=headers,
            )
        response.headers.update(headers)
        return v

    return dep


def set_cache_headers(response: Response) -> None:
    expires = datetime.now(timezone.utc).replace(hour=0, minute=59, second=0, microsecond=0)
    response.headers["Expires"] = format_datetime(expires, usegmt=True)
    response.headers["Cache-Control"] = "public"


def require_package_id(package_id: str) -> str:
    if not package_id.strip():
        logger.warning("A non-empty package ID is required")
        raise HTTPException(status_code=400, detail="A non-empty package ID is required")
    return package_id
