# src/package_api/versioning.py
from typing import Dict, Optional
from urllib.parse import quote

from packaging.version import InvalidVersion, Version

V0_1 = Version("0.1")
V1 = Version("1.0")
V2 = Version("2.0")

SUPPORTED_VERSIONS = (V0_1, V1, V2)
DEPRECATED_VERSIONS = (V0_1, V1)


def parse_api_version(raw: str) -> Optional[Version]:
    """
    Parse a "major[.minor]" API version from the URL; "2" and "2.0" are equal.
    """
    try:
        v = Version(raw)
    except InvalidVersion:
        return None
    if v.epoch or v.pre or v.post or v.dev or v.local or len(v.release) > 2:
        return None
    return v


def format_api_version(v: Version) -> str:
    return f"{v.major}.{v.minor}"


def reporting_headers() -> Dict[str, str]:
    return {
        "api-supported-versions": ", ".join(format_api_version(v) for v in SUPPORTED_VERSIONS),
        "api-deprecated-versions": ", ".join(format_api_version(v) for v in DEPRECATED_VERSIONS),
    }


def package_url(api_version: Version, package_id: str) -> str:
    # Header values must be latin-1, so the id segment is percent-encoded
    return f"/api/v{format_api_version(api_version)}/packages/{quote(package_id, safe='')}"


def upload_status_url(api_version: Version, pending_id: str) -> str:
    return f"/api/v{format_api_version(api_version)}/packages/uploads/{quote(pending_id, safe='')}"
