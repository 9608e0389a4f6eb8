# src/package_api/package_models.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class UploadState(str, Enum):
    PENDING = "Pending"
    SETTLED = "Settled"


class UploadStatus(str, Enum):
    NOT_FOUND = "NotFound"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class VersionRecord:
    version: str
    description: str = ""
    readme: str = ""
    license_url: str = ""
    license: str = ""
    project_url: str = ""
    icon_url: str = ""
    repository_url: str = ""
    owner: str = ""


@dataclass(frozen=True)
class PendingUpload:
    """Progress of a package that arrived through the upload flow."""

    pending_id: str
    state: UploadState = UploadState.PENDING


@dataclass(frozen=True)
class PackageRecord:
    id: str
    total_downloads: int = 0
    versions: Tuple[VersionRecord, ...] = ()
    upload: Optional[PendingUpload] = None

    @property
    def pending_id(self) -> Optional[str]:
        return self.upload.pending_id if self.upload else None

    @property
    def is_pending(self) -> bool:
        return self.upload is not None and self.upload.state is UploadState.PENDING

    @property
    def description(self) -> str:
        return self.versions[0].description if self.versions else ""


@dataclass(frozen=True)
class UploadStatusResult:
    status: UploadStatus
    id: Optional[str] = None
