# src/package_api/package_schemas.py
from dataclasses import asdict
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .package_models import PackageRecord, VersionRecord


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- Write models ----------


class VersionInfo(ApiModel):
    version: str
    description: str = ""
    readme: str = ""
    license_url: str = ""
    license: str = ""
    project_url: str = ""
    icon_url: str = ""
    repository_url: str = ""
    owner: str = ""

    def to_record(self) -> VersionRecord:
        return VersionRecord(**self.model_dump())


class PutPackageRequest(ApiModel):
    total_downloads: int = Field(
        ge=0, description="The total number of downloads for the package across all versions"
    )
    versions: List[VersionInfo] = Field(
        default_factory=list,
        description="The versions that belong to this package registration",
    )


class PatchPackageRequest(ApiModel):
    total_downloads: Optional[int] = Field(
        default=None, ge=0, description="Optional replacement for the total number of downloads"
    )
    versions: Optional[List[VersionInfo]] = Field(
        default=None,
        description="Optional replacement of the entire versions list. When provided, it replaces the full set.",
    )


class VersionSummary(ApiModel):
    version: str
    description: str = ""
    repository_url: str = ""
    owner: str = ""

    @classmethod
    def from_record(cls, record: VersionRecord) -> "VersionSummary":
        return cls(
            version=record.version,
            description=record.description,
            repository_url=record.repository_url,
            owner=record.owner,
        )

    def to_record(self) -> VersionRecord:
        return VersionRecord(
            version=self.version,
            description=self.description,
            repository_url=self.repository_url,
            owner=self.owner,
        )


class UploadDescriptor(ApiModel):
    """
    Body of an upload request: the package id plus short version summaries.
    Fields not carried by a summary (readme, license, ...) default to "".
    """

    id: str
    versions: List[VersionSummary] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("A non-empty package ID is required")
        return value


# ---------- Response models ----------


class PackageResponse(ApiModel):
    id: str = Field(description="The unique identifier for a package")
    description: str = Field(description="A short functional description of the package")


class PackageWithVersionSummaryResponse(ApiModel):
    id: str
    versions: List[VersionSummary] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: PackageRecord) -> "PackageWithVersionSummaryResponse":
        return cls(
            id=record.id,
            versions=[VersionSummary.from_record(v) for v in record.versions],
        )


class VersionDetails(ApiModel):
    version: str
    description: str
    readme: str
    license_url: str
    license: str
    project_url: str
    icon_url: str
    repository_url: str
    owner: str


class PackageWithVersionDetailsResponse(ApiModel):
    id: str
    versions: List[VersionDetails] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: PackageRecord) -> "PackageWithVersionDetailsResponse":
        return cls(
            id=record.id,
            versions=[VersionDetails(**asdict(v)) for v in record.versions],
        )


class PackageStatistics(ApiModel):
    id: str
    total_downloads: int


class UploadAccepted(ApiModel):
    pending_id: str


class UploadStatusResponse(ApiModel):
    status: str
    id: Optional[str] = None
