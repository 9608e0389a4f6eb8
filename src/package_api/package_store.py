# src/package_api/package_store.py
"""
In-memory package registry shared by all request handlers.

Records are immutable; every mutation swaps a new record into the map while
holding the store lock, so concurrent readers only ever see whole records.
Keys are the case-folded package id, the record keeps the original casing.

Packages created through ``upload`` start out pending and stay invisible to
``find_by_id``/``list`` until the first status poll settles them. The second
poll reports completion and clears the pending id.
"""

import itertools
import threading
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from .package_models import (
    PackageRecord,
    PendingUpload,
    UploadState,
    UploadStatus,
    UploadStatusResult,
    VersionRecord,
)
from .package_schemas import UploadDescriptor


class PackageStoreError(Exception):
    """Base class for package store failures."""


class PackageValidationError(PackageStoreError, ValueError):
    """Raised when an upload descriptor cannot be parsed into a package."""


def _key(package_id: str) -> str:
    return package_id.casefold()


class PackageStore:
    def __init__(self, packages: Iterable[PackageRecord] = ()):
        self._lock = threading.Lock()
        self._packages: Dict[str, PackageRecord] = {}
        # pending_id -> package key
        self._pending: Dict[str, str] = {}
        self._pending_ids = itertools.count(1)

        for package in packages:
            self._packages[_key(package.id)] = package
            if package.pending_id is not None:
                self._pending[package.pending_id] = _key(package.id)

    @classmethod
    def with_example_packages(cls) -> "PackageStore":
        return cls(EXAMPLE_PACKAGES)

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for p in self._packages.values() if not p.is_pending)

    # ------------------ readers ------------------ #

    def find_by_id(self, package_id: str) -> Optional[PackageRecord]:
        with self._lock:
            package = self._packages.get(_key(package_id))

        if package is None or package.is_pending:
            return None
        return package

    def list(self) -> List[Tuple[str, str]]:
        with self._lock:
            packages = list(self._packages.values())

        return [(p.id, p.description) for p in packages if not p.is_pending]

    # ------------------ writers ------------------ #

    def upsert(
        self, package_id: str, total_downloads: int, versions: Iterable[VersionRecord]
    ) -> bool:
        """
        Create the package or fully replace its downloads and versions.

        Returns True when a new package was created.
        """
        versions = tuple(versions)
        key = _key(package_id)

        with self._lock:
            existing = self._packages.get(key)
            if existing is None:
                self._packages[key] = PackageRecord(
                    id=package_id, total_downloads=total_downloads, versions=versions
                )
            else:
                self._packages[key] = replace(
                    existing, total_downloads=total_downloads, versions=versions
                )

        logger.info(
            "{} package {}", "Created" if existing is None else "Replaced", package_id
        )
        return existing is None

    def patch(
        self,
        package_id: str,
        total_downloads: Optional[int] = None,
        versions: Optional[Iterable[VersionRecord]] = None,
    ) -> bool:
        """
        Replace only the supplied fields of an existing package.

        A supplied ``versions`` replaces the whole sequence; an empty one clears it.
        """
        changes: Dict[str, Any] = {}
        if total_downloads is not None:
            changes["total_downloads"] = total_downloads
        if versions is not None:
            changes["versions"] = tuple(versions)

        key = _key(package_id)
        with self._lock:
            existing = self._packages.get(key)
            if existing is None:
                return False
            self._packages[key] = replace(existing, **changes)

        logger.info("Patched package {} ({})", package_id, ", ".join(changes) or "no fields")
        return True

    def delete(self, package_id: str) -> bool:
        with self._lock:
            removed = self._packages.pop(_key(package_id), None)
            if removed is not None and removed.pending_id is not None:
                self._pending.pop(removed.pending_id, None)

        if removed is not None:
            logger.info("Deleted package {}", removed.id)
        return removed is not None

    # ------------------ upload flow ------------------ #

    def upload(self, raw_descriptor: Any) -> str:
        """
        Register a package from an upload descriptor and return its pending id.

        ``raw_descriptor`` may be a mapping, a JSON string or JSON bytes. The
        package stays pending until polled through ``get_upload_status``.
        An existing package with the same id is replaced.
        """
        descriptor = parse_upload_descriptor(raw_descriptor)
        key = _key(descriptor.id)

        with self._lock:
            # Records passed to the constructor may already hold counter values
            pending_id = str(next(self._pending_ids))
            while pending_id in self._pending:
                pending_id = str(next(self._pending_ids))

            existing = self._packages.get(key)
            if existing is not None and existing.pending_id is not None:
                self._pending.pop(existing.pending_id, None)

            self._packages[key] = PackageRecord(
                id=descriptor.id,
                versions=tuple(v.to_record() for v in descriptor.versions),
                upload=PendingUpload(pending_id=pending_id),
            )
            self._pending[pending_id] = key

        if existing is not None:
            logger.warning(
                "Upload {} replaced existing package {}", pending_id, existing.id
            )
        logger.info("Accepted upload {} for package {}", pending_id, descriptor.id)
        return pending_id

    def get_upload_status(self, pending_id: str) -> UploadStatusResult:
        with self._lock:
            key = self._pending.get(pending_id)
            package = self._packages.get(key) if key is not None else None

            if package is None or package.pending_id != pending_id:
                return UploadStatusResult(UploadStatus.NOT_FOUND)

            if package.upload.state is UploadState.PENDING:
                self._packages[key] = replace(
                    package, upload=replace(package.upload, state=UploadState.SETTLED)
                )
                result = UploadStatusResult(UploadStatus.IN_PROGRESS)
            else:
                self._packages[key] = replace(package, upload=None)
                del self._pending[pending_id]
                result = UploadStatusResult(UploadStatus.COMPLETED, package.id)

        logger.debug("Upload {} polled: {}", pending_id, result.status.value)
        return result


def parse_upload_descriptor(raw_descriptor: Any) -> UploadDescriptor:
    try:
        if isinstance(raw_descriptor, (str, bytes, bytearray)):
            return UploadDescriptor.model_validate_json(raw_descriptor)
        return UploadDescriptor.model_validate(raw_descriptor)
    except ValidationError as e:
        raise PackageValidationError(f"Invalid package descriptor: {e}") from e


def _versions(*versions: Dict[str, str]) -> Tuple[VersionRecord, ...]:
    return tuple(VersionRecord(**v) for v in versions)


EXAMPLE_PACKAGES: Tuple[PackageRecord, ...] = (
    PackageRecord(
        id="FluentAssertions",
        total_downloads=538_494_255,
        versions=_versions(
            dict(
                version="8.6.0",
                description=(
                    "A very extensive set of extension methods that allow you to more naturally "
                    "specify the expected outcome of a TDD or BDD-style unit tests."
                ),
                readme="See Fluent Assertions documentation on NuGet.",
                license_url=(
                    "https://opensource.org/licenses/Apache-2.0 (prior to v8); new license info "
                    "available at the FluentAssertions site."
                ),
                license="Commercial (for v8+, non-commercial open-source free)",
                project_url="https://github.com/fluentassertions/fluentassertions",
                repository_url="https://github.com/fluentassertions/fluentassertions",
                owner="dennisdoomen",
            ),
            dict(
                version="7.0.0",
                description="Same assertion library, last fully open-source version under Apache-2.0 license.",
                readme="See Fluent Assertions documentation on NuGet.",
                license_url="https://opensource.org/licenses/Apache-2.0",
                license="Apache-2.0",
                project_url="https://github.com/fluentassertions/fluentassertions",
                repository_url="https://github.com/fluentassertions/fluentassertions",
                owner="dennisdoomen",
            ),
        ),
    ),
    PackageRecord(
        id="PackageGuard",
        total_downloads=3484,
        versions=_versions(
            dict(
                version="1.5.0",
                description=(
                    "PackageGuard is a fully open-source tool to scan the NuGet dependencies of "
                    "your .NET solutions against a deny- or allowlist…"
                ),
                readme="See PackageGuard page on NuGet.",
            ),
            dict(version="1.4.0", description="Previous release of PackageGuard"),
        ),
    ),
    PackageRecord(
        id="Pathy",
        total_downloads=1449,
        versions=_versions(
            dict(
                version="0.2.2",
                description="Path is a command-line tool to manage PATH environment variable on Windows...",
                readme="See Path NuGet page.",
            ),
            dict(version="0.2.1", description="Previous Path release"),
        ),
    ),
    PackageRecord(
        id="DotNetLibraryPackageTemplates",
        total_downloads=1300,
        versions=_versions(
            dict(
                version="1.4.3",
                description=(
                    "A dotnet new template for a .NET class library package with all the "
                    "necessary components to publish it on NuGet."
                ),
                readme="See DotNetLibraryPackageTemplates NuGet page.",
            ),
            dict(version="1.4.2", description="Previous version of the template package"),
        ),
    ),
)
