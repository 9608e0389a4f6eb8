"""
Tests for the in-memory package store.
"""

import threading

import pytest

from src.package_api.package_models import (
    PackageRecord,
    UploadState,
    UploadStatus,
    VersionRecord,
)
from src.package_api.package_store import (
    EXAMPLE_PACKAGES,
    PackageStore,
    PackageValidationError,
    parse_upload_descriptor,
)


def _version(version="1.0.0", description="A package", **kwargs):
    return VersionRecord(version=version, description=description, **kwargs)


@pytest.fixture
def store():
    return PackageStore()


@pytest.fixture
def descriptor():
    return {
        "id": "X",
        "versions": [
            {
                "version": "1.0.0",
                "description": "Uploaded",
                "repositoryUrl": "https://example.com/x",
                "owner": "someone",
            }
        ],
    }


class TestFindById:
    """Tests for PackageStore.find_by_id."""

    def test_find_missing_package_returns_none(self, store):
        """Test that an unknown id yields None."""
        assert store.find_by_id("nope") is None

    def test_find_is_case_insensitive(self, store):
        """Test that lookups ignore the casing of the id."""
        store.upsert("Foo", 10, [_version()])

        package = store.find_by_id("foo")

        assert package is not None
        assert package.id == "Foo"
        assert store.find_by_id("FOO") == package

    def test_find_skips_pending_package(self, store, descriptor):
        """Test that a package still pending upload is not visible."""
        store.upload(descriptor)
        assert store.find_by_id("X") is None


class TestList:
    """Tests for PackageStore.list."""

    def test_list_empty_store(self, store):
        """Test that an empty store lists nothing."""
        assert store.list() == []

    def test_list_pairs_id_with_first_version_description(self, store):
        """Test that each entry carries the first version's description."""
        store.upsert("A", 1, [_version("2.0", "newest"), _version("1.0", "oldest")])
        store.upsert("B", 2, [])

        assert store.list() == [("A", "newest"), ("B", "")]

    def test_list_is_stable(self, store):
        """Test that repeated calls return the same order."""
        for name in ["c", "a", "b"]:
            store.upsert(name, 0, [])

        assert store.list() == store.list()
        assert [pid for pid, _ in store.list()] == ["c", "a", "b"]

    def test_list_excludes_pending_packages(self, store, descriptor):
        """Test that pending uploads are never listed."""
        store.upsert("Visible", 0, [])
        store.upload(descriptor)

        ids = [pid for pid, _ in store.list()]
        assert ids == ["Visible"]


class TestUpsert:
    """Tests for PackageStore.upsert."""

    def test_upsert_creates_then_replaces(self, store):
        """Test that the first upsert creates and later ones replace."""
        assert store.upsert("pkg", 1, [_version("1.0")]) is True
        assert store.upsert("pkg", 2, [_version("2.0")]) is False
        assert store.upsert("PKG", 3, [_version("3.0")]) is False

        package = store.find_by_id("pkg")
        assert package.total_downloads == 3
        assert [v.version for v in package.versions] == ["3.0"]

    def test_upsert_keeps_original_id(self, store):
        """Test that replacing under a different casing keeps the stored id."""
        store.upsert("Foo", 1, [])
        store.upsert("foo", 2, [])

        assert store.find_by_id("foo").id == "Foo"

    def test_upsert_stores_all_fields(self, store):
        """Test that find_by_id returns what was upserted."""
        versions = [
            _version(
                "1.2.3",
                "desc",
                readme="readme",
                license_url="https://license",
                license="MIT",
                project_url="https://project",
                icon_url="https://icon",
                repository_url="https://repo",
                owner="me",
            )
        ]
        store.upsert("full", 42, versions)

        package = store.find_by_id("full")
        assert package.total_downloads == 42
        assert package.versions == tuple(versions)
        assert package.pending_id is None
        assert package.is_pending is False

    def test_upsert_replaces_versions_without_merge(self, store):
        """Test that versions are replaced as a whole."""
        store.upsert("pkg", 0, [_version("1.0"), _version("2.0")])
        store.upsert("pkg", 0, [_version("3.0")])

        assert [v.version for v in store.find_by_id("pkg").versions] == ["3.0"]

    def test_concurrent_upserts_create_once(self, store):
        """Test that exactly one of many concurrent upserts creates the package."""
        thread_count = 32
        barrier = threading.Barrier(thread_count)
        results = []
        results_lock = threading.Lock()

        def worker(n):
            barrier.wait()
            created = store.upsert("shared", n, [_version(f"{n}.0")])
            with results_lock:
                results.append(created)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(thread_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(results) == thread_count

        package = store.find_by_id("shared")
        # Whole record from a single writer, never a mix of two
        assert package.versions == (_version(f"{package.total_downloads}.0"),)


class TestPatch:
    """Tests for PackageStore.patch."""

    def test_patch_missing_package_fails(self, store):
        """Test that patching an unknown id fails and creates nothing."""
        assert store.patch("ghost", total_downloads=5) is False
        assert store.find_by_id("ghost") is None
        assert store.list() == []

    def test_patch_downloads_only(self, store):
        """Test that omitted versions are left alone."""
        store.upsert("pkg", 1, [_version("1.0")])

        assert store.patch("pkg", total_downloads=99, versions=None) is True

        package = store.find_by_id("pkg")
        assert package.total_downloads == 99
        assert [v.version for v in package.versions] == ["1.0"]

    def test_patch_empty_versions_clears(self, store):
        """Test that an empty versions list replaces the sequence."""
        store.upsert("pkg", 1, [_version("1.0")])

        assert store.patch("pkg", versions=[]) is True

        package = store.find_by_id("pkg")
        assert package.versions == ()
        assert package.total_downloads == 1

    def test_patch_versions_replace_whole_sequence(self, store):
        """Test that supplied versions are not merged per item."""
        store.upsert("pkg", 1, [_version("1.0"), _version("2.0")])
        store.patch("pkg", versions=[_version("2.0", "changed")])

        assert store.find_by_id("pkg").versions == (_version("2.0", "changed"),)

    def test_patch_nothing_is_success(self, store):
        """Test that a patch without fields succeeds on an existing package."""
        store.upsert("pkg", 7, [])
        assert store.patch("pkg") is True
        assert store.find_by_id("pkg").total_downloads == 7


class TestDelete:
    """Tests for PackageStore.delete."""

    def test_delete_is_idempotent(self, store):
        """Test that deleting twice returns True then False."""
        store.upsert("pkg", 0, [])

        assert store.delete("pkg") is True
        assert store.delete("pkg") is False
        assert store.find_by_id("pkg") is None

    def test_delete_is_case_insensitive(self, store):
        """Test that delete ignores id casing."""
        store.upsert("Pkg", 0, [])
        assert store.delete("pKG") is True

    def test_delete_pending_upload_forgets_pending_id(self, store, descriptor):
        """Test that deleting a pending package also drops its pending id."""
        pid = store.upload(descriptor)

        assert store.delete("x") is True
        assert store.get_upload_status(pid).status is UploadStatus.NOT_FOUND


class TestUpload:
    """Tests for the upload/status flow."""

    def test_upload_status_round_trip(self, store, descriptor):
        """Test the InProgress -> Completed -> NotFound sequence."""
        pid = store.upload(descriptor)

        first = store.get_upload_status(pid)
        assert first.status is UploadStatus.IN_PROGRESS
        assert first.id is None

        second = store.get_upload_status(pid)
        assert second.status is UploadStatus.COMPLETED
        assert second.id == "X"

        third = store.get_upload_status(pid)
        assert third.status is UploadStatus.NOT_FOUND
        assert third.id is None

    def test_first_poll_makes_package_visible(self, store, descriptor):
        """Test that the package can be found once the first poll settled it."""
        pid = store.upload(descriptor)
        store.get_upload_status(pid)

        package = store.find_by_id("x")
        assert package is not None
        assert package.pending_id == pid
        assert package.upload.state is UploadState.SETTLED

    def test_completed_upload_clears_pending_id(self, store, descriptor):
        """Test that the second poll clears the pending id but keeps the package."""
        pid = store.upload(descriptor)
        store.get_upload_status(pid)
        store.get_upload_status(pid)

        package = store.find_by_id("X")
        assert package.pending_id is None
        assert package.is_pending is False

    def test_upload_fills_missing_version_fields(self, store, descriptor):
        """Test that fields absent from the summaries default to empty strings."""
        pid = store.upload(descriptor)
        store.get_upload_status(pid)

        version = store.find_by_id("X").versions[0]
        assert version.version == "1.0.0"
        assert version.description == "Uploaded"
        assert version.repository_url == "https://example.com/x"
        assert version.owner == "someone"
        assert version.readme == ""
        assert version.license == ""
        assert version.icon_url == ""

    def test_upload_starts_with_zero_downloads(self, store, descriptor):
        """Test that uploaded packages start without downloads."""
        store.get_upload_status(store.upload(descriptor))
        assert store.find_by_id("X").total_downloads == 0

    def test_pending_ids_are_unique(self, store):
        """Test that each upload gets a fresh pending id."""
        ids = {store.upload({"id": f"pkg{n}"}) for n in range(10)}
        assert len(ids) == 10

    def test_upload_accepts_json_text(self, store):
        """Test that a raw JSON descriptor is parsed."""
        pid = store.upload('{"id": "FromJson", "versions": []}')
        store.get_upload_status(pid)

        assert store.find_by_id("fromjson").versions == ()

    def test_upload_accepts_json_bytes(self, store):
        """Test that a raw JSON byte string is parsed."""
        pid = store.upload(b'{"id": "FromBytes"}')
        assert store.get_upload_status(pid).status is UploadStatus.IN_PROGRESS

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            {},
            {"id": ""},
            {"id": "   "},
            {"versions": []},
            {"id": "x", "versions": [{"description": "no version"}]},
            "{not json",
            b"[1, 2, 3]",
            ["id"],
        ],
    )
    def test_upload_rejects_malformed_descriptor(self, store, raw):
        """Test that malformed descriptors raise PackageValidationError."""
        with pytest.raises(PackageValidationError):
            store.upload(raw)
        assert store.list() == []

    def test_upload_overwrites_existing_package(self, store, descriptor):
        """Test that an upload with a colliding id replaces the existing package."""
        store.upsert("x", 1000, [_version("9.9")])

        pid = store.upload(descriptor)

        assert store.find_by_id("X") is None
        store.get_upload_status(pid)
        package = store.find_by_id("X")
        assert package.total_downloads == 0
        assert [v.version for v in package.versions] == ["1.0.0"]

    def test_reupload_invalidates_previous_pending_id(self, store, descriptor):
        """Test that a second upload for the same id orphans the first pending id."""
        first = store.upload(descriptor)
        second = store.upload(descriptor)

        assert store.get_upload_status(first).status is UploadStatus.NOT_FOUND
        assert store.get_upload_status(second).status is UploadStatus.IN_PROGRESS

    def test_unknown_pending_id(self, store):
        """Test that an unknown pending id is reported as not found."""
        assert store.get_upload_status("123").status is UploadStatus.NOT_FOUND

    def test_upsert_keeps_pending_state(self, store, descriptor):
        """Test that upserting a pending package does not change its upload state."""
        pid = store.upload(descriptor)

        assert store.upsert("X", 5, []) is False
        assert store.find_by_id("X") is None
        assert store.get_upload_status(pid).status is UploadStatus.IN_PROGRESS
        assert store.find_by_id("X").total_downloads == 5

    def test_concurrent_polls_report_each_state_once(self, store, descriptor):
        """Test that concurrent polls see InProgress and Completed exactly once."""
        pid = store.upload(descriptor)
        thread_count = 16
        barrier = threading.Barrier(thread_count)
        statuses = []
        statuses_lock = threading.Lock()

        def worker():
            barrier.wait()
            result = store.get_upload_status(pid)
            with statuses_lock:
                statuses.append(result.status)

        threads = [threading.Thread(target=worker) for _ in range(thread_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert statuses.count(UploadStatus.IN_PROGRESS) == 1
        assert statuses.count(UploadStatus.COMPLETED) == 1
        assert statuses.count(UploadStatus.NOT_FOUND) == thread_count - 2


class TestSeededStore:
    """Tests for the example packages."""

    def test_with_example_packages(self):
        """Test that the seeded store lists the four example packages."""
        store = PackageStore.with_example_packages()

        assert [pid for pid, _ in store.list()] == [
            "FluentAssertions",
            "PackageGuard",
            "Pathy",
            "DotNetLibraryPackageTemplates",
        ]
        assert len(store) == len(EXAMPLE_PACKAGES)

    def test_seeded_stores_are_independent(self):
        """Test that mutating one seeded store leaves another untouched."""
        first = PackageStore.with_example_packages()
        second = PackageStore.with_example_packages()

        first.delete("pathy")

        assert first.find_by_id("pathy") is None
        assert second.find_by_id("pathy") is not None

    def test_constructor_indexes_pending_records(self):
        """Test that records passed in with an upload in flight can be polled."""
        from src.package_api.package_models import PendingUpload

        store = PackageStore([PackageRecord(id="p", upload=PendingUpload("abc"))])

        assert store.find_by_id("p") is None
        assert store.get_upload_status("abc").status is UploadStatus.IN_PROGRESS

    def test_upload_skips_pending_ids_in_use(self):
        """Test that a new upload never reuses a pending id held by a passed-in record."""
        from src.package_api.package_models import PendingUpload

        store = PackageStore(
            [
                PackageRecord(id="seeded", upload=PendingUpload("1")),
                PackageRecord(id="other", upload=PendingUpload("2")),
            ]
        )

        pid = store.upload({"id": "fresh"})

        assert pid not in ("1", "2")
        for pending_id, package_id in (("1", "seeded"), ("2", "other"), (pid, "fresh")):
            assert store.get_upload_status(pending_id).status is UploadStatus.IN_PROGRESS
            result = store.get_upload_status(pending_id)
            assert result.status is UploadStatus.COMPLETED
            assert result.id == package_id


class TestParseUploadDescriptor:
    """Tests for parse_upload_descriptor."""

    def test_parse_mapping(self, descriptor):
        """Test parsing a mapping descriptor."""
        parsed = parse_upload_descriptor(descriptor)

        assert parsed.id == "X"
        assert parsed.versions[0].repository_url == "https://example.com/x"

    def test_parse_error_is_value_error(self):
        """Test that validation errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse_upload_descriptor({"id": 5})
