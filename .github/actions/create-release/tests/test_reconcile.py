"""Tests for the tag and release reconciliation sequence."""

from __future__ import annotations

import logging
import typing as typ

import pytest
from _fakes import FakeGitHub, FixedRandom, RecordingSleep, api_error, make_config

from release_common.config import Strategy
from release_common.errors import (
    ReleaseCreationError,
    RemoteQueryError,
    TagExistsError,
    TagMissingError,
    TagMutationError,
    UploadError,
)
from release_common.github import GitRef
from release_common.reconcile import (
    TagPlan,
    apply_tag_plan,
    decide_tag_plan,
    delete_stale_releases,
    fetch_tag,
    publish_release,
)
from release_common.undo import DeleteRefUndo, NoopUndo, RestoreRefUndo

if typ.TYPE_CHECKING:
    from pathlib import Path

EXISTING = GitRef(ref="refs/tags/v1.0.0", sha="old-sha", object_type="tag")


def _write_files(tmp_path: Path, *names: str) -> tuple[Path, ...]:
    paths = []
    for name in names:
        path = tmp_path / name
        path.write_bytes(f"contents of {name}".encode())
        paths.append(path)
    return tuple(paths)


class TestFetchTag:
    """Tests for fetch_tag."""

    def test_returns_existing_ref(self, fake_github: FakeGitHub) -> None:
        """An existing tag is returned with its sha."""
        fake_github.refs["tags/v1.0.0"] = "tag-sha"

        ref = fetch_tag(fake_github, "v1.0.0")

        assert ref is not None
        assert ref.sha == "tag-sha"
        assert fake_github.calls_to("get_ref") == [("get_ref", "tags/v1.0.0")]

    def test_not_found_means_absent(self, fake_github: FakeGitHub) -> None:
        """A 404 is reported as a missing tag rather than an error."""
        assert fetch_tag(fake_github, "v1.0.0") is None

    def test_other_failures_are_fatal(self, fake_github: FakeGitHub) -> None:
        """Any failure other than 404 aborts the run."""
        fake_github.fail("get_ref", api_error(500))

        with pytest.raises(RemoteQueryError, match="look up tag") as excinfo:
            fetch_tag(fake_github, "v1.0.0")

        assert excinfo.value.__cause__ is not None


class TestDecideTagPlan:
    """Tests for the strategy decision table."""

    @pytest.mark.parametrize("strategy", [Strategy.FAIL_FAST, Strategy.REPLACE])
    def test_absent_tag_is_created(self, strategy: Strategy) -> None:
        """Strategies that may create tags do so when the tag is absent."""
        assert decide_tag_plan(make_config(strategy), None) is TagPlan.CREATE

    def test_fail_fast_rejects_existing_tag(self) -> None:
        """fail-fast aborts when the tag exists."""
        with pytest.raises(TagExistsError, match="already exists"):
            decide_tag_plan(make_config(Strategy.FAIL_FAST), EXISTING)

    def test_replace_updates_existing_tag(self) -> None:
        """replace moves an existing tag."""
        assert decide_tag_plan(make_config(Strategy.REPLACE), EXISTING) is TagPlan.UPDATE

    def test_use_existing_tag_keeps_tag(self) -> None:
        """use-existing-tag leaves a present tag alone."""
        config = make_config(Strategy.USE_EXISTING_TAG)
        assert decide_tag_plan(config, EXISTING) is TagPlan.KEEP

    def test_use_existing_tag_requires_tag(self) -> None:
        """use-existing-tag cannot proceed without a tag."""
        with pytest.raises(TagMissingError, match="nothing to reference"):
            decide_tag_plan(make_config(Strategy.USE_EXISTING_TAG), None)


class TestDeleteStaleReleases:
    """Tests for delete_stale_releases."""

    def test_deletes_only_matching_releases(self, fake_github: FakeGitHub) -> None:
        """Releases for other tags are left untouched."""
        stale = fake_github.add_release("v1.0.0")
        other = fake_github.add_release("v0.9.0")

        deleted = delete_stale_releases(fake_github, "v1.0.0")

        assert deleted == [stale.id]
        assert list(fake_github.releases) == [other.id]

    def test_listing_failure_is_fatal(self, fake_github: FakeGitHub) -> None:
        """A failure to list releases raises RemoteQueryError."""
        fake_github.fail("list_releases", api_error(502))

        with pytest.raises(RemoteQueryError, match="clear existing releases"):
            delete_stale_releases(fake_github, "v1.0.0")


class TestApplyTagPlan:
    """Tests for apply_tag_plan and the undo actions it returns."""

    def test_create_makes_annotated_tag(self, fake_github: FakeGitHub) -> None:
        """A new tag object is created and referenced from refs/tags."""
        config = make_config(Strategy.FAIL_FAST, tag_message="Version 1")

        undo = apply_tag_plan(fake_github, config, TagPlan.CREATE, None)

        assert fake_github.calls_to("create_tag_object") == [
            ("create_tag_object", "v1.0.0", "Version 1", "abc123")
        ]
        assert fake_github.refs["tags/v1.0.0"] == "tag-object-abc123"
        assert isinstance(undo, DeleteRefUndo)

        undo()

        assert "tags/v1.0.0" not in fake_github.refs

    def test_update_force_moves_ref(self, fake_github: FakeGitHub) -> None:
        """An existing ref is force-updated and the tag object kept."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"
        config = make_config(Strategy.REPLACE)

        undo = apply_tag_plan(fake_github, config, TagPlan.UPDATE, EXISTING)

        assert fake_github.calls_to("update_ref") == [
            ("update_ref", "tags/v1.0.0", "abc123", True)
        ]
        assert fake_github.calls_to("create_tag_object") == []
        assert isinstance(undo, RestoreRefUndo)

        undo()

        assert fake_github.refs["tags/v1.0.0"] == "old-sha"

    def test_update_logs_existing_tag_type(
        self, fake_github: FakeGitHub, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Moving a tag reports what kind of object it pointed at."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"
        lightweight = GitRef(
            ref="refs/tags/v1.0.0", sha="old-sha", object_type="commit"
        )

        with caplog.at_level(logging.INFO):
            apply_tag_plan(
                fake_github, make_config(Strategy.REPLACE), TagPlan.UPDATE, lightweight
            )

        assert "Moving tag v1.0.0 from commit old-sha to abc123" in caplog.text

    def test_keep_is_noop(self, fake_github: FakeGitHub) -> None:
        """Keeping the tag makes no calls."""
        config = make_config(Strategy.USE_EXISTING_TAG)

        undo = apply_tag_plan(fake_github, config, TagPlan.KEEP, EXISTING)

        assert isinstance(undo, NoopUndo)
        assert fake_github.calls == []

    def test_mutation_failure_is_fatal(self, fake_github: FakeGitHub) -> None:
        """Tag mutation errors are raised without any rollback."""
        fake_github.fail("create_tag_object", api_error(422))
        config = make_config(Strategy.FAIL_FAST)

        with pytest.raises(TagMutationError, match="Failed to update tag"):
            apply_tag_plan(fake_github, config, TagPlan.CREATE, None)

        assert fake_github.mutations() == ["create_tag_object"]


class TestPublishRelease:
    """End-to-end tests for publish_release against the fake."""

    @pytest.mark.parametrize("strategy", [Strategy.FAIL_FAST, Strategy.REPLACE])
    def test_absent_tag_is_created_and_released(
        self, fake_github: FakeGitHub, strategy: Strategy
    ) -> None:
        """Without a tag, one is created and the release uses it."""
        result = publish_release(fake_github, make_config(strategy))

        assert result.tag_plan is TagPlan.CREATE
        assert fake_github.refs["tags/v1.0.0"] == "tag-object-abc123"
        assert fake_github.mutations() == [
            "create_tag_object",
            "create_ref",
            "create_release",
        ]
        assert result.release.tag_name == "v1.0.0"

    def test_fail_fast_with_existing_tag_mutates_nothing(
        self, fake_github: FakeGitHub
    ) -> None:
        """fail-fast fails before any release or tag mutation."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"
        stale = fake_github.add_release("v1.0.0")

        with pytest.raises(TagExistsError):
            publish_release(fake_github, make_config(Strategy.FAIL_FAST))

        assert fake_github.mutations() == []
        assert stale.id in fake_github.releases

    def test_replace_moves_existing_tag(self, fake_github: FakeGitHub) -> None:
        """replace force-updates the ref without recreating the tag object."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"

        result = publish_release(fake_github, make_config(Strategy.REPLACE))

        assert result.tag_plan is TagPlan.UPDATE
        assert fake_github.refs["tags/v1.0.0"] == "abc123"
        assert fake_github.calls_to("create_tag_object") == []
        assert fake_github.calls_to("create_ref") == []

    def test_use_existing_tag_never_mutates_tag(self, fake_github: FakeGitHub) -> None:
        """use-existing-tag only touches releases."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"

        result = publish_release(fake_github, make_config(Strategy.USE_EXISTING_TAG))

        assert result.tag_plan is TagPlan.KEEP
        assert fake_github.refs["tags/v1.0.0"] == "old-sha"
        assert fake_github.mutations() == ["create_release"]

    @pytest.mark.parametrize(
        ("strategy", "tag_exists"),
        [
            (Strategy.FAIL_FAST, False),
            (Strategy.REPLACE, False),
            (Strategy.REPLACE, True),
            (Strategy.USE_EXISTING_TAG, True),
        ],
    )
    def test_stale_releases_deleted_before_creation(
        self, fake_github: FakeGitHub, strategy: Strategy, *, tag_exists: bool
    ) -> None:
        """Every strategy removes releases sharing the tag name first."""
        if tag_exists:
            fake_github.refs["tags/v1.0.0"] = "old-sha"
        stale = fake_github.add_release("v1.0.0")

        result = publish_release(fake_github, make_config(strategy))

        mutations = fake_github.mutations()
        assert mutations.index("delete_release") < mutations.index("create_release")
        assert fake_github.calls_to("delete_release") == [("delete_release", stale.id)]
        assert list(fake_github.releases) == [result.release.id]

    def test_release_creation_failure_undoes_tag(
        self, fake_github: FakeGitHub
    ) -> None:
        """A refused release deletes the tag created for it."""
        fake_github.fail("create_release", api_error(422))

        with pytest.raises(ReleaseCreationError) as excinfo:
            publish_release(fake_github, make_config(Strategy.FAIL_FAST))

        assert excinfo.value.__cause__ is not None
        assert fake_github.calls_to("delete_ref") == [("delete_ref", "tags/v1.0.0")]
        assert "tags/v1.0.0" not in fake_github.refs

    def test_release_failure_survives_failed_undo(
        self, fake_github: FakeGitHub, caplog: pytest.LogCaptureFixture
    ) -> None:
        """An undo failure is logged and the creation error still propagates."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"
        fake_github.fail("create_release", api_error(422))
        fake_github.fail("update_ref", None, api_error(500, "undo broke"))

        with pytest.raises(ReleaseCreationError):
            publish_release(fake_github, make_config(Strategy.REPLACE))

        assert len(fake_github.calls_to("update_ref")) == 2
        assert "undo broke" in caplog.text

    def test_uploads_assets_in_order(
        self, fake_github: FakeGitHub, tmp_path: Path
    ) -> None:
        """Files upload sequentially under their base names."""
        files = _write_files(tmp_path, "app.tar.gz", "app.sha256")

        result = publish_release(
            fake_github, make_config(Strategy.FAIL_FAST, files=files)
        )

        assert [asset.name for asset in result.assets] == ["app.tar.gz", "app.sha256"]
        assert [upload[0] for upload in fake_github.uploads] == [
            "app.tar.gz",
            "app.sha256",
        ]
        assert fake_github.uploads[0][1] == b"contents of app.tar.gz"
        assert fake_github.uploads[0][2] == len(b"contents of app.tar.gz")

    def test_transient_upload_failures_are_retried(
        self,
        fake_github: FakeGitHub,
        tmp_path: Path,
        recording_sleep: RecordingSleep,
    ) -> None:
        """Three failures then a success yields four attempts and three sleeps."""
        files = _write_files(tmp_path, "app.zip")
        fake_github.fail(
            "upload_release_asset", api_error(502), api_error(502), api_error(502)
        )

        result = publish_release(
            fake_github,
            make_config(Strategy.FAIL_FAST, files=files),
            sleep=recording_sleep,
            rng=FixedRandom(0.999),
        )

        assert len(fake_github.calls_to("upload_release_asset")) == 4
        assert len(recording_sleep.calls) == 3
        assert all(delay <= 4.0 for delay in recording_sleep.calls)
        assert [asset.name for asset in result.assets] == ["app.zip"]

    def test_exhausted_upload_rolls_back(
        self,
        fake_github: FakeGitHub,
        tmp_path: Path,
        recording_sleep: RecordingSleep,
    ) -> None:
        """Four failed attempts delete the release, undo the tag, and raise."""
        files = _write_files(tmp_path, "first.bin", "second.bin")
        last_error = api_error(503, "final attempt")
        fake_github.fail(
            "upload_release_asset",
            api_error(500),
            api_error(500),
            api_error(500),
            last_error,
        )

        with pytest.raises(UploadError, match="first.bin") as excinfo:
            publish_release(
                fake_github,
                make_config(Strategy.FAIL_FAST, files=files),
                sleep=recording_sleep,
            )

        assert excinfo.value.__cause__ is last_error
        assert excinfo.value.attempts == 4
        assert fake_github.releases == {}
        assert "tags/v1.0.0" not in fake_github.refs
        uploaded_names = {
            call[2] for call in fake_github.calls_to("upload_release_asset")
        }
        assert uploaded_names == {"first.bin"}
        mutations = fake_github.mutations()
        assert mutations.index("delete_release") < mutations.index("delete_ref")

    def test_exhausted_upload_restores_tag_when_release_delete_fails(
        self,
        fake_github: FakeGitHub,
        tmp_path: Path,
        recording_sleep: RecordingSleep,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failed release deletion is logged and the moved tag is still restored."""
        fake_github.refs["tags/v1.0.0"] = "old-sha"
        files = _write_files(tmp_path, "app.zip")
        fake_github.fail(
            "upload_release_asset", *(api_error(502) for _ in range(4))
        )
        fake_github.fail("delete_release", api_error(500, "cannot delete"))

        with pytest.raises(UploadError, match="app.zip"):
            publish_release(
                fake_github,
                make_config(Strategy.REPLACE, files=files),
                sleep=recording_sleep,
            )

        assert fake_github.refs["tags/v1.0.0"] == "old-sha"
        assert fake_github.calls_to("update_ref")[-1] == (
            "update_ref",
            "tags/v1.0.0",
            "old-sha",
            True,
        )
        assert "cannot delete" in caplog.text
        assert fake_github.mutations()[-2:] == ["delete_release", "update_ref"]

    def test_stale_asset_replaced_on_retry(
        self,
        fake_github: FakeGitHub,
        tmp_path: Path,
        recording_sleep: RecordingSleep,
    ) -> None:
        """A half-uploaded asset is deleted before the next attempt."""
        files = _write_files(tmp_path, "app.zip")
        original_upload = fake_github.upload_release_asset
        attempts = 0

        def flaky_upload(release, *, name, path, size):  # noqa: ANN001, ANN202
            nonlocal attempts
            attempts += 1
            asset = original_upload(release, name=name, path=path, size=size)
            if attempts == 1:
                # The asset lands but the response is lost.
                raise api_error(502)
            return asset

        fake_github.upload_release_asset = flaky_upload  # type: ignore[method-assign]

        result = publish_release(
            fake_github,
            make_config(Strategy.FAIL_FAST, files=files),
            sleep=recording_sleep,
        )

        assert attempts == 2
        assert len(fake_github.calls_to("delete_release_asset")) == 1
        assert [asset.name for asset in fake_github.assets[result.release.id]] == [
            "app.zip"
        ]
