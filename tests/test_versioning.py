"""Tests for content addressed version tags."""
import dataclasses
import re
from pathlib import Path

import pytest

from site_infra.errors import ConfigurationError
from site_infra.versioning import VersionedReference, derive_version_tag, join_versioned, read_artifact

TAG = re.compile(r"^V[0-9a-f]{64}$")


class TestDeriveVersionTag:
    def test_same_content_same_tag(self) -> None:
        assert derive_version_tag(b"v1") == derive_version_tag(b"v1")

    def test_one_byte_changes_tag(self) -> None:
        assert derive_version_tag(b"exports.handler = 1") != derive_version_tag(b"exports.handler = 2")

    def test_tag_starts_with_letter_and_is_identifier_safe(self) -> None:
        assert TAG.match(derive_version_tag(b""))
        assert TAG.match(derive_version_tag(b"\x00\xff" * 100))


class TestReadArtifact:
    def test_reads_single_file(self, tmp_path: Path) -> None:
        handler = tmp_path / "handler.js"
        handler.write_bytes(b"v1")

        artifact = read_artifact("edge", handler)

        assert artifact.content == b"v1"
        assert artifact.version_tag == derive_version_tag(b"v1")

    def test_directory_tag_is_stable(self, artifact_dir: Path) -> None:
        assert read_artifact("edge", artifact_dir).version_tag == read_artifact("edge", artifact_dir).version_tag

    def test_directory_tag_follows_content(self, artifact_dir: Path) -> None:
        before = read_artifact("edge", artifact_dir).version_tag
        (artifact_dir / "index.js").write_text("v2")
        assert read_artifact("edge", artifact_dir).version_tag != before

    def test_directory_tag_covers_file_names(self, tmp_path: Path) -> None:
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.mkdir()
        second.mkdir()
        (first / "index.js").write_text("same")
        (second / "main.js").write_text("same")

        assert read_artifact("edge", first).version_tag != read_artifact("edge", second).version_tag

    def test_nested_files_are_included(self, artifact_dir: Path) -> None:
        before = read_artifact("edge", artifact_dir).version_tag
        (artifact_dir / "lib").mkdir()
        (artifact_dir / "lib" / "util.js").write_text("module.exports = {}")
        assert read_artifact("edge", artifact_dir).version_tag != before

    def test_missing_path_is_configuration_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="artifact not found"):
            read_artifact("edge", tmp_path / "nope")

    def test_empty_directory_is_configuration_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="empty"):
            read_artifact("edge", tmp_path)

    def test_empty_file_is_configuration_error(self, tmp_path: Path) -> None:
        handler = tmp_path / "handler.js"
        handler.write_bytes(b"")
        with pytest.raises(ConfigurationError, match="artifact is empty"):
            read_artifact("edge", handler)


class TestVersionedReference:
    def test_qualified_joins_function_and_tag(self) -> None:
        ref = VersionedReference(node="V1", function_id="arn:fn", tag="V1", version_id="arn:fn:1")
        assert ref.qualified == "arn:fn:V1" == join_versioned("arn:fn", "V1")

    def test_is_immutable(self) -> None:
        ref = VersionedReference(node="V1", function_id="arn:fn", tag="V1", version_id="arn:fn:1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            ref.tag = "V2"  # type: ignore[misc]
