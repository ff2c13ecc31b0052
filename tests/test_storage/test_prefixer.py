"""
Tests for logical path normalization and prefixing.
"""

import pytest

from filestorage.storage.prefixer import PathPrefixer, normalize_path


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("/", ""),
        (".", ""),
        ("a/b.txt", "a/b.txt"),
        ("/a//b/", "a/b"),
        ("a/./b/../c.txt", "a/c.txt"),
        ("..", ""),
        ("../x.txt", "x.txt"),
        ("a/../../b", "b"),
        ("/../../a/./b/", "a/b"),
    ],
)
def test_normalize_path(raw: str, expected: str):
    assert normalize_path(raw) == expected


class TestPathPrefixer:
    """Tests for prefixing and stripping paths."""

    def test_file_path_with_prefix(self):
        prefixer = PathPrefixer("uploads/")

        assert prefixer.prefix_file_path("a/b.txt") == "uploads/a/b.txt"
        assert prefixer.prefix_file_path("/a/b.txt") == "uploads/a/b.txt"

    def test_directory_path_always_ends_with_separator(self):
        prefixer = PathPrefixer("uploads")

        assert prefixer.prefix_directory_path("docs") == "uploads/docs/"
        assert prefixer.prefix_directory_path("docs/") == "uploads/docs/"
        assert prefixer.prefix_directory_path("") == "uploads/"

    def test_root_without_prefix_is_empty(self):
        prefixer = PathPrefixer()

        assert prefixer.prefix_directory_path("") == ""
        assert prefixer.prefix_directory_path("/") == ""
        assert prefixer.prefix_file_path("a.txt") == "a.txt"

    def test_strip_round_trips(self):
        prefixer = PathPrefixer("uploads")

        assert prefixer.strip_file_path(prefixer.prefix_file_path("a/b.txt")) == "a/b.txt"
        assert prefixer.strip_directory_path(prefixer.prefix_directory_path("a/b")) == "a/b"
        assert prefixer.strip_directory_path("uploads/") == ""

    def test_strip_leaves_foreign_paths_alone(self):
        prefixer = PathPrefixer("uploads")

        assert prefixer.strip_file_path("other/file.txt") == "other/file.txt"

    @pytest.mark.parametrize("path", ["..", "../", "../..", "/../", ".", "./"])
    def test_parent_and_current_segments_map_to_the_prefix_root(self, path: str):
        prefixer = PathPrefixer("tenant")

        assert prefixer.prefix_file_path(path) == "tenant"
        assert prefixer.prefix_directory_path(path) == "tenant/"

    def test_parent_segments_cannot_leave_the_prefix(self):
        prefixer = PathPrefixer("tenant")

        assert prefixer.prefix_file_path("../other/secret.txt") == "tenant/other/secret.txt"
        assert prefixer.prefix_file_path("a/../../../b.txt") == "tenant/b.txt"
        assert prefixer.prefix_directory_path("../other") == "tenant/other/"

    @pytest.mark.parametrize("path", ["../other/secret.txt", "a/./b.txt", "/x/../y.txt", "../../"])
    def test_strip_inverts_prefix_for_any_input(self, path: str):
        prefixer = PathPrefixer("tenant")

        assert prefixer.strip_file_path(prefixer.prefix_file_path(path)) == normalize_path(path)
        assert prefixer.strip_directory_path(prefixer.prefix_directory_path(path)) == normalize_path(path)
