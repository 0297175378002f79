"""Tests for artifact path filters."""

from __future__ import annotations

import pytest

from artifactrelay.core.globbing import MATCH_ALL, AntPattern, select_entries, split_patterns
from artifactrelay.models.artifacts import ManifestEntry


def _entries(*paths: str) -> list[ManifestEntry]:
    return [ManifestEntry(path=p, digest=f"d{i}") for i, p in enumerate(paths)]


def _paths(entries: list[ManifestEntry]) -> list[str]:
    return [e.path for e in entries]


class TestSplitPatterns:
    def test_comma_list(self):
        assert split_patterns("**/*.jar, docs/** ,") == ["**/*.jar", "docs/**"]

    @pytest.mark.parametrize("text", ["", "  ", ","])
    def test_blank_is_match_all(self, text: str):
        assert split_patterns(text) == [MATCH_ALL]


class TestSelectEntries:
    def test_recursive_wildcard(self):
        entries = _entries("out/app.jar", "out/readme.txt", "lib.jar")
        assert _paths(select_entries(entries, "**/*.jar")) == ["out/app.jar", "lib.jar"]

    def test_match_all(self):
        entries = _entries("a", "b/c", "d/e/f.txt")
        assert _paths(select_entries(entries, "")) == ["a", "b/c", "d/e/f.txt"]

    def test_multiple_patterns(self):
        entries = _entries("build/x.zip", "docs/index.html", "src/main.c")
        assert _paths(select_entries(entries, "build/*.zip,docs/**")) == [
            "build/x.zip",
            "docs/index.html",
        ]

    def test_exclusion(self):
        entries = _entries("out/app.jar", "out/readme.txt")
        assert _paths(select_entries(entries, "**, !**/*.txt")) == ["out/app.jar"]

    def test_no_match(self):
        assert select_entries(_entries("out/app.jar"), "*.war") == []

    def test_manifest_order_preserved(self):
        entries = _entries("z.jar", "a.jar", "m.jar")
        assert _paths(select_entries(entries, "*.jar")) == ["z.jar", "a.jar", "m.jar"]


class TestAntSemantics:
    def test_single_star_stays_in_directory(self):
        entries = _entries("top.txt", "docs/nested.txt")
        assert _paths(select_entries(entries, "*.txt")) == ["top.txt"]

    def test_bare_name_is_a_file(self):
        entries = _entries("build/x.zip", "build")
        assert _paths(select_entries(entries, "build")) == ["build"]

    def test_trailing_slash_means_everything_below(self):
        entries = _entries("build/x.zip", "build/sub/y.zip", "build", "other/x.zip")
        assert _paths(select_entries(entries, "build/")) == ["build/x.zip", "build/sub/y.zip"]

    def test_double_star_spans_zero_or_more_directories(self):
        entries = _entries("a/b", "a/x/y/b", "a/x/c", "b")
        assert _paths(select_entries(entries, "a/**/b")) == ["a/b", "a/x/y/b"]

    def test_question_mark_is_one_character(self):
        entries = _entries("v1.jar", "v10.jar", "d/v2.jar")
        assert _paths(select_entries(entries, "v?.jar")) == ["v1.jar"]

    def test_regex_characters_are_literal(self):
        entries = _entries("lib+1(a).jar", "libb1a.jar")
        assert _paths(select_entries(entries, "lib+1(a).jar")) == ["lib+1(a).jar"]

    def test_pattern_compilation(self):
        assert AntPattern.pattern_to_regex("**") == ("^.*$", True)
        assert AntPattern.pattern_to_regex("!out/*.log") == ("^out/[^/]*\\.log$", False)
        assert AntPattern.pattern_to_regex("  ") == (None, None)
