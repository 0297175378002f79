"""Artifact path filters.

A filter is a comma-separated list of Ant-style path patterns
(``**/*.jar, docs/``) matched against manifest paths through ``pathspec``:

* ``*`` and ``?`` never cross a ``/``;
* ``**`` as a whole segment spans zero or more directories;
* a trailing ``/`` means everything below that directory.

A ``!pattern`` item excludes; later items win.  Blank text means ``**``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import pathspec
from pathspec.pattern import RegexPattern

from artifactrelay.models.artifacts import ManifestEntry

MATCH_ALL = "**"


class AntPattern(RegexPattern):
    """A ``pathspec`` pattern compiled from Ant path-matching rules."""

    @classmethod
    def pattern_to_regex(cls, pattern: str) -> tuple[str | None, bool | None]:
        """Convert one Ant pattern into an anchored regular expression.

        >>> AntPattern.pattern_to_regex("**/*.jar")
        ('^(?:[^/]*/)*[^/]*\\\\.jar$', True)
        """
        include = True
        pattern = pattern.strip().replace("\\", "/")
        if pattern.startswith("!"):
            include = False
            pattern = pattern[1:].strip()
        if not pattern:
            return None, None
        if pattern.endswith("/"):
            pattern += MATCH_ALL

        segments: list[str] = []
        for segment in pattern.split("/"):
            if not segment or (segment == MATCH_ALL and segments and segments[-1] == MATCH_ALL):
                continue
            segments.append(segment)

        regex = ""
        for index, segment in enumerate(segments):
            last = index == len(segments) - 1
            if segment == MATCH_ALL:
                regex += ".*" if last else "(?:[^/]*/)*"
            else:
                regex += _segment_regex(segment) + ("" if last else "/")
        return f"^{regex}$", include


def _segment_regex(segment: str) -> str:
    parts = []
    for char in segment:
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def split_patterns(glob_filter: str) -> list[str]:
    patterns = [p.strip() for p in glob_filter.split(",") if p.strip()]
    return patterns or [MATCH_ALL]


def compile_filter(glob_filter: str) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines(AntPattern, split_patterns(glob_filter))


def select_entries(
    entries: Iterable[ManifestEntry], glob_filter: str
) -> list[ManifestEntry]:
    """Entries whose relative path matches *glob_filter*, in manifest order."""
    spec = compile_filter(glob_filter)
    return [entry for entry in entries if spec.match_file(entry.path.lstrip("/"))]
