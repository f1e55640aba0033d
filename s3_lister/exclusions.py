from __future__ import annotations
"""Exclusion rules for file extensions and directory segments."""
from dataclasses import dataclass
import posixpath
from typing import Iterable

NO_EXTENSION = "none"

DEFAULT_EXCLUDED_EXTENSIONS = (
    "mp3",
    "woff",
    "woff2",
    "css",
    "mp4",
    "jpg",
    "jpeg",
    "png",
    "avi",
    "mov",
    NO_EXTENSION,
)
DEFAULT_EXCLUDED_KEYWORDS = ("chunks", "temp", "cache")


def parse_comma_list(values: Iterable[str] | None) -> list[str]:
    """Flatten repeated and comma-separated values, dropping blanks."""

    result: list[str] = []
    for value in values or ():
        for part in str(value).split(","):
            part = part.strip()
            if part:
                result.append(part)
    return result


def _normalize(values: Iterable[str] | None) -> frozenset[str]:
    return frozenset(
        value.strip().lower() for value in values or () if value and value.strip()
    )


@dataclass(frozen=True)
class ExclusionSet:
    """Case-insensitive excluded extensions and directory keywords.

    Instances are immutable and safe to share between walker threads.
    """

    extensions: frozenset[str] = frozenset()
    keywords: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        extensions: Iterable[str] | None = None,
        keywords: Iterable[str] | None = None,
    ) -> ExclusionSet:
        return cls(extensions=_normalize(extensions), keywords=_normalize(keywords))

    def should_exclude_file(self, name: str) -> bool:
        if not self.extensions:
            return False
        _, dot, ext = posixpath.basename(name).rpartition(".")
        ext = ext.strip().lower() if dot else ""
        return (ext or NO_EXTENSION) in self.extensions

    def should_exclude_dir(self, prefix: str, delimiter: str = "/") -> bool:
        if not self.keywords:
            return False
        trimmed = prefix[: -len(delimiter)] if delimiter and prefix.endswith(delimiter) else prefix
        for segment in trimmed.split(delimiter) if delimiter else [trimmed]:
            if not segment:
                continue
            if segment.strip().lower() in self.keywords:
                return True
        return False
