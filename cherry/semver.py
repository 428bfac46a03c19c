"""Semantic version model.

A :class:`SemanticVersion` is an immutable ``major.minor.patch[-prerelease][+metadata]``
value. Transitions never mutate a version; they always return new instances.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from functools import total_ordering
from typing import Tuple, Union

from .errors import InvalidVersion


SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
IDENTIFIER_RE = re.compile(r"^[0-9A-Za-z-]+$")


class Segment(str, Enum):
    """Which component of a version a release bumps."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


def _prerelease_key(prerelease: Tuple[str, ...]) -> tuple:
    # A version without prerelease has higher precedence than one with it.
    if not prerelease:
        return (1,)
    ids = []
    for ident in prerelease:
        if ident.isdigit():
            ids.append((0, int(ident), ""))
        else:
            ids.append((1, 0, ident))
    return (0, tuple(ids))


@total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """Immutable semantic version.

    Equality and ordering take ``prerelease`` into account but ignore ``metadata``.
    """

    major: int = 0
    minor: int = 0
    patch: int = 0
    prerelease: Tuple[str, ...] = ()
    metadata: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise InvalidVersion(str(value), f"{name} must be a non-negative integer")
        # Accept lists from callers but store tuples so the value stays hashable.
        object.__setattr__(self, "prerelease", tuple(self.prerelease))
        object.__setattr__(self, "metadata", tuple(self.metadata))
        for ident in self.prerelease + self.metadata:
            if not isinstance(ident, str) or not IDENTIFIER_RE.match(ident):
                raise InvalidVersion(str(ident), "invalid prerelease or metadata identifier")

    def _key(self) -> tuple:
        return (self.major, self.minor, self.patch, _prerelease_key(self.prerelease))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "SemanticVersion") -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.format()

    def format(self) -> str:
        """Canonical ``major.minor.patch[-prerelease][+metadata]`` string."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.metadata:
            text += "+" + ".".join(self.metadata)
        return text

    def git_tag(self) -> str:
        """Tag name for the release-level version; prerelease and metadata are excluded."""
        return f"v{self.major}.{self.minor}.{self.patch}"

    def with_prerelease(self, *identifiers: str) -> "SemanticVersion":
        return replace(self, prerelease=tuple(identifiers))

    def release(self, segment: Union[Segment, str]) -> Tuple["SemanticVersion", "SemanticVersion"]:
        """Return ``(current, next)`` for releasing the given segment.

        ``current`` is the version being shipped and ``next`` is ``current``
        with the patch number incremented. Neither carries prerelease or
        metadata; the release workflow marks ``next`` as a prerelease itself.
        """
        segment = Segment(segment) if not isinstance(segment, Segment) else segment
        if segment is Segment.PATCH:
            current = SemanticVersion(self.major, self.minor, self.patch)
        elif segment is Segment.MINOR:
            current = SemanticVersion(self.major, self.minor + 1, 0)
        elif segment is Segment.MAJOR:
            current = SemanticVersion(self.major + 1, 0, 0)
        else:
            raise ValueError(f"unknown release segment: {segment!r}")
        next_ = SemanticVersion(current.major, current.minor, current.patch + 1)
        return current, next_


def parse(text: str) -> SemanticVersion:
    """Parse ``[v]major.minor.patch[-prerelease][+metadata]``.

    Raises:
        InvalidVersion: if ``text`` is not a valid semantic version.
    """
    if not isinstance(text, str):
        raise InvalidVersion(repr(text))
    m = SEMVER_RE.match(text.strip())
    if not m:
        raise InvalidVersion(text)
    major, minor, patch, prerelease, metadata = m.groups()
    return SemanticVersion(
        major=int(major),
        minor=int(minor),
        patch=int(patch),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        metadata=tuple(metadata.split(".")) if metadata else (),
    )
