"""Reading and writing the project version file.

Two formats are understood: a plain text ``VERSION`` file holding just the
version, and a JSON manifest (``package.json``) whose ``"version"`` member is
rewritten in place so the rest of the document keeps its formatting.
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from . import semver
from .context import Context
from .errors import InvalidVersion, ValidationError
from .semver import SemanticVersion
from .step import QueryStep, Step

logger = logging.getLogger(__name__)

TEXT_FILE = "VERSION"
JSON_FILE = "package.json"

_JSON_VERSION_RE = re.compile(r'"version"\s*:\s*"[^"]*"')


class VersionFile:
    """A version file inside ``workdir``.

    When ``filename`` is empty the first existing of ``VERSION`` and
    ``package.json`` is used.
    """

    def __init__(self, workdir: str = ".", filename: str = "") -> None:
        self.workdir = workdir
        self.filename = filename

    def resolve(self) -> str:
        if not self.filename:
            for candidate in (TEXT_FILE, JSON_FILE):
                if os.path.exists(os.path.join(self.workdir, candidate)):
                    self.filename = candidate
                    break
            else:
                raise ValidationError(f"no version file found in {self.workdir}")
        path = os.path.join(self.workdir, self.filename)
        if not os.path.exists(path):
            raise ValidationError(f"version file not found: {path}")
        return path

    @property
    def is_json(self) -> bool:
        return self.filename.endswith(".json")

    def read_text(self) -> str:
        with open(self.resolve(), "r", encoding="utf-8") as fh:
            return fh.read()

    def read(self) -> SemanticVersion:
        content = self.read_text()
        if self.is_json:
            try:
                value = json.loads(content).get("version", "")
            except (ValueError, AttributeError) as e:
                raise InvalidVersion(content, f"invalid {self.filename}") from e
        else:
            value = content.strip()
        if not value:
            raise InvalidVersion(value, f"empty version in {self.filename}")
        return semver.parse(value)

    def render(self, version: str) -> str:
        """Return the file content with ``version`` substituted."""
        if not self.is_json:
            return f"{version}\n"
        content = self.read_text()
        if not _JSON_VERSION_RE.search(content):
            raise InvalidVersion("", f"no version member in {self.filename}")
        return _JSON_VERSION_RE.sub(f'"version": "{version}"', content, count=1)

    def write_text(self, content: str) -> None:
        with open(self.resolve(), "w", encoding="utf-8") as fh:
            fh.write(content)


@dataclass
class VersionResult:
    filename: str = ""
    version: SemanticVersion = field(default_factory=SemanticVersion)


class SemVerRead(QueryStep):
    """Read and parse the project version."""

    def __init__(self, file: VersionFile, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.file = file
        self.result = VersionResult()

    def run(self, ctx: Context) -> None:
        self.result.version = self.file.read()
        self.result.filename = self.file.filename


class SemVerUpdate(Step):
    """Write a new version to the version file.

    ``dry`` renders the new content without writing it. ``revert`` restores the
    content ``run`` replaced.
    """

    def __init__(self, file: VersionFile, version: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.file = file
        self.version = version
        self._previous: Optional[str] = None

    def dry(self, ctx: Context) -> None:
        semver.parse(self.version)
        self.file.render(self.version)

    def run(self, ctx: Context) -> None:
        semver.parse(self.version)
        content = self.file.render(self.version)
        self._previous = self.file.read_text()
        self.file.write_text(content)
        logger.debug(f"wrote {self.version} to {self.file.filename}")

    def revert(self, ctx: Context) -> None:
        if self._previous is not None:
            self.file.write_text(self._previous)
