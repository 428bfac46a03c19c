from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from .command import run_command
from .context import Context
from .step import Step

logger = logging.getLogger(__name__)

CHANGELOG_FILE = "CHANGELOG.md"
GENERATOR = "github_changelog_generator"
EXCLUDE_LABELS = "question,duplicate,invalid,wontfix"

_SECTION_END_RE = re.compile(r"^(##|\\\*)")


def extract_section(text: str, tag: str) -> str:
    """Return the notes under the ``## [<tag>]`` heading of a changelog.

    The section ends at the next ``##`` heading or at the generator's
    ``\\*`` footer line. Leading and trailing blank lines are dropped.
    """
    start_re = re.compile(rf"^## \[{re.escape(tag)}\]")
    lines = []
    inside = False
    for line in text.splitlines():
        if inside:
            if _SECTION_END_RE.match(line):
                break
            lines.append(line)
        elif start_re.match(line):
            inside = True
    return "\n".join(lines).strip("\n")


class Changelog:
    """Generates ``CHANGELOG.md`` from GitHub issues and pull requests."""

    def __init__(self, workdir: str = ".", token: str = "") -> None:
        self.workdir = workdir
        self.token = token

    @property
    def filename(self) -> str:
        return CHANGELOG_FILE

    @property
    def path(self) -> str:
        return os.path.join(self.workdir, CHANGELOG_FILE)

    def check(self, ctx: Context) -> None:
        run_command(ctx, [GENERATOR, "--version"], cwd=self.workdir)

    def generate(self, ctx: Context, repo: str, tag: str) -> str:
        """Regenerate the changelog and return the notes for ``tag``."""
        run_command(
            ctx,
            [
                GENERATOR,
                "--token", self.token,
                "--no-filter-by-milestone",
                "--exclude-labels", EXCLUDE_LABELS,
                "--future-release", tag,
                repo,
            ],
            cwd=self.workdir,
        )
        with open(self.path, "r", encoding="utf-8") as fh:
            return extract_section(fh.read(), tag)


@dataclass
class ChangelogResult:
    filename: str = ""
    text: str = ""


class ChangelogGenerate(Step):
    """Regenerate the changelog file for an upcoming tag.

    ``revert`` restores the file as it was before ``run`` (or removes it when
    ``run`` created it).
    """

    def __init__(self, changelog: Changelog, repo: str = "", tag: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.changelog = changelog
        self.repo = repo
        self.tag = tag
        self.result = ChangelogResult()
        self._previous: Optional[str] = None

    def dry(self, ctx: Context) -> None:
        self.changelog.check(ctx)
        self.result.filename = self.changelog.filename

    def run(self, ctx: Context) -> None:
        if os.path.exists(self.changelog.path):
            with open(self.changelog.path, "r", encoding="utf-8") as fh:
                self._previous = fh.read()
        self.result.text = self.changelog.generate(ctx, self.repo, self.tag)
        self.result.filename = self.changelog.filename

    def revert(self, ctx: Context) -> None:
        if self._previous is None:
            if os.path.exists(self.changelog.path):
                os.remove(self.changelog.path)
            return
        with open(self.changelog.path, "w", encoding="utf-8") as fh:
            fh.write(self._previous)
