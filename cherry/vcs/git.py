from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..command import run_command
from ..context import Context
from ..errors import CollaboratorError, IrreversibleOperationError
from ..step import QueryStep, Step

logger = logging.getLogger(__name__)

_REMOTE_RE = re.compile(r"origin\s+(\S+)\s+\(push\)")
_URL_RE = re.compile(r"(?:git@[^/:]+:|https?://[^/]+/)([^/]+)/([^/\s]+)")


def parse_remote(output: str) -> Tuple[str, str]:
    """Extract ``(owner, name)`` from ``git remote -v`` output.

    Both ``git@github.com:owner/name.git`` and ``https://github.com/owner/name.git``
    push URLs of the ``origin`` remote are understood.
    """
    m = _REMOTE_RE.search(output)
    if not m:
        raise CollaboratorError("failed to get git repository url")
    m = _URL_RE.match(m.group(1))
    if not m:
        raise CollaboratorError("failed to get git repository name")
    name = m.group(2)
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return m.group(1), name


class Git:
    """Thin wrapper around the ``git`` binary for one working directory."""

    def __init__(self, workdir: str = ".") -> None:
        self.workdir = workdir

    def __call__(self, ctx: Context, *args: str) -> str:
        return run_command(ctx, ["git", *args], cwd=self.workdir).stdout

    def repository(self, ctx: Context) -> Tuple[str, str]:
        return parse_remote(self(ctx, "remote", "-v"))

    def branch(self, ctx: Context) -> str:
        return self(ctx, "rev-parse", "--abbrev-ref", "HEAD").strip()

    def is_clean(self, ctx: Context) -> bool:
        return self(ctx, "status", "--porcelain").strip() == ""

    def head(self, ctx: Context) -> str:
        return self(ctx, "rev-parse", "HEAD").strip()

    def origin_url(self, ctx: Context) -> str:
        return self(ctx, "remote", "get-url", "origin").strip()


@dataclass
class RepoResult:
    owner: str = ""
    name: str = ""

    @property
    def repo(self) -> str:
        return f"{self.owner}/{self.name}" if self.owner else ""


@dataclass
class BranchResult:
    name: str = ""


@dataclass
class StatusResult:
    is_clean: bool = False


@dataclass
class HeadResult:
    sha: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class GitGetRepo(QueryStep):
    """Resolve repository coordinates from the ``origin`` push URL."""

    def __init__(self, git: Git, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.result = RepoResult()

    def run(self, ctx: Context) -> None:
        self.result.owner, self.result.name = self.git.repository(ctx)


class GitGetBranch(QueryStep):
    def __init__(self, git: Git, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.result = BranchResult()

    def run(self, ctx: Context) -> None:
        self.result.name = self.git.branch(ctx)


class GitStatus(QueryStep):
    def __init__(self, git: Git, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.result = StatusResult()

    def run(self, ctx: Context) -> None:
        self.result.is_clean = self.git.is_clean(ctx)


class GitGetHEAD(QueryStep):
    def __init__(self, git: Git, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.result = HeadResult()

    def run(self, ctx: Context) -> None:
        self.result.sha = self.git.head(ctx)


class GitPull(Step):
    def __init__(self, git: Git, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git

    def dry(self, ctx: Context) -> None:
        self.git.origin_url(ctx)

    def run(self, ctx: Context) -> None:
        self.git(ctx, "pull")

    def revert(self, ctx: Context) -> None:
        raise IrreversibleOperationError("git pull")


class GitAdd(Step):
    """Stage files.

    Config:
    - files: paths relative to the working directory
    """

    def __init__(self, git: Git, files: Sequence[str] = (), id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.files: List[str] = list(files)

    def dry(self, ctx: Context) -> None:
        self.git(ctx, "add", "--dry-run", *self.files)

    def run(self, ctx: Context) -> None:
        self.git(ctx, "add", *self.files)

    def revert(self, ctx: Context) -> None:
        self.git(ctx, "reset", *self.files)


class GitCommit(Step):
    def __init__(self, git: Git, message: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.message = message

    def dry(self, ctx: Context) -> None:
        self.git(ctx, "log", "--oneline", "-n", "1")

    def run(self, ctx: Context) -> None:
        self.git(ctx, "commit", "-m", self.message)

    def revert(self, ctx: Context) -> None:
        self.git(ctx, "reset", "--soft", "HEAD~1")


class GitTag(Step):
    """Create a tag, annotated when ``annotation`` is set."""

    def __init__(self, git: Git, tag: str = "", annotation: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.tag = tag
        self.annotation = annotation

    def dry(self, ctx: Context) -> None:
        self.git(ctx, "tag", "--list")

    def run(self, ctx: Context) -> None:
        if self.annotation:
            self.git(ctx, "tag", "-a", self.tag, "-m", self.annotation)
        else:
            self.git(ctx, "tag", self.tag)

    def revert(self, ctx: Context) -> None:
        self.git(ctx, "tag", "--delete", self.tag)


class GitPush(Step):
    def __init__(self, git: Git, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git

    def dry(self, ctx: Context) -> None:
        self.git.origin_url(ctx)

    def run(self, ctx: Context) -> None:
        self.git(ctx, "push")

    def revert(self, ctx: Context) -> None:
        raise IrreversibleOperationError("git push")


class GitPushTag(Step):
    """Push a single tag to origin, never ``--tags``."""

    def __init__(self, git: Git, tag: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.git = git
        self.tag = tag

    def dry(self, ctx: Context) -> None:
        self.git.origin_url(ctx)

    def run(self, ctx: Context) -> None:
        self.git(ctx, "push", "origin", self.tag)

    def revert(self, ctx: Context) -> None:
        raise IrreversibleOperationError(f"git push origin {self.tag}")
