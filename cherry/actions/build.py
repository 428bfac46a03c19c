from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..action import RUN, Action
from ..config import Spec
from ..context import Context
from ..hook import Hook
from ..languages.go import Go, GoBuild, GoList, GoVersion
from ..step import Step
from ..vcs.git import Git, GitGetBranch, GitGetHEAD
from ..versionfile import SemVerRead, VersionFile
from .. import version as cherry_version

logger = logging.getLogger(__name__)


def build_tool(spec: Spec) -> str:
    """``<name>@<version>`` of the tool doing the build."""
    tool_version = spec.tool_version or cherry_version.VERSION
    return f"{spec.tool_name}@{tool_version}" if tool_version else spec.tool_name


def ldflags(
    package: str,
    version: str,
    revision: str,
    branch: str,
    go_version: str,
    tool: str,
    build_time: Optional[datetime] = None,
) -> str:
    """Linker flags that stamp build metadata into ``package``."""
    build_time = build_time or datetime.now(timezone.utc)
    values = [
        ("Version", version),
        ("Revision", revision),
        ("Branch", branch),
        ("GoVersion", go_version),
        ("BuildTool", tool),
        ("BuildTime", build_time.strftime("%Y-%m-%dT%H:%M:%SZ")),
    ]
    return " ".join(f"-X {package}.{name}={value}" for name, value in values)


class Build(Action):
    """Compile the project with build metadata stamped into the binary.

    Every step but the last only reads state; their results feed the linker
    flags of the compile step.
    """

    def __init__(
        self,
        workdir: str,
        spec: Spec,
        hook: Optional[Hook] = None,
        git: Optional[Git] = None,
        go: Optional[Go] = None,
        version_file: Optional[VersionFile] = None,
    ) -> None:
        self.spec = spec
        git = git or Git(workdir)
        go = go or Go(workdir)

        self.go_list = GoList(go, spec.build.version_package)
        self.read_version = SemVerRead(version_file or VersionFile(workdir, spec.version_file))
        self.get_head = GitGetHEAD(git)
        self.get_branch = GitGetBranch(git)
        self.go_version = GoVersion(go)
        self.go_build = GoBuild(go, spec.build.main_file, spec.build.binary_file)

        super().__init__(
            [self.go_list, self.read_version, self.get_head, self.get_branch, self.go_version, self.go_build],
            hook,
        )

    def prepare(self, step: Step, verb: str) -> None:
        if step is not self.go_build:
            return
        step.ldflags = ldflags(
            self.go_list.result.path,
            self.read_version.result.version.format(),
            self.get_head.result.short_sha,
            self.get_branch.result.name,
            self.go_version.result.version,
            build_tool(self.spec),
        )
        if self.spec.build.cross_compile:
            step.platforms = list(self.spec.build.platforms)

    def run(self, ctx: Context) -> None:
        super().run(ctx)
        for binary in self.go_build.result.binaries:
            self.notify("info", f"🍒 {binary}")
