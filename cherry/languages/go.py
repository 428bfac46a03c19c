from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..command import run_command
from ..context import Context
from ..errors import CollaboratorError
from ..step import QueryStep, Step

logger = logging.getLogger(__name__)

_GO_VERSION_RE = re.compile(r"go\d+\.\d+(?:\.\d+)?")


class Go:
    """Thin wrapper around the ``go`` toolchain for one module root."""

    def __init__(self, workdir: str = ".") -> None:
        self.workdir = workdir

    def list(self, ctx: Context, package: str) -> str:
        return run_command(ctx, ["go", "list", package], cwd=self.workdir).stdout.strip()

    def version(self, ctx: Context) -> str:
        out = run_command(ctx, ["go", "version"], cwd=self.workdir).stdout
        m = _GO_VERSION_RE.search(out)
        if not m:
            raise CollaboratorError(f"unexpected go version output: {out.strip()}")
        return m.group(0)

    def build(
        self,
        ctx: Context,
        main_file: str,
        output: str = "",
        ldflags: str = "",
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        cmd: List[str] = ["go", "build"]
        if ldflags:
            cmd += ["-ldflags", ldflags]
        if output:
            cmd += ["-o", output]
        cmd.append(main_file)
        run_command(ctx, cmd, cwd=self.workdir, env=env)
        return output

    def packages(self, ctx: Context, pattern: str = "./...") -> List[str]:
        out = run_command(ctx, ["go", "list", pattern], cwd=self.workdir).stdout
        return [line.strip() for line in out.splitlines() if line.strip()]

    def test(self, ctx: Context, package: str, cover_mode: str, cover_profile: str) -> str:
        """Run the tests of one package, writing its cover profile. Returns the test output."""
        cmd = ["go", "test", "-covermode", cover_mode, "-coverprofile", cover_profile, package]
        return run_command(ctx, cmd, cwd=self.workdir).stdout.strip()

    def vet(self, ctx: Context, packages: Sequence[str]) -> None:
        run_command(ctx, ["go", "vet", *packages], cwd=self.workdir)

    def cover_html(self, ctx: Context, cover_profile: str, output: str) -> None:
        run_command(ctx, ["go", "tool", "cover", "-html", cover_profile, "-o", output], cwd=self.workdir)


@dataclass
class PackageResult:
    path: str = ""


@dataclass
class GoVersionResult:
    version: str = ""


@dataclass
class BuildResult:
    binaries: List[str] = field(default_factory=list)


class GoList(QueryStep):
    """Resolve the import path of a package (``go list <pkg>``)."""

    def __init__(self, go: Go, package: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.go = go
        self.package = package
        self.result = PackageResult()

    def run(self, ctx: Context) -> None:
        self.result.path = self.go.list(ctx, self.package)


class GoVersion(QueryStep):
    def __init__(self, go: Go, id: Optional[str] = None) -> None:
        super().__init__(id)
        self.go = go
        self.result = GoVersionResult()

    def run(self, ctx: Context) -> None:
        self.result.version = self.go.version(ctx)


class GoBuild(Step):
    """Compile a Go program.

    Config:
    - main_file: entry point (default ``main.go``)
    - binary_file: output path; with ``platforms`` each binary is
      ``<binary_file>-<os>-<arch>``
    - ldflags: linker flags passed as ``-ldflags``
    - platforms: ``<os>-<arch>`` targets; empty builds for the host only

    ``GOOS``/``GOARCH`` are handed to each compiler process, the environment of
    the current process is left alone. ``dry`` compiles into a temporary
    directory that is removed afterwards.
    """

    def __init__(
        self,
        go: Go,
        main_file: str = "main.go",
        binary_file: str = "",
        ldflags: str = "",
        platforms: Sequence[str] = (),
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.go = go
        self.main_file = main_file
        self.binary_file = binary_file
        self.ldflags = ldflags
        self.platforms: List[str] = list(platforms)
        self.result = BuildResult()

    def _targets(self, binary_file: str):
        if not self.platforms:
            yield binary_file, None
            return
        for platform in self.platforms:
            goos, _, goarch = platform.partition("-")
            if not goos or not goarch:
                raise ValueError(f"invalid platform: {platform!r}")
            yield f"{binary_file}-{platform}", {"GOOS": goos, "GOARCH": goarch}

    def _build_all(self, ctx: Context, binary_file: str) -> None:
        self.result.binaries = []
        for output, env in self._targets(binary_file):
            logger.info(f"building {output}")
            self.go.build(ctx, self.main_file or "main.go", output, self.ldflags, env)
            self.result.binaries.append(output)

    def dry(self, ctx: Context) -> None:
        tmp = tempfile.mkdtemp(prefix="cherry-")
        try:
            self._build_all(ctx, os.path.join(tmp, os.path.basename(self.binary_file) or "app"))
        finally:
            shutil.rmtree(tmp, ignore_errors=True)

    def run(self, ctx: Context) -> None:
        self._build_all(ctx, self.binary_file)

    def revert(self, ctx: Context) -> None:
        for binary in self.result.binaries:
            full = os.path.join(self.go.workdir, binary)
            if os.path.exists(full):
                os.remove(full)
        self.result.binaries = []


@dataclass
class PackagesResult:
    packages: List[str] = field(default_factory=list)


class GoListPackages(QueryStep):
    """List the packages matching ``pattern`` (default ``./...``)."""

    def __init__(self, go: Go, pattern: str = "./...", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.go = go
        self.pattern = pattern
        self.result = PackagesResult()

    def run(self, ctx: Context) -> None:
        self.result.packages = self.go.packages(ctx, self.pattern)


@dataclass
class CoverResult:
    cover_file: str = ""
    report_file: str = ""
    outputs: List[str] = field(default_factory=list)


class GoTestCover(Step):
    """Test packages one by one and merge their coverage into one report.

    Config:
    - packages: import paths to test
    - cover_mode: ``set``, ``count`` or ``atomic``
    - report_path: report directory relative to the module root

    ``run`` replaces the report directory with ``cover.out`` (every package's
    profile under a single mode header) and ``index.html``. ``dry`` vets the
    packages instead. ``revert`` removes the report directory.
    """

    COVER_FILE = "cover.out"
    REPORT_FILE = "index.html"

    def __init__(
        self,
        go: Go,
        packages: Sequence[str] = (),
        cover_mode: str = "atomic",
        report_path: str = "coverage",
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.go = go
        self.packages: List[str] = list(packages)
        self.cover_mode = cover_mode
        self.report_path = report_path
        self.result = CoverResult()

    @property
    def report_dir(self) -> str:
        return os.path.join(self.go.workdir, self.report_path)

    def dry(self, ctx: Context) -> None:
        if self.packages:
            self.go.vet(ctx, self.packages)

    def run(self, ctx: Context) -> None:
        shutil.rmtree(self.report_dir, ignore_errors=True)
        os.makedirs(self.report_dir)
        cover_file = os.path.join(self.report_dir, self.COVER_FILE)
        report_file = os.path.join(self.report_dir, self.REPORT_FILE)
        with open(cover_file, "w", encoding="utf-8") as fh:
            fh.write(f"mode: {self.cover_mode}\n")

        self.result.outputs = []
        for package in self.packages:
            fd, profile = tempfile.mkstemp(prefix="cover-", suffix=".out")
            os.close(fd)
            try:
                self.result.outputs.append(self.go.test(ctx, package, self.cover_mode, profile))
                with open(profile, "r", encoding="utf-8") as src:
                    lines = src.readlines()[1:]
            finally:
                os.remove(profile)
            with open(cover_file, "a", encoding="utf-8") as fh:
                fh.writelines(lines)
            logger.debug(f"merged coverage of {package}")

        self.go.cover_html(ctx, cover_file, report_file)
        self.result.cover_file = cover_file
        self.result.report_file = report_file

    def revert(self, ctx: Context) -> None:
        shutil.rmtree(self.report_dir, ignore_errors=True)
