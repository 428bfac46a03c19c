from __future__ import annotations

import logging
import os
import platform
import shutil
import sys
from typing import Optional

from ..action import RUN, Action
from ..context import Context
from ..errors import ValidationError
from ..github import GitHubClient, GitHubDownloadAsset, GitHubGetLatestRelease
from ..hook import Hook
from ..step import Step

logger = logging.getLogger(__name__)

REPO = "moorara/cherry"

_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
}


def asset_name(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """Release asset name for a platform, ``cherry-<os>-<arch>``."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    return f"cherry-{system}-{_ARCH.get(machine, machine)}"


def binary_path(argv0: Optional[str] = None) -> str:
    """Absolute path of the running cherry executable.

    Targets the standalone binary distribution. Under a pip install
    ``sys.argv[0]`` is the console-script wrapper, and that wrapper is what
    an update would overwrite.
    """
    argv0 = argv0 or sys.argv[0]
    path = shutil.which(argv0) or (argv0 if os.path.isfile(argv0) else None)
    if path is None:
        raise ValidationError(f"cannot locate the cherry binary from {argv0!r}")
    return os.path.abspath(path)


class Update(Action):
    """Replace the running binary with the latest published release.

    Config:
    - repo: repository publishing cherry releases
    - filepath: binary to overwrite (default: the running executable)
    """

    def __init__(
        self,
        client: GitHubClient,
        hook: Optional[Hook] = None,
        repo: str = REPO,
        filepath: Optional[str] = None,
    ) -> None:
        self.filepath = filepath
        self.get_latest = GitHubGetLatestRelease(client, repo)
        self.download = GitHubDownloadAsset(client, repo, asset_name=asset_name())
        super().__init__([self.get_latest, self.download], hook)

    def prepare(self, step: Step, verb: str) -> None:
        if step is self.get_latest:
            if verb == RUN:
                self.notify("output", "⬇ Getting the latest release of cherry ...")
        elif step is self.download:
            step.tag = self.get_latest.result.release.tag_name
            step.filepath = self.filepath or binary_path()
            if verb == RUN:
                self.notify("output", f"⬇ Downloading {step.asset_name} {step.tag} ...")

    def run(self, ctx: Context) -> None:
        super().run(ctx)
        self.notify("info", f"🍒 cherry {self.get_latest.result.release.name} installed successfully.")
