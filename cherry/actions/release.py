from __future__ import annotations

import logging
import os
from typing import Callable, Dict, List, Optional, Union

from ..action import RUN, Action
from ..changelog import Changelog, ChangelogGenerate
from ..config import Spec
from ..context import Context
from ..errors import DirtyWorkingTree, WrongBranch
from ..github import (
    GitHubBranchProtection,
    GitHubClient,
    GitHubCreateRelease,
    GitHubEditRelease,
    GitHubUploadAssets,
    ReleaseData,
)
from ..hook import Hook
from ..languages.go import Go, GoBuild, GoList, GoVersion
from ..semver import Segment, SemanticVersion
from ..step import Step
from ..vcs.git import Git, GitAdd, GitCommit, GitGetBranch, GitGetHEAD, GitGetRepo, GitPull, GitPush, GitPushTag, GitStatus, GitTag
from ..versionfile import SemVerRead, SemVerUpdate, VersionFile
from .build import build_tool, ldflags

logger = logging.getLogger(__name__)

# Budget for re-enabling branch protection when the release context is done.
RESTORE_TIMEOUT = 30.0


class Release(Action):
    """Cut a release of the project.

    The sequence:

    1. verify the branch and a clean working tree, pull
    2. resolve ``current``/``next`` from the version file and write ``current``
    3. create a draft release, regenerate the changelog
    4. commit and tag ``current``
    5. optionally build and upload artifacts
    6. disable "enforce for admins" on the release branch
    7. push the release commit and tag, commit ``next`` and push it
    8. re-enable the protection (always, even if 7 fails)
    9. publish the draft

    Config:
    - segment: patch, minor or major
    - comment: text placed above the changelog in the release body
    - spec.release.model: the branch releases are cut from
    - spec.release.build: include the build/upload steps
    """

    def __init__(
        self,
        workdir: str,
        spec: Spec,
        client: GitHubClient,
        segment: Union[Segment, str] = Segment.PATCH,
        comment: str = "",
        hook: Optional[Hook] = None,
        git: Optional[Git] = None,
        go: Optional[Go] = None,
        changelog: Optional[Changelog] = None,
        version_file: Optional[VersionFile] = None,
    ) -> None:
        self.workdir = workdir
        self.spec = spec
        self.segment = Segment(segment)
        self.comment = comment
        git = git or Git(workdir)
        go = go or Go(workdir)
        changelog = changelog or Changelog(workdir, client.token)
        version_file = version_file or VersionFile(workdir, spec.version_file)

        self.current = SemanticVersion()
        self.next = SemanticVersion()
        self.restore_error: Optional[BaseException] = None

        self.get_repo = GitGetRepo(git)
        self.get_branch = GitGetBranch(git)
        self.get_status = GitStatus(git)
        self.pull = GitPull(git)
        self.read_version = SemVerRead(version_file)
        self.write_current = SemVerUpdate(version_file, id="SemVerUpdate.current")
        self.create_release = GitHubCreateRelease(client, data=ReleaseData(draft=True, prerelease=False))
        self.generate_changelog = ChangelogGenerate(changelog)
        self.add_release = GitAdd(git, id="GitAdd.release")
        self.commit_release = GitCommit(git, id="GitCommit.release")
        self.tag = GitTag(git)

        self.head: List[Step] = [
            self.get_repo,
            self.get_branch,
            self.get_status,
            self.pull,
            self.read_version,
            self.write_current,
            self.create_release,
            self.generate_changelog,
            self.add_release,
            self.commit_release,
            self.tag,
        ]

        self.artifacts: List[Step] = []
        if spec.release.build:
            self.go_list = GoList(go, spec.build.version_package)
            self.get_head = GitGetHEAD(git)
            self.go_version = GoVersion(go)
            self.go_build = GoBuild(go, spec.build.main_file, spec.build.binary_file)
            self.upload_assets = GitHubUploadAssets(client)
            self.artifacts = [self.go_list, self.get_head, self.go_version, self.go_build, self.upload_assets]

        self.disable_protection = GitHubBranchProtection(client, enabled=False, id="GitHubBranchProtection.disable")
        self.enable_protection = GitHubBranchProtection(client, enabled=True, id="GitHubBranchProtection.enable")

        self.push_release = GitPush(git, id="GitPush.release")
        self.push_tag = GitPushTag(git)
        self.write_next = SemVerUpdate(version_file, id="SemVerUpdate.next")
        self.add_next = GitAdd(git, id="GitAdd.next")
        self.commit_next = GitCommit(git, id="GitCommit.next")
        self.push_next = GitPush(git, id="GitPush.next")
        self.guarded: List[Step] = [
            self.push_release,
            self.push_tag,
            self.write_next,
            self.add_next,
            self.commit_next,
            self.push_next,
        ]

        self.publish = GitHubEditRelease(client)

        super().__init__(
            self.head + self.artifacts + [self.disable_protection] + self.guarded + [self.enable_protection, self.publish],
            hook,
        )

        self._wiring: Dict[int, Callable[[], None]] = {
            id(self.write_current): self._wire_write_current,
            id(self.create_release): self._wire_create_release,
            id(self.generate_changelog): self._wire_changelog,
            id(self.add_release): self._wire_add_release,
            id(self.commit_release): self._wire_commit_release,
            id(self.tag): self._wire_tag,
            id(self.disable_protection): self._wire_protection,
            id(self.push_tag): self._wire_tag,
            id(self.write_next): self._wire_write_next,
            id(self.add_next): self._wire_add_next,
            id(self.commit_next): self._wire_commit_next,
            id(self.publish): self._wire_publish,
        }
        if spec.release.build:
            self._wiring[id(self.go_build)] = self._wire_build
            self._wiring[id(self.upload_assets)] = self._wire_upload

        self._messages: Dict[int, Callable[[], str]] = {
            id(self.pull): lambda: f"⬇️  Pulling {self.spec.release.model} branch ...",
            id(self.create_release): lambda: f"⬆️  Creating draft release {self.current} ...",
            id(self.generate_changelog): lambda: "➡️  Creating/Updating change log ...",
            id(self.push_release): lambda: f"⬆️  Pushing release commit {self.current} ...",
            id(self.push_tag): lambda: f"⬆️  Pushing release tag {self.current.git_tag()} ...",
            id(self.push_next): lambda: f"⬆️  Pushing commit for next version {self.next} ...",
            id(self.publish): lambda: f"⬆️  Publishing release {self.current} ...",
        }
        if spec.release.build:
            self._messages[id(self.go_list)] = lambda: "➡️  Building artifacts ..."
            self._messages[id(self.upload_assets)] = lambda: f"➡️  Uploading artifacts to release {self.current} ..."

    @property
    def repo(self) -> str:
        return self.get_repo.result.repo

    @property
    def branch(self) -> str:
        return self.get_branch.result.name

    def execute(self, ctx: Context, verb: str) -> None:
        for step in self.head + self.artifacts:
            self.invoke(ctx, step, verb)

        if verb == RUN:
            self.notify("warn", f"🔓 Temporarily enabling push to {self.branch} branch ...")
        self.invoke(ctx, self.disable_protection, verb)
        try:
            for step in self.guarded:
                self.invoke(ctx, step, verb)
        except BaseException:
            self._restore_protection(ctx, verb, raise_error=False)
            raise
        self._restore_protection(ctx, verb, raise_error=True)

        self.invoke(ctx, self.publish, verb)
        if verb == RUN:
            self.notify("info", f"🍒 Release {self.current} published.")

    def _restore_protection(self, ctx: Context, verb: str, raise_error: bool) -> None:
        """Re-enable branch protection after the pushes.

        This is not part of the revert chain. When the pushes failed, a failure
        here is logged and kept in ``restore_error`` so the original error
        still reaches the caller.
        """
        step = self.enable_protection
        if verb == RUN:
            self.notify("warn", f"🔒 Re-disabling push to {self.branch} branch ...")
        if ctx.done():
            logger.warning(f"{self.name}: context is done, restoring branch protection with a fresh {RESTORE_TIMEOUT}s deadline")
            ctx = Context.background().with_timeout(RESTORE_TIMEOUT)
        else:
            logger.warning(f"{self.name}: restoring branch protection on {self.branch}")

        self._wire_protection_for(step)
        self._call_hook("on_step_start", step, verb)
        try:
            getattr(step, verb)(ctx)
        except Exception as e:
            self.restore_error = e
            self._fail(step, verb, e)
            self.notify("error", f"Error: {e}")
            if raise_error:
                raise
            return
        self._call_hook("on_step_end", step, verb)

    def prepare(self, step: Step, verb: str) -> None:
        wire = self._wiring.get(id(step))
        if wire is not None:
            wire()
        if verb == RUN:
            message = self._messages.get(id(step))
            if message is not None:
                self.notify("output", message())

    def verify(self, step: Step, verb: str) -> None:
        if step is self.get_branch:
            if self.branch != self.spec.release.model:
                raise WrongBranch(self.branch, self.spec.release.model)
        elif step is self.get_status:
            if not self.get_status.result.is_clean:
                raise DirtyWorkingTree()
        elif step is self.read_version:
            current, next_ = self.read_version.result.version.release(self.segment)
            self.current = current.with_prerelease()
            self.next = next_.with_prerelease("0")
            logger.info(f"{self.name}: {self.read_version.result.version} -> {self.current}, next {self.next}")

    def _wire_write_current(self) -> None:
        self.write_current.version = self.current.format()

    def _wire_create_release(self) -> None:
        self.create_release.repo = self.repo
        self.create_release.data.name = self.current.format()
        self.create_release.data.tag_name = self.current.git_tag()
        self.create_release.data.target = self.branch

    def _wire_changelog(self) -> None:
        self.generate_changelog.repo = self.repo
        self.generate_changelog.tag = self.current.git_tag()

    def _wire_add_release(self) -> None:
        self.add_release.files = [self.read_version.result.filename, self.generate_changelog.changelog.filename]

    def _wire_commit_release(self) -> None:
        self.commit_release.message = f"Releasing {self.current}"

    def _wire_tag(self) -> None:
        self.tag.tag = self.current.git_tag()
        self.tag.annotation = f"Version {self.current}"
        self.push_tag.tag = self.current.git_tag()

    def _wire_build(self) -> None:
        self.go_build.ldflags = ldflags(
            self.go_list.result.path,
            self.current.format(),
            self.get_head.result.short_sha,
            self.branch,
            self.go_version.result.version,
            build_tool(self.spec),
        )
        self.go_build.platforms = list(self.spec.build.platforms)

    def _wire_upload(self) -> None:
        self.upload_assets.repo = self.repo
        self.upload_assets.upload_url = self.create_release.result.release.upload_url
        # Binaries are relative to the workdir, not the process working directory.
        self.upload_assets.files = [os.path.join(self.workdir, b) for b in self.go_build.result.binaries]

    def _wire_protection(self) -> None:
        self._wire_protection_for(self.disable_protection)

    def _wire_protection_for(self, step: GitHubBranchProtection) -> None:
        step.repo = self.repo
        step.branch = self.branch

    def _wire_write_next(self) -> None:
        self.write_next.version = self.next.format()

    def _wire_add_next(self) -> None:
        self.add_next.files = [self.read_version.result.filename]

    def _wire_commit_next(self) -> None:
        self.commit_next.message = f"Beginning {self.next} [skip ci]"

    def _wire_publish(self) -> None:
        self.publish.repo = self.repo
        self.publish.release_id = self.create_release.result.release.id
        self.publish.data = ReleaseData(
            name=self.current.format(),
            tag_name=self.current.git_tag(),
            target=self.branch,
            draft=False,
            prerelease=False,
            body=f"{self.comment}\n\n{self.generate_changelog.result.text}",
        )
