"""Tests for the Release action"""
import os
import pytest
from unittest.mock import MagicMock, call
from cherry.actions import Release
from cherry.changelog import Changelog
from cherry.config import Spec
from cherry.errors import CancellationError, CommandError, DirtyWorkingTree, HTTPError, WrongBranch
from cherry.github import Asset, GitHubClient, Release as GitHubRelease, ReleaseData
from cherry.languages.go import Go
from cherry.semver import Segment, SemanticVersion
from cherry.vcs.git import Git
from cherry.versionfile import VersionFile

REPO = "octocat/hello"
UPLOAD_URL = "https://uploads.github.com/repos/octocat/hello/releases/42/assets{?name,label}"


class Fixture:
    """Mocked collaborators around a real VERSION file"""

    def __init__(self, temp_dir, version="0.2.0", branch="master"):
        self.version_path = temp_dir / "VERSION"
        self.version_path.write_text(f"{version}\n")
        self.git_calls = []
        self.fail_on = {}

        self.git = MagicMock(spec=Git)
        self.git.side_effect = self._git
        self.git.repository.return_value = ("octocat", "hello")
        self.git.branch.return_value = branch
        self.git.is_clean.return_value = True
        self.git.head.return_value = "0123456789abcdef"
        self.git.origin_url.return_value = "git@github.com:octocat/hello.git"

        self.client = MagicMock(spec=GitHubClient)
        self.client.create_release.return_value = GitHubRelease(id=42, upload_url=UPLOAD_URL)
        self.client.upload_asset.side_effect = lambda ctx, url, path: Asset(id=len(path), name=path)

        self.changelog = MagicMock(spec=Changelog)
        self.changelog.filename = "CHANGELOG.md"
        self.changelog.path = str(temp_dir / "CHANGELOG.md")
        self.changelog.generate.return_value = "- Add build command"

        self.go = MagicMock(spec=Go)
        self.go.workdir = str(temp_dir)
        self.go.list.return_value = "github.com/octocat/hello/cmd/version"
        self.go.version.return_value = "go1.13.5"
        self.go.build.side_effect = lambda ctx, main, output, ldflags, env: output

        self.version_file = VersionFile(str(temp_dir), "VERSION")
        self.workdir = str(temp_dir)

    def _git(self, ctx, *args):
        self.git_calls.append(args)
        error = self.fail_on.get(args)
        if error is not None:
            raise error
        return ""

    def action(self, spec=None, segment=Segment.PATCH, comment=""):
        return Release(
            self.workdir,
            spec or Spec(),
            self.client,
            segment=segment,
            comment=comment,
            git=self.git,
            go=self.go,
            changelog=self.changelog,
            version_file=self.version_file,
        )


@pytest.fixture
def fx(temp_dir):
    return Fixture(temp_dir)


class TestReleaseRun:
    """Test a successful release"""

    def test_minor_release(self, ctx, fx):
        """Test a minor release of 0.2.0 ships v0.3.0 and begins 0.3.1-0"""
        action = fx.action(segment=Segment.MINOR, comment="Big one")
        action.run(ctx)

        assert action.current == SemanticVersion(0, 3, 0)
        assert action.next == SemanticVersion(0, 3, 1, ("0",))
        assert fx.version_path.read_text() == "0.3.1-0\n"

        assert fx.git_calls == [
            ("pull",),
            ("add", "VERSION", "CHANGELOG.md"),
            ("commit", "-m", "Releasing 0.3.0"),
            ("tag", "-a", "v0.3.0", "-m", "Version 0.3.0"),
            ("push",),
            ("push", "origin", "v0.3.0"),
            ("add", "VERSION"),
            ("commit", "-m", "Beginning 0.3.1-0 [skip ci]"),
            ("push",),
        ]

        fx.client.create_release.assert_called_once_with(
            ctx, REPO, ReleaseData(name="0.3.0", tag_name="v0.3.0", target="master", draft=True)
        )
        fx.changelog.generate.assert_called_once_with(ctx, REPO, "v0.3.0")
        assert fx.client.set_branch_protection.call_args_list == [
            call(ctx, REPO, "master", False),
            call(ctx, REPO, "master", True),
        ]
        fx.client.edit_release.assert_called_once_with(
            ctx,
            REPO,
            42,
            ReleaseData(
                name="0.3.0",
                tag_name="v0.3.0",
                target="master",
                draft=False,
                prerelease=False,
                body="Big one\n\n- Add build command",
            ),
        )
        assert action.restore_error is None

    def test_patch_release_of_prerelease(self, ctx, temp_dir):
        """Test a patch release of 0.3.1-0 ships v0.3.1"""
        fx = Fixture(temp_dir, version="0.3.1-0")
        action = fx.action()
        action.run(ctx)
        assert ("tag", "-a", "v0.3.1", "-m", "Version 0.3.1") in fx.git_calls
        assert fx.version_path.read_text() == "0.3.2-0\n"

    def test_with_artifacts(self, ctx, fx):
        """Test build and upload steps run between tagging and the protection window"""
        spec = Spec()
        spec.release.build = True
        spec.build.binary_file = "bin/hello"
        spec.build.platforms = ["linux-amd64", "darwin-amd64"]
        action = fx.action(spec=spec)
        assert len(action.steps) == 25

        action.run(ctx)

        outputs = [c.args[2] for c in fx.go.build.call_args_list]
        assert outputs == ["bin/hello-linux-amd64", "bin/hello-darwin-amd64"]
        ldflags = fx.go.build.call_args_list[0].args[3]
        assert "-X github.com/octocat/hello/cmd/version.Version=0.2.0" in ldflags
        assert "-X github.com/octocat/hello/cmd/version.Revision=0123456" in ldflags
        urls = {c.args[1] for c in fx.client.upload_asset.call_args_list}
        assert urls == {UPLOAD_URL}
        assert [a.name for a in action.upload_assets.result.assets] == [os.path.join(fx.workdir, o) for o in outputs]


class TestReleaseValidation:
    """Test release preconditions"""

    def test_wrong_branch(self, ctx, temp_dir):
        """Test releasing from another branch fails before any change"""
        fx = Fixture(temp_dir, branch="develop")
        with pytest.raises(WrongBranch) as exc:
            fx.action().run(ctx)
        assert exc.value.step == "GitGetBranch"
        fx.client.create_release.assert_not_called()
        assert fx.git_calls == []

    def test_dirty_tree(self, ctx, fx):
        """Test uncommitted changes abort the release"""
        fx.git.is_clean.return_value = False
        with pytest.raises(DirtyWorkingTree):
            fx.action().run(ctx)
        assert fx.git_calls == []

    def test_custom_release_branch(self, ctx, temp_dir):
        """Test the release branch comes from the spec"""
        fx = Fixture(temp_dir, branch="main")
        spec = Spec()
        spec.release.model = "main"
        fx.action(spec=spec).run(ctx)
        assert fx.client.set_branch_protection.call_args_list[0] == call(ctx, REPO, "main", False)


class TestReleaseProtection:
    """Test branch protection is restored whatever happens to the pushes"""

    def test_push_failure_restores_protection(self, ctx, fx):
        """Test a failed push re-enables protection and raises the push error"""
        error = CommandError(["git", "push"], 1, stderr="rejected")
        fx.fail_on[("push",)] = error
        action = fx.action()

        with pytest.raises(CommandError) as exc:
            action.run(ctx)

        assert exc.value is error
        assert exc.value.step == "GitPush.release"
        assert fx.client.set_branch_protection.call_count == 2
        assert fx.client.set_branch_protection.call_args_list[1] == call(ctx, REPO, "master", True)
        fx.client.edit_release.assert_not_called()
        assert action.enable_protection not in action.completed

    def test_restore_failure_does_not_mask_push_error(self, ctx, fx):
        """Test a failed restore is recorded while the push error propagates"""
        push_error = CommandError(["git", "push", "origin", "v0.2.0"], 1, stderr="rejected")
        restore_error = HTTPError("POST", "/repos/octocat/hello/branches/master/protection/enforce_admins", 500)
        fx.fail_on[("push", "origin", "v0.2.0")] = push_error
        fx.client.set_branch_protection.side_effect = [None, restore_error]
        action = fx.action()

        with pytest.raises(CommandError) as exc:
            action.run(ctx)

        assert exc.value is push_error
        assert action.restore_error is restore_error

    def test_restore_failure_after_successful_pushes(self, ctx, fx):
        """Test a failed restore aborts the release before publishing"""
        restore_error = HTTPError("POST", "/repos/octocat/hello/branches/master/protection/enforce_admins", 500)
        fx.client.set_branch_protection.side_effect = [None, restore_error]
        action = fx.action()

        with pytest.raises(HTTPError) as exc:
            action.run(ctx)

        assert exc.value is restore_error
        assert action.restore_error is restore_error
        fx.client.edit_release.assert_not_called()

    def test_cancelled_context_uses_fresh_deadline(self, ctx, fx):
        """Test protection is restored under a fresh context after cancellation"""
        run_ctx = ctx.with_cancel()

        def cancel_push(c, *args):
            fx.git_calls.append(args)
            if args == ("push",):
                run_ctx.cancel()
                raise CancellationError("context cancelled")
            return ""

        fx.git.side_effect = cancel_push
        with pytest.raises(CancellationError):
            fx.action().run(run_ctx)

        restore_ctx = fx.client.set_branch_protection.call_args_list[1].args[0]
        assert restore_ctx is not run_ctx
        assert not restore_ctx.done()
        assert restore_ctx.deadline is not None

    def test_revert_after_failure(self, ctx, fx):
        """Test revert undoes local steps until it reaches the irreversible pull"""
        fx.fail_on[("push",)] = CommandError(["git", "push"], 1)
        action = fx.action()
        with pytest.raises(CommandError):
            action.run(ctx)

        fx.git_calls.clear()
        with pytest.raises(Exception) as exc:
            action.revert(ctx)

        assert "cannot revert git pull" in str(exc.value)
        assert fx.git_calls[0] == ("tag", "--delete", "v0.2.0")
        assert ("reset", "--soft", "HEAD~1") in fx.git_calls
        fx.client.delete_release.assert_called_once_with(ctx, REPO, 42)
        assert fx.version_path.read_text() == "0.2.0\n"


class TestReleaseDry:
    """Test the dry run"""

    def test_dry_has_no_side_effects(self, ctx, fx):
        """Test dry only reads"""
        action = fx.action(segment=Segment.MAJOR)
        action.dry(ctx)

        assert action.current == SemanticVersion(1, 0, 0)
        assert fx.version_path.read_text() == "0.2.0\n"
        fx.client.create_release.assert_not_called()
        fx.client.set_branch_protection.assert_not_called()
        fx.client.edit_release.assert_not_called()
        fx.changelog.generate.assert_not_called()
        mutating = {"pull", "commit", "push", "reset"}
        assert not [c for c in fx.git_calls if c[0] in mutating]
        assert ("add", "--dry-run", "VERSION", "CHANGELOG.md") in fx.git_calls


class TestReleaseUploadFromWorkdir:
    """Test artifacts are uploaded from the release workdir"""

    def _respond(self, uploads):
        def respond(method, url, **kwargs):
            resp = MagicMock()
            resp.text = ""
            if method == "POST" and url.endswith("/releases"):
                resp.status_code = 201
                resp.json.return_value = {"id": 42, "upload_url": UPLOAD_URL}
            elif url.startswith("https://uploads.github.com/"):
                uploads.append((url, kwargs["data"].name))
                resp.status_code = 201
                resp.json.return_value = {"id": len(uploads), "name": url.rsplit("=", 1)[-1]}
            elif method == "DELETE":
                resp.status_code = 204
            else:
                resp.status_code = 200
                resp.json.return_value = {"id": 42}
            return resp
        return respond

    def test_upload_outside_working_directory(self, ctx, temp_dir, monkeypatch):
        """Test binaries built under workdir upload while the process runs elsewhere"""
        workdir = temp_dir / "project"
        workdir.mkdir()
        elsewhere = temp_dir / "elsewhere"
        elsewhere.mkdir()
        fx = Fixture(workdir)

        def build(c, main, output, ldflags, env):
            path = workdir / output
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"\x7fELF")
            return output

        fx.go.build.side_effect = build
        uploads = []
        session = MagicMock()
        session.request.side_effect = self._respond(uploads)
        fx.client = GitHubClient("secret", session=session)

        spec = Spec()
        spec.release.build = True
        spec.build.binary_file = "bin/hello"
        spec.build.platforms = ["linux-amd64"]
        monkeypatch.chdir(elsewhere)

        fx.action(spec=spec).run(ctx)

        assert uploads == [(
            "https://uploads.github.com/repos/octocat/hello/releases/42/assets?name=hello-linux-amd64",
            str(workdir / "bin" / "hello-linux-amd64"),
        )]
