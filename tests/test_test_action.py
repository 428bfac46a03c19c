"""Tests for the Test action"""
import pytest
from unittest.mock import MagicMock
from cherry import actions
from cherry.config import Spec
from cherry.errors import CommandError
from cherry.languages.go import Go


PACKAGES = ["github.com/octocat/hello", "github.com/octocat/hello/cmd/version"]


@pytest.fixture
def go(temp_dir):
    go = MagicMock(spec=Go)
    go.workdir = str(temp_dir)
    go.packages.return_value = list(PACKAGES)
    go.test.side_effect = lambda ctx, package, mode, profile: f"ok  \t{package}\t0.010s"
    return go


class TestTestAction:
    """Test the Test workflow"""

    def test_run(self, ctx, temp_dir, go):
        """Test every package is tested and the report is announced"""
        spec = Spec()
        spec.test.cover_mode = "count"
        hook = MagicMock()
        action = actions.Test(str(temp_dir), spec, hook=hook, go=go)
        action.run(ctx)

        tested = [c.args[1:3] for c in go.test.call_args_list]
        assert tested == [(p, "count") for p in PACKAGES]
        go.cover_html.assert_called_once()
        messages = [c.args for c in hook.on_message.call_args_list]
        assert messages[0] == ("output", "➡️  Testing 2 packages ...")
        assert ("output", "✅ ok  \tgithub.com/octocat/hello\t0.010s") in messages
        assert messages[-1] == ("info", f"🍒 Coverage report: {temp_dir / 'coverage' / 'index.html'}")

    def test_dry(self, ctx, temp_dir, go):
        """Test a dry run lists and vets without testing"""
        action = actions.Test(str(temp_dir), Spec(), go=go)
        action.dry(ctx)
        go.vet.assert_called_once()
        assert go.vet.call_args.args[1] == PACKAGES
        go.test.assert_not_called()
        assert not (temp_dir / "coverage").exists()

    def test_failing_package(self, ctx, temp_dir, go):
        """Test a failing package aborts with the step name attached"""
        go.test.side_effect = CommandError(["go", "test"], 1, stderr="--- FAIL: TestHello")
        action = actions.Test(str(temp_dir), Spec(), go=go)
        with pytest.raises(CommandError) as exc:
            action.run(ctx)
        assert exc.value.step == "GoTestCover"
        go.cover_html.assert_not_called()

    def test_revert(self, ctx, temp_dir, go):
        """Test revert removes the report directory"""
        action = actions.Test(str(temp_dir), Spec(), go=go)
        action.run(ctx)
        assert (temp_dir / "coverage").is_dir()
        action.revert(ctx)
        assert not (temp_dir / "coverage").exists()
