"""Tests for the console hook"""
import io
from rich.console import Console
from cherry.errors import CommandError
from cherry.hook import ConsoleHook
from cherry.vcs.git import Git, GitPush


def make_hook(verbose=False):
    buf = io.StringIO()
    return ConsoleHook(Console(file=buf, width=200, color_system=None), verbose=verbose), buf


class TestConsoleHook:
    """Test ConsoleHook rendering"""

    def test_message(self):
        """Test messages are printed verbatim"""
        hook, buf = make_hook()
        hook.on_message("output", "⬆️  Pushing release tag [v0.3.0] ...")
        assert "Pushing release tag [v0.3.0] ..." in buf.getvalue()

    def test_steps_hidden_unless_verbose(self):
        """Test step starts only show in verbose mode"""
        step = GitPush(Git(), id="GitPush.release")
        quiet, quiet_buf = make_hook()
        quiet.on_step_start(step, "run")
        assert quiet_buf.getvalue() == ""

        verbose, verbose_buf = make_hook(verbose=True)
        verbose.on_step_start(step, "run")
        assert "run GitPush.release" in verbose_buf.getvalue()

    def test_error(self):
        """Test errors name the failing step"""
        hook, buf = make_hook()
        error = CommandError(["git", "push"], 1, stderr="[rejected] master -> master")
        hook.on_error(GitPush(Git()), "run", error)
        out = buf.getvalue()
        assert "GitPush failed" in out
        assert "[rejected] master -> master" in out
