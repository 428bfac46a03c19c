"""Pytest configuration and fixtures for cherry tests"""
import shutil
import subprocess
import tempfile
from pathlib import Path
import pytest
from cherry.context import Context


def run_git(cwd, *args):
    result = subprocess.run(["git", *args], cwd=str(cwd), check=True, capture_output=True, text=True)
    return result.stdout.strip()


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def ctx():
    """Provide a context without deadline"""
    return Context.background()


@pytest.fixture
def git():
    """Provide a helper running git in a directory"""
    return run_git


@pytest.fixture
def git_repo(temp_dir):
    """Provide a git repository on master with one commit and a VERSION file"""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = temp_dir / "repo"
    repo.mkdir()
    run_git(repo, "init", "-q")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/master")
    run_git(repo, "config", "user.email", "dev@example.com")
    run_git(repo, "config", "user.name", "Dev")
    run_git(repo, "config", "commit.gpgsign", "false")
    run_git(repo, "config", "tag.gpgsign", "false")

    (repo / "VERSION").write_text("0.2.0\n")
    run_git(repo, "add", "VERSION")
    run_git(repo, "commit", "-q", "-m", "Initial commit")
    run_git(repo, "remote", "add", "origin", "git@github.com:octocat/hello-world.git")
    yield repo


@pytest.fixture
def git_remote(git_repo, temp_dir):
    """Point origin of git_repo at a local bare repository tracking master"""
    remote = temp_dir / "remote.git"
    run_git(temp_dir, "init", "-q", "--bare", str(remote))
    run_git(git_repo, "remote", "set-url", "origin", str(remote))
    run_git(git_repo, "push", "-q", "-u", "origin", "master")
    yield remote
