from __future__ import annotations

# Aggregator module for the concrete steps.
# Implementations live next to the collaborator they drive.

from .changelog import ChangelogGenerate
from .github import (
    GitHubBranchProtection,
    GitHubCreateRelease,
    GitHubDownloadAsset,
    GitHubEditRelease,
    GitHubGetLatestRelease,
    GitHubUploadAssets,
)
from .languages import GoBuild, GoList, GoListPackages, GoTestCover, GoVersion
from .vcs import (
    GitAdd,
    GitCommit,
    GitGetBranch,
    GitGetHEAD,
    GitGetRepo,
    GitPull,
    GitPush,
    GitPushTag,
    GitStatus,
    GitTag,
)
from .versionfile import SemVerRead, SemVerUpdate


__all__ = [
    # git
    "GitAdd",
    "GitCommit",
    "GitGetBranch",
    "GitGetHEAD",
    "GitGetRepo",
    "GitPull",
    "GitPush",
    "GitPushTag",
    "GitStatus",
    "GitTag",
    # github
    "GitHubBranchProtection",
    "GitHubCreateRelease",
    "GitHubDownloadAsset",
    "GitHubEditRelease",
    "GitHubGetLatestRelease",
    "GitHubUploadAssets",
    # go
    "GoBuild",
    "GoList",
    "GoListPackages",
    "GoTestCover",
    "GoVersion",
    # project files
    "ChangelogGenerate",
    "SemVerRead",
    "SemVerUpdate",
]
