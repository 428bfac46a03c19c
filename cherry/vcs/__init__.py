from .git import (
    Git,
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
