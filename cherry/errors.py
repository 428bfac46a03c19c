"""Exception types raised by cherry steps and actions.

Steps never swallow errors. Every exception raised by a step propagates
unchanged through the enclosing action, so callers can match on these types.
"""
from __future__ import annotations

from typing import List, Optional, Sequence


class CherryError(Exception):
    """Base class for all cherry errors.

    ``step`` is set by the action engine to the name of the step that raised.
    """

    step: Optional[str] = None


class ValidationError(CherryError):
    """Input or repository state that the user must fix before retrying."""


class InvalidVersion(ValidationError):
    def __init__(self, text: str, reason: str = "invalid semantic version") -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"{reason}: {text!r}")


class WrongBranch(ValidationError):
    def __init__(self, branch: str, expected: str) -> None:
        self.branch = branch
        self.expected = expected
        super().__init__(f"release has to be done from {expected} branch (current branch is {branch})")


class DirtyWorkingTree(ValidationError):
    def __init__(self) -> None:
        super().__init__("working directory is not clean and has uncommitted changes")


class ConfigError(ValidationError):
    """The project spec file could not be read or parsed."""


class CollaboratorError(CherryError):
    """An external tool or API reported a failure."""


class CommandError(CollaboratorError):
    """A subprocess exited with a non-zero code."""

    def __init__(self, cmd: Sequence[str], returncode: Optional[int], stdout: str = "", stderr: str = "") -> None:
        self.cmd: List[str] = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        message = f"{' '.join(self.cmd)}: exit status {returncode}"
        if detail:
            message += f" {detail}"
        super().__init__(message)


class HTTPError(CollaboratorError):
    """A hosting API call returned an unexpected status code."""

    def __init__(self, method: str, path: str, status: int, body: str = "") -> None:
        self.method = method
        self.path = path
        self.status = status
        self.body = body
        super().__init__(f"{method} {path} {status}: {body}")


class CancellationError(CherryError):
    """The context was cancelled or its deadline expired."""


class IrreversibleOperationError(CherryError):
    """Raised by ``revert`` on steps whose effect cannot be undone."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"cannot revert {operation}")
