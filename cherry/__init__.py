"""
cherry: reversible build and release automation.

This package provides core primitives:
- Step: a unit of work with dry/run/revert verbs against one collaborator.
- Action: an ordered sequence of steps run as one reversible unit.
- SemanticVersion: immutable version values and release transitions.
- Test, Build, Release, Update: the concrete workflows behind the CLI.
"""

from .action import Action
from .actions import Build, Release, Test, Update
from .context import Context
from .errors import (
    CancellationError,
    CherryError,
    CollaboratorError,
    CommandError,
    ConfigError,
    DirtyWorkingTree,
    HTTPError,
    InvalidVersion,
    IrreversibleOperationError,
    ValidationError,
    WrongBranch,
)
from .hook import ConsoleHook, Hook
from .semver import Segment, SemanticVersion, parse
from .step import QueryStep, Step
from .version import __version__

__all__ = [
    "Action",
    "Step",
    "QueryStep",
    "Context",
    # Hooks
    "Hook",
    "ConsoleHook",
    # Versions
    "Segment",
    "SemanticVersion",
    "parse",
    # Workflows
    "Build",
    "Release",
    "Test",
    "Update",
    # Errors
    "CherryError",
    "ValidationError",
    "InvalidVersion",
    "WrongBranch",
    "DirtyWorkingTree",
    "ConfigError",
    "CollaboratorError",
    "CommandError",
    "HTTPError",
    "CancellationError",
    "IrreversibleOperationError",
    "__version__",
]
