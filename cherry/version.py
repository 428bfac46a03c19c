"""Build metadata of cherry itself.

Release builds overwrite these values; development installs report the
package version only.
"""
from __future__ import annotations

import platform

__version__ = "0.5.0"

VERSION = __version__
REVISION = ""
BRANCH = ""
PYTHON_VERSION = platform.python_version()
BUILD_TOOL = ""
BUILD_TIME = ""


def get() -> str:
    """One-line summary of the build metadata."""
    parts = [VERSION, REVISION, BRANCH, f"python{PYTHON_VERSION}", BUILD_TOOL, BUILD_TIME]
    return " ".join(p for p in parts if p)
