"""Project configuration ("spec file") for cherry.

The spec file is looked up in the working directory:

1. cherry.yml
2. cherry.yaml
3. cherry.json

YAML files use snake_case keys, JSON files camelCase keys. A missing file
yields the defaults.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

SPEC_FILES = ("cherry.yml", "cherry.yaml", "cherry.json")

TOKEN_ENV = "CHERRY_GITHUB_TOKEN"
TOKEN_FILE_ENV = "CHERRY_GITHUB_TOKEN_FILE"

DEFAULT_PLATFORMS = [
    "linux-386",
    "linux-amd64",
    "linux-arm",
    "linux-arm64",
    "darwin-386",
    "darwin-amd64",
    "windows-386",
    "windows-amd64",
]

_CAMEL_KEYS = {
    "versionFile": "version_file",
    "crossCompile": "cross_compile",
    "mainFile": "main_file",
    "binaryFile": "binary_file",
    "versionPackage": "version_package",
    "coverMode": "cover_mode",
    "reportPath": "report_path",
}


COVER_MODES = ("set", "count", "atomic")


@dataclass
class TestSpec:
    cover_mode: str = "atomic"
    report_path: str = "coverage"


@dataclass
class BuildSpec:
    cross_compile: bool = False
    main_file: str = "main.go"
    binary_file: str = ""
    version_package: str = "./cmd/version"
    platforms: List[str] = field(default_factory=lambda: list(DEFAULT_PLATFORMS))


@dataclass
class ReleaseSpec:
    """Config:
    - model: the release branch
    - build: build and upload artifacts as part of a release
    """

    model: str = "master"
    build: bool = False


@dataclass
class Spec:
    version: str = "1.0"
    language: str = "go"
    version_file: str = "VERSION"
    test: TestSpec = field(default_factory=TestSpec)
    build: BuildSpec = field(default_factory=BuildSpec)
    release: ReleaseSpec = field(default_factory=ReleaseSpec)
    tool_name: str = "cherry"
    tool_version: str = ""

    def with_defaults(self, workdir: str) -> "Spec":
        """Fill in values that depend on the working directory."""
        if not self.build.binary_file:
            self.build.binary_file = os.path.join("bin", Path(workdir).resolve().name)
        return self


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in data.items():
        key = _CAMEL_KEYS.get(key, key)
        out[key] = _normalize(value) if isinstance(value, dict) else value
    return out


def _section(cls, data: Any, name: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"{name}: expected a mapping, got {type(data).__name__}")
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        logger.warning(f"ignoring unknown {name} keys: {', '.join(sorted(unknown))}")
    try:
        return cls(**{k: v for k, v in data.items() if k in known})
    except TypeError as e:
        raise ConfigError(f"{name}: {e}") from e


def from_dict(data: Dict[str, Any]) -> Spec:
    data = _normalize(data or {})
    test = _section(TestSpec, data.pop("test", None), "test")
    build = _section(BuildSpec, data.pop("build", None), "build")
    release = _section(ReleaseSpec, data.pop("release", None), "release")
    spec = _section(Spec, data, "spec")
    spec.test = test
    spec.build = build
    spec.release = release
    if not isinstance(build.platforms, list) or not all(isinstance(p, str) and "-" in p for p in build.platforms):
        raise ConfigError(f"build.platforms: expected a list of <os>-<arch>, got {build.platforms!r}")
    if test.cover_mode not in COVER_MODES:
        raise ConfigError(f"test.cover_mode: expected one of {', '.join(COVER_MODES)}, got {test.cover_mode!r}")
    return spec


def find_spec_file(workdir: str) -> Optional[Path]:
    for name in SPEC_FILES:
        path = Path(workdir) / name
        if path.exists():
            return path
    return None


def load(workdir: str = ".") -> Spec:
    """Load the spec file in ``workdir``, or the defaults when there is none."""
    path = find_spec_file(workdir)
    if path is None:
        logger.debug(f"no spec file in {workdir}, using defaults")
        return Spec().with_defaults(workdir)

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to load spec from {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    logger.debug(f"loaded spec from {path}")
    return from_dict(data).with_defaults(workdir)


def github_token(environ: Optional[Dict[str, str]] = None) -> str:
    """Return the GitHub token from the environment, or an empty string.

    ``CHERRY_GITHUB_TOKEN`` wins over the file named by ``CHERRY_GITHUB_TOKEN_FILE``.
    """
    env = os.environ if environ is None else environ
    token = env.get(TOKEN_ENV, "").strip()
    if token:
        return token
    token_file = env.get(TOKEN_FILE_ENV)
    if token_file:
        try:
            return Path(token_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigError(f"failed to read {TOKEN_FILE_ENV} {token_file}: {e}") from e
    return ""
