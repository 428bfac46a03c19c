from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import config as cherry_config
from . import version as cherry_version
from .action import Action
from .actions import Build, Release, Test, Update
from .context import Context
from .errors import CancellationError, CherryError, ConfigError, ValidationError
from .github import GitHubClient
from .hook import ConsoleHook
from .semver import Segment

logger = logging.getLogger(__name__)

app = typer.Typer(name="cherry", help="cherry: build and release automation.", no_args_is_help=True)
console = Console(stderr=True)

TEST_TIMEOUT = 5 * 60
BUILD_TIMEOUT = 5 * 60
RELEASE_TIMEOUT = 10 * 60
UPDATE_TIMEOUT = 60

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_COLLABORATOR = 2
EXIT_CANCELLED = 3
EXIT_CONFIG = 4


def exit_code(error: BaseException) -> int:
    if isinstance(error, ConfigError):
        return EXIT_CONFIG
    if isinstance(error, ValidationError):
        return EXIT_VALIDATION
    if isinstance(error, CancellationError):
        return EXIT_CANCELLED
    return EXIT_COLLABORATOR


def _setup_logging(verbose: bool) -> None:
    log_level = os.getenv("CHERRY_LOG_LEVEL", "WARNING" if not verbose else "INFO")
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format='%(name)s: %(message)s'
    )


def _report(error: BaseException) -> None:
    # Step failures were already printed by the ConsoleHook.
    if getattr(error, "step", None):
        return
    console.print(f"[red]Error:[/red] {escape(str(error))}", highlight=False)


def _execute(action: Action, ctx: Context, dry_run: bool) -> int:
    """Run or dry-run ``action``, mapping failures to exit codes."""
    try:
        if dry_run:
            action.dry(ctx)
        else:
            action.run(ctx)
    except KeyboardInterrupt:
        ctx.cancel("interrupted")
        console.print("[yellow]Interrupted[/yellow]")
        return EXIT_CANCELLED
    except CherryError as e:
        _report(e)
        return exit_code(e)
    except ValueError as e:
        _report(e)
        return EXIT_VALIDATION
    except OSError as e:
        _report(e)
        return EXIT_COLLABORATOR
    return EXIT_OK


def _load_spec(workdir: str) -> cherry_config.Spec:
    spec = cherry_config.load(workdir)
    spec.tool_version = spec.tool_version or cherry_version.VERSION
    return spec


def cmd_test(
    workdir: str = ".",
    cover_mode: Optional[str] = None,
    report_path: Optional[str] = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> int:
    try:
        spec = _load_spec(workdir)
    except ConfigError as e:
        _report(e)
        return EXIT_CONFIG

    if cover_mode:
        if cover_mode not in cherry_config.COVER_MODES:
            _report(ValidationError(f"--cover-mode must be one of {', '.join(cherry_config.COVER_MODES)}"))
            return EXIT_VALIDATION
        spec.test.cover_mode = cover_mode
    if report_path:
        spec.test.report_path = report_path

    action = Test(workdir, spec, hook=ConsoleHook(console, verbose=verbose))
    ctx = Context.background().with_timeout(TEST_TIMEOUT)
    return _execute(action, ctx, dry_run)


def cmd_build(
    workdir: str = ".",
    cross_compile: Optional[bool] = None,
    main_file: Optional[str] = None,
    binary_file: Optional[str] = None,
    version_package: Optional[str] = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> int:
    try:
        spec = _load_spec(workdir)
    except ConfigError as e:
        _report(e)
        return EXIT_CONFIG

    if cross_compile is not None:
        spec.build.cross_compile = cross_compile
    if main_file:
        spec.build.main_file = main_file
    if binary_file:
        spec.build.binary_file = binary_file
    if version_package:
        spec.build.version_package = version_package

    action = Build(workdir, spec, hook=ConsoleHook(console, verbose=verbose))
    ctx = Context.background().with_timeout(BUILD_TIMEOUT)
    return _execute(action, ctx, dry_run)


def cmd_release(
    workdir: str = ".",
    segment: Segment = Segment.PATCH,
    comment: str = "",
    dry_run: bool = False,
    verbose: bool = False,
) -> int:
    try:
        spec = _load_spec(workdir)
        token = cherry_config.github_token()
    except ConfigError as e:
        _report(e)
        return EXIT_CONFIG
    if not token:
        console.print(
            f"[red]Error:[/red] a GitHub token is required, set {cherry_config.TOKEN_ENV} or {cherry_config.TOKEN_FILE_ENV}",
            highlight=False,
        )
        return EXIT_CONFIG

    hook = ConsoleHook(console, verbose=verbose)
    action = Release(workdir, spec, GitHubClient(token), segment=segment, comment=comment, hook=hook)
    ctx = Context.background().with_timeout(RELEASE_TIMEOUT)
    code = _execute(action, ctx, dry_run)
    if action.restore_error is not None:
        console.print(
            f"[bold red]Branch protection on {action.branch} could not be restored, re-enable it manually.[/bold red]",
            highlight=False,
        )
    return code


def cmd_update(dry_run: bool = False, verbose: bool = False) -> int:
    try:
        token = cherry_config.github_token()
    except ConfigError as e:
        _report(e)
        return EXIT_CONFIG

    action = Update(GitHubClient(token), hook=ConsoleHook(console, verbose=verbose))
    ctx = Context.background().with_timeout(UPDATE_TIMEOUT)
    return _execute(action, ctx, dry_run)


def cmd_version() -> int:
    typer.echo(cherry_version.get())
    return EXIT_OK


# Typer command bindings


@app.command("test", help="Run unit tests and write a coverage report")
def test_command(
    cover_mode: Optional[str] = typer.Option(None, "--cover-mode", help="Coverage mode: set, count or atomic"),
    report_path: Optional[str] = typer.Option(None, "--report-path", help="Directory for the coverage report"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Vet the packages without running tests"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every step"),
):
    _setup_logging(verbose)
    code = cmd_test(
        workdir=str(Path.cwd()),
        cover_mode=cover_mode,
        report_path=report_path,
        dry_run=dry_run,
        verbose=verbose,
    )
    raise typer.Exit(code)


@app.command("build", help="Build the project binary with version metadata")
def build_command(
    cross_compile: Optional[bool] = typer.Option(None, "--cross-compile/--no-cross-compile", help="Build for every configured platform"),
    main_file: Optional[str] = typer.Option(None, "--main-file", help="Path to main.go"),
    binary_file: Optional[str] = typer.Option(None, "--binary-file", help="Path for the output binary"),
    version_package: Optional[str] = typer.Option(None, "--version-package", help="Package receiving the version metadata"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without producing binaries"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every step"),
):
    _setup_logging(verbose)
    code = cmd_build(
        workdir=str(Path.cwd()),
        cross_compile=cross_compile,
        main_file=main_file,
        binary_file=binary_file,
        version_package=version_package,
        dry_run=dry_run,
        verbose=verbose,
    )
    raise typer.Exit(code)


@app.command("release", help="Cut a new release from the release branch")
def release_command(
    patch: bool = typer.Option(False, "--patch", help="Release a patch version (default)"),
    minor: bool = typer.Option(False, "--minor", help="Release a minor version"),
    major: bool = typer.Option(False, "--major", help="Release a major version"),
    comment: str = typer.Option("", "--comment", help="Description for the release"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate every step without side effects"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every step"),
):
    _setup_logging(verbose)
    if patch + minor + major > 1:
        console.print("[red]Error:[/red] only one of --patch, --minor, --major can be set")
        raise typer.Exit(EXIT_VALIDATION)
    segment = Segment.MAJOR if major else Segment.MINOR if minor else Segment.PATCH
    code = cmd_release(
        workdir=str(Path.cwd()),
        segment=segment,
        comment=comment,
        dry_run=dry_run,
        verbose=verbose,
    )
    raise typer.Exit(code)


@app.command("update", help="Update cherry to the latest release")
def update_command(
    dry_run: bool = typer.Option(False, "--dry-run", help="Check for the latest release without installing it"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every step"),
):
    _setup_logging(verbose)
    code = cmd_update(dry_run=dry_run, verbose=verbose)
    raise typer.Exit(code)


@app.command("version", help="Show cherry build information")
def version_command():
    code = cmd_version()
    raise typer.Exit(code)


def main(argv: list[str] | None = None) -> int:
    # Programmatic entry point that returns an int code.
    try:
        rv = app(args=argv, prog_name="cherry", standalone_mode=False)
        # Without standalone mode, click returns the code of typer.Exit.
        return rv if isinstance(rv, int) else 0
    except typer.Exit as e:
        return int(e.exit_code or 0)
    except SystemExit as e:
        return int(e.code or 0)
    except Exception as e:  # noqa: BLE001
        if str(e):
            typer.echo(f"Unexpected error: {e}", err=True)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
