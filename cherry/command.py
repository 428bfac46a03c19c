from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .context import Context
from .errors import CancellationError, CommandError

logger = logging.getLogger(__name__)

# How often a running process is checked against its context.
POLL_INTERVAL = 0.05


@dataclass
class CommandResult:
    cmd: List[str]
    stdout: str
    stderr: str
    returncode: int
    duration: float


def run_command(
    ctx: Context,
    cmd: Sequence[str],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """Run a command to completion under ``ctx``.

    ``env`` overrides are merged on top of the current process environment.

    Raises:
        CancellationError: the context expired; the process is killed.
        CommandError: the process could not start or exited non-zero.
    """
    ctx.check()
    cmd = list(cmd)
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)

    logger.debug(f"exec: {' '.join(cmd)} (cwd={cwd})")
    start = time.time()
    stdout_buf: List[str] = []
    stderr_buf: List[str] = []
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,  # line-buffered
            env=full_env,
            cwd=cwd,
        )
    except OSError as e:
        raise CommandError(cmd, None, "", str(e)) from e

    def _read_stream(stream, buf: List[str]) -> None:
        try:
            for line in iter(stream.readline, ""):
                buf.append(line)
        finally:
            stream.close()

    readers = [
        threading.Thread(target=_read_stream, args=(proc.stdout, stdout_buf), daemon=True),
        threading.Thread(target=_read_stream, args=(proc.stderr, stderr_buf), daemon=True),
    ]
    for t in readers:
        t.start()

    cancelled: Optional[CancellationError] = None
    while True:
        try:
            proc.wait(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            cancelled = ctx.err()
            if cancelled is not None:
                proc.kill()
                proc.wait()
                break

    for t in readers:
        t.join()

    duration = time.time() - start
    stdout_text = "".join(stdout_buf)
    stderr_text = "".join(stderr_buf)

    if cancelled is not None:
        raise CancellationError(f"{' '.join(cmd)}: {cancelled}")
    if proc.returncode != 0:
        raise CommandError(cmd, proc.returncode, stdout_text, stderr_text)

    return CommandResult(cmd=cmd, stdout=stdout_text, stderr=stderr_text, returncode=proc.returncode, duration=duration)
