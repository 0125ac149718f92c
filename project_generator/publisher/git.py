"""Async git invocation for the publisher.

Commands can carry credentials (the push URL embeds the token), so every
message that leaves this module has them redacted.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable
from pathlib import Path

from project_generator.errors import PublishError

_REDACTED = "***"


class GitError(PublishError):
    """Raised when a git command fails or times out."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


def redact(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, _REDACTED)
    return text


async def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 120.0,
    secrets: Iterable[str] = (),
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises GitError if the command exits with a non-zero code.  Values in
    *secrets* never appear in the raised message.
    """
    hidden = tuple(secrets)
    cmd = ["git"] + list(args)
    cmd_str = redact(" ".join(cmd), hidden)
    # Never fall back to an interactive credential prompt.
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=env,
        )
    except OSError as exc:
        raise GitError(f"Cannot run git: {exc}", command=cmd_str) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise GitError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
        )

    stdout = redact(stdout_bytes.decode("utf-8", errors="replace").strip(), hidden)
    stderr = redact(stderr_bytes.decode("utf-8", errors="replace").strip(), hidden)

    if process.returncode != 0:
        raise GitError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr
