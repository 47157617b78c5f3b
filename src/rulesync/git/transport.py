"""
Transport invocation and error translation.

Network operations run the ``git`` executable through GitPython's
``Git.execute(..., as_process=True)``. A watchdog thread kills the process
group when the operation's context expires or is cancelled, and every
failure is translated into the exceptions of ``rulesync.git.exceptions``.
"""

import logging
import os
import signal
import threading
from pathlib import Path
from typing import Optional, Sequence, Union

from git import Git, GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git.cmd import handle_process_output

from rulesync.git.context import OperationContext
from rulesync.git.exceptions import (
    AuthenticationFailedError,
    CancelledError,
    GitError,
    NotARepositoryError,
    ReferenceNotFoundError,
    RepositoryEmptyError,
    RepositoryNotFoundError,
    TimeoutExceededError,
    TransportError,
)
from rulesync.git.progress import GitProgressAdapter

logger = logging.getLogger(__name__)

WATCHDOG_INTERVAL = 0.05

# git prints these on stderr; git's exit status alone does not tell them apart
_REF_MISSING = (
    "not found in upstream",
    "couldn't find remote ref",
    "could not find remote branch",
)
_AUTH_FAILED = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "permission denied",
    "access denied",
    "returned error: 401",
    "returned error: 403",
    "host key verification failed",
)
_NOT_FOUND = (
    "repository not found",
    "does not appear to be a git repository",
    "could not read from remote repository",
    "returned error: 404",
    "' not found",
)
_EMPTY = (
    "empty repository",
)

SSH_NOT_FOUND_NOTE = "may indicate an authentication issue"


def git_command(*args: str) -> list[str]:
    """Build a command line for the configured git executable."""
    return [Git.GIT_PYTHON_GIT_EXECUTABLE or "git", *args]


def check_context(context: OperationContext, operation: str, **details) -> None:
    """Raise if the context is already cancelled or past its deadline."""
    if context.cancelled:
        raise CancelledError(f"{operation} cancelled", **details)
    if context.expired:
        raise TimeoutExceededError(f"{operation} timed out", **details)


def run_git(
    args: Sequence[str],
    *,
    cwd: Union[str, Path],
    env: dict[str, str],
    context: OperationContext,
    progress: Optional[GitProgressAdapter] = None,
) -> str:
    """
    Run a git command until it exits, the deadline passes or it is cancelled.

    Args:
        args: Full command line (see ``git_command``)
        cwd: Working directory
        env: Extra environment (credentials, prompt suppression)
        context: Deadline and cancellation of the operation
        progress: GitPython progress sink fed with stderr lines

    Returns:
        Captured stdout

    Raises:
        GitCommandError: Non-zero exit status (stderr attached), including
            exits forced by the watchdog
    """
    stdout_lines: list[str] = []
    stderr_lines: list[str] = []
    progress_handler = progress.new_message_handler() if progress else None

    def on_stdout(line: str) -> None:
        stdout_lines.append(line)

    def on_stderr(line: str) -> None:
        stderr_lines.append(line)
        if progress_handler:
            progress_handler(line)

    proc = Git(str(cwd)).execute(
        list(args),
        as_process=True,
        env=env,
        start_new_session=hasattr(os, "killpg"),
    )

    finished = threading.Event()

    def watchdog() -> None:
        while not finished.wait(WATCHDOG_INTERVAL):
            if context.done:
                logger.debug(f"Stopping git (pid {proc.proc.pid}): {context!r}")
                _kill(proc.proc)
                return

    watcher = threading.Thread(target=watchdog, name="git-watchdog", daemon=True)
    watcher.start()
    try:
        handle_process_output(proc, on_stdout, on_stderr, decode_streams=True)
        proc.wait(stderr="".join(stderr_lines))
    finally:
        finished.set()
        watcher.join()

    return "".join(stdout_lines)


def _kill(popen) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(popen.pid, signal.SIGKILL)
        else:
            popen.kill()
    except ProcessLookupError:
        # already exited
        pass


def classify_error(
    error: BaseException,
    *,
    operation: str,
    address: Optional[str] = None,
    repo_path: Optional[str] = None,
    context: Optional[OperationContext] = None,
    ssh: bool = False,
) -> GitError:
    """
    Translate an exception raised during a clone or pull.

    The context decides first (a killed process exits with an arbitrary
    error), then the exception type, then git's stderr wording.

    Args:
        error: Exception raised by the transport
        operation: "clone" or "pull", used in the message
        address: Remote address (log-safe)
        repo_path: Local repository path
        context: Operation context, if any
        ssh: Whether the address is key-based

    Returns:
        GitError subclass with ``cause`` set to ``error``
    """
    if isinstance(error, GitError):
        return error

    details = {"address": address, "repo_path": repo_path, "cause": error}

    if context is not None and context.cancelled:
        return CancelledError(f"{operation} cancelled", **details)
    if context is not None and context.expired:
        return TimeoutExceededError(f"{operation} timed out", **details)

    if isinstance(error, (InvalidGitRepositoryError, NoSuchPathError)):
        return NotARepositoryError(f"{operation} failed: not a git repository", **details)

    if isinstance(error, GitCommandError):
        stderr = f"{error.stderr or ''}".lower()

        if any(p in stderr for p in _REF_MISSING):
            return ReferenceNotFoundError(f"{operation} failed: remote ref not found", **details)
        if any(p in stderr for p in _AUTH_FAILED):
            return AuthenticationFailedError(
                f"{operation} failed: authentication required", **details
            )
        if any(p in stderr for p in _NOT_FOUND):
            return RepositoryNotFoundError(
                f"{operation} failed: repository not found",
                note=SSH_NOT_FOUND_NOTE if ssh else None,
                **details,
            )
        if any(p in stderr for p in _EMPTY):
            return RepositoryEmptyError(f"{operation} failed: repository is empty", **details)

    return TransportError(f"{operation} failed: {error}", **details)
