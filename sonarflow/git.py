"""Read-only git queries."""

import subprocess

from sonarflow.errors import GitError


def _run_git(*args: str) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found on PATH") from exc
    except subprocess.CalledProcessError as exc:
        raise GitError(
            f"'git {' '.join(args)}' failed: {(exc.stderr or '').strip()}"
        ) from exc
    return result.stdout.strip()


def current_branch() -> str:
    """Return the checked-out branch name.

    Raises:
        GitError: git is unavailable, the directory is not a repository,
                  or HEAD is detached.
    """
    branch = _run_git("branch", "--show-current")
    if not branch:
        raise GitError("No current branch (detached HEAD?). Pass --branch explicitly.")
    return branch


def user_email() -> str | None:
    """Return ``git config user.email``, or None when unset or unavailable."""
    try:
        return _run_git("config", "--get", "user.email") or None
    except GitError:
        return None
