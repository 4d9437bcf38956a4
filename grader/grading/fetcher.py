"""
Repository fetcher: clones a GitHub repository into a working directory.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from .errors import FetchFailed
from .process import run_command

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(
    r"^https://github\.com/[\w.-]+/[\w.-]+(?:\.git)?$"
)


def is_github_url(url: str) -> bool:
    """Check that a URL points at a GitHub repository."""
    return bool(GITHUB_URL_PATTERN.match(url or ""))


async def fetch_repository(
    repository_url: str,
    destination: Path,
    git_binary: str = "git",
    timeout: Optional[float] = None,
) -> None:
    """
    Clone a repository into destination.

    Args:
        repository_url: Validated GitHub repository URL
        destination: Fresh path to clone into; created by git
        git_binary: git executable
        timeout: Wall-clock limit for the clone

    Raises:
        FetchFailed: On any clone failure. No retries happen here.
    """
    if not is_github_url(repository_url):
        raise FetchFailed(f"Not a GitHub repository URL: {repository_url}")

    destination.parent.mkdir(parents=True, exist_ok=True)

    try:
        result = await run_command(
            [
                git_binary, "clone", "--depth", "1",
                repository_url, str(destination),
            ],
            timeout=timeout,
            # Fail instead of prompting for credentials on private repos
            env={"GIT_TERMINAL_PROMPT": "0"},
        )
    except OSError as e:
        raise FetchFailed(f"Could not run {git_binary}: {e}") from e

    if result.timed_out:
        raise FetchFailed(
            f"Cloning {repository_url} timed out after {timeout}s",
            output=result.output,
        )
    if not result.ok:
        stderr = result.stderr.strip().splitlines()
        reason = stderr[-1] if stderr else f"exit code {result.returncode}"
        raise FetchFailed(
            f"Could not clone {repository_url}: {reason}",
            output=result.output,
        )

    logger.info(f"Cloned {repository_url} into {destination}")
