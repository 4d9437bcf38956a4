"""
Dependency installer for executable (JavaScript/TypeScript) projects.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from .errors import InstallFailed
from .process import run_command

logger = logging.getLogger(__name__)


async def install_dependencies(
    project_path: Path,
    command: Union[str, Sequence[str]] = "npm install",
    timeout: Optional[float] = None,
) -> None:
    """
    Run the package manager install command inside project_path.

    Raises:
        InstallFailed: If the command cannot start, times out or exits
            non-zero. The raw process output is attached.
    """
    try:
        result = await run_command(command, cwd=project_path, timeout=timeout)
    except OSError as e:
        raise InstallFailed(f"Could not run install command: {e}") from e

    if result.timed_out:
        raise InstallFailed(
            f"Dependency installation timed out after {timeout}s",
            output=result.output,
        )
    if not result.ok:
        raise InstallFailed(
            f"Dependency installation failed with exit code "
            f"{result.returncode}",
            output=result.output,
        )

    logger.info(f"Installed dependencies in {project_path}")
