"""
Grading pipeline exceptions.

Only FetchFailed and InstallFailed abort a run. Test execution, quality
analysis and registry lookups degrade instead of raising; see
DegradationKind in grading.types.
"""

from typing import Optional


class GradingError(Exception):
    """Base class for grading pipeline errors."""

    pass


class FetchFailed(GradingError):
    """Repository could not be cloned (unreachable, private, missing)."""

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.output = output


class InstallFailed(GradingError):
    """Dependency installation exited unsuccessfully."""

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.output = output


class GradingFailed(GradingError):
    """Raised by the orchestrator when a submission cannot be graded."""

    pass


class InvalidTransition(GradingError):
    """Submission status was asked to move backwards or leave a terminal state."""

    pass
