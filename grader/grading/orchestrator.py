"""
Grading orchestrator: runs one submission through the pipeline.

    uploading -> installing -> testing -> reviewing -> reporting -> completed
                                                      (failed from anywhere)

Only fetch and install failures abort a run. Every other component
degrades internally, so a run that got past installation always ends
in completed. The working directory is removed on every exit path.
"""

import asyncio
import functools
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from .errors import FetchFailed, GradingFailed, InstallFailed, InvalidTransition
from .fetcher import fetch_repository
from .file_collector import collect_sources
from .installer import install_dependencies
from .registry import (
    UNKNOWN_VERSION,
    read_declared_dependencies,
    resolve_latest_versions,
)
from .report import build_breakdown, build_report
from .scoring import compose
from .test_runner import calculate_test_score, run_tests
from .types import (
    DegradationKind,
    GradingResult,
    GradingScores,
    PipelineConfig,
    SubmissionSpec,
    SubmissionStatus,
    TestResult,
    get_profile,
)

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SubmissionSpec, SubmissionStatus], Awaitable[None]]
Fetcher = Callable[[str, Path], Awaitable[None]]
Installer = Callable[[Path], Awaitable[None]]
TestRunner = Callable[[Path], Awaitable[TestResult]]
RegistryResolver = Callable[[dict[str, str]], Awaitable[dict[str, str]]]


class GradingOrchestrator:
    """
    Sequences fetch, install, test, review and scoring for a submission.

    Components default to the real implementations configured from
    PipelineConfig; tests pass fakes.

    Args:
        reviewer: Object with an async review(...) returning QualityAnalysis
        config: Pipeline limits and scoring policy
        on_status: Awaited after every status change, e.g. to persist
            it and notify clients
    """

    def __init__(
        self,
        reviewer: Any,
        config: Optional[PipelineConfig] = None,
        on_status: Optional[StatusCallback] = None,
        fetcher: Optional[Fetcher] = None,
        installer: Optional[Installer] = None,
        test_runner: Optional[TestRunner] = None,
        registry_resolver: Optional[RegistryResolver] = None,
    ):
        self.config = config or PipelineConfig()
        self.reviewer = reviewer
        self.on_status = on_status
        self.fetcher = fetcher or functools.partial(
            fetch_repository,
            git_binary=self.config.git_binary,
            timeout=self.config.clone_timeout,
        )
        self.installer = installer or functools.partial(
            install_dependencies,
            command=self.config.install_command,
            timeout=self.config.install_timeout,
        )
        self.test_runner = test_runner or functools.partial(
            run_tests,
            command=self.config.test_command,
            timeout=self.config.test_timeout,
        )
        self.registry_resolver = registry_resolver or functools.partial(
            resolve_latest_versions,
            registry_url=self.config.registry_url,
            timeout=self.config.registry_timeout,
        )

    def workdir_for(self, submission_id: str) -> Path:
        """Working directory owned by one submission."""
        safe_id = "".join(
            ch if ch.isalnum() or ch in "-_" else "_" for ch in submission_id
        )
        return self.config.workdir_root.resolve() / safe_id

    async def _advance(
        self,
        submission: SubmissionSpec,
        status: SubmissionStatus,
    ) -> None:
        if not submission.status.can_advance_to(status):
            raise InvalidTransition(
                f"Submission {submission.submission_id} cannot move from "
                f"{submission.status.value} to {status.value}"
            )
        submission.status = status
        submission.history.append(status)
        logger.info(
            f"Submission {submission.submission_id}: {status.value}"
        )
        if self.on_status is not None:
            await self.on_status(submission, status)

    async def _mark_failed(self, submission: SubmissionSpec) -> None:
        if submission.status.is_terminal:
            return
        try:
            await self._advance(submission, SubmissionStatus.failed)
        except Exception as e:
            logger.error(
                f"Could not report failure of {submission.submission_id}: {e}"
            )

    def _cleanup(self, workdir: Path) -> None:
        try:
            shutil.rmtree(workdir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Cleanup of {workdir} failed: {e}")
        else:
            logger.debug(f"Removed working directory {workdir}")

    async def _resolve_registry(
        self,
        manifest: dict[str, str],
    ) -> dict[str, str]:
        if not manifest:
            return {}
        try:
            return await self.registry_resolver(manifest)
        except Exception as e:
            logger.warning(f"Registry resolution failed: {e}")
            return {name: UNKNOWN_VERSION for name in manifest}

    async def grade_submission(
        self,
        submission: SubmissionSpec,
        file_selectors: Optional[list[str]] = None,
    ) -> GradingResult:
        """
        Grade a submission.

        Args:
            submission: Submission to grade; its status is advanced in place
            file_selectors: Glob patterns overriding the submission's own
                selectors and the project type defaults

        Returns:
            GradingResult: Grade, scores and report

        Raises:
            GradingFailed: If the repository could not be fetched or its
                dependencies installed, or on any unexpected error
        """
        profile = get_profile(submission.project_type)
        workdir = self.workdir_for(submission.submission_id)
        registry_task: Optional[asyncio.Task] = None
        started = time.monotonic()

        # A leftover from a crashed run would make git refuse to clone
        self._cleanup(workdir)

        try:
            if submission.status != SubmissionStatus.uploading:
                await self._advance(submission, SubmissionStatus.uploading)
            else:
                submission.history.append(SubmissionStatus.uploading)

            try:
                await self.fetcher(submission.repository_url, workdir)
            except FetchFailed as e:
                raise GradingFailed(str(e)) from e

            manifest = read_declared_dependencies(workdir)
            if profile.executable:
                registry_task = asyncio.create_task(
                    self._resolve_registry(manifest)
                )

            await self._advance(submission, SubmissionStatus.installing)
            if profile.runs_install:
                try:
                    await self.installer(workdir)
                except InstallFailed as e:
                    raise GradingFailed(str(e)) from e

            await self._advance(submission, SubmissionStatus.testing)
            test_result: Optional[TestResult] = None
            if profile.runs_tests:
                test_result = await self.test_runner(workdir)

            await self._advance(submission, SubmissionStatus.reviewing)
            patterns = (
                file_selectors
                or submission.file_selectors
                or list(profile.default_file_globs)
            )
            files = await asyncio.to_thread(
                collect_sources,
                workdir,
                patterns,
                self.config.max_file_chars,
            )
            registry_data = await registry_task if registry_task else {}
            quality = await self.reviewer.review(
                files,
                submission.project_type,
                test_result=test_result,
                rubric=submission.rubric,
                manifest=manifest,
                registry_data=registry_data,
            )

            await self._advance(submission, SubmissionStatus.reporting)
            result = self._build_result(
                submission, test_result, quality, registry_data
            )

            await self._advance(submission, SubmissionStatus.completed)
            logger.info(
                f"Graded submission {submission.submission_id} in "
                f"{time.monotonic() - started:.1f}s: "
                f"{result.scores.total:.1f} ({result.grade.value})"
            )
            return result

        except GradingFailed as e:
            logger.error(
                f"Grading failed for {submission.submission_id}: {e}"
            )
            await self._mark_failed(submission)
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error grading {submission.submission_id}: {e}",
                exc_info=True
            )
            await self._mark_failed(submission)
            raise GradingFailed(f"Grading failed: {e}") from e
        finally:
            if registry_task is not None and not registry_task.done():
                registry_task.cancel()
            self._cleanup(workdir)

    def _build_result(
        self,
        submission: SubmissionSpec,
        test_result: Optional[TestResult],
        quality: Any,
        registry_data: dict[str, str],
    ) -> GradingResult:
        profile = get_profile(submission.project_type)
        degradations = []
        if test_result is not None and test_result.degraded:
            degradations.append(DegradationKind.test_execution)
        if quality.degraded:
            degradations.append(DegradationKind.quality_analysis)
        if any(v == UNKNOWN_VERSION for v in registry_data.values()):
            degradations.append(DegradationKind.registry_lookup)

        test_score = (
            calculate_test_score(test_result) if test_result is not None
            else 0.0
        )
        quality_score = quality.code_quality_score
        total, grade = compose(
            test_score,
            quality_score,
            submission.project_type,
            self.config.scoring,
        )

        breakdown = build_breakdown(profile, test_score, test_result, quality)
        report = build_report(
            profile, total, grade, test_score, test_result,
            quality, degradations,
        )
        return GradingResult(
            grade=grade,
            scores=GradingScores(
                total=total,
                test_score=test_score,
                quality_score=quality_score,
                breakdown=breakdown,
            ),
            report=report,
            test_result=test_result,
            quality=quality,
            degradations=degradations,
        )
