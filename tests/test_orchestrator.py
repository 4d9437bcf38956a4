import asyncio
import json

import pytest

from grading.errors import FetchFailed, GradingFailed, InstallFailed
from grading.orchestrator import GradingOrchestrator
from grading.registry import UNKNOWN_VERSION
from grading.types import (
    DegradationKind,
    Grade,
    PipelineConfig,
    ProjectType,
    QualityAnalysis,
    SubmissionSpec,
    SubmissionStatus,
    TestResult,
)

REPO_URL = "https://github.com/student/todo-api"

EXPRESS_FILES = {
    "package.json": json.dumps({
        "dependencies": {"express": "^4.18.0"},
        "devDependencies": {"mocha": "^10.0.0"},
    }),
    "app.js": "const express = require('express');\n",
    "routes/todos.js": "module.exports = {};\n",
}

C_FILES = {
    "main.c": "int main(void) { return 0; }\n",
    "Makefile": "all:\n\tcc main.c\n",
}


class Pipeline:
    """Records calls to fake pipeline components."""

    def __init__(self, write_files, files, test_result=None,
                 fetch_error=None, install_error=None, registry=None):
        self.write_files = write_files
        self.files = files
        self.test_result = test_result or TestResult(
            passed=10, total=10, details="10 passing\n0 failing"
        )
        self.fetch_error = fetch_error
        self.install_error = install_error
        self.registry = registry
        self.calls = []
        self.workdirs = []

    async def fetch(self, url, destination):
        self.calls.append("fetch")
        self.workdirs.append(destination)
        destination.mkdir(parents=True)
        self.write_files(destination, self.files)
        if self.fetch_error is not None:
            raise self.fetch_error

    async def install(self, path):
        self.calls.append("install")
        if self.install_error is not None:
            raise self.install_error

    async def run_tests(self, path):
        self.calls.append("test")
        return self.test_result

    async def resolve(self, manifest):
        self.calls.append("registry")
        if self.registry is not None:
            return self.registry
        return {name: "1.0.0" for name in manifest}


def _orchestrator(tmp_path, pipeline, reviewer, statuses=None):
    async def on_status(submission, status):
        if statuses is not None:
            statuses.append(status)

    return GradingOrchestrator(
        reviewer,
        config=PipelineConfig(workdir_root=tmp_path / "work"),
        on_status=on_status,
        fetcher=pipeline.fetch,
        installer=pipeline.install,
        test_runner=pipeline.run_tests,
        registry_resolver=pipeline.resolve,
    )


def _submission(project_type=ProjectType.express, **kwargs):
    return SubmissionSpec(
        submission_id="sub-abc123",
        repository_url=REPO_URL,
        project_type=project_type,
        **kwargs,
    )


def test_express_submission_end_to_end(tmp_path, write_files, make_reviewer):
    pipeline = Pipeline(write_files, EXPRESS_FILES)
    reviewer = make_reviewer(QualityAnalysis(
        code_quality_score=90, test_score=100, report="Clean routes."
    ))
    statuses = []
    submission = _submission()

    result = asyncio.run(
        _orchestrator(tmp_path, pipeline, reviewer, statuses)
        .grade_submission(submission)
    )

    assert result.scores.test_score == 100
    assert result.scores.quality_score == 90
    # 100 * 0.8 + 90 * 0.2
    assert result.scores.total == pytest.approx(98)
    assert result.grade is Grade.passed
    assert result.degradations == []

    assert submission.status is SubmissionStatus.completed
    assert submission.history == [
        SubmissionStatus.uploading,
        SubmissionStatus.installing,
        SubmissionStatus.testing,
        SubmissionStatus.reviewing,
        SubmissionStatus.reporting,
        SubmissionStatus.completed,
    ]
    assert statuses == submission.history[1:]
    assert pipeline.calls[0] == "fetch"
    assert set(pipeline.calls) == {"fetch", "registry", "install", "test"}

    review = reviewer.calls[0]
    assert "// app.js" in review["files"]
    assert "// routes/todos.js" in review["files"]
    assert review["manifest"] == {"express": "^4.18.0", "mocha": "^10.0.0"}
    assert review["registry_data"] == {"express": "1.0.0", "mocha": "1.0.0"}
    assert review["test_result"].passed == 10

    assert "# Grading Report" in result.report
    assert "Clean routes." in result.report
    assert not pipeline.workdirs[0].exists()


def test_c_submission_skips_install_and_tests(
    tmp_path, write_files, make_reviewer
):
    pipeline = Pipeline(write_files, C_FILES)
    reviewer = make_reviewer(QualityAnalysis(
        code_quality_score=85, code_smell_score=80, report="Tidy."
    ))
    submission = _submission(ProjectType.c)

    result = asyncio.run(
        _orchestrator(tmp_path, pipeline, reviewer)
        .grade_submission(submission)
    )

    assert result.scores.total == 85
    assert result.grade is Grade.passed
    assert result.scores.test_score == 0
    assert result.test_result is None
    assert pipeline.calls == ["fetch"]
    assert [item.category for item in result.scores.breakdown] == [
        "Code Quality", "Code Smell",
    ]
    assert SubmissionStatus.testing in submission.history
    assert "// main.c" in reviewer.calls[0]["files"]
    assert reviewer.calls[0]["test_result"] is None


def test_fetch_failure_raises_grading_failed(
    tmp_path, write_files, make_reviewer
):
    pipeline = Pipeline(
        write_files, {},
        fetch_error=FetchFailed("Repository not found"),
    )
    reviewer = make_reviewer(QualityAnalysis())
    submission = _submission()

    with pytest.raises(GradingFailed, match="Repository not found"):
        asyncio.run(
            _orchestrator(tmp_path, pipeline, reviewer)
            .grade_submission(submission)
        )

    assert submission.status is SubmissionStatus.failed
    assert submission.history == [
        SubmissionStatus.uploading,
        SubmissionStatus.failed,
    ]
    assert reviewer.calls == []
    assert not pipeline.workdirs[0].exists()


def test_install_failure_raises_grading_failed(
    tmp_path, write_files, make_reviewer
):
    pipeline = Pipeline(
        write_files, EXPRESS_FILES,
        install_error=InstallFailed("npm install exited with code 1"),
    )
    reviewer = make_reviewer(QualityAnalysis())
    submission = _submission()

    with pytest.raises(GradingFailed, match="npm install"):
        asyncio.run(
            _orchestrator(tmp_path, pipeline, reviewer)
            .grade_submission(submission)
        )

    assert submission.status is SubmissionStatus.failed
    assert "test" not in pipeline.calls
    assert not pipeline.workdirs[0].exists()


def test_unexpected_error_is_wrapped(tmp_path, write_files):
    class ExplodingReviewer:
        async def review(self, *args, **kwargs):
            raise RuntimeError("boom")

    pipeline = Pipeline(write_files, EXPRESS_FILES)
    submission = _submission()

    with pytest.raises(GradingFailed, match="boom"):
        asyncio.run(
            _orchestrator(tmp_path, pipeline, ExplodingReviewer())
            .grade_submission(submission)
        )

    assert submission.status is SubmissionStatus.failed
    assert not pipeline.workdirs[0].exists()


def test_degraded_components_still_complete(
    tmp_path, write_files, make_reviewer
):
    pipeline = Pipeline(
        write_files, EXPRESS_FILES,
        test_result=TestResult(
            passed=0, total=0,
            details="Test command failed with exit code 1",
            degraded=True,
        ),
        registry={"express": UNKNOWN_VERSION, "mocha": "10.4.0"},
    )
    reviewer = make_reviewer(QualityAnalysis(
        code_quality_score=0,
        report="AI analysis failed: timeout",
        degraded=True,
    ))
    submission = _submission()

    result = asyncio.run(
        _orchestrator(tmp_path, pipeline, reviewer)
        .grade_submission(submission)
    )

    assert submission.status is SubmissionStatus.completed
    assert result.scores.total == 0
    assert result.grade is Grade.failed
    assert result.degradations == [
        DegradationKind.test_execution,
        DegradationKind.quality_analysis,
        DegradationKind.registry_lookup,
    ]
    assert "## Pipeline Notes" in result.report


def test_file_selectors_override_defaults(
    tmp_path, write_files, make_reviewer
):
    pipeline = Pipeline(write_files, EXPRESS_FILES)
    reviewer = make_reviewer(QualityAnalysis(code_quality_score=50))
    submission = _submission(file_selectors=["routes/*.js"])

    asyncio.run(
        _orchestrator(tmp_path, pipeline, reviewer)
        .grade_submission(submission)
    )

    files = reviewer.calls[0]["files"]
    assert "// routes/todos.js" in files
    assert "// app.js" not in files


def test_stale_workdir_is_replaced(tmp_path, write_files, make_reviewer):
    pipeline = Pipeline(write_files, C_FILES)
    reviewer = make_reviewer(QualityAnalysis(code_quality_score=70))
    orchestrator = _orchestrator(tmp_path, pipeline, reviewer)
    stale = orchestrator.workdir_for("sub-abc123")
    stale.mkdir(parents=True)
    (stale / "leftover.c").write_text("int leftover;")

    asyncio.run(orchestrator.grade_submission(_submission(ProjectType.c)))

    assert "leftover" not in reviewer.calls[0]["files"]
    assert not stale.exists()


def test_workdir_names_are_sanitized(tmp_path, make_reviewer):
    orchestrator = GradingOrchestrator(
        make_reviewer(QualityAnalysis()),
        config=PipelineConfig(workdir_root=tmp_path),
    )

    workdir = orchestrator.workdir_for("../../etc/passwd")

    assert workdir.parent == tmp_path.resolve()
