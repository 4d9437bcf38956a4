import pytest

from grading.types import (
    Grade,
    GradingResult,
    GradingScores,
    ProjectType,
    QualityAnalysis,
    SubmissionStatus,
    TestResult,
)
from modules import grading_service

REPO_URL = "https://github.com/student/todo-api"


def _create(db, **kwargs):
    params = dict(
        repository_url=REPO_URL,
        submitter_id="student-1",
        project_type=ProjectType.express,
    )
    params.update(kwargs)
    return grading_service.create_submission(db, **params)


def _result(total=98.0, grade=Grade.passed):
    return GradingResult(
        grade=grade,
        scores=GradingScores(total=total, test_score=100, quality_score=90),
        report="# Grading Report",
        test_result=TestResult(passed=10, total=10),
        quality=QualityAnalysis(
            code_quality_score=90,
            model_used="gpt-4o",
            prompt_tokens=100,
        ),
    )


def test_create_submission_defaults(db):
    submission = _create(db, rubric={"routes": "RESTful"})

    assert submission.submission_id.startswith("sub-")
    assert submission.status == "uploading"
    assert submission.grade == "pending"
    assert submission.rubric == {"routes": "RESTful"}
    assert submission.created_at is not None


def test_create_submission_rejects_unknown_type(db):
    with pytest.raises(grading_service.ValidationError):
        _create(db, project_type="cobol")


def test_status_moves_forward_only(db):
    submission = _create(db)
    sid = submission.submission_id

    grading_service.update_submission_status(
        db, sid, SubmissionStatus.installing
    )
    grading_service.update_submission_status(
        db, sid, SubmissionStatus.reviewing
    )

    with pytest.raises(grading_service.ValidationError):
        grading_service.update_submission_status(
            db, sid, SubmissionStatus.testing
        )
    assert grading_service.get_submission_by_id(db, sid).status == "reviewing"


def test_update_missing_submission(db):
    with pytest.raises(grading_service.SubmissionNotFoundError):
        grading_service.update_submission_status(
            db, "sub-missing", SubmissionStatus.installing
        )


def test_complete_submission_stores_result(db):
    sid = _create(db).submission_id

    submission = grading_service.complete_submission(
        db, sid, _result(), processing_time=12.5
    )

    assert submission.status == "completed"
    assert submission.grade == "pass"
    assert submission.scores["total"] == 98
    assert submission.report == "# Grading Report"
    assert submission.processing_time == 12.5
    assert submission.test_results["passed"] == 10
    assert submission.ai_analysis["model_used"] == "gpt-4o"
    assert submission.error is None


def test_terminal_submission_cannot_change(db):
    sid = _create(db).submission_id
    grading_service.complete_submission(db, sid, _result())

    with pytest.raises(grading_service.ValidationError):
        grading_service.fail_submission(db, sid, "late failure")
    with pytest.raises(grading_service.ValidationError):
        grading_service.update_submission_status(
            db, sid, SubmissionStatus.failed
        )


def test_fail_submission_clears_scores(db):
    sid = _create(db).submission_id

    submission = grading_service.fail_submission(
        db, sid, "Repository not found"
    )

    assert submission.status == "failed"
    assert submission.grade == "fail"
    assert submission.error == "Repository not found"
    assert submission.scores is None
    assert submission.report is None


def test_list_submissions_filters(db):
    first = _create(db, submitter_id="alice").submission_id
    _create(db, submitter_id="bob", project_type=ProjectType.c)
    grading_service.complete_submission(db, first, _result())

    by_alice = grading_service.list_submissions(db, submitter_id="alice")
    compiled = grading_service.list_submissions(
        db, project_type=ProjectType.c
    )
    passed = grading_service.list_submissions(db, grade=Grade.passed)

    assert [s.submission_id for s in by_alice] == [first]
    assert [s.submitter_id for s in compiled] == ["bob"]
    assert [s.submission_id for s in passed] == [first]
    assert len(grading_service.list_submissions(db, limit=1)) == 1


def test_pending_submissions(db):
    done = _create(db).submission_id
    pending = _create(db).submission_id
    grading_service.fail_submission(db, done, "boom")

    assert [
        s.submission_id
        for s in grading_service.list_pending_submissions(db)
    ] == [pending]


def test_to_spec(db):
    submission = _create(db, file_selectors=["src/**/*.js"])

    spec = grading_service.to_spec(submission)

    assert spec.project_type is ProjectType.express
    assert spec.status is SubmissionStatus.uploading
    assert spec.file_selectors == ["src/**/*.js"]


def test_submission_stats(db):
    a = _create(db).submission_id
    b = _create(db).submission_id
    c = _create(db).submission_id
    _create(db)
    grading_service.complete_submission(
        db, a, _result(total=90), processing_time=10
    )
    grading_service.complete_submission(
        db, b, _result(total=60, grade=Grade.failed), processing_time=20
    )
    grading_service.fail_submission(db, c, "boom")

    stats = grading_service.get_submission_stats(db)

    assert stats == {
        "total_submissions": 4,
        "completed_submissions": 2,
        "failed_submissions": 1,
        "average_score": 75,
        "average_processing_time": 15,
    }


def test_stats_on_empty_store(db):
    stats = grading_service.get_submission_stats(db)

    assert stats["total_submissions"] == 0
    assert stats["average_score"] is None
