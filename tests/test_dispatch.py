from types import SimpleNamespace

from modules.dispatch import GRADE_TASK_NAME, GradingDispatcher


class FakeCelery:
    def __init__(self):
        self.sent = []
        self.closed = False

    def send_task(self, name, args=None):
        self.sent.append((name, args))
        return SimpleNamespace(id="task-1")

    def close(self):
        self.closed = True


def test_dispatch_sends_task_by_name():
    celery = FakeCelery()
    dispatcher = GradingDispatcher("redis://unused", celery_client=celery)

    task_id = dispatcher("sub-abc123")

    assert task_id == "task-1"
    assert celery.sent == [(GRADE_TASK_NAME, ["sub-abc123"])]


def test_task_name_matches_worker_registration():
    from worker.tasks.submission_tasks import grade_submission

    assert grade_submission.name == GRADE_TASK_NAME


def test_close():
    celery = FakeCelery()
    GradingDispatcher("redis://unused", celery_client=celery).close()

    assert celery.closed
