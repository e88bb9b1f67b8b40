from __future__ import annotations

import threading

import pytest

from ojcore.engine.catalog import ProblemCatalog
from ojcore.engine.errors import ExternalError, NotFoundError, RateLimitError
from ojcore.models.models import JobFilter, JobState, SubmissionRequest, Verdict


def test_submit_returns_running_before_execution(service, users, submit, executor) -> None:
    job = submit(users[0], 0, score=40, run=False)

    assert job.id == 0
    assert job.state == JobState.RUNNING
    assert job.result is None
    assert len(executor.pending) == 1
    assert service.jobs.get(job.id).state == JobState.RUNNING

    executor.run_all()

    finished = service.jobs.get(job.id)
    assert finished.state == JobState.FINISHED
    assert finished.result == Verdict.WRONG_ANSWER
    assert finished.score == 40
    assert finished.created_time == job.created_time
    assert finished.updated_time > job.updated_time


def test_rejected_submission_is_not_persisted(service, users, open_contest, submit) -> None:
    contest = open_contest(submission_limit=1)
    submit(users[0], 0, contest_id=contest.id)

    with pytest.raises(RateLimitError):
        submit(users[0], 0, contest_id=contest.id)

    assert len(service.jobs.list()) == 1


def test_get_unknown_job(service) -> None:
    with pytest.raises(NotFoundError):
        service.jobs.get(3)


def test_list_filters(service, users, submit) -> None:
    first = submit(users[0], 0, score=100)
    submit(users[1], 0, score=50, language="C++")
    third = submit(users[0], 1, score=20)

    assert [job.id for job in service.jobs.list(JobFilter(user_name="alice"))] == [first.id, third.id]
    assert [job.id for job in service.jobs.list(JobFilter(result="Accepted"))] == [first.id]
    assert [job.id for job in service.jobs.list(JobFilter(language="C++", state="Finished"))] == [1]
    assert service.jobs.list(JobFilter(user_name="nobody")) == []
    assert service.jobs.list(JobFilter(user_name="alice", user_id=users[1])) == []


def test_list_by_submission_time_is_inclusive(service, users, submit) -> None:
    jobs = [submit(users[0], 0) for _ in range(3)]

    selected = service.jobs.list(JobFilter(from_time=jobs[1].created_time, to_time=jobs[2].created_time))

    assert [job.id for job in selected] == [jobs[1].id, jobs[2].id]


@pytest.mark.parametrize("bound", ["not-a-date", "2022-08-27T02:05:29Z", "2022-13-01T00:00:00.000Z"])
def test_malformed_time_bounds_match_nothing(service, users, submit, bound) -> None:
    submit(users[0], 0)

    assert service.jobs.list(JobFilter(from_time=bound)) == []
    assert service.jobs.list(JobFilter(to_time=bound)) == []


def test_reset_clears_result(service, users, submit) -> None:
    job = submit(users[0], 0, score=100)

    reset = service.jobs.reset(job.id)

    assert reset.state == JobState.QUEUED
    assert reset.result is None
    assert reset.score == 0
    assert reset.cases == []
    assert reset.generation == 1


def test_reset_requires_an_issued_id(service, users, submit) -> None:
    submit(users[0], 0)

    with pytest.raises(NotFoundError):
        service.jobs.reset(1)
    with pytest.raises(NotFoundError):
        service.jobs.reset(-1)


def test_rejudge_redispatches(service, users, submit, executor, engine) -> None:
    job = submit(users[0], 0, score=70)

    snapshot = service.jobs.rejudge(job.id)

    assert snapshot.state == JobState.QUEUED
    current = service.jobs.get(job.id)
    assert current.state in (JobState.QUEUED, JobState.RUNNING)
    assert current.result is None

    executor.run_all()
    assert service.jobs.get(job.id).state == JobState.FINISHED
    assert engine.calls == [(job.id, 0), (job.id, 1)]


def test_superseded_dispatch_never_runs(service, users, submit, executor, engine) -> None:
    job = submit(users[0], 0, run=False)
    service.jobs.rejudge(job.id)

    executor.run_all()

    # Only the dispatch of the newest generation reached the engine
    assert engine.calls == [(job.id, 1)]
    assert service.jobs.get(job.id).state == JobState.FINISHED


def test_stale_completion_does_not_overwrite_reset(service, users, submit, executor, engine) -> None:
    job = submit(users[0], 0, score=100, run=False)
    engine.before_result = lambda running: service.jobs.reset(running.id)

    executor.run_all()

    current = service.jobs.get(job.id)
    assert current.state == JobState.QUEUED
    assert current.result is None


def test_engine_failure_becomes_system_error(service, users, submit, engine) -> None:
    def explode(job):
        raise RuntimeError("sandbox crashed")

    engine.before_result = explode
    job = submit(users[0], 0)

    failed = service.jobs.get(job.id)
    assert failed.state == JobState.FINISHED
    assert failed.result == Verdict.SYSTEM_ERROR


def test_store_failure_on_submit_is_external(service, users, monkeypatch) -> None:
    def broken(job):
        raise ExternalError("Database error: disk full")

    monkeypatch.setattr(service.storage, "insert_job", broken)
    with pytest.raises(ExternalError):
        service.jobs.submit(SubmissionRequest("score:1", "Rust", users[0], 0, 0))


def test_store_failure_while_starting_rolls_back_submission(service, users, open_contest, executor,
                                                             monkeypatch) -> None:
    contest = open_contest(submission_limit=1)
    request = SubmissionRequest("score:100", "Rust", users[0], contest.id, 0)
    set_job_state = service.storage.set_job_state
    failures = []

    def fail_once(*args):
        if not failures:
            failures.append(args)
            raise ExternalError("Database error: connection lost")
        return set_job_state(*args)

    monkeypatch.setattr(service.storage, "set_job_state", fail_once)

    with pytest.raises(ExternalError):
        service.jobs.submit(request)
    assert service.jobs.list() == []
    assert executor.pending == []

    # The failed attempt did not use up the only allowed submission
    retry = service.jobs.submit(request)
    assert retry.state == JobState.RUNNING
    executor.run_all()
    assert service.jobs.get(retry.id).result == Verdict.ACCEPTED


class RefusingExecutor:
    def submit(self, fn, *args):
        raise RuntimeError("cannot schedule new futures after shutdown")

    def shutdown(self, wait: bool = True) -> None:
        pass


def test_refused_dispatch_finishes_as_system_error(service, users, monkeypatch) -> None:
    monkeypatch.setattr(service.jobs, "executor", RefusingExecutor())

    job = service.jobs.submit(SubmissionRequest("score:100", "Rust", users[0], 0, 0))

    assert job.state == JobState.FINISHED
    assert job.result == Verdict.SYSTEM_ERROR
    assert service.jobs.get(job.id).result == Verdict.SYSTEM_ERROR


def test_concurrent_submissions_respect_the_limit(service, users, open_contest) -> None:
    contest = open_contest(submission_limit=3)
    start = threading.Barrier(20)
    lock = threading.Lock()
    admitted, limited, unexpected = [], [], []

    def worker() -> None:
        start.wait()
        try:
            job = service.jobs.submit(SubmissionRequest("score:100", "Rust", users[0], contest.id, 0))
        except RateLimitError:
            with lock:
                limited.append(1)
        except Exception as e:
            with lock:
                unexpected.append(e)
        else:
            with lock:
                admitted.append(job.id)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert unexpected == []
    assert len(admitted) == 3
    assert len(limited) == 17
    assert service.storage.count_jobs(users[0], 0, contest.id) == 3


def test_submission_is_judged_with_the_problem_resolved_at_admission(service, users, submit, executor,
                                                                     monkeypatch) -> None:
    job = submit(users[0], 0, score=100, run=False)
    monkeypatch.setattr(service.jobs, "problems", ProblemCatalog())

    executor.run_all()
    assert service.jobs.get(job.id).result == Verdict.ACCEPTED

    # A rejudge looks the problem up again and it is gone now
    service.jobs.rejudge(job.id)
    executor.run_all()
    assert service.jobs.get(job.id).result == Verdict.SYSTEM_ERROR
