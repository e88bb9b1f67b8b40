from __future__ import annotations

import pytest

from ojcore.engine.errors import ExternalError
from ojcore.engine.storage import DuckDBStorage
from ojcore.models.models import (
    CaseResult, Contest, Job, JobFilter, JobResult, JobState, SubmissionRequest, User, Verdict
)


@pytest.fixture
def storage():
    store = DuckDBStorage(":memory:")
    yield store
    store.close()


def _job(job_id: int, user_id: int = 1, problem_id: int = 0, contest_id: int = 0,
         language: str = "Rust", created: str = "2022-08-27T02:05:29.000Z") -> Job:
    submission = SubmissionRequest("fn main() {}", language, user_id, contest_id, problem_id)
    return Job(id=job_id, submission=submission, created_time=created, updated_time=created)


def test_users_round_trip(storage) -> None:
    storage.insert_user(User(2, "bob"))
    storage.insert_user(User(1, "alice"))
    storage.update_user_name(2, "robert")

    assert storage.get_user(1).name == "alice"
    assert storage.get_user_by_name("robert").id == 2
    assert storage.get_user(99) is None
    assert [user.id for user in storage.list_users()] == [1, 2]


def test_contest_keeps_declaration_order(storage) -> None:
    storage.insert_contest(Contest(1, "weekly", "2022-01-01T00:00:00.000Z", "2022-01-02T00:00:00.000Z",
                                   problem_ids=[2, 0, 1], user_ids=[3, 1, 2], submission_limit=2))

    contest = storage.get_contest(1)
    assert contest.problem_ids == [2, 0, 1]
    assert contest.user_ids == [3, 1, 2]
    assert contest.submission_limit == 2
    assert storage.contest_exists(1)
    assert not storage.contest_exists(2)


def test_list_jobs_filters_are_conjunctive(storage) -> None:
    storage.insert_job(_job(0, user_id=1, problem_id=0, created="2022-08-27T02:05:29.000Z"))
    storage.insert_job(_job(1, user_id=1, problem_id=1, created="2022-08-27T02:05:30.000Z"))
    storage.insert_job(_job(2, user_id=2, problem_id=1, language="C++", created="2022-08-27T02:05:31.000Z"))

    assert [job.id for job in storage.list_jobs(JobFilter(user_id=1, problem_id=1))] == [1]
    assert [job.id for job in storage.list_jobs(JobFilter(language="C++"))] == [2]
    assert [job.id for job in storage.list_jobs(JobFilter(
        from_time="2022-08-27T02:05:30.000Z", to_time="2022-08-27T02:05:31.000Z"
    ))] == [1, 2]
    assert [job.id for job in storage.list_jobs(JobFilter(state="Queued"))] == [0, 1, 2]


def test_finish_job_rejects_superseded_generation(storage) -> None:
    storage.insert_job(_job(0))
    outcome = JobResult(Verdict.ACCEPTED, 100.0, [CaseResult(0, Verdict.COMPILATION_SUCCESS)])

    new_generation = storage.reset_job(0, "2022-08-27T02:05:40.000Z")

    assert new_generation == 1
    assert not storage.finish_job(0, 0, outcome, "2022-08-27T02:05:41.000Z")
    assert storage.get_job(0).state == JobState.QUEUED

    assert storage.finish_job(0, 1, outcome, "2022-08-27T02:05:42.000Z")
    job = storage.get_job(0)
    assert job.state == JobState.FINISHED
    assert job.result == Verdict.ACCEPTED
    assert job.cases[0].result == Verdict.COMPILATION_SUCCESS


def test_reset_missing_job_returns_none(storage) -> None:
    assert storage.reset_job(7, "2022-08-27T02:05:40.000Z") is None


def test_transaction_rolls_back_on_error(storage) -> None:
    with pytest.raises(RuntimeError):
        with storage.transaction():
            storage.insert_user(User(1, "alice"))
            raise RuntimeError("boom")

    assert storage.get_user(1) is None


def test_database_failures_surface_as_external(storage) -> None:
    storage.insert_user(User(1, "alice"))

    with pytest.raises(ExternalError) as excinfo:
        storage.insert_user(User(1, "again"))

    assert excinfo.value.kind == "External"
    assert excinfo.value.__cause__ is not None


def test_max_id_of_empty_table_is_none(storage) -> None:
    assert storage.max_id("jobs") is None
    storage.insert_job(_job(4))
    assert storage.max_id("jobs") == 4
