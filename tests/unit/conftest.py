from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Tuple

import pytest

from ojcore.engine.catalog import Language, Problem
from ojcore.engine.judge import ExecutionEngine
from ojcore.engine.service import OJService
from ojcore.models.models import (
    TIMESTAMP_FORMAT, CaseResult, Job, JobResult, SubmissionRequest, Verdict
)
from ojcore.utils.config_manager import ConfigManager


class StepClock:
    """Deterministic clock: every reading is one second after the previous one"""

    def __init__(self, start: str = "2022-08-27T02:05:29.000Z", step_ms: int = 1000):
        self.current = datetime.strptime(start, TIMESTAMP_FORMAT)
        self.step = timedelta(milliseconds=step_ms)

    def set(self, timestamp: str) -> None:
        self.current = datetime.strptime(timestamp, TIMESTAMP_FORMAT)

    def __call__(self) -> str:
        value = self.current.strftime("%Y-%m-%dT%H:%M:%S.") + f"{self.current.microsecond // 1000:03d}Z"
        self.current += self.step
        return value


class ManualExecutor:
    """Holds dispatched work until the test decides to run it"""

    def __init__(self) -> None:
        self.pending: List[Tuple[Callable, tuple]] = []

    def submit(self, fn: Callable, *args: Any) -> None:
        self.pending.append((fn, args))

    def run_all(self) -> None:
        while self.pending:
            fn, args = self.pending.pop(0)
            fn(*args)

    def shutdown(self, wait: bool = True) -> None:
        self.pending.clear()


class FakeEngine(ExecutionEngine):
    """Scores a job from its source code, which looks like "score:<n>"."""

    def __init__(self) -> None:
        self.calls: List[Tuple[int, int]] = []
        self.before_result: Optional[Callable[[Job], None]] = None

    def evaluate(self, job: Job, problem: Problem, language: Language) -> JobResult:
        self.calls.append((job.id, job.generation))
        if self.before_result is not None:
            hook, self.before_result = self.before_result, None
            hook(job)

        source = job.submission.source_code
        score = float(source.split(":", 1)[1]) if source.startswith("score:") else 100.0
        verdict = Verdict.ACCEPTED if score >= 100 else Verdict.WRONG_ANSWER
        return JobResult(
            result=verdict,
            score=score,
            cases=[
                CaseResult(id=0, result=Verdict.COMPILATION_SUCCESS),
                CaseResult(id=1, result=verdict, time=1000, memory=512),
            ],
        )


def make_config(**sections: Any) -> ConfigManager:
    overrides = {
        "database": {"path": ":memory:"},
        "languages": [
            {"name": "Rust", "file_name": "main.rs", "command": []},
            {"name": "C++", "file_name": "main.cpp", "command": [], "engine_language": "cpp"},
        ],
        "problems": [
            {"id": problem_id, "name": f"problem-{problem_id}", "type": "standard", "cases": [
                {"score": 100, "input_file": f"data/{problem_id}/1.in", "answer_file": f"data/{problem_id}/1.ans"},
            ]}
            for problem_id in (0, 1, 2)
        ],
    }
    overrides.update(sections)
    return ConfigManager(config_path="/nonexistent/ojcore_config.json", overrides=overrides)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def config() -> ConfigManager:
    return make_config()


@pytest.fixture
def service(config, engine, executor, clock):
    service = OJService.from_config(config, engine=engine, executor=executor, clock=clock)
    yield service
    service.close()


@pytest.fixture
def service_factory(engine, executor, clock):
    """Builds extra services from config sections; all are closed on teardown"""
    created: List[OJService] = []

    def _build(flush: bool = False, **sections: Any) -> OJService:
        built = OJService.from_config(make_config(**sections), engine=engine, executor=executor,
                                      clock=clock, flush=flush)
        created.append(built)
        return built

    yield _build
    for built in created:
        built.close()


@pytest.fixture
def users(service) -> List[int]:
    """Ids of alice, bob and carol (root already holds id 0)"""
    return [service.registry.create_user(name).id for name in ("alice", "bob", "carol")]


@pytest.fixture
def submit(service, executor):
    def _submit(user_id: int, problem_id: int, score: float = 100, contest_id: int = 0,
                language: str = "Rust", run: bool = True) -> Job:
        job = service.jobs.submit(SubmissionRequest(
            source_code=f"score:{score}",
            language=language,
            user_id=user_id,
            contest_id=contest_id,
            problem_id=problem_id,
        ))
        if run:
            executor.run_all()
        return job
    return _submit


@pytest.fixture
def open_contest(service, users):
    def _open_contest(user_ids: Optional[List[int]] = None, problem_ids: Optional[List[int]] = None,
                      submission_limit: int = 0, from_time: str = "2022-01-01T00:00:00.000Z",
                      to_time: str = "2030-01-01T00:00:00.000Z"):
        return service.registry.save_contest(
            name="weekly",
            from_time=from_time,
            to_time=to_time,
            problem_ids=problem_ids if problem_ids is not None else [0, 1],
            user_ids=user_ids if user_ids is not None else list(users),
            submission_limit=submission_limit,
        )
    return _open_contest
