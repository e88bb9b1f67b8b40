"""
Job lifecycle: Queued -> Running -> Finished, with rejudge back to Queued.

Execution is handed to a worker pool and never awaited by the request that
created it. Every dispatch carries the job's generation; a reset bumps the
generation, so a completion from a superseded run is dropped instead of
overwriting the fresh state.
"""

import copy
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from ..models.models import (
    Job, JobFilter, JobResult, JobState, SubmissionRequest, Verdict, is_valid_timestamp, now_timestamp
)
from ..utils.logger_config import get_logger
from .admission import AdmissionController
from .catalog import Language, LanguageCatalog, Problem, ProblemCatalog
from .errors import ExternalError, NotFoundError
from .ids import IdAllocator, IdKind
from .judge import ExecutionEngine
from .storage import DuckDBStorage

logger = get_logger("jobs")


class JobManager:
    def __init__(
        self,
        storage: DuckDBStorage,
        ids: IdAllocator,
        admission: AdmissionController,
        problems: ProblemCatalog,
        languages: LanguageCatalog,
        engine: ExecutionEngine,
        executor: Optional[Executor] = None,
        max_workers: int = 4,
        clock: Callable[[], str] = now_timestamp,
    ):
        self.storage = storage
        self.ids = ids
        self.admission = admission
        self.problems = problems
        self.languages = languages
        self.engine = engine
        self.clock = clock
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ojcore-judge"
        )

    def submit(self, request: SubmissionRequest) -> Job:
        """Admit, persist and dispatch a submission; returns the Running snapshot"""
        # Counting prior submissions, inserting and starting this one must not interleave
        with self.storage.transaction():
            admission = self.admission.validate(request)
            job_id = self.ids.next_id(IdKind.JOB)
            created = self.clock()
            job = Job(id=job_id, submission=request, created_time=created, updated_time=created)
            self.storage.insert_job(job)
            self._mark_running(job)

        logger.info(f"Job {job_id} queued for user {request.user_id}, problem {request.problem_id}")
        if self._dispatch(job, admission.problem, admission.language) is None:
            return self.get(job_id)
        return job

    def get(self, job_id: int) -> Job:
        job = self.storage.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found.")
        return job

    def list(self, job_filter: Optional[JobFilter] = None) -> List[Job]:
        """Jobs matching every given filter, ascending by id"""
        if job_filter is None:
            return self.storage.list_jobs()

        # Malformed time bounds match nothing rather than failing the request
        for bound in (job_filter.from_time, job_filter.to_time):
            if bound is not None and not is_valid_timestamp(bound):
                return []

        resolved = copy.copy(job_filter)
        if job_filter.user_name is not None:
            user = self.storage.get_user_by_name(job_filter.user_name)
            if user is None:
                return []
            if job_filter.user_id is not None and job_filter.user_id != user.id:
                return []
            resolved.user_id = user.id

        return self.storage.list_jobs(resolved)

    def reset(self, job_id: int) -> Job:
        """Clear a job's result and put it back to Queued"""
        if job_id < 0 or job_id >= self.ids.peek(IdKind.JOB):
            raise NotFoundError(f"Job {job_id} not found.")

        generation = self.storage.reset_job(job_id, self.clock())
        if generation is None:
            raise NotFoundError(f"Job {job_id} not found.")

        logger.info(f"Job {job_id} reset to generation {generation}")
        return self.get(job_id)

    def rejudge(self, job_id: int) -> Job:
        """Reset and redispatch; returns the post-reset snapshot"""
        job = self.reset(job_id)
        running = copy.copy(job)
        if self._mark_running(running):
            self._dispatch(
                running,
                self.problems.get(running.problem_id),
                self.languages.get(running.submission.language),
            )
        return job

    def _mark_running(self, job: Job) -> bool:
        running_at = self.clock()
        if not self.storage.set_job_state(job.id, job.generation, JobState.RUNNING, running_at):
            logger.warning(f"Job {job.id} was reset before it started; not dispatching generation {job.generation}")
            return False
        job.state = JobState.RUNNING
        job.updated_time = running_at
        return True

    def _dispatch(self, job: Job, problem: Optional[Problem], language: Optional[Language]) -> Optional[Future]:
        """Hand a Running job to the worker pool; a refused hand-off finishes it as System Error"""
        logger.debug(f"Dispatching job {job.id} generation {job.generation}")
        try:
            return self.executor.submit(self._execute, job.id, job.generation, problem, language)
        except Exception as e:
            logger.error(f"Failed to dispatch job {job.id}: {e}", exc_info=True)
            outcome = JobResult(result=Verdict.SYSTEM_ERROR, score=0.0)
            self.storage.finish_job(job.id, job.generation, outcome, self.clock())
            return None

    def _execute(self, job_id: int, generation: int, problem: Optional[Problem],
                 language: Optional[Language]) -> None:
        try:
            job = self.storage.get_job(job_id)
            if job is None or job.generation != generation:
                logger.warning(f"Skipping stale dispatch of job {job_id} generation {generation}")
                return

            outcome = self._evaluate(job, problem, language)
            if not self.storage.finish_job(job_id, generation, outcome, self.clock()):
                logger.warning(f"Dropped stale result for job {job_id} generation {generation}")
                return
            logger.info(f"Job {job_id} finished: {outcome.result.value}, score {outcome.score}")
        except ExternalError as e:
            logger.error(f"Failed to record result of job {job_id}: {e}", exc_info=True)

    def _evaluate(self, job: Job, problem: Optional[Problem], language: Optional[Language]) -> JobResult:
        if problem is None or language is None:
            logger.error(f"Job {job.id} references a problem or language no longer in the catalog")
            return JobResult(result=Verdict.SYSTEM_ERROR, score=0.0)

        try:
            return self.engine.evaluate(job, problem, language)
        except Exception as e:
            logger.error(f"Error evaluating job {job.id}: {e}", exc_info=True)
            return JobResult(result=Verdict.SYSTEM_ERROR, score=0.0)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)
