"""
Admission of submissions.

Checks run in a fixed order and the first failure wins, so the error a
caller sees when several rules are broken at once is deterministic:

    1. language in catalog              NotFound
    2. problem in catalog               NotFound
    3. user exists                      NotFound
    4. contest exists (non-practice)    NotFound
    5. user registered in contest       InvalidArgument
    6. problem part of contest          InvalidArgument
    7. submission limit not reached     RateLimit
    8. contest window open              InvalidArgument

Checks 7 and 8 only apply when the contest has a submission limit, unless
``always_enforce_time_window`` is set.
"""

from typing import Callable, Optional

from ..models.models import PRACTICE_CONTEST_ID, Contest, SubmissionRequest, now_timestamp
from ..utils.logger_config import get_logger
from .catalog import Language, LanguageCatalog, Problem, ProblemCatalog
from .errors import InvalidArgumentError, NotFoundError, RateLimitError
from .storage import DuckDBStorage

logger = get_logger("admission")


class Admission:
    """What validation resolved for an admitted request"""
    def __init__(self, request: SubmissionRequest, problem: Problem, language: Language,
                 contest: Optional[Contest] = None):
        self.request = request
        self.problem = problem
        self.language = language
        self.contest = contest


class AdmissionController:
    def __init__(
        self,
        storage: DuckDBStorage,
        problems: ProblemCatalog,
        languages: LanguageCatalog,
        clock: Callable[[], str] = now_timestamp,
        always_enforce_time_window: bool = False,
    ):
        self.storage = storage
        self.problems = problems
        self.languages = languages
        self.clock = clock
        self.always_enforce_time_window = always_enforce_time_window

    def validate(self, request: SubmissionRequest) -> Admission:
        """Raise the first violated rule's error, or return the resolved Admission"""
        try:
            admission = self._check(request)
        except (NotFoundError, InvalidArgumentError, RateLimitError) as e:
            logger.info(
                f"Rejected submission of user {request.user_id} to problem {request.problem_id} "
                f"in contest {request.contest_id}: {e.kind}: {e.message}"
            )
            raise
        return admission

    def _check(self, request: SubmissionRequest) -> Admission:
        language = self.languages.get(request.language)
        if language is None:
            raise NotFoundError(f"Language {request.language} not found.")

        problem = self.problems.get(request.problem_id)
        if problem is None:
            raise NotFoundError(f"Problem with id({request.problem_id}) not found.")

        if self.storage.get_user(request.user_id) is None:
            raise NotFoundError(f"User with id({request.user_id}) not found.")

        if request.contest_id == PRACTICE_CONTEST_ID:
            return Admission(request, problem, language)

        contest = self.storage.get_contest(request.contest_id)
        if contest is None:
            raise NotFoundError(f"Contest with id({request.contest_id}) not found.")

        if request.user_id not in contest.user_ids:
            raise InvalidArgumentError(
                f"User {request.user_id} is not registered in contest {contest.id}."
            )
        if request.problem_id not in contest.problem_ids:
            raise InvalidArgumentError(
                f"Problem {request.problem_id} is not in contest {contest.id}."
            )

        if contest.submission_limit != 0:
            submitted = self.storage.count_jobs(request.user_id, request.problem_id, contest.id)
            if submitted >= contest.submission_limit:
                raise RateLimitError("Too many submissions.")
            self._check_window(contest)
        elif self.always_enforce_time_window:
            self._check_window(contest)

        return Admission(request, problem, language, contest)

    def _check_window(self, contest: Contest) -> None:
        now = self.clock()
        if contest.is_open_at(now):
            return
        if now < contest.from_time:
            raise InvalidArgumentError("The contest has not started yet.")
        raise InvalidArgumentError("The contest has already finished.")
