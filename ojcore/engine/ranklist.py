"""
Contest ranklists, recomputed from persisted jobs on every request.

For each (user, problem) pair one representative finished job is chosen by
the scoring rule; a user's total is the sum of representative scores. Equal
totals are ordered by the tie-breaker, and finally by the contest's user
declaration order.
"""

from typing import Dict, List, Optional, Tuple, Union

from ..models.models import (
    PRACTICE_CONTEST_ID, Job, JobFilter, RankEntry, ScoringRule, TieBreaker, User
)
from ..utils.logger_config import get_logger
from .catalog import ProblemCatalog
from .errors import InvalidArgumentError, NotFoundError
from .storage import DuckDBStorage

logger = get_logger("ranklist")


def parse_scoring_rule(value: Union[str, ScoringRule, None]) -> ScoringRule:
    if value is None:
        return ScoringRule.HIGHEST
    try:
        return ScoringRule(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown scoring rule '{value}'.") from None


def parse_tie_breaker(value: Union[str, TieBreaker, None]) -> TieBreaker:
    if value is None:
        return TieBreaker.NONE
    try:
        return TieBreaker(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown tie breaker '{value}'.") from None


def _submitted_order(job: Job) -> Tuple[str, int]:
    return job.created_time, job.id


class RanklistEngine:
    def __init__(self, storage: DuckDBStorage, problems: ProblemCatalog):
        self.storage = storage
        self.problems = problems

    def compute(
        self,
        contest_id: int,
        scoring_rule: Union[str, ScoringRule, None] = ScoringRule.HIGHEST,
        tie_breaker: Union[str, TieBreaker, None] = TieBreaker.NONE,
    ) -> List[RankEntry]:
        scoring_rule = parse_scoring_rule(scoring_rule)
        tie_breaker = parse_tie_breaker(tie_breaker)

        users, problem_ids = self._participants(contest_id)
        jobs = self.storage.list_jobs(JobFilter(contest_id=contest_id))

        user_set = {user.id for user in users}
        problem_set = set(problem_ids)

        submission_counts: Dict[int, int] = {}
        representatives: Dict[Tuple[int, int], Job] = {}
        for job in jobs:
            if job.user_id not in user_set:
                continue
            submission_counts[job.user_id] = submission_counts.get(job.user_id, 0) + 1
            if not job.is_finished or job.problem_id not in problem_set:
                continue
            key = (job.user_id, job.problem_id)
            current = representatives.get(key)
            if current is None or self._supersedes(job, current, scoring_rule):
                representatives[key] = job

        rows = []
        for position, user in enumerate(users):
            picked = [representatives.get((user.id, problem_id)) for problem_id in problem_ids]
            scores = [job.score if job is not None else 0.0 for job in picked]
            entry = RankEntry(user=user, scores=scores)
            tie_key = self._tie_key(
                tie_breaker, user, [job for job in picked if job is not None], submission_counts
            )
            rows.append((entry, tie_key, position))

        rows.sort(key=lambda row: (-row[0].total_score, row[1], row[2]))

        ranked: List[RankEntry] = []
        previous: Optional[Tuple] = None
        for index, (entry, tie_key, _) in enumerate(rows):
            current_key = (entry.total_score, tie_key)
            entry.rank = index + 1 if current_key != previous else ranked[-1].rank
            previous = current_key
            ranked.append(entry)

        logger.debug(
            f"Computed ranklist for contest {contest_id} with {len(ranked)} users "
            f"({scoring_rule.value}, {tie_breaker.value})"
        )
        return ranked

    def _participants(self, contest_id: int) -> Tuple[List[User], List[int]]:
        """Users in declaration order and the problems they are ranked on"""
        if contest_id == PRACTICE_CONTEST_ID:
            return self.storage.list_users(), self.problems.ids()

        contest = self.storage.get_contest(contest_id)
        if contest is None:
            raise NotFoundError(f"Contest {contest_id} not found.")

        users = []
        for user_id in contest.user_ids:
            user = self.storage.get_user(user_id)
            users.append(user if user is not None else User(id=user_id, name=""))
        return users, contest.problem_ids

    @staticmethod
    def _supersedes(candidate: Job, current: Job, scoring_rule: ScoringRule) -> bool:
        if scoring_rule == ScoringRule.LATEST:
            return _submitted_order(candidate) > _submitted_order(current)
        # Highest score wins; among equal scores the earliest submission is kept
        if candidate.score != current.score:
            return candidate.score > current.score
        return _submitted_order(candidate) < _submitted_order(current)

    @staticmethod
    def _tie_key(tie_breaker: TieBreaker, user: User, picked: List[Job],
                 submission_counts: Dict[int, int]) -> Tuple:
        if tie_breaker == TieBreaker.SUBMISSION_TIME:
            if not picked:
                return (1, "")
            return (0, min(job.created_time for job in picked))
        if tie_breaker == TieBreaker.SUBMISSION_COUNT:
            return (submission_counts.get(user.id, 0),)
        if tie_breaker == TieBreaker.USER_ID:
            return (user.id,)
        return ()
