from typing import List, Optional

from ..models.models import PRACTICE_CONTEST_ID, Contest, User, is_valid_timestamp
from ..utils.logger_config import get_logger
from .catalog import ProblemCatalog
from .errors import InvalidArgumentError, NotFoundError
from .ids import IdAllocator, IdKind
from .storage import DuckDBStorage

logger = get_logger("registry")


class Registry:
    """Users and contests"""

    def __init__(self, storage: DuckDBStorage, ids: IdAllocator, problems: ProblemCatalog):
        self.storage = storage
        self.ids = ids
        self.problems = problems

    def bootstrap_root(self) -> Optional[User]:
        """Create user 0 named "root" when the store has no users yet"""
        if self.storage.max_id("users") is not None:
            return None
        user = self.create_user("root")
        logger.info(f"Created bootstrap user {user.name} with id {user.id}")
        return user

    def create_user(self, name: str) -> User:
        # The id is consumed even if the name turns out to be taken
        user_id = self.ids.next_id(IdKind.USER)
        with self.storage.transaction():
            if self.storage.get_user_by_name(name) is not None:
                raise InvalidArgumentError(f"User name '{name}' already exists.")
            user = User(id=user_id, name=name)
            self.storage.insert_user(user)
        logger.info(f"Created user {user_id}: {name}")
        return user

    def rename_user(self, user_id: int, name: str) -> User:
        with self.storage.transaction():
            user = self.storage.get_user(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found.")
            if name != user.name:
                if self.storage.get_user_by_name(name) is not None:
                    raise InvalidArgumentError(f"User name '{name}' already exists.")
                self.storage.update_user_name(user_id, name)
                logger.info(f"Renamed user {user_id}: {user.name} -> {name}")
        return User(id=user_id, name=name)

    def list_users(self) -> List[User]:
        return self.storage.list_users()

    def save_contest(
        self,
        name: str,
        from_time: str,
        to_time: str,
        problem_ids: List[int],
        user_ids: List[int],
        submission_limit: int = 0,
        contest_id: Optional[int] = None,
    ) -> Contest:
        """Create a contest when ``contest_id`` is None, otherwise replace it wholesale"""
        if not is_valid_timestamp(from_time) or not is_valid_timestamp(to_time):
            raise InvalidArgumentError("Contest times must look like YYYY-MM-DDTHH:MM:SS.sssZ.")
        if from_time > to_time:
            raise InvalidArgumentError("Contest ends before it starts.")
        if len(set(problem_ids)) != len(problem_ids):
            raise InvalidArgumentError("Duplicate problem ids in contest.")
        if len(set(user_ids)) != len(user_ids):
            raise InvalidArgumentError("Duplicate user ids in contest.")
        if submission_limit < 0:
            raise InvalidArgumentError("Submission limit cannot be negative.")

        for problem_id in problem_ids:
            if problem_id not in self.problems:
                raise NotFoundError(f"Problem {problem_id} not found.")

        with self.storage.transaction():
            for user_id in user_ids:
                if self.storage.get_user(user_id) is None:
                    raise NotFoundError(f"User {user_id} not found.")

            if contest_id is not None:
                if contest_id == PRACTICE_CONTEST_ID:
                    raise InvalidArgumentError("Cannot change contest 0.")
                if not self.storage.contest_exists(contest_id):
                    raise NotFoundError(f"Contest {contest_id} not found.")
                contest = Contest(contest_id, name, from_time, to_time, problem_ids, user_ids, submission_limit)
                self.storage.update_contest(contest)
                logger.info(f"Updated contest {contest_id}")
                return contest

            contest = Contest(
                self.ids.next_id(IdKind.CONTEST), name, from_time, to_time,
                problem_ids, user_ids, submission_limit
            )
            self.storage.insert_contest(contest)
        logger.info(f"Created contest {contest.id}: {name}")
        return contest

    def get_contest(self, contest_id: int) -> Contest:
        contest = None
        if contest_id != PRACTICE_CONTEST_ID:
            contest = self.storage.get_contest(contest_id)
        if contest is None:
            raise NotFoundError(f"Contest {contest_id} not found.")
        return contest

    def list_contests(self) -> List[Contest]:
        return self.storage.list_contests()
