import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

# Fixed-width timestamps: lexical order equals chronological order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")

# Contest id 0 means practice mode
PRACTICE_CONTEST_ID = 0


def now_timestamp() -> str:
    """Current UTC time as a YYYY-MM-DDTHH:MM:SS.sssZ string"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse a fixed-width timestamp, returning None when it is malformed"""
    if not isinstance(value, str) or not _TIMESTAMP_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def is_valid_timestamp(value: str) -> bool:
    return parse_timestamp(value) is not None


class JobState(str, Enum):
    QUEUED = "Queued"
    RUNNING = "Running"
    FINISHED = "Finished"


class Verdict(str, Enum):
    WAITING = "Waiting"
    RUNNING = "Running"
    ACCEPTED = "Accepted"
    COMPILATION_ERROR = "Compilation Error"
    COMPILATION_SUCCESS = "Compilation Success"
    WRONG_ANSWER = "Wrong Answer"
    RUNTIME_ERROR = "Runtime Error"
    TIME_LIMIT_EXCEEDED = "Time Limit Exceeded"
    MEMORY_LIMIT_EXCEEDED = "Memory Limit Exceeded"
    SYSTEM_ERROR = "System Error"
    SKIPPED = "Skipped"


class ScoringRule(str, Enum):
    LATEST = "latest"
    HIGHEST = "highest"


class TieBreaker(str, Enum):
    SUBMISSION_TIME = "submission_time"
    SUBMISSION_COUNT = "submission_count"
    USER_ID = "user_id"
    NONE = "none"


class User:
    def __init__(self, id: int, name: str):
        self.id = id
        self.name = name

    def to_dict(self) -> Dict:
        return {"id": self.id, "name": self.name}


class Contest:
    def __init__(
        self,
        id: int,
        name: str,
        from_time: str,
        to_time: str,
        problem_ids: List[int],
        user_ids: List[int],
        submission_limit: int = 0,
    ):
        self.id = id
        self.name = name
        self.from_time = from_time
        self.to_time = to_time
        self.problem_ids = list(problem_ids)
        self.user_ids = list(user_ids)
        self.submission_limit = submission_limit

    def is_open_at(self, timestamp: str) -> bool:
        """Inclusive window check on fixed-width timestamps"""
        return self.from_time <= timestamp <= self.to_time

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "from": self.from_time,
            "to": self.to_time,
            "problem_ids": self.problem_ids,
            "user_ids": self.user_ids,
            "submission_limit": self.submission_limit,
        }


class SubmissionRequest:
    """The body of a submission, as posted by a client"""
    def __init__(self, source_code: str, language: str, user_id: int, contest_id: int, problem_id: int):
        self.source_code = source_code
        self.language = language
        self.user_id = user_id
        self.contest_id = contest_id
        self.problem_id = problem_id

    def to_dict(self) -> Dict:
        return {
            "source_code": self.source_code,
            "language": self.language,
            "user_id": self.user_id,
            "contest_id": self.contest_id,
            "problem_id": self.problem_id,
        }


class CaseResult:
    def __init__(self, id: int, result: Verdict, time: int = 0, memory: int = 0, info: str = ""):
        self.id = id
        self.result = result
        self.time = time  # microseconds
        self.memory = memory  # kilobytes
        self.info = info

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "result": self.result.value,
            "time": self.time,
            "memory": self.memory,
            "info": self.info,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CaseResult":
        return cls(
            id=data.get("id", 0),
            result=Verdict(data.get("result", Verdict.WAITING.value)),
            time=data.get("time", 0),
            memory=data.get("memory", 0),
            info=data.get("info", ""),
        )


class JobResult:
    """Outcome reported by the execution engine for one run of a job"""
    def __init__(self, result: Verdict, score: float, cases: Optional[List[CaseResult]] = None):
        self.result = result
        self.score = score
        self.cases = cases or []

    def to_dict(self) -> Dict:
        return {
            "result": self.result.value,
            "score": self.score,
            "cases": [case.to_dict() for case in self.cases],
        }


class Job:
    """A submission and its execution lifecycle"""
    def __init__(
        self,
        id: int,
        submission: SubmissionRequest,
        created_time: str,
        updated_time: str,
        state: JobState = JobState.QUEUED,
        result: Optional[Verdict] = None,
        score: float = 0.0,
        cases: Optional[List[CaseResult]] = None,
        generation: int = 0,
    ):
        self.id = id
        self.submission = submission
        self.created_time = created_time
        self.updated_time = updated_time
        self.state = state
        self.result = result
        self.score = score
        self.cases = cases or []
        self.generation = generation

    @property
    def user_id(self) -> int:
        return self.submission.user_id

    @property
    def contest_id(self) -> int:
        return self.submission.contest_id

    @property
    def problem_id(self) -> int:
        return self.submission.problem_id

    @property
    def is_finished(self) -> bool:
        return self.state == JobState.FINISHED

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
            "submission": self.submission.to_dict(),
            "state": self.state.value,
            "result": self.result.value if self.result else None,
            "score": self.score,
            "cases": [case.to_dict() for case in self.cases],
        }


class JobFilter:
    """Conjunctive filter for job listings; every field is optional"""
    def __init__(
        self,
        user_id: Optional[int] = None,
        user_name: Optional[str] = None,
        contest_id: Optional[int] = None,
        problem_id: Optional[int] = None,
        language: Optional[str] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        state: Optional[str] = None,
        result: Optional[str] = None,
    ):
        self.user_id = user_id
        self.user_name = user_name
        self.contest_id = contest_id
        self.problem_id = problem_id
        self.language = language
        self.from_time = from_time
        self.to_time = to_time
        self.state = state
        self.result = result


class RankEntry:
    def __init__(self, user: User, scores: List[float], rank: int = 0):
        self.user = user
        self.scores = scores
        self.rank = rank

    @property
    def total_score(self) -> float:
        return sum(self.scores)

    def to_dict(self) -> Dict:
        return {
            "user_id": self.user.id,
            "user_name": self.user.name,
            "rank": self.rank,
            "scores": self.scores,
            "total_score": self.total_score,
        }
