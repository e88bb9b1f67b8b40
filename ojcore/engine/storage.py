"""
DuckDB-based data store gateway for ojcore.

All statements run on one connection behind a re-entrant lock, so at most
one statement is in flight at a time. ``transaction()`` groups several
statements (for example count-then-insert during admission) into one
atomic unit.
"""

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

import duckdb

from ..models.models import (
    CaseResult, Contest, Job, JobFilter, JobResult, JobState, SubmissionRequest, User, Verdict
)
from ..utils.logger_config import get_logger
from .errors import ExternalError

logger = get_logger("storage")

_JOB_COLUMNS = (
    "id, user_id, contest_id, problem_id, language, source_code, "
    "created_time, updated_time, state, result, score, cases, generation"
)
_CONTEST_COLUMNS = "id, name, from_time, to_time, problem_ids, user_ids, submission_limit"


class DuckDBStorage:
    """Synchronous accessor over the users, contests and jobs tables"""

    def __init__(self, db_path: str = "data/ojcore.duckdb", flush: bool = False):
        logger.info(f"Initializing DuckDB storage at {db_path}")
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._tx_depth = 0
        try:
            self._conn = duckdb.connect(db_path)
        except duckdb.Error as e:
            raise ExternalError(f"Cannot open database at {db_path}: {e}") from e

        if flush:
            self.flush()
        self._create_schema()

    def _create_schema(self) -> None:
        """Create the database schema"""
        self._execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY,
                name VARCHAR NOT NULL
            )
        """)
        self._execute("""
            CREATE TABLE IF NOT EXISTS contests (
                id INTEGER PRIMARY KEY,
                name VARCHAR NOT NULL,
                from_time VARCHAR NOT NULL,           -- fixed-width ISO-8601
                to_time VARCHAR NOT NULL,
                problem_ids VARCHAR NOT NULL,         -- JSON list, declaration order
                user_ids VARCHAR NOT NULL,            -- JSON list, declaration order
                submission_limit INTEGER DEFAULT 0    -- 0 means unlimited
            )
        """)
        self._execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY,
                user_id INTEGER NOT NULL,
                contest_id INTEGER NOT NULL,
                problem_id INTEGER NOT NULL,
                language VARCHAR NOT NULL,
                source_code VARCHAR,
                created_time VARCHAR NOT NULL,
                updated_time VARCHAR NOT NULL,
                state VARCHAR NOT NULL,
                result VARCHAR,                       -- overall verdict once finished
                score DOUBLE DEFAULT 0,
                cases VARCHAR,                        -- JSON list of case results
                generation INTEGER DEFAULT 0          -- bumped on every reset
            )
        """)
        self._execute("CREATE INDEX IF NOT EXISTS idx_jobs_contest ON jobs(contest_id)")
        self._execute("CREATE INDEX IF NOT EXISTS idx_jobs_user ON jobs(user_id)")

    def flush(self) -> None:
        """Drop every persisted table"""
        logger.warning(f"Flushing all data in {self.db_path}")
        for table in ("jobs", "contests", "users"):
            self._execute(f"DROP TABLE IF EXISTS {table}")

    def _execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> duckdb.DuckDBPyConnection:
        with self._lock:
            try:
                if params is None:
                    return self._conn.execute(sql)
                return self._conn.execute(sql, list(params))
            except duckdb.Error as e:
                logger.error(f"Database error: {e}", exc_info=True)
                raise ExternalError(f"Database error: {e}") from e

    # Results live on the shared connection, so they are read before the lock is released
    def _fetchone(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[tuple]:
        with self._lock:
            cursor = self._execute(sql, params)
            try:
                return cursor.fetchone()
            except duckdb.Error as e:
                raise ExternalError(f"Database error: {e}") from e

    def _fetchall(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        with self._lock:
            cursor = self._execute(sql, params)
            try:
                return cursor.fetchall()
            except duckdb.Error as e:
                raise ExternalError(f"Database error: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator["DuckDBStorage"]:
        """Hold the store exclusively and commit the enclosed statements atomically"""
        with self._lock:
            outermost = self._tx_depth == 0
            if outermost:
                self._execute("BEGIN TRANSACTION")
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if outermost:
                    self._execute("ROLLBACK")
                raise
            else:
                self._tx_depth -= 1
                if outermost:
                    self._execute("COMMIT")

    def max_id(self, table: str) -> Optional[int]:
        """Largest persisted id in ``table`` or None when it is empty"""
        row = self._fetchone(f"SELECT MAX(id) FROM {table}")
        return row[0] if row else None

    # Users
    def insert_user(self, user: User) -> None:
        self._execute("INSERT INTO users (id, name) VALUES (?, ?)", [user.id, user.name])

    def get_user(self, user_id: int) -> Optional[User]:
        row = self._fetchone("SELECT id, name FROM users WHERE id = ?", [user_id])
        return User(id=row[0], name=row[1]) if row else None

    def get_user_by_name(self, name: str) -> Optional[User]:
        row = self._fetchone("SELECT id, name FROM users WHERE name = ?", [name])
        return User(id=row[0], name=row[1]) if row else None

    def update_user_name(self, user_id: int, name: str) -> None:
        self._execute("UPDATE users SET name = ? WHERE id = ?", [name, user_id])

    def list_users(self) -> List[User]:
        rows = self._fetchall("SELECT id, name FROM users ORDER BY id")
        return [User(id=row[0], name=row[1]) for row in rows]

    # Contests
    def insert_contest(self, contest: Contest) -> None:
        self._execute(f"""
            INSERT INTO contests ({_CONTEST_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, [
            contest.id, contest.name, contest.from_time, contest.to_time,
            json.dumps(contest.problem_ids), json.dumps(contest.user_ids),
            contest.submission_limit
        ])

    def update_contest(self, contest: Contest) -> None:
        self._execute("""
            UPDATE contests
            SET name = ?, from_time = ?, to_time = ?, problem_ids = ?, user_ids = ?, submission_limit = ?
            WHERE id = ?
        """, [
            contest.name, contest.from_time, contest.to_time,
            json.dumps(contest.problem_ids), json.dumps(contest.user_ids),
            contest.submission_limit, contest.id
        ])

    def get_contest(self, contest_id: int) -> Optional[Contest]:
        row = self._fetchone(
            f"SELECT {_CONTEST_COLUMNS} FROM contests WHERE id = ?", [contest_id]
        )
        return self._row_to_contest(row) if row else None

    def contest_exists(self, contest_id: int) -> bool:
        row = self._fetchone("SELECT COUNT(*) FROM contests WHERE id = ?", [contest_id])
        return bool(row and row[0])

    def list_contests(self) -> List[Contest]:
        rows = self._fetchall(f"SELECT {_CONTEST_COLUMNS} FROM contests ORDER BY id")
        return [self._row_to_contest(row) for row in rows]

    @staticmethod
    def _row_to_contest(row) -> Contest:
        return Contest(
            id=row[0],
            name=row[1],
            from_time=row[2],
            to_time=row[3],
            problem_ids=json.loads(row[4]),
            user_ids=json.loads(row[5]),
            submission_limit=row[6] or 0,
        )

    # Jobs
    def insert_job(self, job: Job) -> None:
        submission = job.submission
        self._execute(f"""
            INSERT INTO jobs ({_JOB_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            job.id, submission.user_id, submission.contest_id, submission.problem_id,
            submission.language, submission.source_code, job.created_time, job.updated_time,
            job.state.value, job.result.value if job.result else None, job.score,
            json.dumps([case.to_dict() for case in job.cases]), job.generation
        ])

    def get_job(self, job_id: int) -> Optional[Job]:
        row = self._fetchone(f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", [job_id])
        return self._row_to_job(row) if row else None

    def count_jobs(self, user_id: int, problem_id: int, contest_id: int) -> int:
        row = self._fetchone("""
            SELECT COUNT(*) FROM jobs
            WHERE user_id = ? AND problem_id = ? AND contest_id = ?
        """, [user_id, problem_id, contest_id])
        return row[0] if row else 0

    def list_jobs(self, job_filter: Optional[JobFilter] = None) -> List[Job]:
        """List jobs ascending by id; user_name must already be resolved to user_id"""
        where_conditions = []
        params: List[Any] = []

        if job_filter is not None:
            for column, value in (
                ("user_id", job_filter.user_id),
                ("contest_id", job_filter.contest_id),
                ("problem_id", job_filter.problem_id),
                ("language", job_filter.language),
                ("state", job_filter.state),
                ("result", job_filter.result),
            ):
                if value is not None:
                    where_conditions.append(f"{column} = ?")
                    params.append(value)
            # Lexical comparison is chronological for fixed-width timestamps
            if job_filter.from_time is not None:
                where_conditions.append("created_time >= ?")
                params.append(job_filter.from_time)
            if job_filter.to_time is not None:
                where_conditions.append("created_time <= ?")
                params.append(job_filter.to_time)

        query = f"SELECT {_JOB_COLUMNS} FROM jobs"
        if where_conditions:
            query += " WHERE " + " AND ".join(where_conditions)
        query += " ORDER BY id"

        return [self._row_to_job(row) for row in self._fetchall(query, params)]

    def set_job_state(self, job_id: int, generation: int, state: JobState, updated_time: str) -> bool:
        """Move a job to ``state`` unless it has been reset since ``generation``"""
        with self.transaction():
            if self._current_generation(job_id) != generation:
                return False
            self._execute(
                "UPDATE jobs SET state = ?, updated_time = ? WHERE id = ?",
                [state.value, updated_time, job_id]
            )
            return True

    def finish_job(self, job_id: int, generation: int, outcome: JobResult, updated_time: str) -> bool:
        """Store a finished result; stale generations are rejected"""
        with self.transaction():
            if self._current_generation(job_id) != generation:
                return False
            self._execute("""
                UPDATE jobs
                SET state = ?, result = ?, score = ?, cases = ?, updated_time = ?
                WHERE id = ?
            """, [
                JobState.FINISHED.value, outcome.result.value, outcome.score,
                json.dumps([case.to_dict() for case in outcome.cases]), updated_time, job_id
            ])
            return True

    def reset_job(self, job_id: int, updated_time: str) -> Optional[int]:
        """Clear a job back to Queued; returns its new generation or None if absent"""
        with self.transaction():
            generation = self._current_generation(job_id)
            if generation is None:
                return None
            generation += 1
            self._execute("""
                UPDATE jobs
                SET state = ?, result = NULL, score = 0, cases = ?, updated_time = ?, generation = ?
                WHERE id = ?
            """, [JobState.QUEUED.value, "[]", updated_time, generation, job_id])
            return generation

    def _current_generation(self, job_id: int) -> Optional[int]:
        row = self._fetchone("SELECT generation FROM jobs WHERE id = ?", [job_id])
        return row[0] if row else None

    @staticmethod
    def _row_to_job(row) -> Job:
        submission = SubmissionRequest(
            source_code=row[5] or "",
            language=row[4],
            user_id=row[1],
            contest_id=row[2],
            problem_id=row[3],
        )
        cases = [CaseResult.from_dict(case) for case in json.loads(row[11])] if row[11] else []
        return Job(
            id=row[0],
            submission=submission,
            created_time=row[6],
            updated_time=row[7],
            state=JobState(row[8]),
            result=Verdict(row[9]) if row[9] else None,
            score=row[10] or 0.0,
            cases=cases,
            generation=row[12] or 0,
        )

    def close(self) -> None:
        """Close database connection"""
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
