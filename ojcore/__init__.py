"""
ojcore - submission admission, job lifecycle and ranklists for an online judge

Submissions are admitted against contest rules, executed by an external
compile-and-execute service in the background, and aggregated into
contest ranklists on demand.
"""

from .engine import (
    AdmissionController, DuckDBStorage, ExecutionEngine, IdAllocator, IdKind,
    JobManager, Judge, OJError, OJService, RanklistEngine, Registry
)
from .models.models import (
    Contest, Job, JobFilter, JobResult, JobState, RankEntry, ScoringRule,
    SubmissionRequest, TieBreaker, User, Verdict
)

__version__ = "0.1.0"
__all__ = [
    "AdmissionController", "DuckDBStorage", "ExecutionEngine", "IdAllocator", "IdKind",
    "JobManager", "Judge", "OJError", "OJService", "RanklistEngine", "Registry",
    "Contest", "Job", "JobFilter", "JobResult", "JobState", "RankEntry", "ScoringRule",
    "SubmissionRequest", "TieBreaker", "User", "Verdict",
]
