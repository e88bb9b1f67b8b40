"""
Models package for ojcore.

This package contains the data models shared by the engine and the server.
"""

from .models import (
    PRACTICE_CONTEST_ID,
    CaseResult,
    Contest,
    Job,
    JobFilter,
    JobResult,
    JobState,
    RankEntry,
    ScoringRule,
    SubmissionRequest,
    TieBreaker,
    User,
    Verdict,
    is_valid_timestamp,
    now_timestamp,
    parse_timestamp,
)

__all__ = [
    "PRACTICE_CONTEST_ID",
    "CaseResult",
    "Contest",
    "Job",
    "JobFilter",
    "JobResult",
    "JobState",
    "RankEntry",
    "ScoringRule",
    "SubmissionRequest",
    "TieBreaker",
    "User",
    "Verdict",
    "is_valid_timestamp",
    "now_timestamp",
    "parse_timestamp",
]
