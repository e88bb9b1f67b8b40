"""
Engine business logic for ojcore.

This module contains identifier allocation, the data store gateway,
admission control, the job lifecycle, ranklists and the execution
engine client.
"""

from .admission import Admission, AdmissionController
from .catalog import Case, Language, LanguageCatalog, Problem, ProblemCatalog
from .errors import ExternalError, InvalidArgumentError, NotFoundError, OJError, RateLimitError
from .ids import IdAllocator, IdKind
from .jobs import JobManager
from .judge import ExecutionEngine, Judge
from .ranklist import RanklistEngine
from .registry import Registry
from .service import OJService
from .storage import DuckDBStorage

__all__ = [
    "Admission", "AdmissionController",
    "Case", "Language", "LanguageCatalog", "Problem", "ProblemCatalog",
    "ExternalError", "InvalidArgumentError", "NotFoundError", "OJError", "RateLimitError",
    "IdAllocator", "IdKind",
    "JobManager",
    "ExecutionEngine", "Judge",
    "RanklistEngine",
    "Registry",
    "OJService",
    "DuckDBStorage",
]
