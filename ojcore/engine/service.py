from concurrent.futures import Executor
from typing import Callable, Optional

from ..models.models import now_timestamp
from ..utils.logger_config import get_logger
from .admission import AdmissionController
from .catalog import LanguageCatalog, ProblemCatalog
from .ids import IdAllocator, IdKind
from .jobs import JobManager
from .judge import ExecutionEngine, Judge
from .ranklist import RanklistEngine
from .registry import Registry
from .storage import DuckDBStorage

logger = get_logger("service")


class OJService:
    """Every component of the judge core, wired together around one store"""

    def __init__(
        self,
        storage: DuckDBStorage,
        problems: ProblemCatalog,
        languages: LanguageCatalog,
        engine: ExecutionEngine,
        executor: Optional[Executor] = None,
        max_workers: int = 4,
        clock: Callable[[], str] = now_timestamp,
        always_enforce_time_window: bool = False,
    ):
        self.storage = storage
        self.problems = problems
        self.languages = languages
        self.engine = engine
        self.ids = IdAllocator()
        self._seed_ids()

        self.registry = Registry(storage, self.ids, problems)
        self.admission = AdmissionController(
            storage, problems, languages, clock=clock,
            always_enforce_time_window=always_enforce_time_window,
        )
        self.jobs = JobManager(
            storage, self.ids, self.admission, problems, languages, engine,
            executor=executor, max_workers=max_workers, clock=clock,
        )
        self.ranklist = RanklistEngine(storage, problems)

    @classmethod
    def from_config(
        cls,
        config,
        engine: Optional[ExecutionEngine] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], str] = now_timestamp,
        flush: bool = False,
    ) -> "OJService":
        engine_config = config.get_section("execution_engine")
        if engine is None:
            engine = Judge(
                endpoint=engine_config.get("endpoint"),
                timeout=engine_config.get("timeout", 60),
            )

        service = cls(
            storage=DuckDBStorage(config.get("database.path", ":memory:"), flush=flush),
            problems=ProblemCatalog.from_config(config.get_section("problems") or []),
            languages=LanguageCatalog.from_config(config.get_section("languages") or []),
            engine=engine,
            executor=executor,
            max_workers=engine_config.get("max_workers", 4),
            clock=clock,
            always_enforce_time_window=config.get("admission.always_enforce_time_window", False),
        )
        if config.get("users.bootstrap_root", True):
            service.registry.bootstrap_root()
        return service

    def _seed_ids(self) -> None:
        """Continue numbering after whatever the store already holds"""
        for kind, table in ((IdKind.USER, "users"), (IdKind.CONTEST, "contests"), (IdKind.JOB, "jobs")):
            largest = self.storage.max_id(table)
            if largest is not None:
                self.ids.seed(kind, largest + 1)
        logger.debug(f"Identifier counters start at {self.ids.snapshot()}")

    def close(self) -> None:
        self.jobs.shutdown(wait=True)
        self.storage.close()
