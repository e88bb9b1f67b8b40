"""Read-only problem and language catalogs loaded from configuration."""

from pathlib import Path
from typing import Dict, List, Optional

from ..utils.logger_config import get_logger

logger = get_logger("catalog")


class Case:
    def __init__(
        self,
        score: float,
        input_file: str,
        answer_file: str,
        time_limit_ms: int = 1000,
        memory_limit_mb: int = 256,
    ):
        self.score = score
        self.input_file = input_file
        self.answer_file = answer_file
        self.time_limit_ms = time_limit_ms
        self.memory_limit_mb = memory_limit_mb

    def load_input(self) -> str:
        return Path(self.input_file).read_text(encoding="utf-8")

    def load_answer(self) -> str:
        return Path(self.answer_file).read_text(encoding="utf-8")


class Problem:
    def __init__(self, id: int, name: str, type: str = "standard", cases: Optional[List[Case]] = None):
        self.id = id
        self.name = name
        self.type = type  # "standard" ignores trailing whitespace, "strict" compares exactly
        self.cases = cases or []

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "case_count": len(self.cases),
        }


class Language:
    def __init__(self, name: str, file_name: str = "", command: Optional[List[str]] = None,
                 engine_language: Optional[str] = None):
        self.name = name
        self.file_name = file_name
        self.command = command or []
        # Language code understood by the execution engine
        self.engine_language = engine_language or name.lower()


class ProblemCatalog:
    """Problems keyed by id, in configuration order"""

    def __init__(self, problems: Optional[List[Problem]] = None):
        self._problems: Dict[int, Problem] = {}
        for problem in problems or []:
            self._problems[problem.id] = problem

    @classmethod
    def from_config(cls, entries: List[Dict]) -> "ProblemCatalog":
        problems = []
        for entry in entries:
            cases = [
                Case(
                    score=case.get("score", 0),
                    input_file=case["input_file"],
                    answer_file=case["answer_file"],
                    time_limit_ms=case.get("time_limit_ms", 1000),
                    memory_limit_mb=case.get("memory_limit_mb", 256),
                )
                for case in entry.get("cases", [])
            ]
            problems.append(Problem(
                id=entry["id"],
                name=entry.get("name", ""),
                type=entry.get("type", "standard"),
                cases=cases,
            ))
        logger.info(f"Loaded {len(problems)} problems into the catalog")
        return cls(problems)

    def get(self, problem_id: int) -> Optional[Problem]:
        return self._problems.get(problem_id)

    def __contains__(self, problem_id) -> bool:
        return problem_id in self._problems

    def ids(self) -> List[int]:
        """Problem ids in ascending order"""
        return sorted(self._problems)

    def __len__(self) -> int:
        return len(self._problems)


class LanguageCatalog:
    def __init__(self, languages: Optional[List[Language]] = None):
        self._languages: Dict[str, Language] = {}
        for language in languages or []:
            self._languages[language.name] = language

    @classmethod
    def from_config(cls, entries: List[Dict]) -> "LanguageCatalog":
        languages = [
            Language(
                name=entry["name"],
                file_name=entry.get("file_name", ""),
                command=entry.get("command"),
                engine_language=entry.get("engine_language"),
            )
            for entry in entries
        ]
        logger.info(f"Loaded {len(languages)} languages into the catalog")
        return cls(languages)

    def get(self, name: str) -> Optional[Language]:
        return self._languages.get(name)

    def __contains__(self, name) -> bool:
        return name in self._languages

    def names(self) -> List[str]:
        return list(self._languages)
