import json
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import requests

from ..models.models import CaseResult, Job, JobResult, Verdict
from ..utils.logger_config import get_logger
from .catalog import Case, Language, Problem

logger = get_logger("judge")


class ExecutionEngine(ABC):
    """Runs a job's source code against a problem's cases"""

    @abstractmethod
    def evaluate(self, job: Job, problem: Problem, language: Language) -> JobResult:
        ...

    def ping(self) -> bool:
        return True


class Judge(ExecutionEngine):
    """
    Client for an external compile-and-execute service.

    Each case is posted as one request carrying a compile section, an execute
    section and the expected output. Case 0 of the result records the compile
    outcome.
    """

    def __init__(self, endpoint: str = "http://localhost:10086/compile-and-execute", timeout: float = 60):
        self.endpoint = endpoint
        self.timeout = timeout
        logger.debug(f"Initialized Judge with execution engine at {endpoint}")

    def evaluate(self, job: Job, problem: Problem, language: Language) -> JobResult:
        logger.debug(f"Evaluating job {job.id} for problem {problem.id} with {len(problem.cases)} cases")

        compile_case = CaseResult(id=0, result=Verdict.WAITING)
        cases = [compile_case]
        score = 0.0
        first_failure: Optional[Verdict] = None
        compile_failed = False

        for index, case in enumerate(problem.cases, start=1):
            if compile_failed:
                cases.append(CaseResult(id=index, result=Verdict.SKIPPED))
                continue

            compiled, compile_info, case_result = self._run_case(
                job.submission.source_code, language, problem, case, index
            )
            if compile_case.result == Verdict.WAITING and compiled is not None:
                compile_case.result = Verdict.COMPILATION_SUCCESS if compiled else Verdict.COMPILATION_ERROR
                compile_case.info = compile_info

            if compiled is False:
                compile_failed = True
                first_failure = Verdict.COMPILATION_ERROR
                cases.append(CaseResult(id=index, result=Verdict.SKIPPED))
                continue

            cases.append(case_result)
            if case_result.result == Verdict.ACCEPTED:
                score += case.score
            elif first_failure is None:
                first_failure = case_result.result

        if compile_case.result == Verdict.WAITING:
            compile_case.result = Verdict.SKIPPED

        verdict = first_failure or Verdict.ACCEPTED
        logger.info(f"Job {job.id} evaluated: {verdict.value}, score {score}")
        return JobResult(result=verdict, score=score, cases=cases)

    def _run_case(
        self,
        code: str,
        language: Language,
        problem: Problem,
        case: Case,
        index: int,
    ) -> Tuple[Optional[bool], str, CaseResult]:
        """
        Run a single case against the execution engine.

        Returns (compiled, compile_info, case_result); ``compiled`` is None when
        the engine could not be reached.
        """
        try:
            input_data = case.load_input()
            expected_output = case.load_answer()
        except OSError as e:
            logger.error(f"Cannot read case {index} of problem {problem.id}: {e}")
            return None, "", CaseResult(id=index, result=Verdict.SYSTEM_ERROR, info=str(e))

        compile_section = {
            "source_code": code,
            "language": language.engine_language,
        }
        if language.command:
            compile_section["compiler_options"] = language.command

        payload = {
            "compile": compile_section,
            "execute": {
                "stdin": input_data,
                "timeout_ms": case.time_limit_ms,
            },
            "test_case": {
                "checker_type": "strict_diff" if problem.type == "strict" else "standard",
                "expected_output": expected_output,
            },
        }

        try:
            response = requests.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = self._unwrap(response.json())
            compile_result = result.get("compile") or {}
            execute_result = result.get("execute") or {}
            if not isinstance(compile_result, dict) or not isinstance(execute_result, dict):
                raise ValueError("Malformed compile or execute section")
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Execution engine request failed for case {index}: {e}")
            return None, "", CaseResult(id=index, result=Verdict.SYSTEM_ERROR, info=str(e))

        if compile_result.get("exit_code", 0) != 0:
            info = compile_result.get("stderr", "Compilation failed")
            return False, info, CaseResult(id=index, result=Verdict.COMPILATION_ERROR, info=info)

        stdout = execute_result.get("stdout", "")
        stderr = execute_result.get("stderr", "")
        time_us = self._parse_time(execute_result.get("wall_time", "0"))
        memory_kb = self._parse_memory(execute_result.get("memory_usage", "0"))

        status = self._map_verdict(execute_result.get("verdict"))
        if status is None:
            exit_code = execute_result.get("exit_code", 0)
            if exit_code != 0:
                stderr_lower = stderr.lower()
                if "time limit" in stderr_lower or exit_code == 124:
                    status = Verdict.TIME_LIMIT_EXCEEDED
                elif "memory limit" in stderr_lower:
                    status = Verdict.MEMORY_LIMIT_EXCEEDED
                else:
                    status = Verdict.RUNTIME_ERROR
            elif self._compare_outputs(stdout, expected_output, strict=problem.type == "strict"):
                status = Verdict.ACCEPTED
            else:
                status = Verdict.WRONG_ANSWER

        if status == Verdict.ACCEPTED and case.time_limit_ms and time_us > case.time_limit_ms * 1000:
            status = Verdict.TIME_LIMIT_EXCEEDED
        if status == Verdict.ACCEPTED and case.memory_limit_mb and memory_kb > case.memory_limit_mb * 1024:
            status = Verdict.MEMORY_LIMIT_EXCEEDED

        info = stderr if status != Verdict.ACCEPTED and stderr else ""
        return True, compile_result.get("stderr", ""), CaseResult(
            id=index, result=status, time=time_us, memory=memory_kb, info=info
        )

    @staticmethod
    def _unwrap(response_json) -> dict:
        # Some deployments wrap the payload in a JSON string under "body"
        if isinstance(response_json, dict) and isinstance(response_json.get("body"), str):
            response_json = json.loads(response_json["body"])
        if not isinstance(response_json, dict):
            raise ValueError(f"Unexpected execution engine reply: {response_json!r}")
        return response_json

    def _map_verdict(self, verdict: Optional[str]) -> Optional[Verdict]:
        if not verdict:
            return None

        mapping = {
            "accepted": Verdict.ACCEPTED,
            "wrong_answer": Verdict.WRONG_ANSWER,
            "presentation_error": Verdict.WRONG_ANSWER,
            "time_limit_exceeded": Verdict.TIME_LIMIT_EXCEEDED,
            "output_limit_exceeded": Verdict.RUNTIME_ERROR,
            "runtime_error": Verdict.RUNTIME_ERROR,
            "memory_limit_exceeded": Verdict.MEMORY_LIMIT_EXCEEDED,
        }
        return mapping.get(verdict.strip().lower())

    def _compare_outputs(self, actual: str, expected: str, strict: bool = False) -> bool:
        """
        Compare actual and expected outputs.

        Strict comparison is exact. Standard comparison ignores trailing
        whitespace on each line and trailing blank lines.
        """
        if strict:
            return actual == expected

        def normalize(text: str) -> list:
            lines = [line.rstrip() for line in text.replace("\r\n", "\n").split("\n")]
            while lines and not lines[-1]:
                lines.pop()
            return lines

        return normalize(actual) == normalize(expected)

    def _parse_time(self, time_str) -> int:
        """Parse a seconds value to microseconds"""
        try:
            return int(float(time_str) * 1_000_000)
        except (ValueError, TypeError):
            return 0

    def _parse_memory(self, memory_str) -> int:
        try:
            return int(memory_str)
        except (ValueError, TypeError):
            return 0

    def ping(self) -> bool:
        """Check that the execution engine answers at all"""
        try:
            requests.post(self.endpoint, json={}, timeout=5)
        except requests.RequestException:
            return False
        return True
