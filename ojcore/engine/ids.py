import threading
from enum import Enum
from typing import Dict


class IdKind(str, Enum):
    USER = "user"
    CONTEST = "contest"
    JOB = "job"


# Contest 0 is reserved for practice mode, so real contests start at 1
_FIRST_IDS = {
    IdKind.USER: 0,
    IdKind.CONTEST: 1,
    IdKind.JOB: 0,
}


class IdAllocator:
    """
    Monotonic identifier counters, one per resource kind.

    An id is consumed as soon as it is handed out; a caller that later fails
    to persist its resource leaves a gap rather than returning the id.
    """

    def __init__(self):
        self._next: Dict[IdKind, int] = dict(_FIRST_IDS)
        self._locks: Dict[IdKind, threading.Lock] = {kind: threading.Lock() for kind in IdKind}

    def next_id(self, kind: IdKind) -> int:
        with self._locks[kind]:
            value = self._next[kind]
            self._next[kind] = value + 1
            return value

    def peek(self, kind: IdKind) -> int:
        """The id the next call to next_id will return"""
        with self._locks[kind]:
            return self._next[kind]

    def seed(self, kind: IdKind, value: int) -> None:
        """Raise the counter so the next id is at least ``value``"""
        with self._locks[kind]:
            if value > self._next[kind]:
                self._next[kind] = value

    def snapshot(self) -> Dict[str, int]:
        return {kind.value: self.peek(kind) for kind in IdKind}
