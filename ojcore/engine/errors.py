"""
Error taxonomy for ojcore.

Every failure that reaches a client is an OJError subclass. Each one
carries a kind, a numeric code, a reason string and an HTTP status.
"""

from typing import Dict


class OJError(Exception):
    kind = "External"
    reason = "ERR_EXTERNAL"
    code = 5
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "reason": self.reason,
            "code": self.code,
            "message": self.message,
        }


class InvalidArgumentError(OJError):
    kind = "InvalidArgument"
    reason = "ERR_INVALID_ARGUMENT"
    code = 1
    status_code = 400


class NotFoundError(OJError):
    kind = "NotFound"
    reason = "ERR_NOT_FOUND"
    code = 3
    status_code = 404


class RateLimitError(OJError):
    kind = "RateLimit"
    reason = "ERR_RATE_LIMIT"
    code = 4
    status_code = 429


class ExternalError(OJError):
    """Data store or other infrastructure failure"""
