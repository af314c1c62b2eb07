from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class SkipReason(str, Enum):
    NOT_LOADED = "NotLoaded"
    GROUP_OWNER = "GroupOwner"
    ALREADY_CORRECT = "AlreadyCorrect"


class ErrorKind(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    BAD_INPUT = "BadInput"
    ROLE_NOT_FOUND = "RoleNotFound"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    UPSTREAM_ERROR = "UpstreamError"
    INTERNAL_ERROR = "InternalError"


_STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.BAD_INPUT: 400,
    ErrorKind.ROLE_NOT_FOUND: 400,
    ErrorKind.UPSTREAM_UNAVAILABLE: 500,
    ErrorKind.UPSTREAM_ERROR: 500,
    ErrorKind.INTERNAL_ERROR: 500,
}

# Terminal kinds that describe the request itself rather than an upstream fault
_CLIENT_FACING_KINDS = (ErrorKind.UNAUTHORIZED, ErrorKind.BAD_INPUT, ErrorKind.ROLE_NOT_FOUND)


@dataclass(frozen=True)
class Applied:
    rank_key: int

    status_code = 200

    def to_response(self) -> Dict[str, Any]:
        return {"success": True, "rank": self.rank_key}


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason
    rank_key: Optional[int] = None

    status_code = 200

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": True, "skipped": True, "reason": self.reason.value}
        if self.rank_key is not None:
            body["rank"] = self.rank_key
        return body


@dataclass(frozen=True)
class Failed:
    error_kind: ErrorKind
    detail: str
    rank_key: Optional[int] = None

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.error_kind]

    def to_response(self) -> Dict[str, Any]:
        if self.error_kind in _CLIENT_FACING_KINDS:
            body: Dict[str, Any] = {
                "success": False,
                "error": self.detail,
                "kind": self.error_kind.value,
            }
        else:
            body = {
                "success": False,
                "error": "Promotion failed",
                "kind": self.error_kind.value,
                "details": self.detail,
            }
        if self.rank_key is not None:
            body["rank"] = self.rank_key
        return body


PromotionOutcome = Union[Applied, Skipped, Failed]
