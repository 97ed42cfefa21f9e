"""
Error taxonomy for the article engine.

Every error carries a stable machine-readable code so callers can map it to a
user-facing message without parsing text. Validation and not-found errors are
returned inside results rather than raised across the service boundary.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorCode(str, Enum):
    """Stable error codes."""

    TITLE_REQUIRED = "TITLE_REQUIRED"
    TITLE_TOO_SHORT = "TITLE_TOO_SHORT"
    TITLE_TOO_LONG = "TITLE_TOO_LONG"
    CONTENT_REQUIRED = "CONTENT_REQUIRED"
    CONTENT_TOO_SHORT = "CONTENT_TOO_SHORT"
    INVALID_STATUS = "INVALID_STATUS"
    ARTICLE_NOT_FOUND = "ARTICLE_NOT_FOUND"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.TITLE_REQUIRED: "Title must not be empty",
    ErrorCode.TITLE_TOO_SHORT: "Title must be at least 3 characters",
    ErrorCode.TITLE_TOO_LONG: "Title must not exceed 200 characters",
    ErrorCode.CONTENT_REQUIRED: "Content must not be empty",
    ErrorCode.CONTENT_TOO_SHORT: "Content must be at least 10 characters",
    ErrorCode.INVALID_STATUS: "Status must be one of draft, published, archived",
    ErrorCode.ARTICLE_NOT_FOUND: "Article not found",
    ErrorCode.PERSISTENCE_FAILED: "The store rejected the operation",
    ErrorCode.PARTIAL_FAILURE: "The operation was only partially applied",
    ErrorCode.UNEXPECTED_ERROR: "Unexpected error",
}


class ArticleEngineError(Exception):
    """Base class for all engine errors."""

    code: ErrorCode = ErrorCode.UNEXPECTED_ERROR

    def __init__(self, message: Optional[str] = None):
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code.value, "message": self.message}


class ValidationError(ArticleEngineError):
    """An article payload broke a title, content or status rule."""

    def __init__(self, code: ErrorCode, field: str):
        self.code = code
        self.field = field
        super().__init__(ERROR_MESSAGES[code])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFoundError(ArticleEngineError):
    """The requested entity does not exist."""

    code = ErrorCode.ARTICLE_NOT_FOUND

    def __init__(self, entity_kind: str, key: str, lookup: str = "id"):
        self.entity_kind = entity_kind
        self.key = key
        self.lookup = lookup
        super().__init__(f"{entity_kind} with {lookup} '{key}' not found")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"entity_kind": self.entity_kind, "lookup": self.lookup, "key": self.key})
        return data


class PersistenceError(ArticleEngineError):
    """A store call failed (network, constraint, driver)."""

    code = ErrorCode.PERSISTENCE_FAILED

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Store operation '{operation}' failed{detail}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["operation"] = self.operation
        return data


class PartialFailureError(ArticleEngineError):
    """A multi-step write committed some steps and then failed.

    ``retry_steps`` lists the failed step followed by every planned step that
    was never attempted; re-running exactly those steps completes the write.
    """

    code = ErrorCode.PARTIAL_FAILURE

    def __init__(
        self,
        operation: str,
        entity_id: str,
        completed_steps: Sequence[str],
        failed_step: str,
        retry_steps: Sequence[str],
        cause: Optional[BaseException] = None,
    ):
        self.operation = operation
        self.entity_id = entity_id
        self.completed_steps: List[str] = list(completed_steps)
        self.failed_step = failed_step
        self.retry_steps: List[str] = list(retry_steps)
        self.cause = cause
        super().__init__(
            f"{operation} on {entity_id} stopped at '{failed_step}' "
            f"after completing {self.completed_steps or 'nothing'}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "operation": self.operation,
                "entity_id": self.entity_id,
                "completed_steps": self.completed_steps,
                "failed_step": self.failed_step,
                "retry_steps": self.retry_steps,
                "cause": str(self.cause) if self.cause is not None else None,
            }
        )
        return data


class UnexpectedError(ArticleEngineError):
    """Anything else, converted at the service boundary."""

    code = ErrorCode.UNEXPECTED_ERROR

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Unexpected error in {operation}: {cause}")
