# universal/results.py
"""
Result type shared by every store.

Stores never raise for business failures. They return a CommandResult
whose `code` is a stable ErrorCode that callers can branch on.

Usage:
    result = entity_crud("CREATE", actor_user_id, org_id, entity={...})
    if result.success:
        entity_id = result.data["entity_id"]
    else:
        log(result.code, result.error, result.details)
"""


class ErrorCode:
    # Validation: rejected before any write, safe to retry after correction
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SMART_CODE_INVALID = "SMART_CODE_INVALID"
    LINE_SEQUENCE_INVALID = "LINE_SEQUENCE_INVALID"

    # Consistency: the caller must change intent
    UNBALANCED_JOURNAL = "UNBALANCED_JOURNAL"
    ENTITY_REFERENCED = "ENTITY_REFERENCED"
    ALREADY_POSTED = "ALREADY_POSTED"
    IMMUTABLE_FIELD = "IMMUTABLE_FIELD"
    INVALID_STATUS = "INVALID_STATUS"
    DUPLICATE = "DUPLICATE"
    NO_SALES_FOUND = "NO_SALES_FOUND"
    NO_POLICY = "NO_POLICY"

    # Not found (also used for cross-tenant access)
    NOT_FOUND = "NOT_FOUND"

    VALIDATION = frozenset({VALIDATION_ERROR, SMART_CODE_INVALID, LINE_SEQUENCE_INVALID})
    CONSISTENCY = frozenset({
        UNBALANCED_JOURNAL, ENTITY_REFERENCED, ALREADY_POSTED, IMMUTABLE_FIELD,
        INVALID_STATUS, DUPLICATE, NO_SALES_FOUND, NO_POLICY,
    })

    @classmethod
    def category(cls, code: str) -> str:
        if code in cls.VALIDATION:
            return "validation"
        if code == cls.NOT_FOUND:
            return "not_found"
        return "consistency"


class CommandResult:
    """
    Wrapper for command results with success/failure info.

    Attributes:
        success: True when the operation committed (or read) successfully
        data: Payload on success (dict)
        error: Human readable message on failure
        code: ErrorCode on failure
        details: Extra diagnostic data on failure (e.g. smart code issues,
                 the posting summary that was attempted)
    """

    def __init__(self, success: bool, data=None, error: str = None, code: str = None, details=None):
        self.success = success
        self.data = data
        self.error = error
        self.code = code
        self.details = details or {}

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, error: str, details=None):
        return cls(success=False, error=error, code=code, details=details)

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "data": self.data}
        return {
            "success": False,
            "error": {"code": self.code, "message": self.error, "details": self.details},
        }

    def __repr__(self):
        if self.success:
            return f"CommandResult(ok, data={self.data!r})"
        return f"CommandResult(fail, code={self.code}, error={self.error!r})"


def smart_code_failure(label: str, validation) -> CommandResult:
    """Build the SMART_CODE_INVALID failure for a failed validation."""
    return CommandResult.fail(
        ErrorCode.SMART_CODE_INVALID,
        f"Invalid smart code for {label}.",
        details={"field": label, **validation.to_dict()},
    )
