from __future__ import annotations


class SettlementError(Exception):
    """Base for every typed failure surfaced by the settlement engine."""

    code = "settlement_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "detail": self.message,
            "retryable": self.retryable,
        }


class ValidationError(SettlementError):
    code = "validation_error"


class LimitExceeded(ValidationError):
    # Per-transaction or daily cap; retry with a smaller amount or the next day.
    code = "limit_exceeded"


class InsufficientBalance(SettlementError):
    code = "insufficient_balance"


class DuplicateSubmission(SettlementError):
    code = "duplicate_submission"


class NotFound(SettlementError):
    code = "not_found"


class AlreadyReversed(SettlementError):
    code = "already_reversed"


class InvalidTransition(SettlementError):
    code = "invalid_transition"


class PersistenceFailure(SettlementError):
    code = "persistence_failure"
    retryable = True
