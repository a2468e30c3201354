"""
Exception types raised by the settlement engine.

Every error carries a machine-readable ``kind`` so the presentation layer can
pick a message without parsing free text.
"""


class LedgerError(Exception):
    kind = "error"

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message}
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        return data


class ValidationError(LedgerError):
    kind = "validation"


class InvalidConfigError(ValidationError):
    kind = "invalid_config"


class NotFoundError(LedgerError):
    kind = "not_found"


class StateError(LedgerError):
    kind = "state"


class UnauthorizedError(StateError):
    kind = "unauthorized"


class InsufficientBalanceError(LedgerError):
    kind = "insufficient_balance"


class PersistenceError(LedgerError):
    kind = "persistence"


class ThrottledError(LedgerError):
    kind = "throttled"


class ExternalApiError(LedgerError):
    kind = "external_api"

    def __init__(self, message: str, status: int | None = None, retry_after: float | None = None):
        super().__init__(message, retry_after=retry_after)
        self.status = status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status"] = self.status
        return data


class ExternalBadRequestError(ExternalApiError):
    kind = "external_bad_request"


class ExternalAuthError(ExternalApiError):
    kind = "external_auth"


class ExternalNotFoundError(ExternalApiError):
    kind = "external_not_found"


class ExternalRateLimitedError(ExternalApiError):
    kind = "external_rate_limited"

    def __init__(self, message: str, status: int = 429, retry_after: float | None = None,
                 is_global: bool = False):
        super().__init__(message, status=status, retry_after=retry_after)
        self.is_global = is_global


class ExternalServerError(ExternalApiError):
    kind = "external_server"


class ExternalUnknownError(ExternalApiError):
    kind = "external_unknown"


class CompensationFailure(LedgerError):
    """
    The local ledger and the external service disagree and could not be
    brought back in line automatically. Needs manual reconciliation.
    """
    kind = "compensation_failure"

    def __init__(self, message: str, account_id: int | None = None, restore_delta=None):
        super().__init__(message)
        self.account_id = account_id
        # Amount that still has to be added to the account to undo the local step
        self.restore_delta = restore_delta
