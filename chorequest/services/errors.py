"""Service-layer exceptions.

Each error carries the HTTP status code a route should answer with, so
routes can translate any ChoreServiceError without knowing its type.
"""


class ChoreServiceError(Exception):
    """Base exception for engine service errors."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class ForbiddenError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 403)


class BadRequestError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class InvalidBidAmountError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class NotChampionError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 403)


class BiddingClosedError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 409)


class AlreadyProcessedError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 409)


class InsufficientFloorError(ChoreServiceError):
    """A clamped debit was reduced to nothing by the protected minimum."""

    def __init__(self, message: str):
        super().__init__(message, 400)


class InsufficientFundsError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class ConcurrencyConflictError(ChoreServiceError):
    """Lost a race on a wallet, completion or generation lock. Callers retry."""

    def __init__(self, message: str):
        super().__init__(message, 409)


class WalletFrozenError(ChoreServiceError):
    def __init__(self, message: str):
        super().__init__(message, 423)


class LedgerInvariantError(ChoreServiceError):
    """Cached wallet balance disagrees with its transactions. Never swallowed."""

    def __init__(self, message: str):
        super().__init__(message, 500)
