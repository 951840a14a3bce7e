class LedgerError(Exception):
    """Base class for every failure the ledger reports to its callers.

    ``code`` is the stable identifier returned in API bodies, ``public_message``
    is what a user may see. Internal causes stay in the logs.
    """

    code = "LedgerError"
    status_code = 400
    retryable = False
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class InvalidAmount(LedgerError):
    code = "InvalidAmount"
    default_message = "Points must be a positive integer"


class InvalidRequest(LedgerError):
    code = "InvalidRequest"
    default_message = "Malformed request"


class EnrollmentRequired(LedgerError):
    code = "EnrollmentRequired"
    status_code = 409
    default_message = "Customer is not enrolled in this program"


class CardNotFound(LedgerError):
    code = "CardNotFound"
    status_code = 404
    default_message = "Loyalty card not found"


class ProgramNotFound(LedgerError):
    code = "ProgramNotFound"
    status_code = 404
    default_message = "Program not found or inactive"


class IdempotencyConflict(LedgerError):
    code = "IdempotencyConflict"
    status_code = 409
    default_message = "Idempotency key already used for a different card"


class InsufficientPoints(LedgerError):
    code = "InsufficientPoints"
    status_code = 409
    default_message = "Insufficient points balance"


class ConcurrencyConflict(LedgerError):
    code = "ConcurrencyConflict"
    status_code = 503
    retryable = True
    default_message = "The card was updated concurrently, please retry"


class PersistenceFailure(LedgerError):
    code = "PersistenceFailure"
    status_code = 500
    default_message = "Something went wrong, please try again"

    @property
    def public_message(self) -> str:
        return PersistenceFailure.default_message
