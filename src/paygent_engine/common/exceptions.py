"""Paygent-Engine exception hierarchy."""


class PaygentError(Exception):
    """Base exception for all Paygent errors."""

    def __init__(self, message: str = "", code: str = "PAYGENT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


# ── Lookup failures ──

class NotFoundError(PaygentError):
    """Raised when a referenced record does not exist."""

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(message, code=code)


class CustomerNotFoundError(NotFoundError):
    def __init__(self, message: str = "Customer not found"):
        super().__init__(message, code="CUSTOMER_NOT_FOUND")


class AgentNotFoundError(NotFoundError):
    def __init__(self, message: str = "Agent not found"):
        super().__init__(message, code="AGENT_NOT_FOUND")


class SignalNotFoundError(NotFoundError):
    def __init__(self, message: str = "Signal not found"):
        super().__init__(message, code="SIGNAL_NOT_FOUND")


class ModelNotFoundError(NotFoundError):
    """Raised when a model identifier is unknown or inactive in the catalog."""

    def __init__(self, message: str = "Model not found"):
        super().__init__(message, code="MODEL_NOT_FOUND")


class AllocationNotFoundError(NotFoundError):
    def __init__(self, message: str = "Credit allocation not found"):
        super().__init__(message, code="ALLOCATION_NOT_FOUND")


# ── Input / state failures ──

class ValidationError(PaygentError):
    """Raised for malformed input, before anything is written."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, code="VALIDATION_ERROR")


class AccessDeniedError(PaygentError):
    """Raised when a customer calls a restricted agent it is not linked to."""

    def __init__(self, message: str = "Customer is not linked to this agent"):
        super().__init__(message, code="ACCESS_DENIED")


class InsufficientCreditsError(PaygentError):
    """Raised when a deduction would take a balance below zero."""

    def __init__(self, message: str = "Insufficient credits"):
        super().__init__(message, code="INSUFFICIENT_CREDITS")


class ConcurrencyConflictError(PaygentError):
    """Raised when a conditional write matched no row because another writer won."""

    def __init__(self, message: str = "Concurrent update conflict", code: str = "CONCURRENCY_CONFLICT"):
        super().__init__(message, code=code)


class AlreadyRenewedError(ConcurrencyConflictError):
    def __init__(self, message: str = "Fee transaction was already renewed"):
        super().__init__(message, code="ALREADY_RENEWED")


class LedgerImmutableError(PaygentError):
    """Raised on an attempt to modify an append-only ledger row."""

    def __init__(self, message: str = "Ledger rows are append-only"):
        super().__init__(message, code="LEDGER_IMMUTABLE")
