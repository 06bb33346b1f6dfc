class ReconciliationError(Exception):
    """Base class for errors surfaced to callers of the reconciliation core."""

    retryable = False


class ValidationFailure(ReconciliationError):
    """Malformed caller input: invalid date range, unknown party type, bad mode or basis."""


class StoreUnavailableError(ReconciliationError):
    """The transaction store could not be read. Callers may retry."""

    retryable = True
