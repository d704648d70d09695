# app/errors.py
"""
Error taxonomy for the access ledger.

StoreError       — backend connectivity / permission failure on any store call
ValidationError  — malformed manual-entry input, raised before touching the store
RecordError      — what record_entry raises; wraps one of the two above

Warnings raised by the manual-entry flow are NOT errors; see
app/services/live_view.py.
"""


class LedgerError(Exception):
    """Base class for every error the ledger raises."""


class StoreError(LedgerError):
    """The document store could not complete a read or write."""


class ValidationError(LedgerError):
    """Manual-entry input is missing or malformed."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class RecordError(LedgerError):
    """A manual entry could not be recorded. `cause` holds the underlying error."""

    def __init__(self, cause: LedgerError):
        super().__init__(str(cause))
        self.cause = cause

    @property
    def is_validation(self) -> bool:
        return isinstance(self.cause, ValidationError)
