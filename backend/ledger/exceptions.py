# ledger/exceptions.py
"""
Error taxonomy for the general ledger core.

Every error is raised synchronously by the operation that detected it and
before that operation commits anything:

- ValidationError: unbalanced entries, unknown/inactive account or fund,
  malformed line. Fix the input and try again.
- InvalidStateError: illegal lifecycle transition. Re-fetch and decide.
- ConcurrentModificationError: lost an optimistic-lock race (or hit a
  running rebuild). Retry with fresh state; the core never retries itself.
- ConsistencyError: a rebuild found materialized balances that disagree
  with the posted-entry log. Fatal to the rebuild; nothing is overwritten.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ValidationError(LedgerError):
    """Input is not acceptable. Carries every problem found, not just the first."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidStateError(LedgerError):
    pass


class ConcurrentModificationError(LedgerError):
    pass


class ConsistencyError(LedgerError):
    """Materialized balances disagree with the posted-entry log."""

    def __init__(self, message: str, mismatches=None):
        super().__init__(message)
        self.mismatches = list(mismatches or [])


class NotFoundError(LedgerError):
    pass
