"""
Ledger error taxonomy.

Errors surface synchronously to the immediate caller, which decides what
the user sees. Nothing here is retried: the ledger does no I/O.
"""


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError, ValueError):
    """
    An input record or value is malformed.

    Raised for non-numeric or missing amounts, categories outside the
    fixed enumeration, incomplete installment data and similar problems.
    Always names the offending field.

    Subclassing ValueError lets pydantic validators raise it directly;
    the validation layer unwraps it again with the field intact.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class RangeError(LedgerError):
    """An unrecognized date-range token was requested."""

    def __init__(self, token: object):
        self.token = token
        super().__init__(
            f"Unknown date range: {token!r}. Expected one of Week, Month, Year, All"
        )
