"""Domain error hierarchy.

Services raise these; the API layer maps each class to an HTTP status in
main.py. Any failure raised from inside a ledger-affecting unit of work is
followed by a rollback, so no partial debit or credit is ever committed.
"""


class InvestProError(Exception):
    """Base class for all domain errors."""
    status_code = 500

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class Unauthorized(InvestProError):
    """Missing, expired or invalid credentials."""
    status_code = 401


class Forbidden(InvestProError):
    """Valid identity without the required role, or a disabled feature."""
    status_code = 403


class NotFound(InvestProError):
    """Entity id does not resolve."""
    status_code = 404


class InvalidStateTransition(InvestProError):
    """Transition attempted from a state that does not allow it."""
    status_code = 409


class InsufficientFunds(InvestProError):
    """Debit would drive an account balance negative."""
    status_code = 400


class ValidationError(InvestProError):
    """Malformed input or amount outside allowed bounds."""
    status_code = 400


class Conflict(InvestProError):
    """Duplicate resource, or idempotency key reused with different parameters."""
    status_code = 409
