"""
Error taxonomy shared by services and request handlers.
"""

from typing import List, Optional


class OrgLedgerError(Exception):
    """Base class for all expected orgledger errors."""

    status_code = 500

    def __init__(self, message: str, code: str = "ORGLEDGER_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(OrgLedgerError):
    """
    Raised for missing or malformed input.

    Attributes:
        errors: Field-level messages, when more than one check failed.
    """

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.errors = errors or []


class InvalidHierarchy(OrgLedgerError):
    """Raised when a walk up the tree never reaches the expected ancestor."""

    status_code = 400

    def __init__(self, message: str = "Invalid hierarchy: user node is not an ancestor") -> None:
        super().__init__(message, code="INVALID_HIERARCHY")


class Unauthorized(OrgLedgerError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, code="UNAUTHORIZED")


class Forbidden(OrgLedgerError):
    status_code = 403

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message, code="FORBIDDEN")


class NotFound(OrgLedgerError):
    status_code = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, code="NOT_FOUND")


class ServerError(OrgLedgerError):
    status_code = 500

    def __init__(self, message: str = "Server error") -> None:
        super().__init__(message, code="SERVER_ERROR")


class ConfigurationError(OrgLedgerError):
    """Raised when required environment variables are missing or malformed."""

    status_code = 500

    def __init__(self, problems: List[str]) -> None:
        super().__init__("Invalid configuration: " + "; ".join(problems), code="CONFIGURATION_ERROR")
        self.problems = problems
