"""
Domain exceptions for the fee administration core.

Input-format and value-coercion problems are never raised (they are
returned as structured results); these exceptions cover lookups and
invalid workflow transitions.
"""


class LidgeldError(Exception):
    """Base exception for fee administration operations."""
    pass


class FeeNotFoundError(LidgeldError):
    """Raised when a fee is not found."""
    pass


class MemberNotFoundError(LidgeldError):
    """Raised when a member is not found."""
    pass


class ImportSessionError(LidgeldError):
    """Raised when an import session step transition is invalid."""
    pass


class SepaBatchError(LidgeldError):
    """Raised when a SEPA batch cannot be generated."""
    pass
