"""
Error taxonomy for the BitFlow engine.

Only boundary errors are raised. Insufficient data and arithmetic edge
cases resolve to documented defaults inside the components and are logged.
"""


class BitflowError(Exception):
    """Base class for all engine errors"""


class InvalidInputError(BitflowError, ValueError):
    """Malformed bar or trade record rejected at the input boundary"""


class ExternalCollaboratorError(BitflowError):
    """Raised by an external signal/news/persistence provider that failed"""
