"""
Exceptions and warnings raised by linearbandits.
"""


class LinearBanditError(Exception):
    """Base class for errors raised by linearbandits."""


class InvalidInput(LinearBanditError, ValueError):
    """Raised for malformed contexts, empty candidate sets and bad configuration."""


class UnknownArm(LinearBanditError, KeyError):
    """Raised when an arm is not registered and lazy registration is disabled."""


class NumericInstability(LinearBanditError, ArithmeticError):
    """Raised when an arm's covariance system cannot be solved to finite values."""


class IllConditionedWarning(UserWarning):
    """Warns that an arm's covariance matrix is close to singular."""


class ReplayWarning(UserWarning):
    """Warns about degenerate off-policy replays."""
