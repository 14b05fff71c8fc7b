"""
errors.py
~~~~~~~~~

Exception types raised by the matrix and network code.

All errors are raised synchronously and abort the operation in progress.
Each one also derives from the builtin exception a caller would naturally
catch (``ValueError`` or ``TypeError``).
"""


class NetworkError(Exception):
    """Base class for all errors raised by mynet."""


class ShapeMismatchError(NetworkError, ValueError):
    """Two matrices have incompatible shapes for the requested operation."""


class DimensionMismatchError(NetworkError, ValueError):
    """An input or target vector does not match the configured layer size."""


class InvalidOperandError(NetworkError, TypeError):
    """An operand is neither a scalar nor a Matrix where one was required."""


class UnknownKindError(NetworkError, ValueError):
    """An activation kind or model type identifier is not recognized."""
