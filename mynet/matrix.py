"""
matrix.py
~~~~~~~~~

Dense 2-D matrix of floats used by the hand-written network.

Every operation has an explicit name instead of dispatching on the type of
its operand. Operations are pure (they return a new Matrix) unless their
name ends in ``_inplace``; those overwrite the receiver and return it.

Destructive operations validate their operand before writing anything, so a
failed call leaves the receiver untouched. A successful destructive call is
not safe to retry.

Values entering from outside (``from_array``, ``from_rows`` and scalar
operands) must be finite; NaN and infinities are rejected with ValueError.
"""

import math
import numbers
from typing import Callable, Iterable, List, Optional, Union

import numpy as np

from mynet.errors import InvalidOperandError, ShapeMismatchError

Scalar = Union[int, float]


def _require_finite(array: np.ndarray, operation: str) -> None:
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{operation} received NaN or infinite values")


class Matrix:
    """
    A ``rows x cols`` grid of float64 values.

    Attributes:
        rows: Number of rows
        cols: Number of columns
        data: ``numpy.ndarray`` of shape ``(rows, cols)``
    """

    def __init__(self, rows: int, cols: int):
        """
        Allocate a zero-filled matrix.

        Args:
            rows: Number of rows (>= 0)
            cols: Number of columns (>= 0)

        Raises:
            ValueError: If either dimension is negative
        """
        if rows < 0 or cols < 0:
            raise ValueError(
                f"Matrix dimensions must be non-negative, got {rows}x{cols}"
            )
        self.rows = int(rows)
        self.cols = int(cols)
        self.data = np.zeros((self.rows, self.cols), dtype=np.float64)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def _wrap(cls, array: np.ndarray) -> 'Matrix':
        matrix = cls(array.shape[0], array.shape[1])
        matrix.data = array.astype(np.float64, copy=False)
        return matrix

    @classmethod
    def randomize(
        cls,
        rows: int,
        cols: int,
        rng: Optional[np.random.Generator] = None
    ) -> 'Matrix':
        """
        Create a matrix with every element drawn uniformly from [-1, 1).

        Args:
            rows: Number of rows
            cols: Number of columns
            rng: Random generator to draw from (a fresh one if omitted)
        """
        matrix = cls(rows, cols)
        rng = rng if rng is not None else np.random.default_rng()
        matrix.data = rng.uniform(-1.0, 1.0, size=(matrix.rows, matrix.cols))
        return matrix

    @classmethod
    def from_array(cls, values: Iterable[float]) -> 'Matrix':
        """Return a ``len(values) x 1`` column matrix holding ``values`` in order."""
        if not isinstance(values, np.ndarray):
            values = list(values)
        column = np.array(values, dtype=np.float64).reshape(-1, 1)
        _require_finite(column, "from_array")
        return cls._wrap(column)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[float]]) -> 'Matrix':
        """Build a matrix from nested row sequences of equal length."""
        try:
            array = np.array([list(row) for row in rows], dtype=np.float64)
        except ValueError as e:
            raise ShapeMismatchError(f"Rows must all have the same length: {e}") from e
        if array.ndim == 1 and array.size == 0:
            return cls(0, 0)
        if array.ndim != 2:
            raise ShapeMismatchError("Rows must all have the same length")
        _require_finite(array, "from_rows")
        return cls._wrap(array)

    def to_array(self) -> List[float]:
        """Return the elements as a flat list in row-major order."""
        return [float(value) for value in self.data.reshape(-1)]

    def to_list(self) -> List[List[float]]:
        """Return the elements as nested row lists."""
        return self.data.tolist()

    def copy(self) -> 'Matrix':
        """Return a deep, independent copy."""
        return Matrix._wrap(self.data.copy())

    @property
    def shape(self):
        return self.rows, self.cols

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_scalar(value: Scalar, operation: str) -> float:
        if isinstance(value, Matrix) or not isinstance(value, numbers.Real):
            raise InvalidOperandError(
                f"{operation} expects a scalar, got {type(value).__name__}"
            )
        if not math.isfinite(value):
            raise ValueError(f"{operation} expects a finite scalar, got {value}")
        return float(value)

    @staticmethod
    def _require_matrix(value: 'Matrix', operation: str) -> 'Matrix':
        if not isinstance(value, Matrix):
            raise InvalidOperandError(
                f"{operation} expects a Matrix, got {type(value).__name__}"
            )
        return value

    def _require_same_shape(self, other: 'Matrix', operation: str) -> None:
        self._require_matrix(other, operation)
        if self.rows != other.rows or self.cols != other.cols:
            raise ShapeMismatchError(
                f"{operation} failed: size mismatch "
                f"{self.rows}x{self.cols} vs {other.rows}x{other.cols}"
            )

    # ------------------------------------------------------------------
    # Multiplication
    # ------------------------------------------------------------------

    def scalar_multiply(self, scalar: Scalar) -> 'Matrix':
        """Return a new matrix with every element multiplied by ``scalar``."""
        factor = self._require_scalar(scalar, 'scalar_multiply')
        return Matrix._wrap(self.data * factor)

    def scalar_multiply_inplace(self, scalar: Scalar) -> 'Matrix':
        """Multiply every element by ``scalar`` in place and return self."""
        factor = self._require_scalar(scalar, 'scalar_multiply_inplace')
        self.data *= factor
        return self

    def elementwise_multiply(self, other: 'Matrix') -> 'Matrix':
        """Return the Hadamard product of two same-shape matrices."""
        self._require_same_shape(other, 'elementwise_multiply')
        return Matrix._wrap(self.data * other.data)

    def elementwise_multiply_inplace(self, other: 'Matrix') -> 'Matrix':
        """
        Multiply self by ``other`` element by element, in place.

        The receiver is consumed: any other reference to it observes the
        new values. Returns self.
        """
        self._require_same_shape(other, 'elementwise_multiply_inplace')
        self.data *= other.data
        return self

    def matrix_product(self, other: 'Matrix') -> 'Matrix':
        """
        Return the standard matrix product ``self x other``.

        Raises:
            ShapeMismatchError: If ``self.cols != other.rows``
        """
        self._require_matrix(other, 'matrix_product')
        if self.cols != other.rows:
            raise ShapeMismatchError(
                f"matrix_product failed: inner dimensions differ "
                f"({self.rows}x{self.cols} x {other.rows}x{other.cols})"
            )
        return Matrix._wrap(self.data @ other.data)

    # ------------------------------------------------------------------
    # Addition
    # ------------------------------------------------------------------

    def add_matrix(self, other: 'Matrix') -> 'Matrix':
        """Return the elementwise sum of two same-shape matrices."""
        self._require_same_shape(other, 'add_matrix')
        return Matrix._wrap(self.data + other.data)

    def add_matrix_inplace(self, other: 'Matrix') -> 'Matrix':
        """Add ``other`` to self element by element, in place. Returns self."""
        self._require_same_shape(other, 'add_matrix_inplace')
        self.data += other.data
        return self

    def add_scalar(self, scalar: Scalar) -> 'Matrix':
        """Return a new matrix with ``scalar`` added to every element."""
        value = self._require_scalar(scalar, 'add_scalar')
        return Matrix._wrap(self.data + value)

    def add_scalar_inplace(self, scalar: Scalar) -> 'Matrix':
        """Add ``scalar`` to every element in place. Returns self."""
        value = self._require_scalar(scalar, 'add_scalar_inplace')
        self.data += value
        return self

    # ------------------------------------------------------------------
    # Mapping and reshaping
    # ------------------------------------------------------------------

    def map(self, func: Callable[[float], float]) -> 'Matrix':
        """Return a new matrix with ``func`` applied to every element."""
        if self.data.size == 0:
            return Matrix(self.rows, self.cols)
        mapped = np.vectorize(func, otypes=[np.float64])(self.data)
        return Matrix._wrap(mapped)

    def map_inplace(self, func: Callable[[float], float]) -> 'Matrix':
        """Apply ``func`` to every element in place. Returns self."""
        self.data = self.map(func).data
        return self

    def transpose(self) -> 'Matrix':
        """Return a new ``cols x rows`` matrix with ``result[j][i] == self[i][j]``."""
        return Matrix._wrap(self.data.T.copy())

    # ------------------------------------------------------------------
    # Element access and comparison
    # ------------------------------------------------------------------

    def __getitem__(self, index):
        row, col = index
        return float(self.data[row, col])

    def __setitem__(self, index, value: float) -> None:
        row, col = index
        self.data[row, col] = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self.data, other.data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.cols}, {self.to_list()})"
