"""
Dense weight matrices for the road navigation graph.

``WeightMatrix`` stores a rectangular cost matrix in a single flat, row-major
array. ``OverlayMatrix`` adds rows and columns around an existing matrix
without copying it, so that a path query can attach its transient start and
goal nodes to the persistent graph cheaply.
"""

from enum import Enum
from typing import Any, Tuple

import numpy as np
from numpy.typing import NDArray


class WeightMatrix:
    """
    Rectangular matrix of float64 values in flat row-major storage.

    Element ``(x, y)`` lives at ``x + y * width``.
    """

    def __init__(self, width: int, height: int, fill_value: float = 0.0):
        """
        Initialize the matrix.

        Args:
            width: Number of columns
            height: Number of rows
            fill_value: Initial value of every element

        Raises:
            ValueError: If width or height is negative
        """
        if width < 0 or height < 0:
            raise ValueError("Width and height must be >= 0")
        self.width = width
        self.height = height
        self._data: NDArray[np.float64] = np.full(width * height, fill_value, dtype=np.float64)

    @classmethod
    def from_array(cls, values: Any) -> "WeightMatrix":
        """Build a matrix from a 2D array-like indexed as ``values[y][x]``."""
        array = np.asarray(values, dtype=np.float64)
        if array.ndim != 2:
            raise ValueError("values must be two-dimensional")
        matrix = cls(array.shape[1], array.shape[0])
        matrix._data[:] = array.reshape(-1)
        return matrix

    @property
    def length(self) -> int:
        return self.width * self.height

    @property
    def shape(self) -> Tuple[int, int]:
        """(width, height)"""
        return self.width, self.height

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) is outside of a {self.width}x{self.height} matrix")
        return x + y * self.width

    def get(self, x: int, y: int) -> float:
        return float(self._data[self._index(x, y)])

    def set(self, x: int, y: int, value: float) -> None:
        self._data[self._index(x, y)] = value

    def set_symmetric(self, x: int, y: int, value: float) -> None:
        """Set both ``(x, y)`` and ``(y, x)``."""
        self.set(x, y, value)
        self.set(y, x, value)

    def __getitem__(self, key: Tuple[int, int]) -> float:
        x, y = key
        return self.get(x, y)

    def __setitem__(self, key: Tuple[int, int], value: float) -> None:
        x, y = key
        self.set(x, y, value)

    def as_flat(self) -> NDArray[np.float64]:
        """The backing array itself (no copy)."""
        return self._data

    def to_array(self) -> NDArray[np.float64]:
        """Flat row-major copy of the data."""
        return self._data.copy()

    def copy(self) -> "WeightMatrix":
        clone = WeightMatrix(self.width, self.height)
        clone._data[:] = self._data
        return clone

    def __repr__(self) -> str:
        return f"WeightMatrix(width={self.width}, height={self.height})"


class _Location(Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    DATA = "data"


class OverlayMatrix:
    """
    Matrix that adds rows and columns around a wrapped ``WeightMatrix``.

    The wrapped matrix occupies the block starting at ``(start_x, start_y)``.
    Everything above or below that block, in full width, lives in the
    horizontal band. Everything left or right of it, for the rows of the
    block, lives in the vertical band. Writes inside the block go to the
    wrapped matrix, which is never copied, resized or released by the overlay.

    Usable as a context manager: the bands are dropped on exit.
    """

    def __init__(self, data: WeightMatrix, start_x: int, start_y: int, width: int, height: int):
        """
        Initialize the overlay.

        Args:
            data: Matrix to wrap
            start_x: Column of the wrapped matrix's first column
            start_y: Row of the wrapped matrix's first row
            width: Total width
            height: Total height

        Raises:
            ValueError: If the wrapped matrix does not fit
        """
        if start_x < 0 or start_y < 0:
            raise ValueError("start_x and start_y must be >= 0")
        if start_x + data.width > width or start_y + data.height > height:
            raise ValueError("Data does not fit into the array.")
        self.width = width
        self.height = height
        self.start_x = start_x
        self.start_y = start_y
        self._data = data
        # top and bottom rows in full width
        self._horizontal = WeightMatrix(width, height - data.height)
        # left and right columns without top and bottom rows
        self._vertical = WeightMatrix(width - data.width, data.height)
        self._released = False

    @property
    def length(self) -> int:
        return self.width * self.height

    @property
    def shape(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def base(self) -> WeightMatrix:
        return self._data

    def _locate(self, x: int, y: int) -> Tuple[_Location, int, int]:
        if self._released:
            raise RuntimeError("OverlayMatrix has been released")
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) is outside of a {self.width}x{self.height} matrix")

        data = self._data
        if y < self.start_y:
            return _Location.HORIZONTAL, x, y
        if y >= self.start_y + data.height:
            return _Location.HORIZONTAL, x, y - data.height
        if x < self.start_x:
            return _Location.VERTICAL, x, y - self.start_y
        if x >= self.start_x + data.width:
            return _Location.VERTICAL, x - data.width, y - self.start_y
        return _Location.DATA, x - self.start_x, y - self.start_y

    def _store(self, location: _Location) -> WeightMatrix:
        if location is _Location.HORIZONTAL:
            return self._horizontal
        if location is _Location.VERTICAL:
            return self._vertical
        return self._data

    def get(self, x: int, y: int) -> float:
        location, lx, ly = self._locate(x, y)
        return self._store(location).get(lx, ly)

    def set(self, x: int, y: int, value: float) -> None:
        location, lx, ly = self._locate(x, y)
        self._store(location).set(lx, ly, value)

    def set_symmetric(self, x: int, y: int, value: float) -> None:
        self.set(x, y, value)
        self.set(y, x, value)

    def __getitem__(self, key: Tuple[int, int]) -> float:
        x, y = key
        return self.get(x, y)

    def __setitem__(self, key: Tuple[int, int], value: float) -> None:
        x, y = key
        self.set(x, y, value)

    def to_array(self) -> NDArray[np.float64]:
        """
        Flat row-major copy of the whole logical matrix.

        Not cheap: the bands and the wrapped data are copied into a new
        array. Meant for inspection and tests only.
        """
        if self._released:
            raise RuntimeError("OverlayMatrix has been released")

        data = self._data
        width = self.width
        result = np.empty(self.length, dtype=np.float64)
        horizontal = self._horizontal.as_flat()
        vertical = self._vertical.as_flat()
        inner = data.as_flat()
        vertical_width = self._vertical.width

        top = self.start_y * width
        result[:top] = horizontal[:top]

        if width == data.width:
            result[top : top + data.length] = inner
        else:
            right = self.start_x + data.width
            for row in range(data.height):
                offset = (self.start_y + row) * width
                result[offset : offset + self.start_x] = vertical[
                    row * vertical_width : row * vertical_width + self.start_x
                ]
                result[offset + self.start_x : offset + right] = inner[
                    row * data.width : (row + 1) * data.width
                ]
                result[offset + right : offset + width] = vertical[
                    row * vertical_width + self.start_x : (row + 1) * vertical_width
                ]

        bottom = (self.start_y + data.height) * width
        result[bottom:] = horizontal[top:]
        return result

    def release(self) -> None:
        """Drop the bands. The wrapped matrix is left untouched."""
        self._horizontal = WeightMatrix(0, 0)
        self._vertical = WeightMatrix(0, 0)
        self._released = True

    def __enter__(self) -> "OverlayMatrix":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return (
            f"OverlayMatrix(width={self.width}, height={self.height}, "
            f"start_x={self.start_x}, start_y={self.start_y}, base={self._data!r})"
        )
