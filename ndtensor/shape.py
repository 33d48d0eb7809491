"""
Shape, index and layout primitives.

This module holds the leaves of the engine: the fixed-rank ``Shape`` and
``Index`` sequences, the ``Layout`` tag, the conversion between multi-indices
and flat offsets for either layout, and the broadcasting rules. Everything
else (storage, iterators, indexing routines) is written in terms of these.
"""
import enum
import math
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from ndtensor.errors import OutOfBoundsError, ShapeError


class Layout(enum.Enum):
    """
    Memory layout of a tensor.

    In row-major order the last axis is contiguous; in column-major order
    the first axis is contiguous.
    """
    ROW_MAJOR = "C"
    COLUMN_MAJOR = "F"

    def __str__(self) -> str:
        return self.value


DEFAULT_LAYOUT = Layout.ROW_MAJOR

_LayoutLike = Union[Layout, str, None]

_LAYOUT_ALIASES = {
    "c": Layout.ROW_MAJOR,
    "row_major": Layout.ROW_MAJOR,
    "f": Layout.COLUMN_MAJOR,
    "column_major": Layout.COLUMN_MAJOR,
}


def as_layout(order: _LayoutLike, default: Layout = DEFAULT_LAYOUT) -> Layout:
    """
    Normalize a layout specifier to a :class:`Layout`.

    Parameters
    ----------
    order : {None, Layout, 'C', 'F', 'row_major', 'column_major'}
        Layout specifier (case-insensitive). ``None`` selects ``default``.
    default : Layout, default=Layout.ROW_MAJOR
        Layout returned for ``None``.

    Returns
    -------
    Layout

    Raises
    ------
    ValueError
        If ``order`` is not a recognized layout.

    Examples
    --------
    >>> as_layout("F")
    <Layout.COLUMN_MAJOR: 'F'>
    >>> as_layout(None)
    <Layout.ROW_MAJOR: 'C'>
    """
    if order is None:
        return default
    if isinstance(order, Layout):
        return order
    if isinstance(order, str):
        layout = _LAYOUT_ALIASES.get(order.lower())
        if layout is not None:
            return layout
    raise ValueError(f"Unknown layout spec: {order!r}")


class _IndexTuple:
    """
    Fixed-length sequence of integers shared by :class:`Shape` and :class:`Index`.

    The length (rank) is set at construction and never changes; individual
    entries may be reassigned.
    """
    __slots__ = ("_data",)

    def __init__(self, *values: Any) -> None:
        if len(values) == 1 and not isinstance(values[0], (int, np.integer)):
            values = tuple(values[0])
        self._data = [self._check(int(v)) for v in values]

    @classmethod
    def _check(cls, value: int) -> int:
        return value

    @property
    def ndim(self) -> int:
        """int: Number of entries (the rank)."""
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[int]:
        return iter(self._data)

    def __getitem__(self, i: Union[int, slice]) -> Any:
        if isinstance(i, slice):
            return tuple(self._data[i])
        return self._data[i]

    def __setitem__(self, i: int, value: int) -> None:
        if isinstance(i, slice):
            raise TypeError(f"{type(self).__name__} has a fixed rank; slice assignment is not supported")
        self._data[i] = self._check(int(value))

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, (_IndexTuple, tuple, list)):
            return tuple(self._data) == tuple(other)
        return NotImplemented

    def __ne__(self, other: Any) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def _binary(self, other: Any, op) -> "_IndexTuple":
        if isinstance(other, (int, np.integer)):
            return type(self)(op(a, int(other)) for a in self._data)
        other = tuple(other)
        if len(other) != len(self._data):
            raise ValueError(
                f"rank mismatch in {type(self).__name__} arithmetic: "
                f"{len(self._data)} vs {len(other)}"
            )
        return type(self)(op(a, int(b)) for a, b in zip(self._data, other))

    def __add__(self, other):
        return self._binary(other, lambda a, b: a + b)

    def __radd__(self, other):
        return self._binary(other, lambda a, b: b + a)

    def __sub__(self, other):
        return self._binary(other, lambda a, b: a - b)

    def __rsub__(self, other):
        return self._binary(other, lambda a, b: b - a)

    def __mul__(self, other):
        return self._binary(other, lambda a, b: a * b)

    def __rmul__(self, other):
        return self._binary(other, lambda a, b: b * a)

    def __floordiv__(self, other):
        return self._binary(other, lambda a, b: a // b)

    def __mod__(self, other):
        return self._binary(other, lambda a, b: a % b)

    def prod(self) -> int:
        """Return the product of the entries (1 for rank 0)."""
        return math.prod(self._data)

    def transpose(self) -> "_IndexTuple":
        """Return a copy with the entries in reverse order."""
        return type(self)(reversed(self._data))

    def copy(self) -> "_IndexTuple":
        return type(self)(self._data)

    def to_tuple(self) -> Tuple[int, ...]:
        return tuple(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(str(v) for v in self._data)})"

    def __str__(self) -> str:
        if len(self._data) == 1:
            return f"({self._data[0]},)"
        return "(" + ", ".join(str(v) for v in self._data) + ")"

    @classmethod
    def parse(cls, text: str) -> "_IndexTuple":
        """
        Parse the textual form produced by ``str()``.

        Parentheses or brackets are optional and a trailing comma is
        accepted, so ``"(3, 4)"``, ``"[3,4]"``, ``"3, 4"`` and ``"(5,)"``
        are all valid. An empty string or ``"()"`` gives rank 0.

        Raises
        ------
        ValueError
            If an entry is not an integer (or is negative for a shape).
        """
        body = text.strip()
        if body[:1] in "([" and body[-1:] in ")]":
            body = body[1:-1]
        tokens = [t.strip() for t in body.split(",")]
        if tokens and tokens[-1] == "":
            tokens.pop()
        try:
            values = [int(t) for t in tokens]
        except ValueError:
            raise ValueError(f"Cannot parse {cls.__name__} from {text!r}") from None
        return cls(values)


class Shape(_IndexTuple):
    """
    Per-axis lengths of a tensor.

    A shape has a fixed rank and non-negative entries. A zero on any axis
    makes the tensor empty; rank 0 describes a scalar (size 1).

    Examples
    --------
    >>> s = Shape(3, 4)
    >>> s.size
    12
    >>> s == (3, 4)
    True
    >>> str(s)
    '(3, 4)'
    >>> Shape.parse("(2, 5)")
    Shape(2, 5)
    """
    __slots__ = ()

    @classmethod
    def _check(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"negative dimensions are not allowed: {value}")
        return value

    @property
    def size(self) -> int:
        """int: Total number of elements described by the shape."""
        return math.prod(self._data)


class Index(_IndexTuple):
    """
    Multi-index: one signed coordinate per axis.

    An index is valid for a shape when ``0 <= index[i] < shape[i]`` on every
    axis; access through the tensor types checks this.

    Examples
    --------
    >>> i = Index(1, 2)
    >>> i + (1, 0)
    Index(2, 2)
    """
    __slots__ = ()


_ShapeLike = Union[Shape, Sequence[int], int]


def as_shape(shape: _ShapeLike) -> Shape:
    """Convert an int, a sequence of ints or a :class:`Shape` into a new :class:`Shape`."""
    if isinstance(shape, (int, np.integer)):
        return Shape(int(shape))
    return Shape(shape)


def make_shape(*sizes: int) -> Shape:
    """Return ``Shape(*sizes)``."""
    return Shape(sizes)


def make_index(*coords: int) -> Index:
    """Return ``Index(*coords)``."""
    return Index(coords)


def normalize_axis(axis: int, ndim: int) -> int:
    """
    Map a possibly negative axis onto ``range(ndim)``.

    Raises
    ------
    ValueError
        If ``axis`` is outside ``[-ndim, ndim)``.
    """
    axis = int(axis)
    if not -ndim <= axis < ndim:
        raise ValueError(f"axis {axis} is out of bounds for tensor of dimension {ndim}")
    return axis + ndim if axis < 0 else axis


def contiguous_strides(shape: _ShapeLike, order: _LayoutLike = None) -> Tuple[int, ...]:
    """
    Element strides of a contiguous buffer holding ``shape`` in ``order``.

    Row-major: ``stride[i] = prod(shape[i+1:])``.
    Column-major: ``stride[i] = prod(shape[:i])``.
    """
    shape = tuple(shape) if not isinstance(shape, (int, np.integer)) else (int(shape),)
    layout = as_layout(order)
    strides = [0] * len(shape)
    step = 1
    axes = range(len(shape) - 1, -1, -1) if layout is Layout.ROW_MAJOR else range(len(shape))
    for i in axes:
        strides[i] = step
        step *= int(shape[i])
    return tuple(strides)


def check_bounds(index: Iterable[int], shape: Sequence[int]) -> Tuple[int, ...]:
    """
    Validate a multi-index against a shape and return it as a tuple.

    Raises
    ------
    ValueError
        If the index rank differs from the shape rank.
    OutOfBoundsError
        If any coordinate is outside ``[0, shape[i])``.
    """
    index = tuple(int(i) for i in index)
    if len(index) != len(shape):
        raise ValueError(
            f"index {index} has rank {len(index)} but the shape has rank {len(shape)}"
        )
    for i, n in zip(index, shape):
        if not 0 <= i < n:
            raise OutOfBoundsError(index, shape)
    return index


def ravel_index(index: Iterable[int], shape: _ShapeLike, order: _LayoutLike = None) -> int:
    """
    Convert a multi-index into a flat index.

    Parameters
    ----------
    index : Index or sequence of int
        Coordinates, one per axis.
    shape : Shape or sequence of int
        Shape used for raveling.
    order : {None, 'C', 'F', Layout}, optional
        Whether the index is viewed as row-major (default) or column-major.

    Returns
    -------
    int
        ``sum(index[i] * stride[i])`` with the contiguous strides of
        ``shape`` in ``order``.

    Raises
    ------
    OutOfBoundsError
        If the index is not within ``shape``.

    Examples
    --------
    >>> ravel_index((1, 2), (3, 4))
    6
    >>> ravel_index((1, 2), (3, 4), "F")
    7
    """
    shape = as_shape(shape)
    index = check_bounds(index, shape)
    strides = contiguous_strides(shape, order)
    return sum(i * s for i, s in zip(index, strides))


def unravel_index(flat: int, shape: _ShapeLike, order: _LayoutLike = None) -> Index:
    """
    Convert a flat index into a multi-index; the inverse of :func:`ravel_index`.

    The flat index is divided by the contiguous strides of ``shape`` from
    the slowest axis inward.

    Raises
    ------
    OutOfBoundsError
        If ``flat`` is negative or not smaller than ``prod(shape)``; flat
        indices never wrap around.

    Examples
    --------
    >>> unravel_index(6, (3, 4))
    Index(1, 2)
    >>> unravel_index(7, (3, 4), "F")
    Index(1, 2)
    """
    shape = as_shape(shape)
    flat = int(flat)
    if not 0 <= flat < shape.size:
        raise OutOfBoundsError(flat, shape)
    return Index(_unravel(flat, tuple(shape), as_layout(order)))


def _unravel(flat: int, shape: Tuple[int, ...], layout: Layout) -> Tuple[int, ...]:
    coords = [0] * len(shape)
    axes = range(len(shape) - 1, -1, -1) if layout is Layout.ROW_MAJOR else range(len(shape))
    for i in axes:
        n = shape[i]
        coords[i] = flat % n
        flat //= n
    return tuple(coords)


def strided_offsets(shape: Sequence[int], strides: Sequence[int], offset: int = 0) -> np.ndarray:
    """
    Buffer offsets of every logical position of a strided layout.

    Parameters
    ----------
    shape : sequence of int
        Logical shape.
    strides : sequence of int
        Per-axis step in elements (may be zero or negative).
    offset : int, default=0
        Offset of the element at index ``(0, ..., 0)``.

    Returns
    -------
    numpy.ndarray
        ``numpy.intp`` array of shape ``shape`` whose entry at ``idx`` is
        ``offset + sum(idx[i] * strides[i])``.
    """
    shape = tuple(int(n) for n in shape)
    out = np.full(shape, offset, dtype=np.intp)
    for axis, (n, s) in enumerate(zip(shape, strides)):
        if n > 1 and s != 0:
            view_shape = [1] * len(shape)
            view_shape[axis] = n
            out += (np.arange(n, dtype=np.intp) * int(s)).reshape(view_shape)
    return out


def ravel_in(values: np.ndarray, order: _LayoutLike = None) -> np.ndarray:
    """Flatten an array indexed by logical position in traversal ``order``."""
    np_order = "C" if as_layout(order) is Layout.ROW_MAJOR else "F"
    return np.ravel(values, order=np_order)


def index_grid(shape: Sequence[int], order: _LayoutLike = None) -> np.ndarray:
    """
    Every multi-index of ``shape`` as an integer array.

    Returns
    -------
    numpy.ndarray
        Array of shape ``(prod(shape), len(shape))`` listing the indices in
        traversal ``order`` (row-major by default).
    """
    shape = tuple(int(n) for n in shape)
    if not shape:
        return np.zeros((1, 0), dtype=np.intp)
    grids = np.indices(shape, dtype=np.intp)
    layout = as_layout(order)
    np_order = "C" if layout is Layout.ROW_MAJOR else "F"
    return np.stack([g.ravel(order=np_order) for g in grids], axis=-1).reshape(-1, len(shape))


def broadcast_shapes(*shapes: _ShapeLike) -> Shape:
    """
    Unify shapes according to the broadcasting rules.

    Shapes are aligned at the trailing axis and left-padded with ones.
    Along each axis the lengths must be equal or one of them must be 1;
    the unified length is the non-1 value.

    Raises
    ------
    ShapeError
        If the shapes cannot be broadcast together. All shapes are listed
        in the message.

    Examples
    --------
    >>> broadcast_shapes((3, 1), (4,))
    Shape(3, 4)
    """
    shapes = [as_shape(s) for s in shapes]
    if not shapes:
        return Shape()
    ndim = max(len(s) for s in shapes)
    out = [1] * ndim
    for s in shapes:
        for k, n in enumerate(reversed(s)):
            j = ndim - 1 - k
            if out[j] == 1:
                out[j] = n
            elif n != 1 and n != out[j]:
                raise ShapeError("shapes could not be broadcast together", *shapes)
    return Shape(out)


def _broadcast_index(index: Sequence[int], shape: Sequence[int]) -> Tuple[int, ...]:
    lead = len(index) - len(shape)
    return tuple(0 if n == 1 else index[lead + k] for k, n in enumerate(shape))


def broadcast_index(index: Iterable[int], shape: _ShapeLike) -> Index:
    """
    Map an index of a broadcast result onto an operand of ``shape``.

    Leading axes that the operand does not have are dropped and axes of
    length 1 in the operand read coordinate 0.

    Examples
    --------
    >>> broadcast_index((2, 3), (1, 4))
    Index(0, 3)
    >>> broadcast_index((2, 3), (4,))
    Index(3)
    """
    index = tuple(int(i) for i in index)
    shape = tuple(as_shape(shape))
    if len(shape) > len(index):
        raise ValueError(f"cannot map index of rank {len(index)} onto shape of rank {len(shape)}")
    return Index(_broadcast_index(index, shape))


def is_broadcastable(shape: _ShapeLike, target: _ShapeLike) -> bool:
    """Return whether ``shape`` can be broadcast to exactly ``target``."""
    shape, target = as_shape(shape), as_shape(target)
    if len(shape) > len(target):
        return False
    for n, m in zip(reversed(shape), reversed(target)):
        if n != 1 and n != m:
            return False
    return True
