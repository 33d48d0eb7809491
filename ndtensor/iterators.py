"""Random-access iteration over the elements of any expression or tensor."""
from typing import Any, Iterator, Union

from ndtensor import config
from ndtensor.errors import OutOfBoundsError
from ndtensor.shape import Index, Layout, _unravel, as_layout, as_shape

_LayoutLike = Union[Layout, str, None]


class TensorIterator:
    """
    Cursor over the elements of ``obj`` in a fixed traversal order.

    The iterator only stores a linear position; ``index`` turns it into a
    multi-index for ``order``, so any order can be walked regardless of how
    the elements are laid out in memory.

    Parameters
    ----------
    obj : Expression
        What to iterate over.
    position : int, default=0
        Linear position in ``[0, obj.size]`` (``obj.size`` is the end).
    order : {None, 'C', 'F', Layout}, optional
        Traversal order (defaults to ``obj.layout``).

    Examples
    --------
    >>> a = Tensor([[1, 2], [3, 4]])
    >>> list(a.begin("F"))
    [1, 3, 2, 4]
    >>> it = a.begin() + 3
    >>> it.index, it.value
    (Index(1, 1), 4)
    >>> a.end() - a.begin()
    4
    """

    def __init__(self, obj: Any, position: int = 0, order: _LayoutLike = None) -> None:
        self.obj = obj
        self.position = int(position)
        self.order = as_layout(order, obj.layout)

    def _check(self) -> None:
        if config.is_boundscheck_enabled() and not 0 <= self.position < self.obj.size:
            raise OutOfBoundsError(self.position, (self.obj.size,))

    @property
    def index(self) -> Index:
        """Index: Multi-index of the current position."""
        self._check()
        return Index(_unravel(self.position, tuple(self.obj.shape), self.order))

    @property
    def value(self) -> Any:
        """Element at the current position (assignable for writable storage)."""
        self._check()
        return self.obj._value_at(_unravel(self.position, tuple(self.obj.shape), self.order))

    @value.setter
    def value(self, value: Any) -> None:
        self._check()
        if not hasattr(self.obj, "_set_at"):
            raise TypeError(f"cannot assign through an iterator over {type(self.obj).__name__}")
        self.obj._set_at(_unravel(self.position, tuple(self.obj.shape), self.order), value)

    def __iter__(self) -> "TensorIterator":
        return self

    def __next__(self) -> Any:
        if self.position >= self.obj.size:
            raise StopIteration
        value = self.obj._value_at(_unravel(self.position, tuple(self.obj.shape), self.order))
        self.position += 1
        return value

    def _moved(self, n: int) -> "TensorIterator":
        return TensorIterator(self.obj, self.position + n, self.order)

    def __add__(self, n: int) -> "TensorIterator":
        return self._moved(int(n))

    __radd__ = __add__

    def __sub__(self, other: Any) -> Any:
        if isinstance(other, TensorIterator):
            self._compatible(other)
            return self.position - other.position
        return self._moved(-int(other))

    def __getitem__(self, n: int) -> Any:
        return self._moved(int(n)).value

    def __setitem__(self, n: int, value: Any) -> None:
        self._moved(int(n)).value = value

    def _compatible(self, other: "TensorIterator") -> None:
        if other.obj is not self.obj or other.order is not self.order:
            raise ValueError("iterators refer to different objects or orders")

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, TensorIterator):
            return NotImplemented
        return other.obj is self.obj and other.order is self.order and other.position == self.position

    def __ne__(self, other: Any) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __lt__(self, other: "TensorIterator") -> bool:
        self._compatible(other)
        return self.position < other.position

    def __le__(self, other: "TensorIterator") -> bool:
        self._compatible(other)
        return self.position <= other.position

    def __gt__(self, other: "TensorIterator") -> bool:
        self._compatible(other)
        return self.position > other.position

    def __ge__(self, other: "TensorIterator") -> bool:
        self._compatible(other)
        return self.position >= other.position

    __hash__ = None

    def __repr__(self) -> str:
        return f"TensorIterator(position={self.position}, size={self.obj.size}, order={self.order})"


class FlatAccessor:
    """
    Element access by flat index in the native layout of ``obj``.

    ``a.flat[n]`` is the ``n``-th element visited by ``iter(a)``; for
    writable storage ``a.flat[n] = v`` writes it.
    """

    def __init__(self, obj: Any) -> None:
        self.obj = obj

    def _index(self, n: int):
        n = int(n)
        size = self.obj.size
        if config.is_boundscheck_enabled() and not 0 <= n < size:
            raise OutOfBoundsError(n, (size,))
        return _unravel(n, tuple(self.obj.shape), self.obj.layout)

    def __getitem__(self, n: int) -> Any:
        return self.obj._value_at(self._index(n))

    def __setitem__(self, n: int, value: Any) -> None:
        if not hasattr(self.obj, "_set_at"):
            raise TypeError(f"cannot assign to elements of {type(self.obj).__name__}")
        self.obj._set_at(self._index(n), value)

    def __len__(self) -> int:
        return self.obj.size

    def __iter__(self) -> Iterator[Any]:
        return self.obj.begin()


def ndindex(shape: Any, order: _LayoutLike = None) -> Iterator[Index]:
    """
    Yield every multi-index of ``shape`` in traversal ``order``.

    Examples
    --------
    >>> [tuple(i) for i in ndindex((2, 2), order="F")]
    [(0, 0), (1, 0), (0, 1), (1, 1)]
    """
    shape = as_shape(shape)
    layout = as_layout(order)
    dims = tuple(shape)
    for n in range(shape.size):
        yield Index(_unravel(n, dims, layout))
