"""
Storage types: owning tensors, strided views and indirect tensors.

All three reinterpret a flat NumPy buffer through one interface
(:class:`TensorBase`): each maps a multi-index to a buffer offset
(``_offset``), can list the offsets of all logical positions (``_offsets``)
and can derive a new object from a shape/strides/offset triple expressed in
its own address space (``_restride``). Element access, slicing, fancy
indexing, assignment and iteration are written once against that
interface.
"""
import logging
from typing import Any, Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from ndtensor.errors import AllocationError, OutOfBoundsError, ReadOnlyError, ShapeError
from ndtensor.expression import Expression, _expand, _object_array, as_expression
from ndtensor.shape import (
    Index,
    Layout,
    Shape,
    as_layout,
    as_shape,
    contiguous_strides,
    is_broadcastable,
    ravel_in,
    strided_offsets,
)

logger = logging.getLogger(__name__)

_LayoutLike = Union[Layout, str, None]


def _allocate(shape: Shape, dtype: Any) -> np.ndarray:
    """
    Allocate an uninitialized flat buffer for ``shape``.

    Raises
    ------
    AllocationError
        If NumPy cannot provide the memory.
    """
    dtype = np.dtype(dtype)
    try:
        buffer = np.empty(shape.size, dtype=dtype)
    except (MemoryError, ValueError, OverflowError) as exc:
        raise AllocationError(shape, dtype) from exc
    logger.debug("allocated buffer of %d elements (%s) for shape %s", shape.size, dtype, shape)
    return buffer


def _scatter(buffer: np.ndarray, offsets: np.ndarray, values: np.ndarray) -> None:
    """
    Write ``values`` to ``buffer[offsets]``.

    When an offset occurs more than once, the value at the largest position
    in ``offsets`` wins, i.e. writes happen in ascending position order.
    """
    offsets = offsets.reshape(-1)
    values = values.reshape(-1)
    if offsets.size == 0:
        return
    unique, first_from_end = np.unique(offsets[::-1], return_index=True)
    if unique.size != offsets.size:
        keep = offsets.size - 1 - first_from_end
        logger.debug(
            "scatter of %d values hits %d duplicated destinations; last write wins",
            offsets.size, offsets.size - unique.size,
        )
        offsets, values = offsets[keep], values[keep]
    buffer[offsets] = values


def _values_for(source: Any, shape: Shape, dtype: np.dtype) -> np.ndarray:
    """Fully evaluate ``source`` broadcast to ``shape`` (before any write happens)."""
    if dtype == object and not isinstance(source, (Expression, np.ndarray, list)):
        return np.broadcast_to(_object_array(source), tuple(shape))
    src = as_expression(source)
    if not is_broadcastable(src.shape, shape):
        raise ShapeError("could not broadcast input from shape into shape", src.shape, shape)
    values = np.asarray(_expand(src, shape))
    return np.broadcast_to(values, tuple(shape))


def _apply_basic_key(
    key: Any,
    shape: Shape,
    strides: Sequence[int],
    offset: int,
) -> Tuple[Shape, Tuple[int, ...], int]:
    """
    Resolve ints, slices, ``Ellipsis`` and ``None`` against a strided address space.

    Returns the shape, strides and offset of the selection. Integer
    coordinates are bounds-checked (no negative wrap-around); slices follow
    Python semantics.
    """
    if not isinstance(key, tuple):
        key = (key,)
    if sum(1 for k in key if k is Ellipsis) > 1:
        raise IndexError("an index can only have a single ellipsis ('...')")
    consumed = sum(1 for k in key if k is not None and k is not Ellipsis)
    ndim = len(shape)
    if consumed > ndim:
        raise IndexError(
            f"too many indices for tensor: tensor is {ndim}-dimensional, but {consumed} were indexed"
        )
    fill = (slice(None),) * (ndim - consumed)
    if Ellipsis in key:
        at = key.index(Ellipsis)
        key = key[:at] + fill + key[at + 1:]
    else:
        key = key + fill

    new_shape, new_strides = [], []
    axis = 0
    for k in key:
        if k is None:
            new_shape.append(1)
            new_strides.append(0)
            continue
        n, s = shape[axis], strides[axis]
        if isinstance(k, slice):
            start, stop, step = k.indices(n)
            new_shape.append(len(range(start, stop, step)))
            new_strides.append(s * step)
            offset += start * s
        elif isinstance(k, (int, np.integer)) and not isinstance(k, bool):
            i = int(k)
            if not 0 <= i < n:
                raise OutOfBoundsError(i, shape, axis=axis)
            offset += i * s
        else:
            raise TypeError(f"invalid index {k!r}; only integers, slices, '...' and None are valid")
        axis += 1
    return Shape(new_shape), tuple(new_strides), offset


def _index_coords(key: Expression, shape: Shape) -> np.ndarray:
    """
    Multi-indices held by an object tensor of :class:`Index` (or tuples).

    Returns an integer array of shape ``key.shape + (len(shape),)``.
    """
    entries = key._evaluate().reshape(-1)
    coords = np.empty((entries.size, len(shape)), dtype=np.intp)
    for n, entry in enumerate(entries):
        entry = tuple(entry)
        if len(entry) != len(shape):
            raise ValueError(f"index {entry} has rank {len(entry)} but the tensor has rank {len(shape)}")
        coords[n] = entry
    return coords.reshape(tuple(key.shape) + (len(shape),))


def check_coords(coords: np.ndarray, shape: Shape) -> None:
    """
    Validate a batch of multi-indices against ``shape``.

    Raises
    ------
    OutOfBoundsError
        Naming the first offending multi-index.
    """
    flat = coords.reshape(-1, len(shape))
    if flat.size == 0:
        return
    bad = np.any((flat < 0) | (flat >= np.asarray(tuple(shape), dtype=np.intp)), axis=1)
    if bad.any():
        first = tuple(int(c) for c in flat[np.argmax(bad)])
        raise OutOfBoundsError(first, shape)


class TensorBase(Expression):
    """
    A tensor-like object backed by a flat buffer.

    Subclasses decide how a logical position maps to a buffer offset.
    Instances alias their buffer: writing through any object that shares
    the buffer is visible through all of them.

    Notes
    -----
    - ``a[i, j]`` / ``a[Index(i, j)]`` read one element (bounds-checked).
    - ``a[1:, ::2]``, ``a[..., 0]``, ``a[None]`` return views sharing memory.
    - ``a[mask]`` (boolean tensor of the same shape) and ``a[indices]``
      (integer tensor, or tensor of :class:`Index`) return an
      :class:`IndirectTensor` that can be used as an lvalue.
    - ``a[key] = value`` broadcasts ``value``; the right hand side is fully
      evaluated before any element is written.
    """

    _buffer: np.ndarray
    _shape: Shape
    _layout: Layout
    _readonly: bool

    @property
    def shape(self) -> Shape:
        """Shape: Per-axis lengths (a copy; mutating it does not reshape)."""
        return self._shape.copy()

    @property
    def layout(self) -> Layout:
        return self._layout

    @property
    def dtype(self) -> np.dtype:
        return self._buffer.dtype

    @property
    def readonly(self) -> bool:
        """bool: Whether writes through this object are rejected."""
        return self._readonly

    @property
    def buffer(self) -> np.ndarray:
        """numpy.ndarray: The flat buffer this object reads from (shared, not copied)."""
        return self._buffer

    def shares_memory(self, other: "TensorBase") -> bool:
        """Return whether ``self`` and ``other`` read from the same buffer."""
        return isinstance(other, TensorBase) and np.shares_memory(self._buffer, other._buffer)

    def _offset(self, index: Tuple[int, ...]) -> int:
        raise NotImplementedError

    def _offsets(self) -> np.ndarray:
        raise NotImplementedError

    def _offsets_at(self, coords: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _address(self) -> Tuple[Tuple[int, ...], int]:
        raise NotImplementedError

    def _restride(
        self,
        shape: Shape,
        strides: Sequence[int],
        offset: int,
        readonly: Optional[bool] = None,
    ) -> "TensorBase":
        raise NotImplementedError

    def _value_at(self, index: Tuple[int, ...]) -> Any:
        return self._buffer[self._offset(index)]

    def _set_at(self, index: Tuple[int, ...], value: Any) -> None:
        if self._readonly:
            raise ReadOnlyError(type(self).__name__)
        self._buffer[self._offset(index)] = value

    def _evaluate(self) -> np.ndarray:
        return self._buffer[self._offsets()]

    def _gather(self, coords: np.ndarray) -> np.ndarray:
        return self._buffer[self._offsets_at(coords)]

    def _traversal_offsets(self) -> np.ndarray:
        """Buffer offsets of all elements, listed in the native layout order."""
        return ravel_in(self._offsets(), self._layout)

    def __getitem__(self, key: Any) -> Any:
        """
        Element access, basic slicing or fancy indexing.

        Parameters
        ----------
        key : int, tuple, Index, slice, Ellipsis, None or tensor-like
            See the class notes.

        Returns
        -------
        scalar, TensorView or IndirectTensor
            An element for a full multi-index, otherwise an object sharing
            this object's buffer.

        Raises
        ------
        OutOfBoundsError
            If an integer coordinate is outside its axis.
        ShapeError
            If a boolean mask does not have this object's shape.

        Examples
        --------
        >>> a = Tensor([[1, 2, 3], [4, 5, 6]])
        >>> a[1, 2]
        6
        >>> a[:, 1].tolist()
        [2, 5]
        >>> a[a > 3].tolist()
        [4, 5, 6]
        """
        index = self._element_key(key)
        if index is not None:
            return self._value_at(self._checked(index))
        return self._select(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        index = self._element_key(key)
        if index is not None:
            self._set_at(self._checked(index), value)
            return
        self._select(key).assign(value)

    def _select(self, key: Any) -> "TensorBase":
        if isinstance(key, (Expression, np.ndarray, list)):
            return self._fancy(key)
        strides, offset = self._address()
        shape, strides, offset = _apply_basic_key(key, self._shape, strides, offset)
        return self._restride(shape, strides, offset)

    def _fancy(self, key: Any) -> "IndirectTensor":
        key = as_expression(key)
        if key.dtype == bool:
            if key.shape != self._shape:
                raise ShapeError("boolean index did not match indexed tensor", key.shape, self._shape)
            mask = ravel_in(key._evaluate(), self._layout).astype(bool)
            index_map = self._traversal_offsets()[mask]
        elif key.dtype == object:
            coords = _index_coords(key, self._shape)
            check_coords(coords, self._shape)
            index_map = self._offsets_at(coords)
        elif np.issubdtype(key.dtype, np.integer):
            if self.ndim == 0:
                raise IndexError("integer tensor indices require a tensor of rank >= 1")
            rows = np.asarray(key._evaluate(), dtype=np.intp)
            check_coords(rows[..., None], self._shape[:1])
            index_map = self._offsets()[rows]
        else:
            raise TypeError(f"tensors of dtype {key.dtype} cannot be used as indices")
        return IndirectTensor(self._buffer, index_map, order=self._layout, readonly=self._readonly, base=self)

    def assign(self, value: Any) -> None:
        """
        Overwrite every element with ``value`` broadcast to this shape.

        ``value`` is evaluated completely before the first write, so
        assigning an expression built from this very object (or from a view
        overlapping it) is well defined.

        Raises
        ------
        ReadOnlyError
            If this object is read-only.
        ShapeError
            If ``value`` cannot be broadcast to this shape.
        """
        if self._readonly:
            raise ReadOnlyError(type(self).__name__)
        values = _values_for(value, self._shape, self.dtype)
        _scatter(self._buffer, self._offsets(), values)

    def fill(self, value: Any) -> None:
        """Set every element to ``value``."""
        self.assign(value)

    def view(self) -> "TensorView":
        """Return a :class:`TensorView` over the whole object (indirect tensors: an :class:`IndirectTensor`)."""
        strides, offset = self._address()
        return self._restride(self._shape, strides, offset)

    @property
    def T(self) -> "TensorBase":
        """TensorBase: View with the axes reversed."""
        return self.transpose()

    def transpose(self, *axes: int) -> "TensorBase":
        """
        Permute the axes (reverse them if none are given); returns a view.

        Examples
        --------
        >>> a = Tensor.empty((2, 3, 4))
        >>> a.transpose(0, 2, 1).shape
        Shape(2, 4, 3)
        """
        from ndtensor.manipulation import transpose
        return transpose(self, axes or None)

    def swapaxes(self, axis1: int, axis2: int) -> "TensorBase":
        """Interchange two axes; returns a view."""
        from ndtensor.manipulation import swapaxes
        return swapaxes(self, axis1, axis2)

    def reshape(self, *shape: Any, order: _LayoutLike = None) -> "TensorBase":
        """
        Give a new shape without changing the data.

        A view is returned when the elements are contiguous in ``order``,
        otherwise a copy. At most one dimension may be ``-1``.
        """
        from ndtensor.manipulation import reshape
        if len(shape) == 1 and not isinstance(shape[0], (int, np.integer)):
            shape = shape[0]
        return reshape(self, shape, order)

    def squeeze(self, axis: Any = None) -> "TensorBase":
        """Remove axes of length one; returns a view."""
        from ndtensor.broadcasting import squeeze
        return squeeze(self, axis)

    def expand_dims(self, axis: Any) -> "TensorBase":
        """Insert axes of length one; returns a view."""
        from ndtensor.broadcasting import expand_dims
        return expand_dims(self, axis)

    def flatten(self, order: _LayoutLike = None) -> "Tensor":
        """Return a 1-D copy in ``order`` (default: native layout)."""
        from ndtensor.routines import flatten
        return flatten(self, order)


class _StridedStorage(TensorBase):
    """Storage whose offsets are ``offset + sum(index[i] * strides[i])``."""

    _strides: Tuple[int, ...]
    _start: int

    @property
    def strides(self) -> Tuple[int, ...]:
        """tuple of int: Per-axis step in elements."""
        return self._strides

    @property
    def offset(self) -> int:
        """int: Buffer offset of the element at ``(0, ..., 0)``."""
        return self._start

    def _offset(self, index: Tuple[int, ...]) -> int:
        offset = self._start
        for i, s in zip(index, self._strides):
            offset += i * s
        return offset

    def _offsets(self) -> np.ndarray:
        return strided_offsets(self._shape, self._strides, self._start)

    def _offsets_at(self, coords: np.ndarray) -> np.ndarray:
        steps = np.asarray(self._strides, dtype=np.intp)
        return self._start + (coords.astype(np.intp) * steps).sum(axis=-1)

    def _address(self) -> Tuple[Tuple[int, ...], int]:
        return self._strides, self._start

    def _restride(self, shape, strides, offset, readonly=None) -> "TensorView":
        readonly = self._readonly if readonly is None else readonly
        return TensorView(
            self._buffer, shape, strides, offset, order=self._layout, readonly=readonly, base=self,
        )

    def is_contiguous(self, order: _LayoutLike = None) -> bool:
        """Return whether the elements fill a contiguous block in ``order`` (default: native)."""
        expected = contiguous_strides(self._shape, as_layout(order, self._layout))
        return all(n <= 1 or s == e for n, s, e in zip(self._shape, self._strides, expected))


class Tensor(_StridedStorage):
    """
    A dense N-dimensional tensor owning a contiguous buffer.

    Parameters
    ----------
    data : array-like or Expression
        Initial values. Python sequences and NumPy arrays are copied;
        expressions are evaluated (materialized).
    dtype : dtype-like, optional
        Element type. Inferred from ``data`` if omitted.
    order : {None, 'C', 'F', Layout}, optional
        Memory layout. Defaults to row-major, or to the layout of ``data``
        when it is an expression.

    Attributes
    ----------
    buffer : numpy.ndarray
        The flat buffer of ``size`` elements, stored in ``layout`` order.

    Raises
    ------
    AllocationError
        If the buffer cannot be allocated.

    Examples
    --------
    >>> Tensor(np.array([1, 2, 3], dtype=np.int64))
    tensor([1, 2, 3], dtype=int64, layout=C)
    >>> Tensor([[1, 2], [3, 4]], order="F").buffer
    array([1, 3, 2, 4])
    >>> Tensor(Tensor([1, 2]) * 2).tolist()
    [2, 4]
    """

    _repr_name = "tensor"

    def __init__(self, data: Any, dtype: Any = None, order: _LayoutLike = None) -> None:
        if isinstance(data, Expression):
            layout = as_layout(order, data.layout)
            values = data._evaluate()
            dtype = data.dtype if dtype is None else dtype
        else:
            layout = as_layout(order)
            values = np.asarray(data, dtype=dtype)
        self._init(values, layout, dtype)

    def _init(self, values: np.ndarray, layout: Layout, dtype: Any = None) -> None:
        values = np.asarray(values)
        shape = Shape(values.shape)
        buffer = _allocate(shape, values.dtype if dtype is None else dtype)
        buffer[:] = ravel_in(values, layout)
        self._buffer = buffer
        self._shape = shape
        self._layout = layout
        self._readonly = False
        self._strides = contiguous_strides(shape, layout)
        self._start = 0

    @classmethod
    def _from_values(cls, values: np.ndarray, layout: Layout, dtype: Any = None) -> "Tensor":
        out = cls.__new__(cls)
        out._init(values, layout, dtype)
        return out

    @classmethod
    def _wrap(cls, buffer: np.ndarray, shape: Shape, layout: Layout) -> "Tensor":
        out = cls.__new__(cls)
        out._buffer = buffer
        out._shape = shape
        out._layout = layout
        out._readonly = False
        out._strides = contiguous_strides(shape, layout)
        out._start = 0
        return out

    @classmethod
    def empty(cls, shape: Any, dtype: Any = float, order: _LayoutLike = None) -> "Tensor":
        """
        Create a tensor without initializing its elements.

        Parameters
        ----------
        shape : int, sequence of int or Shape
            Shape of the new tensor.
        dtype : dtype-like, default=float
            Element type.
        order : {None, 'C', 'F', Layout}, optional
            Memory layout (row-major by default).
        """
        shape = as_shape(shape)
        return cls._wrap(_allocate(shape, dtype), shape, as_layout(order))

    @classmethod
    def from_buffer(
        cls,
        buffer: Any,
        shape: Any,
        order: _LayoutLike = None,
        dtype: Any = None,
    ) -> "Tensor":
        """
        Construct a tensor from a flat buffer laid out in ``order``.

        The elements are copied, so the new tensor owns its memory.

        Parameters
        ----------
        buffer : buffer-like or sequence
            ``prod(shape)`` elements in memory order.
        shape : int, sequence of int or Shape
            Logical shape.
        order : {None, 'C', 'F', Layout}, optional
            How ``buffer`` is laid out (row-major by default).
        dtype : dtype-like, optional
            Element type (inferred from ``buffer`` if omitted).

        Raises
        ------
        ShapeError
            If the buffer does not hold exactly ``prod(shape)`` elements.

        Examples
        --------
        >>> Tensor.from_buffer([1, 2, 3, 4], (2, 2), order="F")[0, 1]
        3
        """
        shape = as_shape(shape)
        flat = np.asarray(buffer, dtype=dtype).reshape(-1)
        if flat.size != shape.size:
            raise ShapeError("buffer size does not match the requested shape", (flat.size,), shape)
        out = cls._wrap(_allocate(shape, flat.dtype), shape, as_layout(order))
        out._buffer[:] = flat
        return out

    @classmethod
    def from_iter(
        cls,
        iterable: Iterable[Any],
        shape: Any = None,
        order: _LayoutLike = None,
        dtype: Any = None,
    ) -> "Tensor":
        """
        Construct a tensor from the elements produced by an iterable.

        Elements are consumed in memory order for ``order``. If ``shape``
        is omitted the result is 1-D.

        Raises
        ------
        ShapeError
            If the number of elements does not match ``shape``.
        """
        values = list(iterable)
        shape = Shape(len(values)) if shape is None else as_shape(shape)
        if len(values) != shape.size:
            raise ShapeError("iterable length does not match the requested shape", (len(values),), shape)
        if dtype is None:
            dtype = np.asarray(values).dtype if values else np.dtype(float)
        out = cls._wrap(_allocate(shape, dtype), shape, as_layout(order))
        for n, value in enumerate(values):
            out._buffer[n] = value
        return out

    def _evaluate(self) -> np.ndarray:
        return self._buffer[self._offsets()]

    def _offsets(self) -> np.ndarray:
        if self._layout is Layout.ROW_MAJOR:
            return np.arange(self._shape.size, dtype=np.intp).reshape(tuple(self._shape))
        return strided_offsets(self._shape, self._strides, 0)


class TensorView(_StridedStorage):
    """
    Non-owning strided view into another object's buffer.

    Parameters
    ----------
    buffer : numpy.ndarray
        1-D buffer to view (usually ``tensor.buffer``).
    shape : int, sequence of int or Shape
        Logical shape of the view.
    strides : sequence of int, optional
        Per-axis step in elements; may be zero (repetition) or negative
        (reversal). Defaults to the contiguous strides of ``shape``.
    offset : int, default=0
        Buffer offset of the element at ``(0, ..., 0)``.
    order : {None, 'C', 'F', Layout}, optional
        Native traversal order of the view.
    readonly : bool, default=False
        Reject writes (used for broadcast views, where several logical
        positions alias one element).
    base : TensorBase, optional
        Object the view was derived from.

    Raises
    ------
    ValueError
        If some logical position would fall outside ``buffer``.

    Notes
    -----
    The view keeps a reference to ``buffer``, so the memory stays alive,
    but writes through the view are visible in the owner and vice versa.
    Sharing mutable views between threads needs external synchronization.
    """

    _repr_name = "tensor_view"

    def __init__(
        self,
        buffer: np.ndarray,
        shape: Any,
        strides: Optional[Sequence[int]] = None,
        offset: int = 0,
        order: _LayoutLike = None,
        readonly: bool = False,
        base: Optional[TensorBase] = None,
    ) -> None:
        if isinstance(buffer, TensorBase):
            buffer = buffer.buffer
        if not isinstance(buffer, np.ndarray) or buffer.ndim != 1:
            raise ValueError("TensorView requires a 1-D numpy buffer")
        shape = as_shape(shape)
        layout = as_layout(order)
        strides = contiguous_strides(shape, layout) if strides is None else tuple(int(s) for s in strides)
        if len(strides) != len(shape):
            raise ValueError(f"strides {strides} do not match the rank of shape {shape}")
        offset = int(offset)
        if shape.size > 0:
            low = offset + sum(min(0, (n - 1) * s) for n, s in zip(shape, strides))
            high = offset + sum(max(0, (n - 1) * s) for n, s in zip(shape, strides))
            if low < 0 or high >= buffer.size:
                raise ValueError(
                    f"view of shape {shape} with strides {strides} and offset {offset} "
                    f"exceeds a buffer of {buffer.size} elements"
                )
        self._buffer = buffer
        self._shape = shape
        self._layout = layout
        self._readonly = bool(readonly)
        self._strides = strides
        self._start = offset
        self.base = base


class IndirectTensor(TensorBase):
    """
    Tensor whose logical positions map to arbitrary buffer offsets.

    Produced by boolean-mask and gather indexing. Unlike a strided view the
    relation between position and offset is an explicit index map, so it
    can represent any selection; it still aliases the source buffer and can
    be assigned to.

    Parameters
    ----------
    buffer : numpy.ndarray
        1-D buffer the offsets refer to.
    index_map : array-like of int
        Buffer offset of every logical position; its shape is the shape of
        the indirect tensor.
    order : {None, 'C', 'F', Layout}, optional
        Native traversal order.
    readonly : bool, default=False
        Reject writes.
    base : TensorBase, optional
        Object the selection was taken from.

    Notes
    -----
    Assigning through an index map that holds the same offset more than
    once writes the value of the last such position (row-major position
    order).
    """

    _repr_name = "indirect_tensor"

    def __init__(
        self,
        buffer: np.ndarray,
        index_map: Any,
        order: _LayoutLike = None,
        readonly: bool = False,
        base: Optional[TensorBase] = None,
    ) -> None:
        if isinstance(buffer, TensorBase):
            buffer = buffer.buffer
        if not isinstance(buffer, np.ndarray) or buffer.ndim != 1:
            raise ValueError("IndirectTensor requires a 1-D numpy buffer")
        index_map = np.ascontiguousarray(index_map, dtype=np.intp)
        if index_map.size and (index_map.min() < 0 or index_map.max() >= buffer.size):
            raise ValueError(f"index map refers outside a buffer of {buffer.size} elements")
        self._buffer = buffer
        self._index_map = index_map
        self._shape = Shape(index_map.shape)
        self._layout = as_layout(order)
        self._readonly = bool(readonly)
        self.base = base

    @property
    def index_map(self) -> np.ndarray:
        """numpy.ndarray: Buffer offset of each logical position (read-only array)."""
        out = self._index_map.view()
        out.flags.writeable = False
        return out

    def _offset(self, index: Tuple[int, ...]) -> int:
        return int(self._index_map[index])

    def _offsets(self) -> np.ndarray:
        return self._index_map

    def _offsets_at(self, coords: np.ndarray) -> np.ndarray:
        if self.ndim == 0:
            return np.broadcast_to(self._index_map, coords.shape[:-1]).copy()
        return self._index_map[tuple(np.moveaxis(coords, -1, 0))]

    def _address(self) -> Tuple[Tuple[int, ...], int]:
        return contiguous_strides(self._shape), 0

    def _restride(self, shape, strides, offset, readonly=None) -> "IndirectTensor":
        readonly = self._readonly if readonly is None else readonly
        index_map = self._index_map.reshape(-1)[strided_offsets(shape, strides, offset)]
        return IndirectTensor(self._buffer, index_map, order=self._layout, readonly=readonly, base=self)


def is_storage(a: Any) -> bool:
    """Return whether ``a`` is backed by a buffer (tensor, view or indirect tensor)."""
    return isinstance(a, TensorBase)


def as_storage(a: Any) -> TensorBase:
    """Return ``a`` if it is backed by a buffer, otherwise materialize it into a :class:`Tensor`."""
    if isinstance(a, TensorBase):
        return a
    return Tensor(a)
