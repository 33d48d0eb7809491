"""Tensor factories, conversions and selection routines."""
from typing import Any, Iterable, Optional, Tuple, Union

import numpy as np

from ndtensor.errors import ShapeError
from ndtensor.expression import UnaryOp, WhereOp, as_expression, astype, materialize
from ndtensor.shape import Index, Layout, Shape, as_layout, as_shape, index_grid, normalize_axis, ravel_in
from ndtensor.tensor import Tensor, TensorBase

__all__ = [
    "empty", "zeros", "ones", "full",
    "empty_like", "zeros_like", "ones_like", "full_like",
    "arange", "linspace", "eye",
    "asarray", "ascontiguousarray", "asfortranarray",
    "copy", "flatten", "copyto", "astype",
    "where", "apply", "nonzero", "argwhere", "count_nonzero",
    "index_tensor",
]

_LayoutLike = Union[Layout, str, None]


def empty(shape: Any, dtype: Any = float, order: _LayoutLike = None) -> Tensor:
    """Return a new tensor of ``shape`` without initializing its elements."""
    return Tensor.empty(shape, dtype=dtype, order=order)


def zeros(shape: Any, dtype: Any = float, order: _LayoutLike = None) -> Tensor:
    """Return a new tensor of ``shape`` filled with zeros."""
    return full(shape, 0, dtype=dtype, order=order)


def ones(shape: Any, dtype: Any = float, order: _LayoutLike = None) -> Tensor:
    """Return a new tensor of ``shape`` filled with ones."""
    return full(shape, 1, dtype=dtype, order=order)


def full(shape: Any, fill_value: Any, dtype: Any = None, order: _LayoutLike = None) -> Tensor:
    """
    Return a new tensor of ``shape`` filled with ``fill_value``.

    Parameters
    ----------
    shape : int, sequence of int or Shape
        Shape of the new tensor.
    fill_value : scalar
        Value of every element.
    dtype : dtype-like, optional
        Element type; inferred from ``fill_value`` if omitted.
    order : {None, 'C', 'F', Layout}, optional
        Memory layout.
    """
    if dtype is None:
        scalar = isinstance(fill_value, (bool, int, float, complex, np.generic))
        dtype = np.asarray(fill_value).dtype if scalar else object
    out = Tensor.empty(shape, dtype=dtype, order=order)
    out.fill(fill_value)
    return out


def _like(a: Any, dtype: Any, order: _LayoutLike, shape: Any) -> Tuple[Shape, Any, Layout]:
    a = as_expression(a)
    return (
        a.shape if shape is None else as_shape(shape),
        a.dtype if dtype is None else dtype,
        as_layout(order, a.layout),
    )


def empty_like(a: Any, dtype: Any = None, order: _LayoutLike = None, shape: Any = None) -> Tensor:
    """Uninitialized tensor with the shape, dtype and layout of ``a`` (each can be overridden)."""
    shape, dtype, layout = _like(a, dtype, order, shape)
    return Tensor.empty(shape, dtype=dtype, order=layout)


def zeros_like(a: Any, dtype: Any = None, order: _LayoutLike = None, shape: Any = None) -> Tensor:
    """Zeros with the shape, dtype and layout of ``a``."""
    shape, dtype, layout = _like(a, dtype, order, shape)
    return full(shape, 0, dtype=dtype, order=layout)


def ones_like(a: Any, dtype: Any = None, order: _LayoutLike = None, shape: Any = None) -> Tensor:
    """Ones with the shape, dtype and layout of ``a``."""
    shape, dtype, layout = _like(a, dtype, order, shape)
    return full(shape, 1, dtype=dtype, order=layout)


def full_like(a: Any, fill_value: Any, dtype: Any = None, order: _LayoutLike = None, shape: Any = None) -> Tensor:
    """``fill_value`` everywhere, with the shape, dtype and layout of ``a``."""
    shape, dtype, layout = _like(a, dtype, order, shape)
    return full(shape, fill_value, dtype=dtype, order=layout)


def arange(start: Any, stop: Any = None, step: Any = 1, dtype: Any = None) -> Tensor:
    """
    Evenly spaced values in the half-open interval ``[start, stop)``.

    Examples
    --------
    >>> arange(5).tolist()
    [0, 1, 2, 3, 4]
    >>> arange(1, 2, 0.25).tolist()
    [1.0, 1.25, 1.5, 1.75]
    """
    if stop is None:
        start, stop = 0, start
    if step == 0:
        raise ValueError("step must be non-zero")
    return Tensor(np.arange(start, stop, step, dtype=dtype))


def linspace(start: Any, stop: Any, num: int = 50, endpoint: bool = True, dtype: Any = None) -> Tensor:
    """``num`` evenly spaced samples over ``[start, stop]`` (or ``[start, stop)``)."""
    if num < 0:
        raise ValueError(f"number of samples must be non-negative, got {num}")
    return Tensor(np.linspace(start, stop, num, endpoint=endpoint, dtype=dtype))


def eye(n: int, m: Optional[int] = None, k: int = 0, dtype: Any = float, order: _LayoutLike = None) -> Tensor:
    """
    2-D tensor with ones on the ``k``-th diagonal and zeros elsewhere.

    Examples
    --------
    >>> eye(2, 3, k=1).tolist()
    [[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
    """
    from ndtensor.manipulation import diagonal

    out = zeros((n, n if m is None else m), dtype=dtype, order=order)
    diagonal(out, k).fill(1)
    return out


def asarray(a: Any, dtype: Any = None, order: _LayoutLike = None) -> TensorBase:
    """
    Convert ``a`` to storage, copying only when needed.

    Storage objects are returned unchanged when ``dtype`` and ``order``
    already match; everything else (lists, arrays, lazy expressions) is
    copied into a new :class:`Tensor`.
    """
    if isinstance(a, TensorBase):
        same_dtype = dtype is None or np.dtype(dtype) == a.dtype
        same_order = order is None or as_layout(order) is a.layout
        if same_dtype and same_order:
            return a
    return Tensor(a, dtype=dtype, order=order)


def _contiguous(a: Any, dtype: Any, layout: Layout) -> Tensor:
    if (
        isinstance(a, Tensor)
        and a.layout is layout
        and (dtype is None or np.dtype(dtype) == a.dtype)
    ):
        return a
    return Tensor(a, dtype=dtype, order=layout)


def ascontiguousarray(a: Any, dtype: Any = None) -> Tensor:
    """Return ``a`` as a row-major :class:`Tensor` (unchanged if it already is one)."""
    return _contiguous(a, dtype, Layout.ROW_MAJOR)


def asfortranarray(a: Any, dtype: Any = None) -> Tensor:
    """Return ``a`` as a column-major :class:`Tensor` (unchanged if it already is one)."""
    return _contiguous(a, dtype, Layout.COLUMN_MAJOR)


def copy(a: Any, order: _LayoutLike = None) -> Tensor:
    """Return a new tensor with the values of ``a`` (in ``order``, default: its layout)."""
    return materialize(a, order)


def flatten(a: Any, order: _LayoutLike = None) -> Tensor:
    """
    Return a 1-D copy of ``a``.

    Elements are listed in ``order``; by default the native layout of
    ``a``, so ``list(a)`` and ``flatten(a).tolist()`` agree.
    """
    a = as_expression(a)
    layout = as_layout(order, a.layout)
    return Tensor.from_buffer(ravel_in(a._evaluate(), layout), a.size, order=layout, dtype=a.dtype)


def copyto(dst: TensorBase, src: Any, where: Any = True) -> None:
    """
    Copy ``src`` into ``dst`` with broadcasting.

    Parameters
    ----------
    dst : TensorBase
        Destination (writable tensor, view or indirect tensor).
    src : scalar, array-like or Expression
        Broadcast to ``dst.shape``.
    where : bool or array-like of bool, default=True
        Broadcast to ``dst.shape``; only positions where it is true are
        written.

    Raises
    ------
    ShapeError
        If ``src`` or ``where`` cannot be broadcast to ``dst.shape``.
    """
    if not isinstance(dst, TensorBase):
        raise TypeError(f"copyto requires a tensor destination, got {type(dst).__name__}")
    if where is True:
        dst.assign(src)
        return
    from ndtensor.broadcasting import broadcast_to
    from ndtensor.indexing import putmask

    putmask(dst, broadcast_to(as_expression(where), dst.shape), src)


def where(condition: Any, x: Any = None, y: Any = None) -> Any:
    """
    Lazily choose elements from ``x`` or ``y`` depending on ``condition``.

    With only ``condition`` given this is :func:`nonzero`.

    Returns
    -------
    WhereOp or tuple of Tensor
    """
    if x is None and y is None:
        return nonzero(condition)
    if x is None or y is None:
        raise ValueError("either both or neither of x and y should be given")
    return WhereOp(condition, x, y)


def apply(a: Any, func: Any, dtype: Any = None) -> UnaryOp:
    """
    Lazily apply ``func`` to every element of ``a``.

    ``func`` is called with one element at a time; the result dtype is
    ``object`` unless ``dtype`` is given.
    """
    return UnaryOp(func, a, dtype=dtype)


def argwhere(a: Any) -> Tensor:
    """
    Multi-indices of the non-zero elements, in row-major order.

    Returns
    -------
    Tensor
        Integer tensor of shape ``(count, a.ndim)``.
    """
    a = as_expression(a)
    mask = ravel_in(a._evaluate()).astype(bool)
    return Tensor(index_grid(a.shape)[mask])


def nonzero(a: Any) -> Tuple[Tensor, ...]:
    """
    Coordinates of the non-zero elements, one integer tensor per axis.

    Examples
    --------
    >>> [t.tolist() for t in nonzero(Tensor([[0, 3], [4, 0]]))]
    [[0, 1], [1, 0]]
    """
    coords = argwhere(a).to_numpy()
    return tuple(Tensor(coords[:, k]) for k in range(coords.shape[1]))


def count_nonzero(a: Any, axis: Optional[int] = None) -> Any:
    """Number of non-zero elements (an int, or a tensor of counts along ``axis``)."""
    a = as_expression(a)
    mask = a._evaluate().astype(bool)
    if axis is None:
        return int(mask.sum())
    return Tensor(mask.sum(axis=normalize_axis(axis, a.ndim)).astype(np.intp))


def index_tensor(indices: Iterable[Any], shape: Any = None) -> Tensor:
    """
    Build a tensor of :class:`Index` values.

    Parameters
    ----------
    indices : iterable of Index or tuple of int
        Multi-indices, in row-major order of the result.
    shape : int, sequence of int or Shape, optional
        Shape of the result (1-D by default).

    Raises
    ------
    ShapeError
        If ``shape`` does not hold exactly as many entries as given.

    Examples
    --------
    >>> take(Tensor([[1, 2], [3, 4]]), index_tensor([(1, 0), (0, 1)])).tolist()
    [3, 2]
    """
    entries = [Index(i) for i in indices]
    shape = Shape(len(entries)) if shape is None else as_shape(shape)
    if shape.size != len(entries):
        raise ShapeError("number of indices does not match the requested shape", (len(entries),), shape)
    values = np.empty(len(entries), dtype=object)
    for n, entry in enumerate(entries):
        values[n] = entry
    return Tensor(values.reshape(tuple(shape)))
