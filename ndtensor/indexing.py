"""
Fancy indexing: gathers, scatters and mask selection.

Gathers (``take``, ``take_along_axis``, ``compress``) always return new
tensors. Scatters (``put``, ``put_along_axis``, ``place``, ``putmask``)
write into an existing tensor, view or indirect tensor in place; all their
arguments are validated before the first element is written.

Index arguments are tensors (or array-likes) of integers, or tensors of
:class:`~ndtensor.shape.Index` values built with
:func:`~ndtensor.routines.index_tensor`.
"""
from typing import Any, Optional, Union

import numpy as np

from ndtensor import shape as _shape
from ndtensor.errors import OutOfBoundsError, ReadOnlyError, ShapeError
from ndtensor.expression import Expression, UnaryOp, _object_array, as_expression
from ndtensor.shape import Index, Layout, Shape, as_shape, normalize_axis, ravel_in
from ndtensor.tensor import (
    Tensor,
    TensorBase,
    _index_coords,
    _scatter,
    _values_for,
    check_coords,
)

_LayoutLike = Union[Layout, str, None]


def ravel_index(indices: Any, shape: Any, order: _LayoutLike = None) -> Any:
    """
    Flat positions of multi-indices.

    Parameters
    ----------
    indices : Index, tuple or Expression of Index
        One multi-index, or a tensor of them.
    shape : int, sequence of int or Shape
        Shape the indices refer to.
    order : {None, 'C', 'F', Layout}, optional
        Linearization order (row-major by default).

    Returns
    -------
    int or UnaryOp
        An int for a single index; otherwise a lazy integer expression of
        the same shape as ``indices``. Out of range indices raise
        :class:`~ndtensor.errors.OutOfBoundsError` when it is evaluated.
    """
    shape = as_shape(shape)
    if isinstance(indices, Index) or (
        isinstance(indices, tuple) and all(isinstance(i, (int, np.integer)) for i in indices)
    ):
        return _shape.ravel_index(indices, shape, order)
    return UnaryOp(
        lambda idx: _shape.ravel_index(idx, shape, order), as_indices(indices), dtype=np.intp,
    )


def unravel_index(flat: Any, shape: Any, order: _LayoutLike = None) -> Any:
    """
    Multi-indices of flat positions; the inverse of :func:`ravel_index`.

    Returns
    -------
    Index or UnaryOp
        An :class:`Index` for a single int; otherwise a lazy expression of
        :class:`Index` values.
    """
    shape = as_shape(shape)
    if isinstance(flat, (int, np.integer)):
        return _shape.unravel_index(flat, shape, order)
    return UnaryOp(lambda n: _shape.unravel_index(n, shape, order), flat, dtype=object)


def _unravel_many(flat: np.ndarray, shape: Shape, layout: Layout) -> np.ndarray:
    coords = np.empty(flat.shape + (len(shape),), dtype=np.intp)
    rest = flat.copy()
    axes = range(len(shape) - 1, -1, -1) if layout is Layout.ROW_MAJOR else range(len(shape))
    for i in axes:
        coords[..., i] = rest % shape[i]
        rest //= shape[i]
    return coords


def as_indices(indices: Any) -> Expression:
    """
    Coerce an index argument into an expression.

    A single :class:`Index` and sequences containing :class:`Index` values
    become object tensors of multi-indices; everything else goes through
    :func:`~ndtensor.expression.as_expression`.
    """
    if isinstance(indices, Index):
        return Tensor(_object_array(indices))
    if isinstance(indices, (list, tuple)) and any(isinstance(i, Index) for i in indices):
        entries = np.empty(len(indices), dtype=object)
        for n, entry in enumerate(indices):
            entries[n] = Index(entry)
        return Tensor(entries)
    return as_expression(indices)


def _integer_positions(idx: Expression) -> np.ndarray:
    if idx.size == 0:
        return np.zeros(tuple(idx.shape), dtype=np.intp)
    if not np.issubdtype(idx.dtype, np.integer):
        raise TypeError(f"indices must be integers, got dtype {idx.dtype}")
    return np.asarray(idx._evaluate(), dtype=np.intp)


def _gather_coords(a: Expression, idx: Expression) -> np.ndarray:
    """Validated multi-indices (``idx.shape + (a.ndim,)``) addressed by ``idx``."""
    if idx.dtype == object:
        coords = _index_coords(idx, a.shape)
    else:
        flat = _integer_positions(idx)
        if a.ndim == 1:
            coords = flat[..., None]
        else:
            bad = (flat < 0) | (flat >= a.size)
            if bad.any():
                raise OutOfBoundsError(int(flat[bad][0]), (a.size,))
            coords = _unravel_many(flat, a.shape, Layout.ROW_MAJOR)
    check_coords(coords, a.shape)
    return coords


def _along_axis_coords(a: Expression, idx: Expression, axis: int) -> np.ndarray:
    if idx.ndim != a.ndim or any(
        m != n for k, (m, n) in enumerate(zip(idx.shape, a.shape)) if k != axis
    ):
        raise ShapeError(
            f"indices must match the tensor shape on every axis except {axis}", idx.shape, a.shape
        )
    pos = _integer_positions(idx)
    bad = (pos < 0) | (pos >= a.shape[axis])
    if bad.any():
        raise OutOfBoundsError(int(pos[bad][0]), a.shape, axis=axis)
    coords = np.stack(np.indices(tuple(idx.shape), dtype=np.intp), axis=-1)
    coords[..., axis] = pos
    return coords


def _writable(a: Any, name: str) -> TensorBase:
    if not isinstance(a, TensorBase):
        raise TypeError(f"{name} requires a tensor, view or indirect tensor, got {type(a).__name__}")
    if a.readonly:
        raise ReadOnlyError(type(a).__name__)
    return a


def take(a: Any, indices: Any, axis: Optional[int] = None) -> Tensor:
    """
    Gather elements of ``a``.

    Parameters
    ----------
    a : Expression or array-like
        Source.
    indices : array-like or Expression
        Without ``axis``: integers (flat positions; for 1-D ``a`` these are
        the element positions, for N-d ``a`` positions in the row-major
        flattening) or :class:`Index` values of rank ``a.ndim``. With
        ``axis``: a scalar integer or a 1-D sequence of integers.
    axis : int, optional
        Axis to gather along.

    Returns
    -------
    Tensor
        Without ``axis`` the result has the shape of ``indices``. With
        ``axis`` a scalar index removes the axis and a 1-D index replaces
        its length by ``len(indices)``. Always a copy.

    Raises
    ------
    OutOfBoundsError
        If an index is outside ``a``.
    ShapeError
        If ``axis`` is given and ``indices`` has more than one dimension.

    Examples
    --------
    >>> take(Tensor([7, 13, 19, 11, 5, 8, -2, 7, 11, 3]), [9, 4, 0, 7, 5]).tolist()
    [3, 5, 7, 7, 8]
    >>> take(Tensor([[1, 2], [3, 4]]), [1, 0], axis=1).tolist()
    [[2, 1], [4, 3]]
    """
    a = as_expression(a)
    idx = as_indices(indices)
    if axis is None:
        values = a._gather(_gather_coords(a, idx))
        return Tensor._from_values(values, a.layout, dtype=a.dtype)

    axis = normalize_axis(axis, a.ndim)
    pos = _integer_positions(idx)
    if pos.ndim > 1:
        raise ShapeError("take along an axis expects a scalar or 1-D indices", idx.shape, a.shape)
    bad = (pos < 0) | (pos >= a.shape[axis])
    if bad.any():
        raise OutOfBoundsError(int(np.atleast_1d(pos)[np.atleast_1d(bad)][0]), a.shape, axis=axis)
    values = a._evaluate()[(slice(None),) * axis + (pos,)]
    return Tensor._from_values(values, a.layout, dtype=a.dtype)


def take_along_axis(a: Any, indices: Any, axis: int) -> Tensor:
    """
    Gather along ``axis`` with a per-position index.

    ``result[..., k, ...] = a[..., indices[..., k, ...], ...]`` where the
    elided coordinates are the same on both sides.

    Parameters
    ----------
    a : Expression or array-like
        Source.
    indices : array-like or Expression of int
        Same rank as ``a``; equal to ``a.shape`` on every axis except
        ``axis``.
    axis : int
        Axis to gather along.

    Returns
    -------
    Tensor
        Tensor of the shape of ``indices``.

    Raises
    ------
    ShapeError
        If the ranks differ or a non-``axis`` length differs.
    OutOfBoundsError
        If an index is outside ``[0, a.shape[axis])``.
    """
    a = as_expression(a)
    idx = as_indices(indices)
    axis = normalize_axis(axis, a.ndim)
    values = a._gather(_along_axis_coords(a, idx, axis))
    return Tensor._from_values(values, a.layout, dtype=a.dtype)


def put(a: TensorBase, indices: Any, values: Any) -> None:
    """
    Scatter ``values`` into ``a`` at ``indices``, in place.

    Parameters
    ----------
    a : TensorBase
        Destination (tensor, writable view or indirect tensor).
    indices : array-like or Expression
        Same forms as for :func:`take` without an axis.
    values : scalar, array-like or Expression
        Broadcast to the shape of ``indices``.

    Raises
    ------
    OutOfBoundsError
        If an index is outside ``a``; nothing is written in that case.
    ShapeError
        If ``values`` cannot be broadcast to ``indices``.

    Notes
    -----
    When several entries of ``indices`` address the same element, the
    value of the last such entry (in row-major order of ``indices``) is the
    one that remains.

    Examples
    --------
    >>> a = Tensor([7, 13, 19, 11, 5, 8, -2, 7, 11, 3])
    >>> put(a, [9, 4, 0, 7, 5], [10, 20, 30, 40, 50])
    >>> a.tolist()
    [30, 13, 19, 11, 20, 50, -2, 40, 11, 10]
    """
    a = _writable(a, "put")
    idx = as_indices(indices)
    coords = _gather_coords(a, idx)
    vals = _values_for(values, idx.shape, a.dtype)
    _scatter(a._buffer, a._offsets_at(coords), vals)


def put_along_axis(a: TensorBase, indices: Any, values: Any, axis: int) -> None:
    """
    Scatter along ``axis``; the in-place counterpart of :func:`take_along_axis`.

    ``values`` is broadcast to the shape of ``indices``. Duplicated
    destinations keep the value written last in row-major order of
    ``indices``.
    """
    a = _writable(a, "put_along_axis")
    idx = as_indices(indices)
    axis = normalize_axis(axis, a.ndim)
    coords = _along_axis_coords(a, idx, axis)
    vals = _values_for(values, idx.shape, a.dtype)
    _scatter(a._buffer, a._offsets_at(coords), vals)


def compress(a: Any, condition: Any, axis: Optional[int] = None) -> Tensor:
    """
    Select the elements (or slices along ``axis``) where ``condition`` is true.

    Parameters
    ----------
    a : Expression or array-like
        Source.
    condition : array-like or Expression of bool
        Without ``axis``: the shape of ``a``. With ``axis``: 1-D of length
        ``a.shape[axis]``.
    axis : int, optional
        Axis along which whole slices are selected.

    Returns
    -------
    Tensor
        Without ``axis``: 1-D, elements in ``a``'s native traversal order.
        With ``axis``: same rank as ``a``.

    Raises
    ------
    ShapeError
        If ``condition`` has the wrong shape.

    Examples
    --------
    >>> x = Tensor([7, 13, 19, 11, 5, 8, -2, 7, 11, 3])
    >>> compress(x, x > 10).tolist()
    [13, 19, 11, 11]
    """
    a = as_expression(a)
    cond = as_expression(condition)
    if axis is None:
        if cond.shape != a.shape:
            raise ShapeError("condition must have the shape of the tensor", cond.shape, a.shape)
        mask = ravel_in(cond._evaluate(), a.layout).astype(bool)
        values = ravel_in(a._evaluate(), a.layout)[mask]
        return Tensor._from_values(values, a.layout, dtype=a.dtype)

    axis = normalize_axis(axis, a.ndim)
    if cond.ndim != 1 or cond.shape[0] != a.shape[axis]:
        raise ShapeError(
            f"condition must be 1-D with the length of axis {axis}", cond.shape, a.shape
        )
    keep = np.flatnonzero(cond._evaluate().astype(bool))
    values = a._evaluate()[(slice(None),) * axis + (keep,)]
    return Tensor._from_values(values, a.layout, dtype=a.dtype)


def place(a: TensorBase, condition: Any, values: Any) -> None:
    """
    Fill the true positions of ``condition`` with consecutive ``values``, in place.

    Positions are visited in ``a``'s native traversal order; the ``n``-th
    true position receives ``values[n]``, reading ``values`` in its own
    native order. Surplus values are ignored; a
    scalar fills every true position.

    Raises
    ------
    ShapeError
        If ``condition`` does not have the shape of ``a``, or if fewer
        values than true positions are given.
    """
    a = _writable(a, "place")
    cond = as_expression(condition)
    if cond.shape != a.shape:
        raise ShapeError("condition must have the shape of the tensor", cond.shape, a.shape)
    mask = ravel_in(cond._evaluate(), a.layout).astype(bool)
    count = int(mask.sum())

    if isinstance(values, (Expression, np.ndarray, list)) and as_expression(values).ndim > 0:
        src = as_expression(values)
        flat = ravel_in(src._evaluate(), src.layout)
        if flat.size < count:
            raise ShapeError(
                "place needs at least as many values as true entries", (flat.size,), (count,)
            )
        vals = flat[:count]
    else:
        vals = _values_for(values, Shape(count), a.dtype)
    _scatter(a._buffer, a._traversal_offsets()[mask], np.asarray(vals))


def putmask(a: TensorBase, mask: Any, values: Any) -> None:
    """
    Overwrite the elements of ``a`` where ``mask`` is true, in place.

    ``values`` is broadcast to ``a.shape`` first, so position ``i`` receives
    ``values[broadcast_index(i, values.shape)]``.

    Raises
    ------
    ShapeError
        If ``mask`` does not have the shape of ``a`` or ``values`` cannot be
        broadcast to it.
    """
    a = _writable(a, "putmask")
    cond = as_expression(mask)
    if cond.shape != a.shape:
        raise ShapeError("mask must have the shape of the tensor", cond.shape, a.shape)
    vals = _values_for(values, a._shape, a.dtype)
    selected = np.asarray(cond._evaluate(), dtype=bool)
    _scatter(a._buffer, a._offsets()[selected], vals[selected])
