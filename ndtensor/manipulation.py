"""
Shape manipulation: joining, repeating, padding and axis rearrangement.

Axis rearrangements (``transpose``, ``swapaxes``, ``moveaxis``, ``flip``,
``diagonal`` and ``reshape`` of contiguous storage) return views. Joining,
repeating, padding and rolling always allocate a new :class:`Tensor`.
"""
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ndtensor.broadcasting import expand_dims
from ndtensor.errors import ShapeError
from ndtensor.expression import Expression, as_expression
from ndtensor.iterators import ndindex
from ndtensor.shape import Layout, Shape, as_layout, as_shape, contiguous_strides, normalize_axis, ravel_in
from ndtensor.tensor import Tensor, TensorBase, _StridedStorage, as_storage

logger = logging.getLogger(__name__)

_LayoutLike = Union[Layout, str, None]
_AxisLike = Union[int, Sequence[int], None]


def _check_same_shape(tensors: Sequence[Expression], skip_axis: Optional[int], what: str) -> None:
    first = tensors[0]
    for t in tensors[1:]:
        if t.ndim != first.ndim or any(
            m != n for k, (m, n) in enumerate(zip(t.shape, first.shape)) if k != skip_axis
        ):
            raise ShapeError(what, *(x.shape for x in tensors))


def concatenate(arrays: Sequence[Any], axis: int = 0) -> Tensor:
    """
    Join tensors along an existing axis.

    Parameters
    ----------
    arrays : sequence of Expression or array-like
        Non-empty sequence of tensors with identical shapes except along
        ``axis``.
    axis : int, default=0
        Joining axis; negative values count from the end.

    Returns
    -------
    Tensor
        New tensor in the layout of the first input, with the common dtype.

    Raises
    ------
    ShapeError
        If the shapes disagree outside ``axis``.
    ValueError
        If ``arrays`` is empty or the inputs are rank 0.
    """
    tensors = [as_expression(a) for a in arrays]
    if not tensors:
        raise ValueError("need at least one tensor to concatenate")
    first = tensors[0]
    if first.ndim == 0:
        raise ValueError("zero-dimensional tensors cannot be concatenated")
    axis = normalize_axis(axis, first.ndim)
    _check_same_shape(
        tensors, axis, "all input tensors must have the same shape except on the concatenation axis",
    )
    shape = first.shape.copy()
    shape[axis] = sum(t.shape[axis] for t in tensors)
    dtype = np.result_type(*(t.dtype for t in tensors))
    out = Tensor.empty(shape, dtype=dtype, order=first.layout)

    start = 0
    for t in tensors:
        n = t.shape[axis]
        out[(slice(None),) * axis + (slice(start, start + n),)] = t
        start += n
    return out


def stack(arrays: Sequence[Any], axis: int = 0) -> Tensor:
    """
    Join tensors of identical shape along a new axis.

    Raises
    ------
    ShapeError
        If the shapes are not all equal.
    """
    tensors = [as_storage(a) for a in arrays]
    if not tensors:
        raise ValueError("need at least one tensor to stack")
    _check_same_shape(tensors, None, "all input tensors must have the same shape")
    axis = normalize_axis(axis, tensors[0].ndim + 1)
    return concatenate([expand_dims(t, axis) for t in tensors], axis=axis)


def tile(a: Any, reps: Union[int, Sequence[int]]) -> Tensor:
    """
    Repeat the whole tensor ``reps[i]`` times along each axis.

    If ``reps`` is shorter than the rank it is padded with leading ones; if
    it is longer, ``a`` is given leading axes of length 1.

    Examples
    --------
    >>> tile(Tensor([1, 2]), (2, 2)).tolist()
    [[1, 2, 1, 2], [1, 2, 1, 2]]
    """
    src = as_storage(a)
    reps = [int(reps)] if isinstance(reps, (int, np.integer)) else [int(r) for r in reps]
    if any(r < 0 for r in reps):
        raise ValueError(f"negative repetitions are not allowed: {tuple(reps)}")
    ndim = max(src.ndim, len(reps))
    reps = Shape([1] * (ndim - len(reps)) + reps)
    block = Shape([1] * (ndim - src.ndim) + list(src.shape))
    src = reshape(src, block)
    out = Tensor.empty(block * reps, dtype=src.dtype, order=src.layout)
    for pos in ndindex(reps):
        key = tuple(slice(p * n, (p + 1) * n) for p, n in zip(pos, block))
        out[key] = src
    return out


def repeat(a: Any, repeats: Union[int, Sequence[int]], axis: Optional[int] = 0) -> Tensor:
    """
    Repeat each element (or slice along ``axis``) of a tensor.

    Parameters
    ----------
    a : Expression or array-like
        Source.
    repeats : int or sequence of int
        Number of repetitions; either one count for every position or one
        count per position along ``axis``.
    axis : int or None, default=0
        Axis to repeat along. ``None`` repeats the elements of the
        row-major flattening and returns a 1-D tensor.

    Raises
    ------
    ShapeError
        If ``repeats`` is a sequence whose length differs from the axis
        length.
    ValueError
        If a count is negative.

    Examples
    --------
    >>> repeat(Tensor([[1, 2], [3, 4]]), [1, 2], axis=0).tolist()
    [[1, 2], [3, 4], [3, 4]]
    """
    src = as_expression(a)
    if axis is None:
        src = Tensor.from_buffer(ravel_in(src._evaluate()), src.size, order=src.layout, dtype=src.dtype)
        axis = 0
    axis = normalize_axis(axis, src.ndim)
    n = src.shape[axis]
    counts = np.asarray(repeats, dtype=np.intp)
    if counts.ndim == 0:
        counts = np.full(n, int(counts), dtype=np.intp)
    elif counts.shape != (n,):
        raise ShapeError(f"repeats must match the length of axis {axis}", counts.shape, src.shape)
    if (counts < 0).any():
        raise ValueError("negative repetitions are not allowed")
    from ndtensor.indexing import take
    return take(src, np.repeat(np.arange(n, dtype=np.intp), counts), axis=axis)


def _pairs(value: Any, ndim: int, what: str) -> List[Tuple[Any, Any]]:
    """Normalize ``value`` to one ``(before, after)`` pair per axis."""
    arr = np.asarray(value, dtype=object)
    if arr.ndim == 0:
        return [(arr[()], arr[()])] * ndim
    if arr.shape == (1,):
        return [(arr[0], arr[0])] * ndim
    if arr.shape == (2,):
        return [(arr[0], arr[1])] * ndim
    if arr.shape == (1, 2):
        return [(arr[0, 0], arr[0, 1])] * ndim
    if arr.shape == (ndim, 2):
        return [(arr[k, 0], arr[k, 1]) for k in range(ndim)]
    raise ValueError(f"{what} of shape {arr.shape} cannot be applied to a tensor of rank {ndim}")


def _lane_source(lane: TensorBase, before: int, after: int, source: Callable) -> None:
    n = lane.size - before - after
    values = lane.to_numpy()
    if before:
        lane[:before] = values[before + source(np.arange(-before, 0), n)]
    if after:
        lane[before + n:] = values[before + source(np.arange(n, n + after), n)]


def pad_constant(lane: TensorBase, before: int, after: int, axis: int, constant_values: Any = 0) -> None:
    """Fill the padded ends of ``lane`` with constants (one pair per axis)."""
    value_before, value_after = constant_values
    n = lane.size - before - after
    if before:
        lane[:before] = value_before
    if after:
        lane[before + n:] = value_after


def pad_edge(lane: TensorBase, before: int, after: int, axis: int) -> None:
    """Repeat the first and last value of ``lane``."""
    _lane_source(lane, before, after, lambda i, n: np.clip(i, 0, n - 1))


def pad_linear_ramp(lane: TensorBase, before: int, after: int, axis: int, end_values: Any = 0) -> None:
    """Ramp linearly from the edge value to ``end_values`` at the outer ends."""
    end_before, end_after = end_values
    n = lane.size - before - after
    values = lane.to_numpy()
    integral = np.issubdtype(lane.dtype, np.integer)
    if before:
        ramp = np.linspace(end_before, values[before], before, endpoint=False)
        lane[:before] = np.around(ramp) if integral else ramp
    if after:
        ramp = np.linspace(end_after, values[before + n - 1], after, endpoint=False)[::-1]
        lane[before + n:] = np.around(ramp) if integral else ramp


def _reflect(i: np.ndarray, n: int) -> np.ndarray:
    if n == 1:
        return np.zeros_like(i)
    period = 2 * (n - 1)
    m = i % period
    return np.where(m >= n, period - m, m)


def _symmetric(i: np.ndarray, n: int) -> np.ndarray:
    m = i % (2 * n)
    return np.where(m >= n, 2 * n - 1 - m, m)


def pad_reflect(lane: TensorBase, before: int, after: int, axis: int) -> None:
    """Mirror ``lane`` about its first and last value (edge not repeated)."""
    _lane_source(lane, before, after, _reflect)


def pad_symmetric(lane: TensorBase, before: int, after: int, axis: int) -> None:
    """Mirror ``lane`` about its ends (edge repeated)."""
    _lane_source(lane, before, after, _symmetric)


def pad_wrap(lane: TensorBase, before: int, after: int, axis: int) -> None:
    """Wrap ``lane`` around: the end pads the beginning and vice versa."""
    _lane_source(lane, before, after, lambda i, n: i % n)


PAD_MODES = {
    "constant": pad_constant,
    "edge": pad_edge,
    "linear_ramp": pad_linear_ramp,
    "reflect": pad_reflect,
    "symmetric": pad_symmetric,
    "wrap": pad_wrap,
}


def pad(a: Any, pad_width: Any, mode: Union[str, Callable] = "constant", **kwargs: Any) -> Tensor:
    """
    Pad a tensor.

    The result is allocated, ``a`` is copied into its center and then,
    axis by axis, the mode function is applied to every 1-D lane along that
    axis. Later axes therefore see (and extend) the padding of earlier
    ones.

    Parameters
    ----------
    a : Expression or array-like
        Source.
    pad_width : int or sequence
        Number of values padded before and after each axis: ``n``,
        ``(before, after)``, or ``((before_1, after_1), ...)``.
    mode : str or callable, default="constant"
        One of ``"constant"``, ``"edge"``, ``"linear_ramp"``,
        ``"reflect"``, ``"symmetric"``, ``"wrap"``, or a function
        ``mode(lane, before, after, axis, **kwargs)`` that fills the ends
        of the writable 1-D view ``lane`` in place.
    **kwargs
        ``constant_values`` (constant) and ``end_values`` (linear_ramp),
        given like ``pad_width``; passed through to callables.

    Returns
    -------
    Tensor

    Raises
    ------
    ValueError
        For negative widths, an unknown mode, or a non-constant mode that
        would have to extend an empty axis.

    Examples
    --------
    >>> pad(Tensor([1, 2, 3]), (2, 1), mode="reflect").tolist()
    [3, 2, 1, 2, 3, 2]
    """
    src = as_expression(a)
    widths = [(int(b), int(e)) for b, e in _pairs(pad_width, src.ndim, "pad_width")]
    if any(b < 0 or e < 0 for b, e in widths):
        raise ValueError(f"pad_width must be non-negative, got {widths}")

    if callable(mode):
        func, per_axis = mode, {}
    elif mode in PAD_MODES:
        func = PAD_MODES[mode]
        if mode == "constant":
            per_axis = {"constant_values": _pairs(kwargs.pop("constant_values", 0), src.ndim, "constant_values")}
        elif mode == "linear_ramp":
            per_axis = {"end_values": _pairs(kwargs.pop("end_values", 0), src.ndim, "end_values")}
        else:
            per_axis = {}
        if kwargs:
            raise ValueError(f"unsupported keyword arguments for mode {mode!r}: {sorted(kwargs)}")
        for k, ((b, e), n) in enumerate(zip(widths, src.shape)):
            if mode != "constant" and n == 0 and (b or e):
                raise ValueError(f"cannot extend empty axis {k} using mode {mode!r}")
    else:
        raise ValueError(f"mode {mode!r} is not supported")

    shape = Shape([n + b + e for n, (b, e) in zip(src.shape, widths)])
    out = Tensor.empty(shape, dtype=src.dtype, order=src.layout)
    out[tuple(slice(b, b + n) for n, (b, _) in zip(src.shape, widths))] = src
    logger.debug("padding %s to %s with mode %r", src.shape, shape, mode)

    for axis, (b, e) in enumerate(widths):
        if not (b or e):
            continue
        axis_kwargs = {name: pairs[axis] for name, pairs in per_axis.items()}
        axis_kwargs.update(kwargs)
        others = Shape([n for k, n in enumerate(shape) if k != axis])
        for pos in ndindex(others):
            key = tuple(pos)[:axis] + (slice(None),) + tuple(pos)[axis:]
            func(out[key], b, e, axis, **axis_kwargs)
    return out


def transpose(a: Any, axes: Optional[Sequence[int]] = None) -> TensorBase:
    """
    Permute the axes of a tensor; returns a view.

    Parameters
    ----------
    a : Expression or array-like
        Source (lazy expressions are materialized).
    axes : sequence of int, optional
        Permutation; the ``i``-th axis of the result is ``axes[i]`` of the
        input. Reverses the axes by default.

    Raises
    ------
    ValueError
        If ``axes`` is not a permutation of ``range(a.ndim)``.
    """
    src = as_storage(a)
    if axes is None:
        axes = list(range(src.ndim))[::-1]
    else:
        axes = [normalize_axis(ax, src.ndim) for ax in axes]
        if sorted(axes) != list(range(src.ndim)):
            raise ValueError(f"axes {tuple(axes)} don't match a tensor of rank {src.ndim}")
    strides, offset = src._address()
    return src._restride(Shape([src._shape[k] for k in axes]), [strides[k] for k in axes], offset)


def swapaxes(a: Any, axis1: int, axis2: int) -> TensorBase:
    """Interchange two axes; returns a view."""
    src = as_storage(a)
    axes = list(range(src.ndim))
    i, j = normalize_axis(axis1, src.ndim), normalize_axis(axis2, src.ndim)
    axes[i], axes[j] = axes[j], axes[i]
    return transpose(src, axes)


def moveaxis(a: Any, source: Union[int, Sequence[int]], destination: Union[int, Sequence[int]]) -> TensorBase:
    """
    Move axes to new positions; the other axes keep their relative order.

    Raises
    ------
    ValueError
        If ``source`` and ``destination`` differ in length or repeat axes.
    """
    src = as_storage(a)
    source = [source] if isinstance(source, (int, np.integer)) else list(source)
    destination = [destination] if isinstance(destination, (int, np.integer)) else list(destination)
    if len(source) != len(destination):
        raise ValueError("source and destination must have the same number of axes")
    source = [normalize_axis(ax, src.ndim) for ax in source]
    destination = [normalize_axis(ax, src.ndim) for ax in destination]
    if len(set(source)) != len(source) or len(set(destination)) != len(destination):
        raise ValueError("repeated axis in source or destination")
    order = [k for k in range(src.ndim) if k not in source]
    for dest, s in sorted(zip(destination, source)):
        order.insert(dest, s)
    return transpose(src, order)


def flip(a: Any, axis: _AxisLike = None) -> TensorBase:
    """
    Reverse the order of elements along the given axes (all by default).

    Returns a view with negated strides.
    """
    src = as_storage(a)
    if axis is None:
        axes = set(range(src.ndim))
    else:
        axes = {normalize_axis(ax, src.ndim) for ax in ([axis] if isinstance(axis, (int, np.integer)) else axis)}
    strides, offset = src._address()
    new_strides = list(strides)
    for k in axes:
        n = src._shape[k]
        if n > 0:
            offset += (n - 1) * strides[k]
        new_strides[k] = -strides[k]
    return src._restride(src._shape, new_strides, offset)


def diagonal(a: Any, offset: int = 0, axis1: int = 0, axis2: int = 1) -> TensorBase:
    """
    View of the diagonal formed by ``axis1`` and ``axis2``.

    The two axes are removed and the diagonal is appended as the last axis.
    ``offset > 0`` selects diagonals above the main one, ``offset < 0``
    below it.

    Examples
    --------
    >>> diagonal(Tensor([[1, 2, 3], [4, 5, 6]]), 1).tolist()
    [2, 6]
    """
    src = as_storage(a)
    i, j = normalize_axis(axis1, src.ndim), normalize_axis(axis2, src.ndim)
    if i == j:
        raise ValueError("axis1 and axis2 cannot be the same")
    n1, n2 = src._shape[i], src._shape[j]
    start1, start2 = (0, offset) if offset >= 0 else (-offset, 0)
    length = max(0, min(n1 - start1, n2 - start2))
    strides, base = src._address()
    if length > 0:
        base += start1 * strides[i] + start2 * strides[j]
    kept = [k for k in range(src.ndim) if k not in (i, j)]
    shape = Shape([src._shape[k] for k in kept] + [length])
    return src._restride(shape, [strides[k] for k in kept] + [strides[i] + strides[j]], base)


def _resolve_shape(shape: Any, size: int) -> Shape:
    dims = [int(shape)] if isinstance(shape, (int, np.integer)) else [int(n) for n in shape]
    unknown = [k for k, n in enumerate(dims) if n == -1]
    if len(unknown) > 1:
        raise ValueError("can only specify one unknown dimension")
    if unknown:
        known = int(np.prod([n for n in dims if n != -1], dtype=np.int64))
        if known == 0 or size % known:
            raise ShapeError(f"cannot reshape tensor of size {size} into shape", dims)
        dims[unknown[0]] = size // known
    target = as_shape(dims)
    if target.size != size:
        raise ShapeError(f"cannot reshape tensor of size {size} into shape", target)
    return target


def reshape(a: Any, shape: Any, order: _LayoutLike = None) -> TensorBase:
    """
    Give a tensor a new shape without changing its elements.

    Elements are read and placed in ``order`` (default: the native layout
    of ``a``). When ``a`` is strided storage that is contiguous in that
    order the result is a view; otherwise it is a new :class:`Tensor`.

    Parameters
    ----------
    a : Expression or array-like
        Source.
    shape : int or sequence of int
        New shape; one entry may be ``-1`` and is inferred.
    order : {None, 'C', 'F', Layout}, optional
        Read/write order.

    Raises
    ------
    ShapeError
        If the sizes disagree.
    ValueError
        If more than one dimension is ``-1``.
    """
    src = as_expression(a)
    layout = as_layout(order, src.layout)
    target = _resolve_shape(shape, src.size)
    if isinstance(src, _StridedStorage) and layout is src.layout and src.is_contiguous(layout):
        return src._restride(target, contiguous_strides(target, layout), src.offset)
    values = ravel_in(src._evaluate(), layout)
    return Tensor.from_buffer(values, target, order=layout, dtype=src.dtype)


def roll(a: Any, shift: Union[int, Sequence[int]], axis: _AxisLike = None) -> Tensor:
    """
    Shift elements cyclically along the given axes.

    With ``axis=None`` the tensor is rolled as if flattened (row-major)
    and the original shape is restored. Always returns a copy.

    Examples
    --------
    >>> roll(Tensor([1, 2, 3, 4]), 1).tolist()
    [4, 1, 2, 3]
    """
    from ndtensor.indexing import take

    src = as_expression(a)
    if axis is None:
        flat = ravel_in(src._evaluate())
        if flat.size:
            flat = flat[(np.arange(flat.size) - int(shift)) % flat.size]
        return Tensor._from_values(flat.reshape(tuple(src.shape)), src.layout, dtype=src.dtype)

    axes = [axis] if isinstance(axis, (int, np.integer)) else list(axis)
    shifts = [shift] * len(axes) if isinstance(shift, (int, np.integer)) else list(shift)
    if len(shifts) != len(axes):
        raise ValueError("shift and axis must have the same length")
    out = Tensor(src)
    for ax, s in zip(axes, shifts):
        ax = normalize_axis(ax, out.ndim)
        n = out.shape[ax]
        if n:
            out = take(out, (np.arange(n) - int(s)) % n, axis=ax)
    return out
