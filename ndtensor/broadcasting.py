"""
Broadcast views and rank adjustments.

Everything here returns views: no element is copied. Broadcast views repeat
elements through zero strides and are therefore read-only.
"""
from typing import Any, List, Sequence, Union

import numpy as np

from ndtensor.errors import ShapeError
from ndtensor.shape import Shape, as_shape, broadcast_shapes, is_broadcastable, normalize_axis
from ndtensor.tensor import TensorBase, as_storage


def broadcast_to(a: Any, shape: Any) -> TensorBase:
    """
    Broadcast ``a`` to ``shape``.

    Axes of length 1 and missing leading axes are repeated by giving them
    stride 0; all other axes keep their stride.

    Parameters
    ----------
    a : Expression or array-like
        Source. Storage is viewed directly; lazy expressions are
        materialized first.
    shape : int, sequence of int or Shape
        Target shape.

    Returns
    -------
    TensorView or IndirectTensor
        A read-only object aliasing ``a``'s buffer.

    Raises
    ------
    ShapeError
        If ``a.shape`` cannot be broadcast to ``shape``.

    Examples
    --------
    >>> b = broadcast_to(Tensor([[0]]), (3, 5))
    >>> b.shape, b.strides
    (Shape(3, 5), (0, 0))
    """
    a = as_storage(a)
    shape = as_shape(shape)
    if not is_broadcastable(a._shape, shape):
        raise ShapeError("cannot broadcast tensor to shape", a._shape, shape)
    strides, offset = a._address()
    lead = len(shape) - a.ndim
    new_strides = [0] * lead + [
        0 if n == 1 and m != 1 else s for n, s, m in zip(a._shape, strides, shape[lead:])
    ]
    return a._restride(shape, new_strides, offset, readonly=True)


def broadcast_arrays(*arrays: Any) -> List[TensorBase]:
    """
    Broadcast any number of tensors against each other.

    Returns
    -------
    list of TensorView or IndirectTensor
        Read-only views, all of the common broadcast shape.

    Raises
    ------
    ShapeError
        If the shapes cannot be broadcast together.
    """
    storages = [as_storage(a) for a in arrays]
    shape = broadcast_shapes(*(s._shape for s in storages))
    return [broadcast_to(s, shape) for s in storages]


def _axes(axis: Union[int, Sequence[int]], ndim: int) -> List[int]:
    axes = [axis] if isinstance(axis, (int, np.integer)) else list(axis)
    out = [normalize_axis(ax, ndim) for ax in axes]
    if len(set(out)) != len(out):
        raise ValueError(f"repeated axis in {tuple(axes)}")
    return out


def expand_dims(a: Any, axis: Union[int, Sequence[int]]) -> TensorBase:
    """
    Insert axes of length 1.

    Parameters
    ----------
    a : Expression or array-like
        Source (lazy expressions are materialized).
    axis : int or sequence of int
        Positions of the new axes in the result; negative values count from
        the end of the result.

    Returns
    -------
    TensorView or IndirectTensor
        A view of ``a`` with ``a.ndim + len(axis)`` axes.

    Raises
    ------
    ValueError
        If an axis is repeated or out of range.

    Examples
    --------
    >>> expand_dims(Tensor([1, 2]), (0, -1)).shape
    Shape(1, 2, 1)
    """
    a = as_storage(a)
    n_new = 1 if isinstance(axis, (int, np.integer)) else len(axis)
    inserted = set(_axes(axis, a.ndim + n_new))
    strides, offset = a._address()
    src = iter(zip(a._shape, strides))
    new_shape, new_strides = [], []
    for k in range(a.ndim + n_new):
        if k in inserted:
            new_shape.append(1)
            new_strides.append(0)
        else:
            n, s = next(src)
            new_shape.append(n)
            new_strides.append(s)
    return a._restride(Shape(new_shape), new_strides, offset)


def squeeze(a: Any, axis: Union[int, Sequence[int], None] = None) -> TensorBase:
    """
    Remove axes of length 1.

    Parameters
    ----------
    a : Expression or array-like
        Source (lazy expressions are materialized).
    axis : int or sequence of int, optional
        Axes to remove. By default every axis of length 1 is removed.

    Raises
    ------
    ShapeError
        If a selected axis does not have length 1.
    """
    a = as_storage(a)
    if axis is None:
        dropped = {k for k, n in enumerate(a._shape) if n == 1}
    else:
        dropped = set(_axes(axis, a.ndim))
        for k in sorted(dropped):
            if a._shape[k] != 1:
                raise ShapeError(f"cannot squeeze axis {k} whose length is not one", a._shape)
    strides, offset = a._address()
    kept = [k for k in range(a.ndim) if k not in dropped]
    return a._restride(Shape([a._shape[k] for k in kept]), [strides[k] for k in kept], offset)
