"""N-dimensional tensors with NumPy-like shape, broadcasting, view and indexing semantics."""
import logging

from ndtensor.broadcasting import broadcast_arrays, broadcast_to, expand_dims, squeeze
from ndtensor.config import PrintOptions, is_boundscheck_enabled, setup_logging, unchecked
from ndtensor.errors import AllocationError, OutOfBoundsError, ReadOnlyError, ShapeError
from ndtensor.expression import BinaryOp, Expression, Scalar, UnaryOp, WhereOp, as_expression, materialize
from ndtensor.formatting import array2string, format_tensor
from ndtensor.indexing import (
    compress,
    place,
    put,
    put_along_axis,
    putmask,
    ravel_index,
    take,
    take_along_axis,
    unravel_index,
)
from ndtensor.iterators import FlatAccessor, TensorIterator, ndindex
from ndtensor.manipulation import (
    PAD_MODES,
    concatenate,
    diagonal,
    flip,
    moveaxis,
    pad,
    repeat,
    reshape,
    roll,
    stack,
    swapaxes,
    tile,
    transpose,
)
from ndtensor.routines import (
    apply,
    arange,
    argwhere,
    asarray,
    ascontiguousarray,
    asfortranarray,
    astype,
    copy,
    copyto,
    count_nonzero,
    empty,
    empty_like,
    eye,
    flatten,
    full,
    full_like,
    index_tensor,
    linspace,
    nonzero,
    ones,
    ones_like,
    where,
    zeros,
    zeros_like,
)
from ndtensor.shape import (
    DEFAULT_LAYOUT,
    Index,
    Layout,
    Shape,
    broadcast_index,
    broadcast_shapes,
    contiguous_strides,
    make_index,
    make_shape,
    strided_offsets,
)
from ndtensor.tensor import IndirectTensor, Tensor, TensorBase, TensorView

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
