"""
Lazy elementwise expressions.

Every tensor-like object in the package is an :class:`Expression`: it has a
shape, a layout, a dtype and read access by multi-index. Arithmetic,
comparison and bitwise operators on expressions do not compute anything;
they build a small tree of nodes

* :class:`Scalar`: a constant leaf of rank 0,
* :class:`UnaryOp`: ``op(operand)``,
* :class:`BinaryOp`: ``op(left, right)`` with broadcasting,
* :class:`WhereOp`: ``condition ? x : y`` with broadcasting,

whose leaves are the storage types of :mod:`ndtensor.tensor`. A node is
evaluated either one element at a time (``expr[i, j]``, iteration) or as a
whole when it is materialized into a new :class:`~ndtensor.tensor.Tensor`.
No buffer is allocated before that.
"""
import logging
from typing import Any, Callable, Optional, Tuple, Union

import numpy as np

from ndtensor import config
from ndtensor.shape import (
    DEFAULT_LAYOUT,
    Index,
    Layout,
    Shape,
    _broadcast_index,
    as_layout,
    broadcast_shapes,
    check_bounds,
    contiguous_strides,
    strided_offsets,
)

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (bool, int, float, complex, np.generic)


def _unwrap(value: Any) -> Any:
    """Return the element held by a 0-d array, or ``value`` unchanged."""
    if isinstance(value, np.ndarray) and value.ndim == 0:
        return value[()]
    return value


def _object_array(value: Any) -> np.ndarray:
    """Wrap a single (possibly sequence-like) object into a 0-d object array."""
    out = np.empty((), dtype=object)
    out[()] = value
    return out


class Expression:
    """
    Base class of everything with a shape, a layout and element access.

    Subclasses provide ``shape``, ``layout``, ``dtype``, :meth:`_value_at`
    (unchecked single element read) and :meth:`_evaluate` (all values as a
    NumPy array whose indexing follows the logical shape). Everything else,
    including operators, iteration and materialization, is derived from
    those.

    Notes
    -----
    - Operators return new lazy nodes; comparing two expressions with ``==``
      returns an elementwise boolean expression, so expressions are not
      hashable.
    - Iterating an expression walks its elements (not sub-tensors) in the
      object's native layout; use :meth:`begin` to request another order.
    """

    __array_ufunc__ = None
    __hash__ = None

    _repr_name = "expression"

    @property
    def shape(self) -> Shape:
        """Shape: Per-axis lengths."""
        raise NotImplementedError

    @property
    def layout(self) -> Layout:
        """Layout: Native traversal order."""
        raise NotImplementedError

    @property
    def dtype(self) -> np.dtype:
        """numpy.dtype: Element type."""
        raise NotImplementedError

    def _value_at(self, index: Tuple[int, ...]) -> Any:
        raise NotImplementedError

    def _evaluate(self) -> np.ndarray:
        raise NotImplementedError

    @property
    def ndim(self) -> int:
        """int: Number of axes."""
        return len(self.shape)

    @property
    def size(self) -> int:
        """int: Total number of elements."""
        return self.shape.size

    def __len__(self) -> int:
        if self.ndim == 0:
            raise TypeError("len() of a rank-0 tensor")
        return self.shape[0]

    def __bool__(self) -> bool:
        if self.size != 1:
            raise ValueError(
                "The truth value of a tensor with more than one element is ambiguous"
            )
        return bool(self._evaluate().reshape(-1)[0])

    def _element_key(self, key: Any) -> Optional[Tuple[int, ...]]:
        """Return ``key`` as a full multi-index, or ``None`` if it is not one."""
        if isinstance(key, Index):
            return key.to_tuple()
        if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
            return (int(key),) if self.ndim == 1 else None
        if isinstance(key, tuple) and len(key) == self.ndim and all(
            isinstance(k, (int, np.integer)) and not isinstance(k, bool) for k in key
        ):
            return tuple(int(k) for k in key)
        return None

    def _checked(self, index: Tuple[int, ...]) -> Tuple[int, ...]:
        if config.is_boundscheck_enabled():
            return check_bounds(index, self.shape)
        return index

    def __getitem__(self, key: Any) -> Any:
        """
        Read one element by multi-index.

        Lazy expressions only support element access; materialize them (or
        use :func:`ndtensor.indexing.take`) for slicing and fancy indexing.

        Raises
        ------
        OutOfBoundsError
            If the index is outside the shape (while bounds checking is on).
        """
        index = self._element_key(key)
        if index is None:
            raise TypeError(
                f"{type(self).__name__} supports element access only; "
                f"call materialize() before slicing"
            )
        return self._value_at(self._checked(index))

    def _gather(self, coords: np.ndarray) -> np.ndarray:
        """
        Values at many multi-indices at once.

        ``coords`` has shape ``batch + (ndim,)``; the result has shape
        ``batch``. Coordinates must already be validated.
        """
        values = self._evaluate()
        if self.ndim == 0:
            return np.broadcast_to(values, coords.shape[:-1]).copy()
        return values[tuple(np.moveaxis(coords, -1, 0))]

    @property
    def flat(self):
        """FlatAccessor: Element access by flat index in the native layout."""
        from ndtensor.iterators import FlatAccessor
        return FlatAccessor(self)

    def begin(self, order: Union[Layout, str, None] = None):
        """
        Iterator positioned at the first element.

        Parameters
        ----------
        order : {None, 'C', 'F', Layout}, optional
            Traversal order. Defaults to the object's native layout; any
            order can be requested regardless of how memory is laid out.
        """
        from ndtensor.iterators import TensorIterator
        return TensorIterator(self, 0, as_layout(order, self.layout))

    def end(self, order: Union[Layout, str, None] = None):
        """Iterator positioned one past the last element."""
        from ndtensor.iterators import TensorIterator
        return TensorIterator(self, self.size, as_layout(order, self.layout))

    def __iter__(self):
        return self.begin()

    def materialize(self, order: Union[Layout, str, None] = None):
        """Evaluate into a new :class:`~ndtensor.tensor.Tensor` (see :func:`materialize`)."""
        return materialize(self, order)

    def copy(self, order: Union[Layout, str, None] = None):
        """Return a new tensor holding the values; same as :meth:`materialize`."""
        return materialize(self, order)

    def to_numpy(self) -> np.ndarray:
        """Return the values as a new NumPy array of the same shape."""
        return np.array(self._evaluate(), copy=True)

    def __array__(self, dtype: Any = None, copy: Any = None) -> np.ndarray:
        values = self.to_numpy()
        return values if dtype is None else values.astype(dtype)

    def tolist(self) -> Any:
        """Return the values as (nested) Python lists."""
        return self._evaluate().tolist()

    def item(self) -> Any:
        """Return the only element of a size-1 expression as a Python scalar."""
        if self.size != 1:
            raise ValueError("can only convert an expression of size 1 to a Python scalar")
        value = self._evaluate().reshape(-1)[0]
        return value.item() if isinstance(value, np.generic) else value

    def astype(self, dtype: Any) -> "UnaryOp":
        """Lazily cast every element to ``dtype``."""
        return astype(self, dtype)

    def apply(self, func: Callable[[Any], Any], dtype: Any = None) -> "UnaryOp":
        """Lazily apply a Python callable to every element."""
        return UnaryOp(func, self, dtype=dtype)

    def __repr__(self) -> str:
        from ndtensor.formatting import format_tensor
        return format_tensor(self)

    def _binary(self, other: Any, op: np.ufunc, reflected: bool = False) -> "BinaryOp":
        other = as_expression(other)
        if reflected:
            return BinaryOp(op, other, self)
        return BinaryOp(op, self, other)

    def __add__(self, other):
        return self._binary(other, np.add)

    def __radd__(self, other):
        return self._binary(other, np.add, reflected=True)

    def __sub__(self, other):
        return self._binary(other, np.subtract)

    def __rsub__(self, other):
        return self._binary(other, np.subtract, reflected=True)

    def __mul__(self, other):
        return self._binary(other, np.multiply)

    def __rmul__(self, other):
        return self._binary(other, np.multiply, reflected=True)

    def __truediv__(self, other):
        return self._binary(other, np.true_divide)

    def __rtruediv__(self, other):
        return self._binary(other, np.true_divide, reflected=True)

    def __floordiv__(self, other):
        return self._binary(other, np.floor_divide)

    def __rfloordiv__(self, other):
        return self._binary(other, np.floor_divide, reflected=True)

    def __mod__(self, other):
        return self._binary(other, np.remainder)

    def __rmod__(self, other):
        return self._binary(other, np.remainder, reflected=True)

    def __pow__(self, other):
        return self._binary(other, np.power)

    def __rpow__(self, other):
        return self._binary(other, np.power, reflected=True)

    def __and__(self, other):
        return self._binary(other, np.bitwise_and)

    def __rand__(self, other):
        return self._binary(other, np.bitwise_and, reflected=True)

    def __or__(self, other):
        return self._binary(other, np.bitwise_or)

    def __ror__(self, other):
        return self._binary(other, np.bitwise_or, reflected=True)

    def __xor__(self, other):
        return self._binary(other, np.bitwise_xor)

    def __rxor__(self, other):
        return self._binary(other, np.bitwise_xor, reflected=True)

    def __lt__(self, other):
        return self._binary(other, np.less)

    def __le__(self, other):
        return self._binary(other, np.less_equal)

    def __gt__(self, other):
        return self._binary(other, np.greater)

    def __ge__(self, other):
        return self._binary(other, np.greater_equal)

    def __eq__(self, other):
        return self._binary(other, np.equal)

    def __ne__(self, other):
        return self._binary(other, np.not_equal)

    def __neg__(self):
        return UnaryOp(np.negative, self)

    def __pos__(self):
        return UnaryOp(np.positive, self)

    def __abs__(self):
        return UnaryOp(np.absolute, self)

    def __invert__(self):
        return UnaryOp(np.invert, self)


class Scalar(Expression):
    """
    Rank-0 constant leaf.

    The value is kept as given, so Python numbers keep NumPy's "weak scalar"
    promotion when combined with a tensor (``int8_tensor + 1`` stays int8).
    """

    def __init__(self, value: Any) -> None:
        self.value = value
        self._dtype = np.asarray(self.value).dtype

    @property
    def shape(self) -> Shape:
        return Shape()

    @property
    def layout(self) -> Layout:
        return DEFAULT_LAYOUT

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    def _value_at(self, index: Tuple[int, ...]) -> Any:
        return self.value

    def _evaluate(self) -> np.ndarray:
        return np.asarray(self.value)


def _sample(node: Expression) -> Any:
    """Zero-size stand-in used to infer result dtypes without evaluating."""
    if isinstance(node, Scalar):
        return node.value
    return np.empty(0, dtype=node.dtype)


def _expand(node: Expression, shape: Shape) -> Any:
    """
    Values of ``node`` laid out over the broadcast ``shape``.

    Axes that ``node`` lacks or holds with length 1 are read with stride 0,
    so the values are repeated without being copied first.
    """
    if isinstance(node, Scalar):
        return node.value
    values = node._evaluate()
    if node.shape == shape:
        return values
    src = tuple(node.shape)
    lead = len(shape) - len(src)
    base = contiguous_strides(src)
    strides = [0] * lead + [0 if n == 1 else s for n, s in zip(src, base)]
    return values.reshape(-1)[strided_offsets(shape, strides)]


def _common_layout(*nodes: Expression) -> Layout:
    layouts = {n.layout for n in nodes if not isinstance(n, Scalar)}
    if len(layouts) == 1:
        return layouts.pop()
    return DEFAULT_LAYOUT


class UnaryOp(Expression):
    """
    Lazy ``op(operand)``.

    Parameters
    ----------
    op : numpy.ufunc or callable
        Operation. NumPy ufuncs (and callables flagged ``vectorized``) are
        applied to whole arrays; any other callable is applied element by
        element.
    operand : Expression or array-like
        Input.
    dtype : dtype-like, optional
        Result type. Inferred for vectorized operations, ``object``
        otherwise.
    vectorized : bool, optional
        Whether ``op`` accepts arrays. Defaults to ``isinstance(op, np.ufunc)``.
    """

    def __init__(
        self,
        op: Callable[[Any], Any],
        operand: Any,
        dtype: Any = None,
        vectorized: Optional[bool] = None,
    ) -> None:
        self.op = op
        self.operand = as_expression(operand)
        self.vectorized = isinstance(op, np.ufunc) if vectorized is None else bool(vectorized)
        if dtype is not None:
            self._dtype = np.dtype(dtype)
        elif self.vectorized:
            self._dtype = np.asarray(op(_sample(self.operand))).dtype
        else:
            self._dtype = np.dtype(object)

    @property
    def shape(self) -> Shape:
        return self.operand.shape

    @property
    def layout(self) -> Layout:
        return self.operand.layout

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    def _value_at(self, index: Tuple[int, ...]) -> Any:
        return _unwrap(self.op(self.operand._value_at(index)))

    def _evaluate(self) -> np.ndarray:
        values = self.operand._evaluate()
        if self.vectorized:
            out = np.asarray(self.op(values))
        else:
            out = np.frompyfunc(self.op, 1, 1)(values)
            if not isinstance(out, np.ndarray):
                out = _object_array(out)
        if out.dtype != self._dtype:
            out = out.astype(self._dtype)
        return out


class BinaryOp(Expression):
    """
    Lazy ``op(left, right)`` over the broadcast of both operand shapes.

    Raises
    ------
    ShapeError
        At construction, if the operand shapes cannot be broadcast together.
    """

    def __init__(self, op: np.ufunc, left: Any, right: Any, dtype: Any = None) -> None:
        self.op = op
        self.left = as_expression(left)
        self.right = as_expression(right)
        self._shape = broadcast_shapes(self.left.shape, self.right.shape)
        if dtype is not None:
            self._dtype = np.dtype(dtype)
        else:
            self._dtype = np.asarray(op(_sample(self.left), _sample(self.right))).dtype

    @property
    def shape(self) -> Shape:
        return self._shape.copy()

    @property
    def layout(self) -> Layout:
        return _common_layout(self.left, self.right)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    def _value_at(self, index: Tuple[int, ...]) -> Any:
        lhs = self.left._value_at(_broadcast_index(index, self.left.shape))
        rhs = self.right._value_at(_broadcast_index(index, self.right.shape))
        return _unwrap(self.op(lhs, rhs))

    def _evaluate(self) -> np.ndarray:
        out = np.asarray(self.op(_expand(self.left, self._shape), _expand(self.right, self._shape)))
        if out.shape != tuple(self._shape):
            out = np.broadcast_to(out, tuple(self._shape)).copy()
        if out.dtype != self._dtype:
            out = out.astype(self._dtype)
        return out


class WhereOp(Expression):
    """Lazy elementwise selection: ``x`` where ``condition`` is true, else ``y``."""

    def __init__(self, condition: Any, x: Any, y: Any) -> None:
        self.condition = as_expression(condition)
        self.x = as_expression(x)
        self.y = as_expression(y)
        self._shape = broadcast_shapes(self.condition.shape, self.x.shape, self.y.shape)
        self._dtype = np.where(np.empty(0, dtype=bool), _sample(self.x), _sample(self.y)).dtype

    @property
    def shape(self) -> Shape:
        return self._shape.copy()

    @property
    def layout(self) -> Layout:
        return _common_layout(self.condition, self.x, self.y)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    def _value_at(self, index: Tuple[int, ...]) -> Any:
        if self.condition._value_at(_broadcast_index(index, self.condition.shape)):
            return self.x._value_at(_broadcast_index(index, self.x.shape))
        return self.y._value_at(_broadcast_index(index, self.y.shape))

    def _evaluate(self) -> np.ndarray:
        shape = self._shape
        cond = _expand(self.condition, shape)
        out = np.where(cond, _expand(self.x, shape), _expand(self.y, shape))
        if out.shape != tuple(shape):
            out = np.broadcast_to(out, tuple(shape)).copy()
        return out.astype(self._dtype, copy=False)


def as_expression(value: Any) -> Expression:
    """
    Coerce ``value`` into an :class:`Expression`.

    Expressions are returned unchanged, Python and NumPy scalars become
    :class:`Scalar` leaves and anything else (lists, NumPy arrays) is
    copied into a new :class:`~ndtensor.tensor.Tensor`.
    """
    if isinstance(value, Expression):
        return value
    if isinstance(value, _SCALAR_TYPES):
        return Scalar(value)
    from ndtensor.tensor import Tensor
    return Tensor(value)


def astype(a: Any, dtype: Any) -> UnaryOp:
    """
    Cast each element of ``a`` to ``dtype``.

    Returns a lazy expression; nothing is copied until it is materialized.
    """
    dtype = np.dtype(dtype)
    return UnaryOp(lambda values: np.asarray(values).astype(dtype), a, dtype=dtype, vectorized=True)


def materialize(expr: Any, order: Union[Layout, str, None] = None):
    """
    Evaluate an expression into a new owning tensor.

    Parameters
    ----------
    expr : Expression or array-like
        What to evaluate.
    order : {None, 'C', 'F', Layout}, optional
        Layout of the result. Defaults to the layout of ``expr``.

    Returns
    -------
    Tensor
        A new tensor that shares no memory with the operands.
    """
    from ndtensor.tensor import Tensor

    expr = as_expression(expr)
    layout = as_layout(order, expr.layout)
    logger.debug("materializing %s of shape %s into %s layout", type(expr).__name__, expr.shape, layout)
    return Tensor._from_values(expr._evaluate(), layout, dtype=expr.dtype)
