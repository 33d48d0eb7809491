"""
Exceptions raised by the tensor engine.

Every error is raised synchronously at the point of detection and before
any element of a destination tensor has been written, so a failing call
never leaves a tensor partially updated. The classes derive from the
closest builtin exception (``ValueError``, ``IndexError``, ``MemoryError``)
so that callers written against NumPy-style error handling keep working.
"""
from typing import Any, Optional, Sequence


def _format_shape(shape: Any) -> str:
    dims = tuple(int(n) for n in shape)
    if len(dims) == 1:
        return f"({dims[0]},)"
    return "(" + ", ".join(str(n) for n in dims) + ")"


class ShapeError(ValueError):
    """
    Raised when shapes cannot be unified or do not match a required layout.

    Typical causes are operands that cannot be broadcast together, an
    indices tensor whose shape does not match the axis lengths of the
    source tensor, or a mask whose shape differs from the masked tensor.

    Attributes
    ----------
    shapes : tuple of tuple of int
        The offending shapes, in the order they were passed to the
        operation. They are also embedded in the message.
    """

    def __init__(self, message: str, *shapes: Sequence[int]) -> None:
        """
        Initialize the ShapeError.

        Parameters
        ----------
        message : str
            Human readable description of the mismatch.
        *shapes : sequence of int
            Shapes involved in the mismatch.
        """
        self.shapes = tuple(tuple(int(n) for n in s) for s in shapes)
        if shapes:
            message = f"{message}: " + " ".join(_format_shape(s) for s in self.shapes)
        super().__init__(message)


class OutOfBoundsError(IndexError):
    """
    Raised when a multi-index or flat index falls outside a shape.

    Attributes
    ----------
    index : Any
        The offending index (an int for flat indices, a tuple otherwise).
    shape : tuple of int
        The shape the index was checked against.
    """

    def __init__(self, index: Any, shape: Sequence[int], axis: Optional[int] = None) -> None:
        self.index = index
        self.shape = tuple(int(n) for n in shape)
        self.axis = axis
        if axis is None:
            msg = f"index {index!r} is out of bounds for shape {_format_shape(self.shape)}"
        else:
            msg = (
                f"index {index!r} is out of bounds for axis {axis} "
                f"with size {self.shape[axis]}"
            )
        super().__init__(msg)


class AllocationError(MemoryError):
    """
    Raised when a buffer for a new tensor cannot be allocated.

    Kept distinct from :class:`ShapeError` so that callers can tell an
    impossible request from a legal request that ran out of memory.

    Attributes
    ----------
    shape : tuple of int
        Requested shape.
    dtype : numpy.dtype
        Requested element type.
    """

    def __init__(self, shape: Sequence[int], dtype: Any) -> None:
        self.shape = tuple(int(n) for n in shape)
        self.dtype = dtype
        super().__init__(
            f"Unable to allocate buffer for tensor with shape "
            f"{_format_shape(self.shape)} and data type {dtype}"
        )


class ReadOnlyError(ValueError):
    """Raised when writing through a read-only view (e.g. a broadcast view)."""

    def __init__(self, what: str = "tensor") -> None:
        super().__init__(f"assignment destination is read-only {what}")
