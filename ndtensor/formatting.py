"""Text rendering of tensors and expressions."""
from typing import Any, Optional

import numpy as np

from ndtensor.config import PrintOptions

_DEFAULT_OPTIONS = PrintOptions()


def array2string(
    a: Any,
    options: Optional[PrintOptions] = None,
    separator: str = ", ",
    prefix: str = "",
) -> str:
    """
    Render the values of ``a`` as nested brackets.

    Parameters
    ----------
    a : Expression or array-like
        What to render. Lazy expressions are evaluated.
    options : PrintOptions, optional
        Formatting options. The defaults are used when omitted; nothing is
        read from global state.
    separator : str, default=", "
        Inserted between elements.
    prefix : str, default=""
        Text that will precede the output (only used to indent wrapped
        lines, it is not included in the result).

    Returns
    -------
    str

    Examples
    --------
    >>> array2string(Tensor([[1.5, 2.0], [3.0, 4.25]]), PrintOptions(precision=1))
    '[[1.5, 2. ],\\n [3. , 4.2]]'
    """
    options = _DEFAULT_OPTIONS if options is None else options
    values = a._evaluate() if hasattr(a, "_evaluate") else np.asarray(a)
    return np.array2string(
        values,
        max_line_width=options.linewidth,
        precision=options.precision,
        threshold=options.threshold,
        edgeitems=options.edgeitems,
        sign=options.sign,
        floatmode=options.floatmode,
        separator=separator,
        prefix=prefix,
    )


def format_tensor(a: Any, options: Optional[PrintOptions] = None) -> str:
    """
    Render ``a`` like ``repr(a)`` but with explicit ``options``.

    Lazy expressions render as ``expression(...)``; storage renders as
    ``tensor(...)``, ``tensor_view(...)`` or ``indirect_tensor(...)``.
    """
    prefix = f"{getattr(a, '_repr_name', 'tensor')}("
    data_str = array2string(a, options, prefix=prefix)
    return f"{prefix}{data_str}, dtype={a.dtype}, layout={a.layout})"
