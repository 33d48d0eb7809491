import logging
import sys
import tomllib
from dataclasses import dataclass, fields, replace
from typing import Any, Optional

_boundscheck_enabled = True
"""bool: Global flag indicating whether element access is bounds-checked.

This flag is toggled by the :class:``unchecked`` context manager.
When ``_boundscheck_enabled`` is ``False``, multi-index and flat-index
access skips the range checks; reading or writing outside the shape is
then undefined behavior.
"""


class unchecked:
    """
    Context manager that temporarily disables bounds checking.

    Inside the context, element access through ``a[i, j]``, ``a.flat[n]``
    and iterators skips the ``0 <= index < shape`` checks. This is the
    performance path: out of range indices are undefined behavior.

    Examples
    --------
    >>> a = zeros((3, 4))
    >>> with unchecked():
    ...     v = a[2, 3]   # no range check

    Notes
    -----
    It is safe to nest ``unchecked`` contexts; the previous state of
    ``_boundscheck_enabled`` is restored upon exit.
    """
    def __enter__(self):
        global _boundscheck_enabled
        self.prev = _boundscheck_enabled
        _boundscheck_enabled = False

    def __exit__(self, *args):
        global _boundscheck_enabled
        _boundscheck_enabled = self.prev


def is_boundscheck_enabled() -> bool:
    """Return whether element access is currently bounds-checked."""
    return _boundscheck_enabled


_SIGNS = ("-", "+", " ")
_FLOATMODES = ("fixed", "unique", "maxprec", "maxprec_equal")


@dataclass
class PrintOptions:
    """
    Formatting options for :func:`ndtensor.formatting.array2string`.

    The options are always passed explicitly; there is no process-wide
    default that a call could silently pick up.

    Attributes
    ----------
    precision : int
        Number of digits of precision for floating point output.
    threshold : int
        Total number of elements which triggers summarization.
    edgeitems : int
        Number of items in summary at beginning and end of each axis.
    linewidth : int
        Number of characters per line for the purpose of inserting breaks.
    sign : {'-', '+', ' '}
        Controls printing of the sign of positive values.
    floatmode : {'fixed', 'unique', 'maxprec', 'maxprec_equal'}
        Interpretation of ``precision`` for floating point values.
    """

    precision: int = 8
    threshold: int = 1000
    edgeitems: int = 3
    linewidth: int = 75
    sign: str = "-"
    floatmode: str = "maxprec"

    def __post_init__(self):
        if self.precision < 0:
            raise ValueError(f"precision must be non-negative, got {self.precision}")
        if self.threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {self.threshold}")
        if self.edgeitems < 0:
            raise ValueError(f"edgeitems must be non-negative, got {self.edgeitems}")
        if self.linewidth <= 0:
            raise ValueError(f"linewidth must be positive, got {self.linewidth}")
        if self.sign not in _SIGNS:
            raise ValueError(f"sign must be one of {_SIGNS}, got {self.sign!r}")
        if self.floatmode not in _FLOATMODES:
            raise ValueError(f"floatmode must be one of {_FLOATMODES}, got {self.floatmode!r}")

    def updated(self, **changes: Any) -> "PrintOptions":
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)

    @classmethod
    def load(cls, config_path: str) -> "PrintOptions":
        """
        Load print options from a TOML file.

        Parameters
        ----------
        config_path : str
            Path to a TOML file. Options are read from the
            ``[printoptions]`` table; missing keys keep their defaults.

        Returns
        -------
        PrintOptions
            The validated options.

        Raises
        ------
        ValueError
            If the table contains an unknown key or an invalid value.

        Examples
        --------
        A ``printoptions.toml`` such as::

            [printoptions]
            precision = 3
            sign = "+"

        is loaded with ``PrintOptions.load("printoptions.toml")``.
        """
        with open(config_path, "rb") as f:
            config = tomllib.load(f)

        section = config.get("printoptions", {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ValueError(f"Unknown print option(s) in {config_path}: {', '.join(unknown)}")
        return cls(**section)


def setup_logging(level: int = logging.INFO, logger: Optional[str] = "ndtensor") -> None:
    """
    Configure a stdout handler for the package logger.

    Library code only emits records (the package logger carries a
    ``NullHandler``); applications and test sessions call this to see them.

    Parameters
    ----------
    level : int, default=logging.INFO
        Level set on the configured logger and its handler.
    logger : str or None, default="ndtensor"
        Name of the logger to configure. ``None`` configures the root logger.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    target = logging.getLogger(logger)
    target.setLevel(level)
    target.addHandler(handler)
