import logging

import numpy as np
import pytest

from ndtensor import config
from ndtensor.config import PrintOptions, setup_logging
from ndtensor.formatting import array2string, format_tensor
from ndtensor.tensor import IndirectTensor, Tensor


def test_repr_names_dtype_and_layout():
    a = Tensor(np.array([1, 2], dtype=np.int32))
    assert repr(a) == "tensor([1, 2], dtype=int32, layout=C)"
    f = Tensor(np.array([[1.5, 2.0]]), order="F")
    assert repr(f) == "tensor([[1.5, 2. ]], dtype=float64, layout=F)"
    assert repr(a[1:]).startswith("tensor_view([2]")
    assert repr(a[[0]]).startswith("indirect_tensor([1]")


def test_repr_of_wrapped_rows_is_indented():
    a = Tensor(np.arange(4, dtype=np.int64).reshape(2, 2))
    assert repr(a) == "tensor([[0, 1],\n        [2, 3]], dtype=int64, layout=C)"


def test_repr_evaluates_expressions():
    expr = Tensor(np.array([1, 2], dtype=np.int64)) * 2
    assert repr(expr) == "expression([2, 4], dtype=int64, layout=C)"


def test_array2string_options():
    a = Tensor([0.123456, 1.0])
    assert array2string(a, PrintOptions(precision=2)) == "[0.12, 1.  ]"
    assert array2string(a, PrintOptions(precision=2, sign="+")) == "[+0.12, +1.  ]"
    assert array2string(Tensor([1, 2]), separator=" ") == "[1 2]"


def test_array2string_summarizes_large_tensors():
    options = PrintOptions(threshold=5, edgeitems=2)
    text = array2string(Tensor(np.arange(100)), options)
    assert text == "[ 0,  1, ..., 98, 99]"


def test_options_are_explicit():
    a = Tensor([0.123456])
    assert format_tensor(a, PrintOptions(precision=3)) == "tensor([0.123], dtype=float64, layout=C)"
    # the default rendering is not affected by earlier calls
    assert "0.123456" in repr(a)


def test_print_options_validation():
    with pytest.raises(ValueError):
        PrintOptions(precision=-1)
    with pytest.raises(ValueError):
        PrintOptions(linewidth=0)
    with pytest.raises(ValueError):
        PrintOptions(sign="*")
    with pytest.raises(ValueError):
        PrintOptions(floatmode="shortest")
    opts = PrintOptions().updated(edgeitems=1)
    assert opts.edgeitems == 1
    with pytest.raises(ValueError):
        opts.updated(threshold=-5)


def test_print_options_load(tmp_path):
    path = tmp_path / "printoptions.toml"
    path.write_text('[printoptions]\nprecision = 3\nsign = "+"\n')
    opts = PrintOptions.load(str(path))
    assert opts.precision == 3
    assert opts.sign == "+"
    assert opts.linewidth == PrintOptions().linewidth


def test_print_options_load_rejects_unknown_keys(tmp_path):
    path = tmp_path / "printoptions.toml"
    path.write_text("[printoptions]\ncolour = true\n")
    with pytest.raises(ValueError, match="colour"):
        PrintOptions.load(str(path))


def test_print_options_load_without_table(tmp_path):
    path = tmp_path / "empty.toml"
    path.write_text("")
    assert PrintOptions.load(str(path)) == PrintOptions()


def test_unchecked_restores_state_on_error():
    with pytest.raises(RuntimeError):
        with config.unchecked():
            raise RuntimeError("boom")
    assert config.is_boundscheck_enabled()


def test_unchecked_nests():
    with config.unchecked():
        with config.unchecked():
            assert not config.is_boundscheck_enabled()
        assert not config.is_boundscheck_enabled()
    assert config.is_boundscheck_enabled()


def test_setup_logging_attaches_handler():
    name = "ndtensor.tests.setup"
    target = logging.getLogger(name)
    try:
        setup_logging(logging.DEBUG, logger=name)
        assert target.level == logging.DEBUG
        assert any(isinstance(h, logging.StreamHandler) for h in target.handlers)
    finally:
        target.handlers.clear()
        target.setLevel(logging.NOTSET)


def test_package_logger_is_silent_by_default():
    handlers = logging.getLogger("ndtensor").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_scatter_duplicates_are_logged(debug_logs):
    ind = IndirectTensor(np.zeros(2), [0, 0])
    ind.assign([1.0, 2.0])
    records = [r for r in debug_logs.records if r.name.startswith("ndtensor")]
    assert any("last write wins" in r.getMessage() for r in records)
