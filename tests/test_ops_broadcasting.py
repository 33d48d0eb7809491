import numpy as np
import pytest

from ndtensor.broadcasting import broadcast_arrays, broadcast_to, expand_dims, squeeze
from ndtensor.errors import ReadOnlyError, ShapeError
from ndtensor.iterators import ndindex
from ndtensor.shape import broadcast_index
from ndtensor.tensor import IndirectTensor, Tensor, TensorView
from tests.utils import assert_equal, make_tensor


def test_broadcast_scalar_matrix_aliases_one_element():
    a = Tensor([[0]])
    b = broadcast_to(a, (3, 5))
    assert isinstance(b, TensorView)
    assert b.shape == (3, 5)
    assert b.strides == (0, 0)
    assert b.readonly
    assert b.tolist() == [[0] * 5] * 3
    a[0, 0] = 4
    assert b[2, 4] == 4


def test_broadcast_to_matches_numpy(rng, order):
    x_np = rng.normal(size=(3, 1))
    a = make_tensor(x_np, order=order)
    assert_equal(broadcast_to(a, (2, 3, 4)), np.broadcast_to(x_np, (2, 3, 4)))


def test_broadcast_to_element_relation():
    a = Tensor([[1], [2], [3]])
    b = broadcast_to(a, (2, 3, 4))
    for idx in ndindex(b.shape):
        assert b[idx] == a[broadcast_index(idx, a.shape)]


def test_broadcast_to_incompatible_shape():
    with pytest.raises(ShapeError) as excinfo:
        broadcast_to(Tensor([1, 2, 3]), (2, 4))
    assert "(3,)" in str(excinfo.value)
    with pytest.raises(ShapeError):
        broadcast_to(Tensor([[1, 2]]), (2,))


def test_broadcast_view_is_read_only():
    b = broadcast_to(Tensor([1, 2]), (3, 2))
    with pytest.raises(ReadOnlyError):
        b[0, 0] = 5
    with pytest.raises(ReadOnlyError):
        b[1:].assign(0)


def test_broadcast_indirect_tensor():
    a = Tensor([10, 20, 30])
    sel = a[[2, 0]]
    b = broadcast_to(sel, (2, 2))
    assert isinstance(b, IndirectTensor)
    assert b.readonly
    assert b.tolist() == [[30, 10], [30, 10]]


def test_broadcast_lazy_expression_is_materialized():
    b = broadcast_to(Tensor([1, 2]) * 10, (2, 2))
    assert b.tolist() == [[10, 20], [10, 20]]


def test_broadcast_arrays():
    x, y = broadcast_arrays(Tensor([[1], [2]]), Tensor([5, 6, 7]))
    assert x.shape == y.shape == (2, 3)
    assert x.tolist() == [[1, 1, 1], [2, 2, 2]]
    assert y.tolist() == [[5, 6, 7], [5, 6, 7]]
    with pytest.raises(ShapeError):
        broadcast_arrays(Tensor([1, 2]), Tensor([1, 2, 3]))


def test_expand_dims(rng):
    x_np = rng.normal(size=(2, 3))
    a = make_tensor(x_np)
    assert_equal(expand_dims(a, 0), np.expand_dims(x_np, 0))
    assert_equal(expand_dims(a, -1), np.expand_dims(x_np, -1))
    assert_equal(expand_dims(a, (0, 3)), np.expand_dims(x_np, (0, 3)))
    e = expand_dims(a, 1)
    e[1, 0, 2] = 100.0
    assert a[1, 2] == 100.0
    with pytest.raises(ValueError):
        expand_dims(a, (1, 1))
    with pytest.raises(ValueError):
        expand_dims(a, 4)


def test_squeeze():
    a = Tensor(np.zeros((1, 3, 1)))
    assert squeeze(a).shape == (3,)
    assert squeeze(a, 0).shape == (3, 1)
    assert squeeze(a, (0, -1)).shape == (3,)
    with pytest.raises(ShapeError):
        squeeze(a, 1)
