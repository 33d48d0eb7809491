import numpy as np
import pytest

import ndtensor
from ndtensor.errors import ShapeError
from ndtensor.expression import WhereOp
from ndtensor.routines import (
    arange,
    argwhere,
    asarray,
    ascontiguousarray,
    asfortranarray,
    copy,
    copyto,
    count_nonzero,
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
from ndtensor.shape import Index, Layout
from ndtensor.tensor import Tensor
from tests.utils import assert_close, assert_equal


def test_factories(order):
    z = zeros((2, 3), order=order)
    assert z.layout is Layout(order)
    assert z.dtype == np.float64
    assert_equal(z, np.zeros((2, 3)))
    assert_equal(ones(4, dtype=np.int32), np.ones(4, dtype=np.int32))
    f = full((2, 2), 7)
    assert f.dtype == np.asarray(7).dtype
    assert f.tolist() == [[7, 7], [7, 7]]


def test_full_with_object_fill():
    f = full(2, Index(1, 2))
    assert f.dtype == object
    assert f[0] == (1, 2)
    assert f[1] == Index(1, 2)


def test_like_factories_follow_source(order):
    a = Tensor(np.zeros((2, 3), dtype=np.int16), order=order)
    for out in (empty_like(a), zeros_like(a), ones_like(a), full_like(a, 3)):
        assert out.shape == (2, 3)
        assert out.dtype == np.int16
        assert out.layout is a.layout
    assert ones_like(a, dtype=float, shape=4).tolist() == [1.0] * 4
    assert zeros_like(a + 1).shape == (2, 3)


def test_ranges():
    assert arange(5).tolist() == [0, 1, 2, 3, 4]
    assert arange(2, 8, 3).tolist() == [2, 5]
    assert_close(arange(1, 2, 0.25), np.arange(1, 2, 0.25))
    with pytest.raises(ValueError):
        arange(0, 5, 0)
    assert_close(linspace(0, 1, 5), np.linspace(0, 1, 5))
    assert linspace(0, 1, 0).shape == (0,)
    with pytest.raises(ValueError):
        linspace(0, 1, -1)


def test_eye():
    assert_equal(eye(3), np.eye(3))
    assert_equal(eye(2, 4, k=1), np.eye(2, 4, k=1))
    assert_equal(eye(4, 3, k=-2, dtype=int), np.eye(4, 3, k=-2, dtype=int))


def test_asarray_avoids_copies():
    a = Tensor([1, 2, 3])
    assert asarray(a) is a
    v = a[1:]
    assert asarray(v) is v
    b = asarray(a, dtype=float)
    assert b is not a
    assert b.dtype == np.float64
    assert isinstance(asarray([1, 2]), Tensor)


def test_contiguous_conversions():
    a = Tensor([[1, 2], [3, 4]])
    assert ascontiguousarray(a) is a
    f = asfortranarray(a)
    assert f.layout is Layout.COLUMN_MAJOR
    assert f.buffer.tolist() == [1, 3, 2, 4]
    assert asfortranarray(f) is f
    c = ascontiguousarray(a.T)
    assert isinstance(c, Tensor)
    assert c.tolist() == [[1, 3], [2, 4]]


def test_copy_and_flatten():
    a = Tensor([[1, 2], [3, 4]], order="F")
    c = copy(a)
    assert c.layout is Layout.COLUMN_MAJOR
    assert not c.shares_memory(a)
    assert copy(a, "C").buffer.tolist() == [1, 2, 3, 4]
    assert flatten(a).tolist() == [1, 3, 2, 4]
    assert flatten(a, "C").tolist() == [1, 2, 3, 4]
    assert flatten(a * 2).tolist() == [2, 6, 4, 8]


def test_copyto_broadcasts_source_and_mask():
    dst = zeros((2, 3), dtype=int)
    copyto(dst, Tensor([1, 2, 3]))
    assert dst.tolist() == [[1, 2, 3], [1, 2, 3]]
    copyto(dst, -1, where=Tensor([[True], [False]]))
    assert dst.tolist() == [[-1, -1, -1], [1, 2, 3]]
    copyto(dst[:, 0], Tensor([7, 8]), where=Tensor([False, True]))
    assert dst.tolist() == [[-1, -1, -1], [8, 2, 3]]
    with pytest.raises(ShapeError):
        copyto(dst, Tensor([1, 2]))
    with pytest.raises(TypeError):
        copyto([0, 0], [1, 2])


def test_where():
    expr = where(Tensor([True, False, True]), Tensor([1, 2, 3]), 0)
    assert isinstance(expr, WhereOp)
    assert expr.tolist() == [1, 0, 3]
    with pytest.raises(ValueError):
        where(Tensor([True]), Tensor([1]))
    rows, cols = where(Tensor([[0, 3], [4, 0]]))
    assert rows.tolist() == [0, 1]
    assert cols.tolist() == [1, 0]


def test_argwhere_and_nonzero_match_numpy(rng):
    x_np = rng.integers(0, 2, size=(3, 4))
    a = Tensor(x_np)
    assert_equal(argwhere(a), np.argwhere(x_np))
    for got, want in zip(nonzero(a), np.nonzero(x_np)):
        assert_equal(got, want)


def test_argwhere_uses_row_major_order_for_any_layout():
    a = Tensor([[0, 1], [1, 0]], order="F")
    assert argwhere(a).tolist() == [[0, 1], [1, 0]]


def test_count_nonzero():
    a = Tensor([[0, 1, 2], [3, 0, 0]])
    assert count_nonzero(a) == 3
    assert count_nonzero(a, axis=0).tolist() == [1, 1, 1]
    assert count_nonzero(a, axis=-1).tolist() == [2, 1]
    assert count_nonzero(a > 1) == 2


def test_index_tensor():
    t = index_tensor([(0, 1), Index(2, 3)])
    assert t.dtype == object
    assert t.shape == (2,)
    assert t[1] == Index(2, 3)
    grid = index_tensor([(0,), (1,), (2,), (3,)], shape=(2, 2))
    assert grid.shape == (2, 2)
    assert grid[1, 0] == (2,)
    with pytest.raises(ShapeError):
        index_tensor([(0, 0)], shape=(2,))


def test_package_namespace_exports():
    for name in ("Tensor", "TensorView", "IndirectTensor", "Shape", "Index", "take", "pad", "broadcast_to"):
        assert hasattr(ndtensor, name)
    assert ndtensor.__version__
