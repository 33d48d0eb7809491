import numpy as np
import pytest

from ndtensor import config
from ndtensor.errors import AllocationError, OutOfBoundsError, ReadOnlyError, ShapeError
from ndtensor.shape import Index, Layout
from ndtensor.tensor import IndirectTensor, Tensor, TensorView
from tests.utils import assert_equal, make_tensor


def test_tensor_from_nested_list():
    a = Tensor([[1, 2, 3], [4, 5, 6]])
    assert a.shape == (2, 3)
    assert a.ndim == 2
    assert a.size == 6
    assert len(a) == 2
    assert a.layout is Layout.ROW_MAJOR
    assert a.dtype == np.array([1]).dtype
    assert a.tolist() == [[1, 2, 3], [4, 5, 6]]


def test_column_major_buffer_layout():
    a = Tensor([[1, 2], [3, 4]], order="F")
    assert a.buffer.tolist() == [1, 3, 2, 4]
    assert a.strides == (1, 2)
    assert a[0, 1] == 2
    assert a.tolist() == [[1, 2], [3, 4]]


def test_shape_property_is_a_copy():
    a = Tensor.empty((2, 3))
    s = a.shape
    s[0] = 10
    assert a.shape == (2, 3)


def test_element_access_by_tuple_and_index(rng, order):
    x_np = rng.normal(size=(3, 4))
    a = make_tensor(x_np, order=order)
    assert a[2, 1] == x_np[2, 1]
    assert a[Index(1, 3)] == x_np[1, 3]
    a[0, 0] = 42.0
    assert a[0, 0] == 42.0


def test_negative_element_index_is_out_of_bounds():
    a = Tensor([[1, 2], [3, 4]])
    with pytest.raises(OutOfBoundsError):
        a[-1, 0]
    with pytest.raises(OutOfBoundsError):
        a[2, 0]
    with pytest.raises(OutOfBoundsError):
        a[0, 1:][5]


def test_unchecked_skips_bounds_checks():
    a = Tensor([[1, 2, 3], [4, 5, 6]])
    assert config.is_boundscheck_enabled()
    with config.unchecked():
        assert not config.is_boundscheck_enabled()
        # (0, 4) lands on the row-major offset 4, which is inside the buffer
        assert a[0, 4] == 5
    assert config.is_boundscheck_enabled()


def test_slicing_returns_aliasing_view(rng, order):
    x_np = rng.normal(size=(4, 5))
    a = make_tensor(x_np, order=order)
    v = a[1:, ::2]
    assert isinstance(v, TensorView)
    assert v.base is a
    assert_equal(v, x_np[1:, ::2])

    v[0, 0] = -1.0
    assert a[1, 0] == -1.0
    a[3, 4] = 99.0
    assert v[2, 2] == 99.0


def test_basic_indexing_matches_numpy(rng):
    x_np = rng.normal(size=(3, 4, 5))
    a = make_tensor(x_np)
    assert_equal(a[1], x_np[1])
    assert_equal(a[..., 2], x_np[..., 2])
    assert_equal(a[None, :, 1], x_np[None, :, 1])
    assert_equal(a[::-1, 1:3, ::-2], x_np[::-1, 1:3, ::-2])
    assert_equal(a[5:], x_np[5:])


def test_view_assignment_broadcasts():
    a = Tensor.empty((2, 3), dtype=int)
    a.fill(0)
    a[:, 1:] = [7, 8]
    assert a.tolist() == [[0, 7, 8], [0, 7, 8]]
    a[0] = 1
    assert a.tolist() == [[1, 1, 1], [0, 7, 8]]


def test_self_overlapping_assignment_uses_old_values():
    a = Tensor([1, 2, 3, 4, 5])
    a[1:] = a[:-1]
    assert a.tolist() == [1, 1, 2, 3, 4]
    b = Tensor([[1, 2], [3, 4]])
    b.assign(b.T)
    assert b.tolist() == [[1, 3], [2, 4]]


def test_assignment_shape_mismatch_raises():
    a = Tensor.empty((2, 3))
    with pytest.raises(ShapeError):
        a.assign([1, 2])


def test_boolean_mask_indexing_is_indirect_lvalue():
    a = Tensor([[1, 5], [7, 2]])
    sel = a[a > 3]
    assert isinstance(sel, IndirectTensor)
    assert sel.tolist() == [5, 7]
    sel.assign(0)
    assert a.tolist() == [[1, 0], [0, 2]]


def test_boolean_mask_follows_native_layout():
    a = Tensor([[1, 5], [7, 2]], order="F")
    assert a[a > 3].tolist() == [7, 5]


def test_boolean_mask_shape_mismatch():
    a = Tensor([1, 2, 3])
    with pytest.raises(ShapeError):
        a[Tensor([True, False])]


def test_integer_and_index_gather_indexing():
    a = Tensor([10, 20, 30, 40])
    sel = a[[3, 0, 3]]
    assert sel.tolist() == [40, 10, 40]
    sel[1] = -1
    assert a[0] == -1

    m = Tensor([[1, 2], [3, 4]])
    assert m[[1]].tolist() == [[3, 4]]
    with pytest.raises(OutOfBoundsError):
        a[[4]]


def test_setitem_with_mask():
    a = Tensor([1, 2, 3, 4])
    a[a % 2 == 0] = Tensor([20, 40])
    assert a.tolist() == [1, 20, 3, 40]


def test_indirect_tensor_slicing_and_duplicates(debug_logs):
    buf = np.arange(5)
    ind = IndirectTensor(buf, [[4, 0], [0, 2]])
    assert ind.shape == (2, 2)
    assert ind[:, 0].tolist() == [4, 0]
    ind.assign([[1, 2], [3, 4]])
    # offset 0 appears twice: the last position in row-major order wins
    assert buf.tolist() == [3, 1, 4, 3, 1]
    assert "last write wins" in debug_logs.text


def test_indirect_tensor_rejects_offsets_outside_buffer():
    with pytest.raises(ValueError):
        IndirectTensor(np.arange(3), [0, 3])


def test_index_map_is_read_only():
    ind = IndirectTensor(np.arange(3), [2, 1])
    with pytest.raises(ValueError):
        ind.index_map[0] = 0


def test_view_over_external_buffer():
    buf = np.arange(12, dtype=float)
    v = TensorView(buf, (3, 2), strides=(4, 2), offset=1)
    assert v.tolist() == [[1.0, 3.0], [5.0, 7.0], [9.0, 11.0]]
    v[1, 1] = 0.0
    assert buf[7] == 0.0
    with pytest.raises(ValueError):
        TensorView(buf, (4, 4))


def test_read_only_view_rejects_writes():
    buf = np.zeros(3)
    v = TensorView(buf, (3,), readonly=True)
    with pytest.raises(ReadOnlyError):
        v[0] = 1.0
    with pytest.raises(ReadOnlyError):
        v.fill(1.0)


def test_from_buffer_respects_order():
    a = Tensor.from_buffer([1, 2, 3, 4, 5, 6], (2, 3), order="F")
    assert a.tolist() == [[1, 3, 5], [2, 4, 6]]
    with pytest.raises(ShapeError):
        Tensor.from_buffer([1, 2, 3], (2, 2))


def test_from_buffer_copies_input():
    src = np.arange(4)
    a = Tensor.from_buffer(src, (2, 2))
    src[0] = 100
    assert a[0, 0] == 0


def test_from_iter():
    a = Tensor.from_iter((i * i for i in range(6)), (2, 3))
    assert a.tolist() == [[0, 1, 4], [9, 16, 25]]
    assert Tensor.from_iter(iter([1.5, 2.5])).shape == (2,)
    with pytest.raises(ShapeError):
        Tensor.from_iter(range(5), (2, 3))


def test_allocation_error_is_distinct():
    with pytest.raises(AllocationError) as excinfo:
        Tensor.empty((2**31, 2**31), dtype=np.float64)
    assert isinstance(excinfo.value, MemoryError)
    assert excinfo.value.shape == (2**31, 2**31)


def test_copy_does_not_alias(order):
    a = Tensor([[1, 2], [3, 4]], order=order)
    b = a.copy()
    b[0, 0] = 9
    assert a[0, 0] == 1
    assert b.layout is a.layout
    assert not b.shares_memory(a)


def test_reshape_view_and_copy():
    a = Tensor(np.arange(6))
    r = a.reshape(2, 3)
    assert isinstance(r, TensorView)
    r[1, 0] = -3
    assert a[3] == -3

    t = a.reshape((2, 3)).T
    flat = t.reshape(-1)
    assert isinstance(flat, Tensor)
    assert flat.tolist() == [0, -3, 1, 4, 2, 5]


def test_transpose_swapaxes_squeeze_expand(rng):
    x_np = rng.normal(size=(2, 1, 3))
    a = make_tensor(x_np)
    assert_equal(a.T, x_np.T)
    assert_equal(a.transpose(2, 0, 1), x_np.transpose(2, 0, 1))
    assert_equal(a.swapaxes(0, 2), x_np.swapaxes(0, 2))
    assert_equal(a.squeeze(), x_np.squeeze())
    assert_equal(a.expand_dims(0), x_np[None])


def test_flatten_uses_native_order():
    a = Tensor([[1, 2], [3, 4]], order="F")
    assert a.flatten().tolist() == [1, 3, 2, 4]
    assert a.flatten("C").tolist() == [1, 2, 3, 4]


def test_to_numpy_and_array_protocol():
    a = Tensor([[1, 2], [3, 4]])
    out = a.to_numpy()
    out[0, 0] = 100
    assert a[0, 0] == 1
    assert np.asarray(a).tolist() == [[1, 2], [3, 4]]


def test_object_tensor_holds_indices():
    values = np.empty(2, dtype=object)
    values[0], values[1] = Index(0, 1), Index(1, 0)
    a = Tensor(values)
    assert a.dtype == object
    assert a.shape == (2,)
    assert a[1] == (1, 0)
