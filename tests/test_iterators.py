import pytest

from ndtensor.errors import OutOfBoundsError
from ndtensor.iterators import TensorIterator, ndindex
from ndtensor.shape import Index, Layout
from ndtensor.tensor import Tensor


def test_iteration_follows_native_layout(order):
    a = Tensor([[1, 2, 3], [4, 5, 6]], order=order)
    expected = [1, 2, 3, 4, 5, 6] if order == "C" else [1, 4, 2, 5, 3, 6]
    assert list(a) == expected


def test_any_order_can_be_requested():
    a = Tensor([[1, 2, 3], [4, 5, 6]])
    assert list(a.begin("F")) == [1, 4, 2, 5, 3, 6]
    assert list(a.begin("column_major")) == [1, 4, 2, 5, 3, 6]


def test_random_access_arithmetic():
    a = Tensor([[1, 2], [3, 4]])
    it = a.begin()
    assert (it + 3).value == 4
    assert (3 + it).index == Index(1, 1)
    assert a.end() - a.begin() == a.size
    assert (a.end() - 1).value == 4
    assert it[2] == 3
    assert it < it + 1
    assert it + 2 == a.begin() + 2
    assert it != a.end()


def test_iterator_writes_through_storage():
    a = Tensor([[1, 2], [3, 4]])
    it = a.begin("F") + 1
    assert it.index == (1, 0)
    it.value = 30
    assert a[1, 0] == 30
    it[1] = 20
    assert a[0, 1] == 20


def test_iterator_over_expression_is_read_only():
    it = (Tensor([1, 2]) + 1).begin()
    assert it.value == 2
    with pytest.raises(TypeError):
        it.value = 5


def test_iterator_bounds():
    a = Tensor([1, 2])
    with pytest.raises(OutOfBoundsError):
        a.end().value


def test_comparing_iterators_of_different_orders():
    a = Tensor([[1, 2], [3, 4]])
    with pytest.raises(ValueError):
        a.begin("C") < a.begin("F")
    assert a.begin("C") != a.begin("F")


def test_next_exhausts():
    it = TensorIterator(Tensor([7]), 0, Layout.ROW_MAJOR)
    assert next(it) == 7
    with pytest.raises(StopIteration):
        next(it)


def test_flat_accessor(order):
    a = Tensor([[1, 2], [3, 4]], order=order)
    expected = [1, 2, 3, 4] if order == "C" else [1, 3, 2, 4]
    assert [a.flat[n] for n in range(4)] == expected
    assert len(a.flat) == 4
    assert list(a.flat) == expected
    a.flat[1] = 0
    assert list(a)[1] == 0
    with pytest.raises(OutOfBoundsError):
        a.flat[4]


def test_flat_on_strided_view():
    a = Tensor([[1, 2, 3], [4, 5, 6]])
    v = a[:, ::-2]
    assert list(v.flat) == [3, 1, 6, 4]


def test_ndindex():
    assert [tuple(i) for i in ndindex((2, 2))] == [(0, 0), (0, 1), (1, 0), (1, 1)]
    assert [tuple(i) for i in ndindex((2, 2), order="F")] == [(0, 0), (1, 0), (0, 1), (1, 1)]
    assert list(ndindex(())) == [Index()]
    assert list(ndindex((0, 3))) == []
