import numpy as np
import torch

from ndtensor.tensor import Tensor

ATOL = 1e-6
RTOL = 1e-5

SCENARIO = [7, 13, 19, 11, 5, 8, -2, 7, 11, 3]


def to_numpy(x):
    if isinstance(x, torch.Tensor):
        return x.detach().cpu().numpy()
    if hasattr(x, "to_numpy"):
        return x.to_numpy()
    return np.asarray(x)


def tdata(t):
    return to_numpy(t)


def make_tensor(x_np: np.ndarray, order: str = "C", dtype=None) -> Tensor:
    return Tensor(np.asarray(x_np), dtype=dtype, order=order)


def make_torch(x_np: np.ndarray) -> torch.Tensor:
    return torch.tensor(np.asarray(x_np))


def assert_close(a, b, atol=ATOL, rtol=RTOL):
    a = to_numpy(a)
    b = to_numpy(b)
    assert a.shape == b.shape, f"shape {a.shape} != {b.shape}"
    assert np.allclose(a, b, atol=atol, rtol=rtol), f"max|diff|={np.max(np.abs(a - b))}"


def assert_equal(a, b):
    a = to_numpy(a)
    b = to_numpy(b)
    assert a.shape == b.shape, f"shape {a.shape} != {b.shape}"
    assert np.array_equal(a, b), f"{a} != {b}"
