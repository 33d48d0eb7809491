import logging

import numpy as np
import pytest

from ndtensor import config


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture(params=["C", "F"])
def order(request):
    return request.param


@pytest.fixture
def debug_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="ndtensor")
    return caplog


@pytest.fixture(autouse=True)
def _restore_boundscheck():
    yield
    config._boundscheck_enabled = True
