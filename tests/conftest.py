import numpy as np
import pytest

from bnb.shared_state import SharedState
from reader.reader import MIPInstance


def binaries(n):
    return dict(lb=np.zeros(n), ub=np.ones(n), var_types=['B'] * n)


@pytest.fixture
def covering_instance():
    # x1 + x2 >= 1, x2 + x3 >= 1, costs (1, 1, 2)
    return MIPInstance(A=[[1, 1, 0], [0, 1, 1]], b=[1, 1], sense=['G', 'G'], obj=[1, 1, 2], **binaries(3))


@pytest.fixture
def continuous_instance():
    return MIPInstance(A=[[1, 1]], b=[4], sense=['L'], obj=[-1, -2], lb=[0, 0], ub=[3, 3])


@pytest.fixture
def equality_instance():
    # x0 integer, s continuous: x0 + s = 2.2
    return MIPInstance(A=[[1, 1]], b=[2.2], sense=['E'], obj=[1, 1],
                       lb=[0, 0], ub=[5, 10], var_types=['I', 'C'])


@pytest.fixture
def knapsack_instance():
    # max 5x0 + 4x1 + 3x2  s.t.  2x0 + 3x1 + x2 <= 4 ; optimum 8 at (1, 0, 1) plus x3 free binary
    return MIPInstance(A=[[2, 3, 1, 1]], b=[4], sense=['L'], obj=[-5, -4, -3, 0], **binaries(4))


@pytest.fixture
def make_state():
    def _make(instance, relaxation=None):
        state = SharedState(instance)
        if relaxation is not None:
            state.relaxation = np.asarray(relaxation, dtype=float)
        return state
    return _make
