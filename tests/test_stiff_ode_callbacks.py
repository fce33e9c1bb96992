"""
Residual and Jacobian-vector callbacks of the stiff 2-D system.

Tests:
1. residual at (2, 1) is (-302, 2)
2. residual is the linear map f0 = -101 u0 - 100 u1, f1 = u0
3. Jv at direction (1, 0) is (-101, 1)
4. out= buffers are written in place; wrong shapes raise
5. dense Jacobian assembled from Jv matches the residual's linear map
"""

from __future__ import annotations

import numpy as np
import pytest

from physics.stiff_ode import (
    N_EQ,
    exact_root,
    jac_times_vec,
    jacobian_dense,
    residual,
)


def test_residual_at_initial_guess():
    f = residual(np.array([2.0, 1.0]))
    assert f.shape == (N_EQ,)
    assert f[0] == -302.0
    assert f[1] == 2.0


@pytest.mark.parametrize(
    "u",
    [
        (0.0, 0.0),
        (1.0, -1.0),
        (-3.5, 7.25),
        (1.0e6, -2.0e-6),
    ],
)
def test_residual_is_linear_map(u):
    u0, u1 = u
    f = residual(np.array(u))
    assert f[0] == -101.0 * u0 - 100.0 * u1
    assert f[1] == u0


def test_residual_vanishes_at_exact_root():
    np.testing.assert_array_equal(residual(exact_root()), np.zeros(N_EQ))


def test_jac_times_vec_unit_direction():
    jv = jac_times_vec(np.array([1.0, 0.0]))
    np.testing.assert_array_equal(jv, np.array([-101.0, 1.0]))


def test_jac_times_vec_ignores_base_point():
    v = np.array([0.3, -0.7])
    a = jac_times_vec(v)
    b = jac_times_vec(v, u=np.array([5.0, 9.0]), fu=np.array([1.0, 1.0]))
    np.testing.assert_array_equal(a, b)


def test_out_buffer_written_in_place():
    out = np.full(N_EQ, np.nan)
    ret = residual([2.0, 1.0], out=out)
    assert ret is out
    np.testing.assert_array_equal(out, np.array([-302.0, 2.0]))

    jv_out = np.full(N_EQ, np.nan)
    ret = jac_times_vec([0.0, 1.0], out=jv_out)
    assert ret is jv_out
    np.testing.assert_array_equal(jv_out, np.array([-100.0, 0.0]))


def test_wrong_shape_raises():
    with pytest.raises(ValueError, match="shape"):
        residual(np.zeros(3))
    with pytest.raises(ValueError, match="shape"):
        jac_times_vec(np.zeros((2, 1)))
    with pytest.raises(ValueError, match="out must have shape"):
        residual(np.zeros(2), out=np.zeros(3))


def test_jacobian_dense_matches_residual():
    J = jacobian_dense()
    np.testing.assert_array_equal(J, np.array([[-101.0, -100.0], [1.0, 0.0]]))

    u = np.array([0.25, -4.0])
    np.testing.assert_allclose(J @ u, residual(u), rtol=0.0, atol=1e-12)
