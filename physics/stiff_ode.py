"""
Stiff 2-D linear ODE right-hand side, treated as a root-finding residual.

System (u = [u0, u1]):
  f0 = -101 * u0 - 100 * u1
  f1 = u0

The Jacobian is constant:
  J = [[-101, -100],
       [   1,    0]]
so the unique root is u = (0, 0).

This module MUST NOT:
- depend on any solver backend,
- keep state between calls.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

FloatArray = NDArray[np.float64]

N_EQ = 2

A00 = -101.0
A01 = -100.0
A10 = 1.0
A11 = 0.0


def _as_vec(x, name: str) -> FloatArray:
    arr = np.asarray(x, dtype=np.float64)
    if arr.shape != (N_EQ,):
        raise ValueError(f"{name} must have shape ({N_EQ},), got {arr.shape}")
    return arr


def _out_vec(out: Optional[np.ndarray]) -> FloatArray:
    if out is None:
        return np.empty(N_EQ, dtype=np.float64)
    if out.shape != (N_EQ,):
        raise ValueError(f"out must have shape ({N_EQ},), got {out.shape}")
    return out


def residual(u, out: Optional[np.ndarray] = None) -> FloatArray:
    """Evaluate F(u); writes into ``out`` when given and returns it."""
    u = _as_vec(u, "u")
    f = _out_vec(out)
    u0 = float(u[0])
    u1 = float(u[1])
    f[0] = A00 * u0 + A01 * u1
    f[1] = u0
    return f


def jac_times_vec(
    v,
    u=None,
    fu=None,
    out: Optional[np.ndarray] = None,
) -> FloatArray:
    """
    Jacobian-vector product J(u) @ v.

    ``u`` and ``fu`` follow the solver callback signature; the system is
    linear so neither affects the result.
    """
    v = _as_vec(v, "v")
    jv = _out_vec(out)
    v0 = float(v[0])
    v1 = float(v[1])
    jv[0] = A00 * v0 + A01 * v1
    jv[1] = A10 * v0 + A11 * v1
    return jv


def jacobian_dense(
    jtv: Callable[..., np.ndarray] = jac_times_vec,
    u=None,
) -> FloatArray:
    """Assemble the dense Jacobian column by column from a Jv routine."""
    J = np.empty((N_EQ, N_EQ), dtype=np.float64)
    e = np.zeros(N_EQ, dtype=np.float64)
    for j in range(N_EQ):
        e[:] = 0.0
        e[j] = 1.0
        J[:, j] = jtv(e, u)
    return J


def exact_root() -> FloatArray:
    return np.zeros(N_EQ, dtype=np.float64)
