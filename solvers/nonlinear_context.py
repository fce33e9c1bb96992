"""
Nonlinear solve context for the example problem.

This packages what a solver needs (residual callback, optional Jv callback,
scaling vectors) so backends only depend on a context object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from core.types import CaseConfig
from physics.stiff_ode import N_EQ, jac_times_vec, residual

ResidualFn = Callable[..., np.ndarray]
JacTimesVecFn = Callable[..., np.ndarray]


@dataclass(slots=True)
class NonlinearContext:
    """
    Nonlinear solve context.

    Responsibilities:
      - store configuration and the registered callbacks
      - keep variable/function scaling vectors (shape (N_EQ,))
      - provide u <-> scaled u conversion and scaled residual evaluation
    """

    cfg: CaseConfig
    residual: ResidualFn
    scale_u: np.ndarray
    scale_f: np.ndarray

    # Jacobian-vector product; only used when cfg.nonlinear.use_jtv is set
    jtv: Optional[JacTimesVecFn] = None

    # Extension point for diagnostics/counters
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.scale_u = np.asarray(self.scale_u, dtype=np.float64)
        self.scale_f = np.asarray(self.scale_f, dtype=np.float64)
        for name in ("scale_u", "scale_f"):
            v = getattr(self, name)
            if v.shape != (N_EQ,):
                raise ValueError(f"{name} shape {v.shape} incompatible with problem size {N_EQ}")
            if np.any(v <= 0.0):
                raise ValueError(f"{name} entries must be strictly positive")

    @property
    def n(self) -> int:
        return N_EQ

    def _check_u(self, u: np.ndarray, name: str) -> np.ndarray:
        u = np.asarray(u, dtype=np.float64)
        if u.shape != (N_EQ,):
            raise ValueError(f"{name} shape {u.shape} incompatible with problem size {N_EQ}")
        return u

    def to_scaled_u(self, u: np.ndarray) -> np.ndarray:
        """Convert physical u to scaled u_scaled = scale_u * u."""
        return self._check_u(u, "u") * self.scale_u

    def from_scaled_u(self, u_scaled: np.ndarray) -> np.ndarray:
        """Convert scaled u_scaled to physical u = u_scaled / scale_u."""
        return self._check_u(u_scaled, "u_scaled") / self.scale_u

    def eval_residual(self, u: np.ndarray) -> np.ndarray:
        """F(u) in physical units."""
        u = self._check_u(u, "u")
        self.meta["n_func_eval"] = int(self.meta.get("n_func_eval", 0)) + 1
        return np.asarray(self.residual(u), dtype=np.float64)

    def scaled_residual(self, u_scaled: np.ndarray) -> np.ndarray:
        """G(s) = scale_f * F(s / scale_u), the system the solver iterates on."""
        return self.scale_f * self.eval_residual(self.from_scaled_u(u_scaled))

    def scaled_jac_times_vec(self, v_scaled: np.ndarray, u_scaled: Optional[np.ndarray] = None) -> np.ndarray:
        """dG/ds @ v = scale_f * J(u) @ (v / scale_u)."""
        if self.jtv is None:
            raise RuntimeError("No Jacobian-vector product registered on this context.")
        v_phys = self._check_u(v_scaled, "v") / self.scale_u
        u_phys = None if u_scaled is None else self.from_scaled_u(u_scaled)
        self.meta["n_jtv_eval"] = int(self.meta.get("n_jtv_eval", 0)) + 1
        return self.scale_f * np.asarray(self.jtv(v_phys, u_phys), dtype=np.float64)


def build_nonlinear_context(
    cfg: CaseConfig,
    *,
    residual_fn: ResidualFn = residual,
    jtv_fn: JacTimesVecFn = jac_times_vec,
) -> Tuple[NonlinearContext, np.ndarray]:
    """
    Build NonlinearContext and return the initial guess u0.

    Current policy:
      - u0 is a fresh copy of cfg.problem.u0
      - the Jv callback is attached only when cfg.nonlinear.use_jtv is set
    """
    problem = cfg.problem
    u0 = np.array(problem.u0, dtype=np.float64)
    if u0.shape != (N_EQ,):
        raise ValueError(f"u0 shape {u0.shape} incompatible with problem size {N_EQ}")

    use_jtv = bool(getattr(cfg.nonlinear, "use_jtv", False))
    ctx = NonlinearContext(
        cfg=cfg,
        residual=residual_fn,
        scale_u=np.array(problem.scale_u, dtype=np.float64),
        scale_f=np.array(problem.scale_f, dtype=np.float64),
        jtv=jtv_fn if use_jtv else None,
    )
    return ctx, u0
