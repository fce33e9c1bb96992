"""
SciPy nonlinear backend on the stiff 2-D example.

Tests:
1. default newton_krylov/gmres with line search converges to (0, 0)
2. strategy "none" also converges
3. root_hybr with the analytic Jv-built Jacobian converges
4. non-unit scaling leaves the root unchanged
5. non-convergence is reported through diag (flag < 0), not raised
6. dispatcher aliases and errors
"""

from __future__ import annotations

import numpy as np
import pytest

from core.types import CaseNonlinear, CaseProblem, default_case_config
from solvers.newton_scipy import solve_nonlinear_scipy
from solvers.nonlinear_context import build_nonlinear_context
from solvers.nonlinear_types import FLAG_NO_CONVERGENCE, FLAG_SUCCESS
from solvers.solver_nonlinear import normalize_backend, solve_nonlinear


def _solve(cfg, **ctx_kwargs):
    ctx, u0 = build_nonlinear_context(cfg, **ctx_kwargs)
    return ctx, u0, solve_nonlinear(ctx, u0)


def test_default_example_converges_to_origin():
    cfg = default_case_config()
    ctx, u0, res = _solve(cfg)

    assert res.diag.converged is True
    assert res.diag.flag == FLAG_SUCCESS
    assert res.diag.method == "newton_krylov:gmres"
    assert res.diag.res_norm_inf <= cfg.nonlinear.f_atol
    np.testing.assert_allclose(res.u, np.zeros(2), atol=1e-4)
    # initial guess is not mutated
    np.testing.assert_array_equal(u0, np.array([2.0, 1.0]))
    assert res.diag.history_res_inf[0] == pytest.approx(302.0)


def test_strategy_none_converges():
    cfg = default_case_config()
    cfg.nonlinear.strategy = "none"
    _, _, res = _solve(cfg)
    assert res.diag.converged is True
    assert res.diag.extra["strategy"] == "none"
    assert res.diag.res_norm_inf <= cfg.nonlinear.f_atol


def test_root_hybr_with_analytic_jacobian():
    cfg = default_case_config()
    cfg.nonlinear.solver = "root_hybr"
    cfg.nonlinear.use_jtv = True
    ctx, _, res = _solve(cfg)
    assert res.diag.converged is True
    assert res.diag.method == "root_hybr"
    assert ctx.meta.get("n_jtv_eval", 0) > 0
    np.testing.assert_allclose(res.u, np.zeros(2), atol=1e-6)


def test_non_unit_scaling_same_root():
    cfg = default_case_config()
    cfg.problem = CaseProblem(u0=[2.0, 1.0], scale_u=[10.0, 0.5], scale_f=[0.01, 2.0])
    _, _, res = _solve(cfg)
    assert res.diag.converged is True
    np.testing.assert_allclose(res.u, np.zeros(2), atol=1e-4)


def test_non_convergence_reported_in_diag():
    cfg = default_case_config()
    cfg.problem = CaseProblem(u0=[2.0, 3.0])
    cfg.nonlinear = CaseNonlinear(strategy="none", max_outer_iter=3)

    def no_root(u, out=None):
        # u**2 + 1 > 0 everywhere
        return np.asarray(u, dtype=np.float64) ** 2 + 1.0

    ctx, u0 = build_nonlinear_context(cfg, residual_fn=no_root)
    res = solve_nonlinear_scipy(ctx, u0)
    assert res.diag.converged is False
    assert res.diag.flag == FLAG_NO_CONVERGENCE
    assert res.diag.message
    assert res.u.shape == (2,)


def test_unknown_solver_rejected():
    cfg = default_case_config()
    cfg.nonlinear.solver = "broyden9"
    ctx, u0 = build_nonlinear_context(cfg)
    with pytest.raises(ValueError, match="Unknown cfg.nonlinear.solver"):
        solve_nonlinear_scipy(ctx, u0)


def test_bad_strategy_rejected():
    cfg = default_case_config()
    cfg.nonlinear.strategy = "trust_region"
    ctx, u0 = build_nonlinear_context(cfg)
    with pytest.raises(ValueError, match="nonlinear.strategy"):
        solve_nonlinear(ctx, u0)


# ============================================================================
# Dispatcher
# ============================================================================


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("scipy", "scipy"),
        ("SciPy", "scipy"),
        ("snes", "petsc"),
        ("petsc_snes", "petsc"),
        ("petsc_serial", "petsc"),
        (" petsc ", "petsc"),
    ],
)
def test_backend_aliases(raw, expected):
    assert normalize_backend(raw) == expected


def test_unknown_backend_rejected():
    cfg = default_case_config()
    cfg.nonlinear.backend = "sundials"
    ctx, u0 = build_nonlinear_context(cfg)
    with pytest.raises(ValueError, match="Unknown nonlinear backend"):
        solve_nonlinear(ctx, u0)


def test_disabled_nonlinear_rejected():
    cfg = default_case_config()
    cfg.nonlinear.enabled = False
    ctx, u0 = build_nonlinear_context(cfg)
    with pytest.raises(ValueError, match="enabled"):
        solve_nonlinear(ctx, u0)


def test_context_scaling_roundtrip_and_jtv_attachment():
    cfg = default_case_config()
    cfg.problem = CaseProblem(scale_u=[2.0, 4.0], scale_f=[1.0, 3.0])
    ctx, u0 = build_nonlinear_context(cfg)
    assert ctx.jtv is None
    s = ctx.to_scaled_u(u0)
    np.testing.assert_array_equal(s, np.array([4.0, 4.0]))
    np.testing.assert_array_equal(ctx.from_scaled_u(s), u0)
    np.testing.assert_allclose(ctx.scaled_residual(s), np.array([-302.0, 6.0]))

    cfg.nonlinear.use_jtv = True
    ctx, _ = build_nonlinear_context(cfg)
    assert ctx.jtv is not None
    # dG/ds e0 = scale_f * J @ (e0 / scale_u) = [1, 3] * [-101/2, 1/2]
    np.testing.assert_allclose(ctx.scaled_jac_times_vec(np.array([1.0, 0.0])), np.array([-50.5, 1.5]))
