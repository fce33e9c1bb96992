"""
SciPy-based nonlinear solver wrapper (global Newton/Krylov).

This module only coordinates solver calls; the residual lives in physics/.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
from scipy import optimize

from physics.stiff_ode import jacobian_dense
from solvers.nonlinear_context import NonlinearContext
from solvers.nonlinear_types import (
    FLAG_NO_CONVERGENCE,
    FLAG_SUCCESS,
    GlobalStrategy,
    NonlinearDiagnostics,
    NonlinearSolveResult,
)

logger = logging.getLogger(__name__)


def solve_nonlinear_scipy(
    ctx: NonlinearContext,
    u0: np.ndarray,
) -> NonlinearSolveResult:
    """
    Solve F(u)=0 using SciPy nonlinear solvers on the scaled system.
    """
    cfg = ctx.cfg
    nl = getattr(cfg, "nonlinear", None)
    if nl is None or not getattr(nl, "enabled", False):
        raise ValueError("Nonlinear solver requested but cfg.nonlinear.enabled is False or missing.")

    solver = str(getattr(nl, "solver", "newton_krylov"))
    krylov_method = str(getattr(nl, "krylov_method", "gmres"))
    strategy = GlobalStrategy.normalize(getattr(nl, "strategy", GlobalStrategy.LINESEARCH))
    max_outer_iter = int(getattr(nl, "max_outer_iter", 200))
    inner_maxiter = int(getattr(nl, "inner_maxiter", 5))
    f_atol = float(getattr(nl, "f_atol", 1.0e-5))
    f_rtol_raw = getattr(nl, "f_rtol", None)
    f_rtol: Optional[float] = None if f_rtol_raw is None else float(f_rtol_raw)
    use_jtv = bool(getattr(nl, "use_jtv", False)) and ctx.jtv is not None
    verbose = bool(getattr(nl, "verbose", False))
    log_every = max(1, int(getattr(nl, "log_every", 1)))

    u0_s = ctx.to_scaled_u(u0)
    history: List[float] = []

    def _F_scaled(u_s: np.ndarray) -> np.ndarray:
        res = ctx.scaled_residual(np.asarray(u_s, dtype=np.float64))
        res_norm_inf = float(np.linalg.norm(res, ord=np.inf))
        history.append(res_norm_inf)
        if verbose and len(history) % log_every == 0:
            logger.info("nonlinear eval=%d res_inf=%.3e", len(history), res_norm_inf)
        return res

    converged = False
    msg = None

    if solver == "newton_krylov":
        if use_jtv:
            logger.warning(
                "use_jtv is ignored by scipy newton_krylov (finite-difference Krylov Jacobian only)."
            )
        line_search = "armijo" if strategy == GlobalStrategy.LINESEARCH else None
        try:
            sol_s = optimize.newton_krylov(
                _F_scaled,
                u0_s,
                method=krylov_method,
                inner_maxiter=inner_maxiter,
                maxiter=max_outer_iter,
                f_tol=f_atol,
                f_rtol=f_rtol,
                line_search=line_search,
                verbose=verbose,
            )
            converged = True
        except optimize.NoConvergence as exc:
            sol_raw = exc.args[0] if exc.args else u0_s
            sol_s = np.asarray(sol_raw, dtype=np.float64)
            converged = False
            msg = "newton_krylov did not converge"
            logger.warning("newton_krylov did not converge after %d residual evaluations", len(history))
        method = f"newton_krylov:{krylov_method}"
    elif solver in ("root_hybr", "hybr"):
        jac = None
        if use_jtv:
            def jac(u_s: np.ndarray) -> np.ndarray:
                return jacobian_dense(ctx.scaled_jac_times_vec, u_s)

        sol = optimize.root(
            _F_scaled,
            u0_s,
            jac=jac,
            method="hybr",
            tol=f_atol,
            options={"maxfev": max_outer_iter * (ctx.n + 1)},
        )
        sol_s = np.asarray(sol.x, dtype=np.float64)
        # success from hybr's step test, or scaled residual within f_atol
        converged = bool(sol.success) or float(np.linalg.norm(sol.fun, ord=np.inf)) <= f_atol
        msg = None if converged else str(sol.message)
        if not converged:
            logger.warning("root(hybr) did not converge: %s", msg)
        method = "root_hybr"
    else:
        raise ValueError(f"Unknown cfg.nonlinear.solver={solver!r}")

    u_final = ctx.from_scaled_u(sol_s)
    res_final = ctx.eval_residual(u_final)
    res_norm_2 = float(np.linalg.norm(res_final))
    res_norm_inf = float(np.linalg.norm(res_final, ord=np.inf))

    diag = NonlinearDiagnostics(
        converged=converged,
        method=method,
        n_iter=len(history),
        res_norm_2=res_norm_2,
        res_norm_inf=res_norm_inf,
        flag=FLAG_SUCCESS if converged else FLAG_NO_CONVERGENCE,
        history_res_inf=history,
        message=msg,
        extra={
            "strategy": strategy.value,
            "n_func_eval": int(ctx.meta.get("n_func_eval", 0)),
            "n_jtv_eval": int(ctx.meta.get("n_jtv_eval", 0)),
        },
    )
    logger.debug(
        "scipy solve done: method=%s converged=%s evals=%d res_inf=%.3e",
        method,
        converged,
        len(history),
        res_norm_inf,
    )
    return NonlinearSolveResult(u=u_final, diag=diag)
