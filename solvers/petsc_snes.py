# -*- coding: utf-8 -*-
"""
PETSc SNES nonlinear solver wrapper (serial).

- SNES newtonls with a KSP (gmres by default, no preconditioner).
- Jacobian:
  * default: SNES matrix-free finite differences (SNES-level MFFD)
  * cfg.nonlinear.use_jtv: Python shell matrix applying the registered Jv callback
- Global strategy maps to the line search: "linesearch" -> bt, "none" -> basic.
- Every PETSc object created here is destroyed before returning or raising.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from core.status import OPT_ALLOC, OPT_MEMORY, require_flag
from parallel.mpi_bootstrap import get_petsc
from solvers.nonlinear_context import NonlinearContext
from solvers.nonlinear_types import GlobalStrategy, NonlinearDiagnostics, NonlinearSolveResult

logger = logging.getLogger(__name__)

_LINESEARCH_FOR_STRATEGY = {
    GlobalStrategy.LINESEARCH: "bt",
    GlobalStrategy.NONE: "basic",
}


def _cfg_get(obj, name: str, default=None):
    """
    Safe getattr / dict-get helper for config-like objects.
    """
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _enable_snes_matrix_free(PETSc, snes, prefix: str) -> None:
    """
    Enable SNES matrix-free Jacobian.

    Uses snes.setUseMF(True) when available, otherwise the -<prefix>snes_mf option.
    """
    if hasattr(snes, "setUseMF"):
        snes.setUseMF(True)
        return
    opts = PETSc.Options(prefix)
    opts["snes_mf"] = "1"


def _converged_reason_name(PETSc, reason: int) -> str:
    names = {
        int(v): k
        for k, v in vars(PETSc.SNES.ConvergedReason).items()
        if not k.startswith("_") and isinstance(v, int)
    }
    return names.get(int(reason), str(reason))


class _ShellJacobian:
    """Python context for a MATPYTHON operator: Y = dG/ds(X_base) @ X."""

    def __init__(self, ctx: NonlinearContext) -> None:
        self.ctx = ctx
        self.base: Optional[np.ndarray] = None

    def set_base(self, x_scaled: np.ndarray) -> None:
        self.base = np.array(x_scaled, dtype=np.float64)

    def mult(self, mat, X, Y):
        v = np.asarray(X.getArray(readonly=True), dtype=np.float64)
        y = Y.getArray()
        y[:] = self.ctx.scaled_jac_times_vec(v, self.base)


def solve_nonlinear_petsc(
    ctx: NonlinearContext,
    u0: np.ndarray,
) -> NonlinearSolveResult:
    """
    Solve F(u) = 0 using PETSc SNES on the scaled system.
    """
    PETSc = get_petsc()
    comm = PETSc.COMM_SELF

    cfg = ctx.cfg
    nl = getattr(cfg, "nonlinear", None)
    if nl is None or not getattr(nl, "enabled", False):
        raise ValueError("Nonlinear solver requested but cfg.nonlinear.enabled is False or missing.")
    petsc_cfg = getattr(cfg, "petsc", None)

    strategy = GlobalStrategy.normalize(getattr(nl, "strategy", GlobalStrategy.LINESEARCH))
    max_outer_iter = int(getattr(nl, "max_outer_iter", 200))
    f_atol = float(getattr(nl, "f_atol", 1.0e-5))
    f_rtol_raw = getattr(nl, "f_rtol", None)
    f_rtol = None if f_rtol_raw is None else float(f_rtol_raw)
    use_jtv = bool(getattr(nl, "use_jtv", False)) and ctx.jtv is not None
    verbose = bool(getattr(nl, "verbose", False))
    log_every = max(1, int(getattr(nl, "log_every", 1)))

    prefix = str(_cfg_get(petsc_cfg, "options_prefix", "") or "")
    if prefix and not prefix.endswith("_"):
        prefix = f"{prefix}_"
    snes_type = str(_cfg_get(petsc_cfg, "snes_type", "newtonls"))
    ksp_type = str(_cfg_get(petsc_cfg, "ksp_type", "gmres"))
    pc_type = str(_cfg_get(petsc_cfg, "pc_type", "none"))
    ksp_rtol = float(_cfg_get(petsc_cfg, "rtol", 1.0e-5))
    ksp_atol = float(_cfg_get(petsc_cfg, "atol", 1.0e-5))
    ksp_max_it = int(_cfg_get(petsc_cfg, "max_it", 200))
    restart = int(_cfg_get(petsc_cfg, "restart", 5))
    linesearch_type = _cfg_get(petsc_cfg, "linesearch_type", None) or _LINESEARCH_FOR_STRATEGY[strategy]
    snes_monitor = bool(_cfg_get(petsc_cfg, "snes_monitor", False))

    N = ctx.n
    u0_s = ctx.to_scaled_u(u0)
    history: List[float] = []
    last_inf = {"val": np.nan}
    extra: Dict[str, Any] = {
        "strategy": strategy.value,
        "linesearch_type": str(linesearch_type),
        "jacobian": "shell_jtv" if use_jtv else "mf",
    }

    def snes_func(snes, X, F):
        x_view = np.asarray(X.getArray(readonly=True), dtype=np.float64)
        res = ctx.scaled_residual(x_view)
        f_view = F.getArray()
        f_view[:] = res
        last_inf["val"] = float(np.linalg.norm(res, ord=np.inf))

    def snes_monitor_fn(snes, its, fnorm):
        history.append(float(last_inf["val"]))
        if (snes_monitor or verbose) and its % log_every == 0:
            logger.info("snes iter=%d fnorm=%.3e res_inf=%.3e", its, float(fnorm), last_inf["val"])

    shell: Optional[_ShellJacobian] = None

    def jac_func(snes, X, J, P):
        if shell is not None:
            shell.set_base(np.asarray(X.getArray(readonly=True), dtype=np.float64))

    snes = None
    X = None
    F = None
    J = None
    try:
        X = require_flag(PETSc.Vec().createSeq(N, comm=comm), "VecCreateSeq", OPT_ALLOC)
        X_arr = X.getArray()
        X_arr[:] = u0_s
        F = require_flag(X.duplicate(), "VecDuplicate", OPT_ALLOC)

        snes = require_flag(PETSc.SNES().create(comm=comm), "SNESCreate", OPT_ALLOC)
        snes.setOptionsPrefix(prefix)
        snes.setType(snes_type)
        snes.setFunction(snes_func, F)
        snes.setTolerances(rtol=f_rtol, atol=f_atol, max_it=max_outer_iter)

        if use_jtv:
            shell = _ShellJacobian(ctx)
            shell.set_base(u0_s)
            J = PETSc.Mat().createPython([N, N], context=shell, comm=comm)
            J = require_flag(J, "MatCreatePython", OPT_MEMORY)
            J.setUp()
            snes.setJacobian(jac_func, J, J)
        else:
            _enable_snes_matrix_free(PETSc, snes, prefix)

        ksp = require_flag(snes.getKSP(), "SNESGetKSP", OPT_MEMORY)
        ksp.setType(ksp_type)
        ksp.getPC().setType(pc_type)
        ksp.setTolerances(rtol=ksp_rtol, atol=ksp_atol, max_it=ksp_max_it)
        if ksp_type in ("gmres", "fgmres"):
            ksp.setGMRESRestart(restart)

        snes.getLineSearch().setType(linesearch_type)
        snes.setMonitor(snes_monitor_fn)
        snes.setFromOptions()

        snes.solve(None, X)

        reason = int(snes.getConvergedReason())
        n_iter = int(snes.getIterationNumber())
        extra["ksp_its_total"] = int(snes.getLinearSolveIterations())
        extra["snes_type"] = str(snes.getType())
        extra["ksp_type"] = str(ksp.getType())
        extra["pc_type"] = str(ksp.getPC().getType())
        extra["converged_reason"] = _converged_reason_name(PETSc, reason)
        method = f"snes:{snes.getType()}"
        x_final = np.array(X.getArray(readonly=True), dtype=np.float64)
    finally:
        for obj in (J, F, X, snes):
            if obj is not None:
                obj.destroy()

    converged = reason > 0
    u_final = ctx.from_scaled_u(x_final)
    res_final = ctx.eval_residual(u_final)
    res_norm_2 = float(np.linalg.norm(res_final))
    res_norm_inf = float(np.linalg.norm(res_final, ord=np.inf))

    message = None if converged else f"SNES diverged (reason={extra['converged_reason']})"
    if not converged:
        logger.warning("SNES not converged: reason=%d res_inf=%.3e", reason, res_norm_inf)

    diag = NonlinearDiagnostics(
        converged=converged,
        method=method,
        n_iter=n_iter,
        res_norm_2=res_norm_2,
        res_norm_inf=res_norm_inf,
        flag=reason,
        history_res_inf=history,
        message=message,
        extra=extra,
    )
    return NonlinearSolveResult(u=u_final, diag=diag)
