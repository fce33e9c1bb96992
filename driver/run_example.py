"""
Driver for the stiff 2-D example solved as a root-finding problem.

Sequence:
- Load CaseConfig (YAML or built-in defaults) and apply CLI overrides.
- Build the initial-guess and scaling vectors and the solve context.
- Solve once with the selected backend (SciPy or PETSc SNES).
- Print the final vector; return 0 on success, 1 on any failure.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence, TextIO, Tuple

import numpy as np

from core.config_io import load_case_config
from core.logging_utils import get_log_level_from_env, setup_logging
from core.status import OPT_ALLOC, OPT_FLAG, SolverError, check_flag
from core.types import CaseConfig, default_case_config
from solvers.nonlinear_context import build_nonlinear_context
from solvers.nonlinear_types import NonlinearSolveResult
from solvers.solver_nonlinear import normalize_backend, solve_nonlinear

logger = logging.getLogger(__name__)

RESULT_HEADER = "Final Value of y0 vector: "


def format_vector(u: np.ndarray) -> str:
    """One component per line ('%11.8g'), followed by a blank line."""
    lines = ["%11.8g\n" % float(x) for x in np.asarray(u, dtype=np.float64).ravel()]
    return "".join(lines) + "\n"


def print_result(u: np.ndarray, stream: Optional[TextIO] = None) -> None:
    out = sys.stdout if stream is None else stream
    out.write(RESULT_HEADER + "\n")
    out.write(format_vector(u))
    out.flush()


def _apply_overrides(
    cfg: CaseConfig,
    *,
    backend: Optional[str] = None,
    strategy: Optional[str] = None,
    max_outer_iter: Optional[int] = None,
    use_jtv: bool = False,
    verbose: bool = False,
) -> CaseConfig:
    nl = cfg.nonlinear
    if backend is not None:
        nl.backend = normalize_backend(backend)
    if strategy is not None:
        nl.strategy = str(strategy)
    if max_outer_iter is not None:
        if int(max_outer_iter) < 1:
            raise ValueError(f"max_outer_iter must be >= 1, got {max_outer_iter}")
        nl.max_outer_iter = int(max_outer_iter)
    if use_jtv:
        nl.use_jtv = True
    if verbose:
        nl.verbose = True
    nl.enabled = True
    return cfg


def solve_case(cfg: CaseConfig) -> Tuple[int, Optional[NonlinearSolveResult]]:
    """
    Run the linear setup/solve sequence with a check after each step.

    Returns (exit_code, result); result is None when setup failed.
    """
    ctx, y0 = build_nonlinear_context(cfg)
    if check_flag(y0, "build_initial_guess", OPT_ALLOC):
        return 1, None
    if check_flag(ctx.scale_u, "build_scaling", OPT_ALLOC):
        return 1, None
    if check_flag(ctx, "build_nonlinear_context", OPT_ALLOC):
        return 1, None

    logger.info(
        "Solving case '%s': backend=%s strategy=%s u0=%s",
        cfg.case.id,
        cfg.nonlinear.backend,
        cfg.nonlinear.strategy,
        y0.tolist(),
    )
    result = solve_nonlinear(ctx, y0)
    if check_flag(result.diag.flag, "solve_nonlinear", OPT_FLAG):
        return 1, result
    if not result.diag.converged:
        logger.error("solve_nonlinear reported flag=%d but not converged", result.diag.flag)
        return 1, result

    logger.info(
        "Converged: method=%s iters=%d res_inf=%.3e",
        result.diag.method,
        result.diag.n_iter,
        result.diag.res_norm_inf,
    )
    return 0, result


def run_case(
    cfg_path: Optional[str] = None,
    *,
    backend: Optional[str] = None,
    strategy: Optional[str] = None,
    max_outer_iter: Optional[int] = None,
    use_jtv: bool = False,
    verbose: bool = False,
    log_level: int | str = logging.WARNING,
    stream: Optional[TextIO] = None,
) -> int:
    """Run the example. Return 0 on success, 1 on any failure."""
    setup_logging(get_log_level_from_env(default=log_level))
    try:
        cfg = default_case_config() if cfg_path is None else load_case_config(cfg_path)
        cfg = _apply_overrides(
            cfg,
            backend=backend,
            strategy=strategy,
            max_outer_iter=max_outer_iter,
            use_jtv=use_jtv,
            verbose=verbose,
        )
        code, result = solve_case(cfg)
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Invalid case configuration: %s", exc)
        return 1
    except SolverError as exc:
        logger.error("%s", exc)
        return 1
    except RuntimeError as exc:
        logger.error("Nonlinear solve failed: %s", exc)
        return 1

    if code != 0 or result is None:
        return code
    print_result(result.u, stream=stream)
    return 0


def _parse_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        description="Solve the stiff 2-D linear system as a Newton-Krylov root-finding problem."
    )
    parser.add_argument(
        "case_yaml",
        nargs="?",
        default=None,
        help="Path to case YAML file (default: built-in example).",
    )
    parser.add_argument(
        "--backend",
        choices=("scipy", "petsc"),
        default=None,
        help="Override nonlinear backend (default: use YAML).",
    )
    parser.add_argument(
        "--strategy",
        choices=("none", "linesearch"),
        default=None,
        help="Override global strategy (default: use YAML).",
    )
    parser.add_argument(
        "--max_outer_iter",
        type=int,
        default=None,
        help="Override nonlinear max_outer_iter (default: use YAML).",
    )
    parser.add_argument(
        "--use_jtv",
        action="store_true",
        help="Use the analytic Jacobian-vector product instead of finite differences.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log nonlinear iterations.",
    )
    args, unknown = parser.parse_known_args(argv)
    return args, list(unknown)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args, petsc_args = _parse_args(argv)
    # Prevent PETSc from parsing driver-specific CLI flags.
    sys.argv = [sys.argv[0]] + list(petsc_args)
    return run_case(
        args.case_yaml,
        backend=args.backend,
        strategy=args.strategy,
        max_outer_iter=args.max_outer_iter,
        use_jtv=args.use_jtv,
        verbose=args.verbose,
        log_level=logging.INFO if args.verbose else logging.WARNING,
    )


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
