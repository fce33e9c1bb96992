"""
Strongly typed containers for the example case configuration.

Conventions:
- Problem dimension is fixed: N_EQ == 2 (physics/stiff_ode.py).
- u0, scale_u, scale_f all have shape (N_EQ,); no resizing anywhere.
- Scaling follows the usual Newton-solver meaning: the solver sees
  u_scaled = scale_u * u and F_scaled = scale_f * F(u).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

from physics.stiff_ode import N_EQ

FloatArray = NDArray[np.float64]


def _check_vec(name: str, values, *, positive: bool = False) -> List[float]:
    arr = np.asarray(values, dtype=np.float64)
    if arr.shape != (N_EQ,):
        raise ValueError(f"{name} must have length {N_EQ}, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr.tolist()}")
    if positive and np.any(arr <= 0.0):
        raise ValueError(f"{name} entries must be strictly positive, got {arr.tolist()}")
    return [float(x) for x in arr]


@dataclass(slots=True)
class CaseMeta:
    """Metadata for the case block."""

    id: str = "stiff2d"
    title: str = "Stiff 2-D linear system as a root-finding problem"
    version: int = 1
    notes: Optional[str] = None


@dataclass(slots=True)
class CaseProblem:
    """Initial guess and scaling vectors.

    Attributes
    ----------
    u0 : list of float
        Initial guess; overwritten by nothing (the solver works on a copy).
    scale_u : list of float
        Variable scaling, strictly positive.
    scale_f : list of float
        Function-value scaling, strictly positive.
    """

    u0: List[float] = field(default_factory=lambda: [2.0, 1.0])
    scale_u: List[float] = field(default_factory=lambda: [1.0, 1.0])
    scale_f: List[float] = field(default_factory=lambda: [1.0, 1.0])

    def __post_init__(self) -> None:
        self.u0 = _check_vec("problem.u0", self.u0)
        self.scale_u = _check_vec("problem.scale_u", self.scale_u, positive=True)
        self.scale_f = _check_vec("problem.scale_f", self.scale_f, positive=True)


@dataclass(slots=True)
class CaseNonlinear:
    """Nonlinear solver options (global Newton-Krylov)."""

    enabled: bool = True
    backend: str = "scipy"

    solver: str = "newton_krylov"
    krylov_method: str = "gmres"
    # Krylov subspace size per Newton step (GMRES restart length)
    inner_maxiter: int = 5

    # "linesearch" or "none"
    strategy: str = "linesearch"

    max_outer_iter: int = 200
    f_atol: float = 1.0e-5
    f_rtol: Optional[float] = None

    use_jtv: bool = False

    verbose: bool = False
    log_every: int = 1

    def __post_init__(self) -> None:
        if int(self.max_outer_iter) < 1:
            raise ValueError(f"nonlinear.max_outer_iter must be >= 1, got {self.max_outer_iter}")
        if int(self.inner_maxiter) < 1:
            raise ValueError(f"nonlinear.inner_maxiter must be >= 1, got {self.inner_maxiter}")
        if not float(self.f_atol) > 0.0:
            raise ValueError(f"nonlinear.f_atol must be positive, got {self.f_atol}")
        if self.f_rtol is not None and not float(self.f_rtol) > 0.0:
            raise ValueError(f"nonlinear.f_rtol must be positive or null, got {self.f_rtol}")


@dataclass(slots=True)
class CasePETSc:
    """PETSc SNES/KSP options (used by the PETSc nonlinear backend)."""

    options_prefix: str = "stiff2d_"
    snes_type: str = "newtonls"
    ksp_type: str = "gmres"
    pc_type: str = "none"
    rtol: float = 1.0e-5
    atol: float = 1.0e-5
    max_it: int = 200
    restart: int = 5
    # None -> "bt" for strategy=linesearch, "basic" for strategy=none
    linesearch_type: Optional[str] = None
    snes_monitor: bool = False


@dataclass(slots=True)
class CaseConfig:
    """Top-level case configuration container."""

    case: CaseMeta = field(default_factory=CaseMeta)
    problem: CaseProblem = field(default_factory=CaseProblem)
    nonlinear: CaseNonlinear = field(default_factory=CaseNonlinear)
    petsc: CasePETSc = field(default_factory=CasePETSc)

    def __post_init__(self) -> None:
        if not isinstance(self.case, CaseMeta):
            raise TypeError("case must be CaseMeta (loader must build dataclass).")
        if not isinstance(self.problem, CaseProblem):
            raise TypeError("problem must be CaseProblem (loader must build dataclass).")
        if not isinstance(self.nonlinear, CaseNonlinear):
            raise TypeError("nonlinear must be CaseNonlinear (loader must build dataclass).")
        if not isinstance(self.petsc, CasePETSc):
            raise TypeError("petsc must be CasePETSc (loader must build dataclass).")


def default_case_config() -> CaseConfig:
    """The hard-coded example: u0=(2, 1), unit scaling, tolerance 1e-5."""
    return CaseConfig()
