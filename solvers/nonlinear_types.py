"""
Shared nonlinear solver result types.

Goal:
- Backend-agnostic: SciPy and PETSc (SNES) return the same structure.
- ``flag`` keeps the usual status convention: >= 0 success, < 0 failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

FLAG_SUCCESS = 0
FLAG_NO_CONVERGENCE = -1


class NonlinearBackend(str, Enum):
    SCIPY = "scipy"
    PETSC = "petsc"


class GlobalStrategy(str, Enum):
    NONE = "none"
    LINESEARCH = "linesearch"

    @classmethod
    def normalize(cls, value: Any) -> "GlobalStrategy":
        if isinstance(value, cls):
            return value
        v = str(value).strip().lower()
        if v in ("line_search", "linesearch", "ls"):
            return cls.LINESEARCH
        if v in ("none", "basic", ""):
            return cls.NONE
        allowed = [e.value for e in cls]
        raise ValueError(f"nonlinear.strategy: invalid value {value!r}, allowed={allowed}")


@dataclass(slots=True)
class NonlinearDiagnostics:
    converged: bool
    method: str
    n_iter: int
    res_norm_2: float
    res_norm_inf: float
    flag: int = FLAG_SUCCESS
    history_res_inf: List[float] = field(default_factory=list)
    message: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class NonlinearSolveResult:
    u: np.ndarray
    diag: NonlinearDiagnostics
