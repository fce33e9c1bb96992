from __future__ import annotations

import os
import sys

_PETSC_INITIALIZED = False


def get_petsc():
    """
    Import petsc4py.PETSc, initializing mpi4py first and PETSc once with argv.

    Raises RuntimeError when petsc4py is not installed.
    """
    global _PETSC_INITIALIZED

    try:
        from mpi4py import MPI  # noqa: F401
    except ImportError:
        # PETSc can run serially without mpi4py.
        pass

    try:
        import petsc4py
    except ImportError as exc:
        raise RuntimeError("petsc4py is required for the PETSc nonlinear backend.") from exc

    if not _PETSC_INITIALIZED:
        _PETSC_INITIALIZED = True
        argv = [] if os.environ.get("PYTEST_CURRENT_TEST") else sys.argv
        petsc4py.init(argv)

    from petsc4py import PETSc

    return PETSc
