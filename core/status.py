"""
Return-value checks for solver setup/solve calls.

Two failure kinds:
- allocation failure: a creation call produced no object (None)
- operational failure: a call returned a negative integer flag

check_flag() reports and returns a failure indicator; require_flag() raises.
Callers treat every failure as fatal (no retry, no recovery).
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional, TextIO

logger = logging.getLogger(__name__)

OPT_ALLOC = 0
OPT_FLAG = 1
OPT_MEMORY = 2


class SolverError(RuntimeError):
    """Base class for fatal solver setup/solve failures."""

    def __init__(self, funcname: str, message: str) -> None:
        super().__init__(message)
        self.funcname = funcname


class SolverAllocationError(SolverError):
    """A creation call returned no object."""


class SolverFlagError(SolverError):
    """A call returned a negative status flag."""

    def __init__(self, funcname: str, flag: int, message: str) -> None:
        super().__init__(funcname, message)
        self.flag = int(flag)


def _format_failure(flagvalue: Any, funcname: str, opt: int) -> Optional[str]:
    if opt == OPT_ALLOC:
        if flagvalue is None:
            return f"\nSOLVER_ERROR: {funcname}() failed - returned NULL pointer\n\n"
        return None
    if opt == OPT_FLAG:
        flag = int(flagvalue)
        if flag < 0:
            return f"\nSOLVER_ERROR: {funcname}() failed with flag = {flag}\n\n"
        return None
    if opt == OPT_MEMORY:
        if flagvalue is None:
            return f"\nMEMORY_ERROR: {funcname}() failed - returned NULL pointer\n\n"
        return None
    raise ValueError(f"check_flag: unknown opt={opt!r} (expected 0, 1 or 2)")


def check_flag(
    flagvalue: Any,
    funcname: str,
    opt: int,
    stream: Optional[TextIO] = None,
) -> bool:
    """
    Check a call's return value.

    opt == 0: allocation call, None means failure
    opt == 1: flag-returning call, flag < 0 means failure
    opt == 2: allocation call (memory), None means failure

    Writes one diagnostic line to stderr (or ``stream``) on failure.
    Returns True on failure, False otherwise.
    """
    msg = _format_failure(flagvalue, funcname, opt)
    if msg is None:
        return False
    out = sys.stderr if stream is None else stream
    out.write(msg)
    out.flush()
    logger.debug("check_flag failure: func=%s opt=%d value=%r", funcname, opt, flagvalue)
    return True


def require_flag(
    flagvalue: Any,
    funcname: str,
    opt: int,
    stream: Optional[TextIO] = None,
) -> Any:
    """Like check_flag() but raise on failure; returns ``flagvalue`` otherwise."""
    if not check_flag(flagvalue, funcname, opt, stream=stream):
        return flagvalue
    if opt == OPT_FLAG:
        raise SolverFlagError(
            funcname,
            int(flagvalue),
            f"{funcname}() failed with flag = {int(flagvalue)}",
        )
    raise SolverAllocationError(funcname, f"{funcname}() failed - returned NULL pointer")
