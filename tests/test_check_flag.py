"""
Status-check helper (check_flag / require_flag).

Tests:
1. None with opt 0 and opt 2 reports failure (with distinct prefixes)
2. non-None with opt 0 reports success and writes nothing
3. flag -1 with opt 1 reports failure; 0 and positive succeed
4. require_flag raises the matching exception type
5. unknown opt is rejected
"""

from __future__ import annotations

import io

import numpy as np
import pytest

from core.status import (
    OPT_ALLOC,
    OPT_FLAG,
    OPT_MEMORY,
    SolverAllocationError,
    SolverError,
    SolverFlagError,
    check_flag,
    require_flag,
)


# ============================================================================
# check_flag
# ============================================================================


@pytest.mark.parametrize("opt", [OPT_ALLOC, OPT_MEMORY])
def test_none_pointer_is_failure(opt):
    buf = io.StringIO()
    assert check_flag(None, "make_vector", opt, stream=buf) is True
    text = buf.getvalue()
    assert "make_vector() failed - returned NULL pointer" in text
    if opt == OPT_ALLOC:
        assert "SOLVER_ERROR:" in text
    else:
        assert "MEMORY_ERROR:" in text


def test_non_null_pointer_is_success():
    buf = io.StringIO()
    assert check_flag(np.zeros(2), "make_vector", OPT_ALLOC, stream=buf) is False
    assert buf.getvalue() == ""


def test_negative_flag_is_failure():
    buf = io.StringIO()
    assert check_flag(-1, "solve", OPT_FLAG, stream=buf) is True
    assert buf.getvalue() == "\nSOLVER_ERROR: solve() failed with flag = -1\n\n"


@pytest.mark.parametrize("flag", [0, 1, 2, 7])
def test_zero_or_positive_flag_is_success(flag):
    buf = io.StringIO()
    assert check_flag(flag, "solve", OPT_FLAG, stream=buf) is False
    assert buf.getvalue() == ""


def test_default_stream_is_stderr(capsys):
    assert check_flag(-3, "solve", OPT_FLAG) is True
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "solve() failed with flag = -3" in captured.err


def test_unknown_opt_rejected():
    with pytest.raises(ValueError, match="unknown opt"):
        check_flag(0, "solve", 5)


# ============================================================================
# require_flag
# ============================================================================


def test_require_flag_passes_value_through():
    obj = object()
    assert require_flag(obj, "create", OPT_ALLOC, stream=io.StringIO()) is obj
    assert require_flag(3, "solve", OPT_FLAG, stream=io.StringIO()) == 3


def test_require_flag_raises_allocation_error():
    with pytest.raises(SolverAllocationError) as excinfo:
        require_flag(None, "create", OPT_MEMORY, stream=io.StringIO())
    assert excinfo.value.funcname == "create"
    assert isinstance(excinfo.value, SolverError)


def test_require_flag_raises_flag_error():
    with pytest.raises(SolverFlagError, match="flag = -6") as excinfo:
        require_flag(-6, "solve", OPT_FLAG, stream=io.StringIO())
    assert excinfo.value.flag == -6
