"""
YAML loader for CaseConfig.

Every block is optional; missing keys keep the dataclass defaults.
Unknown keys are rejected so typos fail loudly.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from core.types import CaseConfig, CaseMeta, CaseNonlinear, CasePETSc, CaseProblem

logger = logging.getLogger(__name__)

_BLOCKS = {
    "case": CaseMeta,
    "problem": CaseProblem,
    "nonlinear": CaseNonlinear,
    "petsc": CasePETSc,
}


def _read_yaml_text(cfg_file: Path) -> str:
    try:
        return cfg_file.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        return cfg_file.read_text()


def _build_block(name: str, cls, raw: Any):
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise TypeError(f"{name}: expected mapping, got {type(raw).__name__}")
    allowed = {f.name for f in fields(cls)}
    unknown = set(raw.keys()) - allowed
    if unknown:
        raise ValueError(f"Unsupported keys in '{name}' block: {sorted(unknown)}")
    return cls(**dict(raw))


def case_config_from_dict(raw: Mapping[str, Any]) -> CaseConfig:
    """Build CaseConfig from an already-parsed mapping."""
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise TypeError(f"case config: expected mapping, got {type(raw).__name__}")
    unknown = set(raw.keys()) - set(_BLOCKS)
    if unknown:
        raise ValueError(f"Unsupported top-level config blocks: {sorted(unknown)}")
    blocks = {name: _build_block(name, cls, raw.get(name)) for name, cls in _BLOCKS.items()}
    return CaseConfig(**blocks)


def load_case_config(cfg_path: str | Path) -> CaseConfig:
    """Load YAML file into CaseConfig with nested dataclasses."""
    cfg_file = Path(cfg_path).expanduser().resolve()
    raw = yaml.safe_load(_read_yaml_text(cfg_file)) or {}
    cfg = case_config_from_dict(raw)
    logger.debug("Loaded case '%s' from %s", cfg.case.id, cfg_file)
    return cfg
