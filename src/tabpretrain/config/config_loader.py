"""
YAML/JSON config loader for pretraining runs, with OmegaConf merging and schema validation.

Features:
- load_config(path, overrides): Load YAML/JSON, merge dotlist overrides, validate into PretrainConfig
- dump_config(cfg): Render a PretrainConfig as YAML
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import yaml
from omegaconf import OmegaConf

from .schema import PretrainConfig


def _read_mapping(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f) or {}
        elif path.suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level")
    # Allow either a flat file or one nested under a 'pretrain' key.
    return dict(data.get("pretrain", data))


def load_config(path: Optional[str | Path] = None, overrides: Optional[Sequence[str]] = None) -> PretrainConfig:
    """
    Load a configuration file and apply ``key=value`` overrides.

    Args:
        path: Optional .yaml/.yml or .json file. None starts from schema defaults.
        overrides: Dotlist strings, e.g. ``["epochs=10", "valid_split=0.2"]``.

    Returns:
        PretrainConfig: The validated configuration.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the format is unsupported or validation fails.
    """
    base = OmegaConf.create({})
    if path is not None:
        path_obj = Path(path)
        if not path_obj.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        base = OmegaConf.create(_read_mapping(path_obj))
    if overrides:
        base = OmegaConf.merge(base, OmegaConf.from_dotlist(list(overrides)))
    return PretrainConfig.from_any(base)


def dump_config(cfg: PretrainConfig) -> str:
    return yaml.safe_dump(cfg.to_loggable(), sort_keys=True)
