"""
Configuration package for tabpretrain.

``PretrainConfig`` is the validated, immutable run configuration; ``load_config``
builds one from a YAML/JSON file plus ``key=value`` overrides.
"""

from pathlib import Path

from .config_loader import dump_config, load_config
from .schema import PretrainConfig

CONFIG_DIR = Path(__file__).resolve().parents[3] / "configs"

__all__ = ["CONFIG_DIR", "PretrainConfig", "dump_config", "load_config"]
