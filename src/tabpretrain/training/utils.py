from __future__ import annotations

import json
import logging
import os
import random
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import torch

logger = logging.getLogger(__name__)


def seed_everything(seed: Optional[int]) -> None:
    """Seed every RNG a run touches. ``None`` leaves RNG state untouched."""
    if seed is None:
        return
    random.seed(seed)
    np.random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)


def resolve_device(device: str) -> torch.device:
    """
    Resolve a configured device string once, before training.
    "auto" picks CUDA when available and falls back to the CPU.
    """
    if device == "auto":
        resolved = "cuda" if torch.cuda.is_available() else "cpu"
        logger.info("Device 'auto' resolved to '%s'", resolved)
        return torch.device(resolved)
    return torch.device(device)


def ensure_dir(path: Path | str) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(path: Path | str, data: Any) -> None:
    """Pretty-printed UTF-8 JSON; non-serialisable values are written as strings."""
    Path(path).write_text(json.dumps(data, indent=2, sort_keys=True, default=str), encoding="utf-8")


def load_json(path: Path | str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
