"""
Pytest configuration for tabpretrain training tests.

- Sets logging to INFO to capture training logs.
- Provides small mixed-type frames (numeric, categorical, missing values).
- Provides a lightweight OmegaConf DictConfig fixture with fast CPU defaults.
"""

import logging

import numpy as np
import pandas as pd
import pytest
import torch
from omegaconf import OmegaConf


@pytest.fixture(autouse=True)
def _set_logging_level(caplog):
    caplog.set_level(logging.INFO)
    yield


@pytest.fixture(autouse=True)
def _seed():
    torch.manual_seed(0)
    np.random.seed(0)
    yield


@pytest.fixture
def frame():
    """
    70 rows: two numeric columns (one with gaps), one categorical column with
    a missing level, and one boolean column.
    """
    rng = np.random.default_rng(7)
    n = 70
    num_a = rng.normal(size=n)
    num_b = rng.normal(loc=3.0, scale=2.0, size=n)
    num_b[::9] = np.nan
    cat = rng.choice(["red", "green", "blue"], size=n).astype(object)
    cat[::11] = None
    flag = rng.random(n) > 0.5
    return pd.DataFrame({"num_a": num_a, "num_b": num_b, "colour": cat, "flag": flag})


@pytest.fixture
def cfg_minimal():
    """
    Returns a minimal DictConfig for unit tests that run the epoch loop on CPU.
    """
    base = {
        "device": "cpu",
        "epochs": 2,
        "batch_size": 16,
        "checkpoint_epochs": 0,
        "seed": 123,
        "n_d": 4,
        "n_steps": 2,
        "virtual_batch_size": 8,
    }
    return OmegaConf.create(base)
